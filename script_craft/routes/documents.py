"""Source document endpoints."""

from fastapi import APIRouter, UploadFile

from script_craft.documents import validate_uploads

from .deps import ServiceDep, SessionDep, read_upload
from .models import TopicsBody

router = APIRouter()


@router.get("/personas/{persona_id}/documents")
async def list_documents(persona_id: str, session: SessionDep):
    return session.get_persona(persona_id).source_documents


@router.post("/personas/{persona_id}/documents", status_code=201)
async def upload_documents(
    persona_id: str, files: list[UploadFile], session: SessionDep, service: ServiceDep
):
    """Upload and analyse files for a persona's knowledge base.

    Files are processed one after another. A file that fails is still
    attached, in the "error" state with its message, so it can be removed.
    """
    persona = session.get_persona(persona_id)
    uploads = [await read_upload(f) for f in files]
    existing = len(persona.source_documents)
    validate_uploads(uploads, existing)
    docs = await service.process_documents(uploads, existing)
    session.attach_documents(persona_id, docs)
    return docs


@router.delete("/personas/{persona_id}/documents/{document_id}")
async def remove_document(persona_id: str, document_id: str, session: SessionDep):
    session.remove_document(persona_id, document_id)
    return {"ok": True}


@router.post("/topics")
async def extract_topics(body: TopicsBody, service: ServiceDep):
    """Top topics of a text; an empty list when the model can't provide them."""
    return {"topics": await service.extract_topics(body.text)}
