"""Persona endpoints: CRUD, JSON import/export, AI analysis, attachments."""

from fastapi import APIRouter, Response, UploadFile

from script_craft.documents import decode_text
from script_craft.personas import (
    EXPORT_FILENAME,
    apply_analysis,
    export_personas,
    import_personas,
    new_persona,
)

from .deps import ServiceDep, SessionDep, read_upload
from .models import CreatePersona, TranscriptBody, UpdatePersona

router = APIRouter()


@router.get("/personas")
async def list_personas(session: SessionDep):
    """List the session's personas in speaking order."""
    return session.personas


@router.post("/personas", status_code=201)
async def create_persona(body: CreatePersona, session: SessionDep):
    """Create a persona from the builder form."""
    fields = body.model_dump(exclude={"name", "role"}, exclude_none=True)
    persona = new_persona(body.name, body.role, **fields)
    return session.add_persona(persona)


@router.get("/personas/export")
async def export(session: SessionDep):
    """Download all personas as a JSON file."""
    return Response(
        content=export_personas(session.personas),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


@router.post("/personas/import", status_code=201)
async def import_file(file: UploadFile, session: SessionDep):
    """Import personas from an exported JSON file; ids are regenerated."""
    upload = await read_upload(file)
    result = import_personas(decode_text(upload.data))
    session.add_personas(result.personas)
    return result


@router.get("/personas/{persona_id}")
async def get_persona(persona_id: str, session: SessionDep):
    return session.get_persona(persona_id)


@router.patch("/personas/{persona_id}")
async def update_persona(persona_id: str, body: UpdatePersona, session: SessionDep):
    """Update persona fields; omitted fields are left as they are."""
    return session.update_persona(
        persona_id, **body.model_dump(exclude_unset=True, exclude_none=True)
    )


@router.delete("/personas/{persona_id}")
async def delete_persona(persona_id: str, session: SessionDep):
    session.remove_persona(persona_id)
    return {"ok": True}


# ── AI analysis ──────────────────────────────────────────


@router.post("/personas/{persona_id}/analyze-documents")
async def analyze_documents(persona_id: str, session: SessionDep, service: ServiceDep):
    """Fill in the persona from its processed source documents."""
    persona = session.get_persona(persona_id)
    analysis = await service.analyze_documents(persona.source_documents)
    return session.replace_persona(apply_analysis(session.get_persona(persona_id), analysis))


@router.post("/personas/{persona_id}/analyze-transcript")
async def analyze_transcript(
    persona_id: str, body: TranscriptBody, session: SessionDep, service: ServiceDep
):
    """Fill in the persona from a transcript of them speaking."""
    session.get_persona(persona_id)
    analysis = await service.analyze_transcript(body.transcript)
    return session.replace_persona(apply_analysis(session.get_persona(persona_id), analysis))


# ── Attachments ──────────────────────────────────────────


@router.put("/personas/{persona_id}/avatar")
async def set_avatar(persona_id: str, file: UploadFile, session: SessionDep):
    return session.set_avatar(persona_id, await read_upload(file))


@router.delete("/personas/{persona_id}/avatar")
async def remove_avatar(persona_id: str, session: SessionDep):
    return session.set_avatar(persona_id, None)


@router.put("/personas/{persona_id}/speaking-context")
async def set_speaking_context(persona_id: str, file: UploadFile, session: SessionDep):
    """Attach a speaking-style reference (.md, .txt, .html or .pdf)."""
    return session.set_speaking_context(persona_id, await read_upload(file))


@router.delete("/personas/{persona_id}/speaking-context")
async def remove_speaking_context(persona_id: str, session: SessionDep):
    return session.set_speaking_context(persona_id, None)


@router.put("/personas/{persona_id}/deeper-chars")
async def set_deeper_chars(persona_id: str, file: UploadFile, session: SessionDep):
    """Attach an audio or video file informing the persona's deeper characteristics."""
    return session.set_deeper_chars(persona_id, await read_upload(file))


@router.delete("/personas/{persona_id}/deeper-chars")
async def remove_deeper_chars(persona_id: str, session: SessionDep):
    return session.set_deeper_chars(persona_id, None)
