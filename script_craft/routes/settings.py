"""Health check, generation settings and session reset endpoints."""

from fastapi import APIRouter
from pydantic import ValidationError

from script_craft.llm import FixedResponseLLM
from script_craft.models import MODEL_OPTIONS, GenerationSettings, InputError

from .deps import ServiceDep, SessionDep
from .models import UpdateSettings

router = APIRouter()


@router.get("/health")
async def health(service: ServiceDep):
    """Health check. `mock` is true when canned responses are in use."""
    return {"status": "ok", "mock": isinstance(service.llm, FixedResponseLLM)}


@router.get("/settings")
async def get_settings(session: SessionDep):
    """Current generation settings plus the selectable models."""
    return {
        "settings": session.settings,
        "modelOptions": MODEL_OPTIONS,
    }


@router.patch("/settings")
async def update_settings(body: UpdateSettings, session: SessionDep):
    """Update generation settings (partial merge, validated as a whole)."""
    merged = {
        **session.settings.model_dump(),
        **body.model_dump(exclude_unset=True, exclude_none=True),
    }
    try:
        session.settings = GenerationSettings.model_validate(merged)
    except ValidationError as e:
        raise InputError(f"Invalid settings: {e.errors()[0]['msg']}") from e
    return session.settings


@router.post("/reset")
async def reset(session: SessionDep):
    """Start over with an empty session."""
    session.reset()
    return {"ok": True}
