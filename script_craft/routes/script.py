"""Show intro, script generation, line editing and export endpoints."""

from typing import Literal

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from script_craft.script import format_production_script, format_teleprompter

from .deps import ServiceDep, SessionDep
from .models import IntroBody, ReviseBody, UpdateLine

router = APIRouter()


# ── Show intro ───────────────────────────────────────────


@router.get("/intro")
async def get_intro(session: SessionDep):
    return {"text": session.show_intro}


@router.put("/intro")
async def set_intro(body: IntroBody, session: SessionDep):
    session.show_intro = body.text
    return {"text": session.show_intro}


@router.post("/intro/suggest")
async def suggest_intro(session: SessionDep, service: ServiceDep):
    """Draft an intro from the personas and their documents, and keep it."""
    session.show_intro = await service.suggest_intro(session.personas)
    return {"text": session.show_intro}


# ── Script ───────────────────────────────────────────────


@router.get("/script")
async def get_script(session: SessionDep):
    return session.script


@router.post("/script/generate")
async def generate_script(session: SessionDep, service: ServiceDep):
    """Generate a full script, replacing the current one."""
    session.require_script_ready()
    session.script = await service.generate_script(
        session.personas, session.settings, session.show_intro
    )
    return session.script


@router.post("/script/next-line", status_code=201)
async def next_line(session: SessionDep, service: ServiceDep):
    """Append an AI-written line spoken by the next persona in turn."""
    line = await service.generate_next_line(session.script, session.personas)
    session.script = [*session.script, line]
    return line


@router.patch("/script/lines/{line_id}")
async def update_line(line_id: str, body: UpdateLine, session: SessionDep):
    """Edit a line's text and/or switch its speaker."""
    line = session.get_line(line_id)
    if body.speaker_id is not None:
        line = session.switch_speaker(line_id, body.speaker_id)
    if body.line is not None:
        line = session.edit_line(line_id, body.line)
    return line


@router.delete("/script/lines/{line_id}")
async def delete_line(line_id: str, session: SessionDep):
    session.delete_line(line_id)
    return {"ok": True}


@router.post("/script/lines/{line_id}/insert-after", status_code=201)
async def insert_after(line_id: str, session: SessionDep):
    """Insert an empty line after this one, for the next persona in turn."""
    return session.insert_after(line_id)


@router.post("/script/lines/{line_id}/revise")
async def revise_line(line_id: str, body: ReviseBody, session: SessionDep, service: ServiceDep):
    """Rewrite one line following an instruction; the result replaces the line."""
    session.get_line(line_id)
    revised = await service.revise_line(
        session.script, session.personas, line_id, body.instruction
    )
    return session.edit_line(line_id, revised)


@router.get("/script/export", response_class=PlainTextResponse)
async def export_script(session: SessionDep, format: Literal["txt", "teleprompter"] = "txt"):
    """Plain-text export: production script or teleprompter layout."""
    if format == "teleprompter":
        return format_teleprompter(session.script, session.personas)
    return format_production_script(session.script, session.personas)
