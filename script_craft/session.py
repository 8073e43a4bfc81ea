"""In-memory session state: the personas, intro, script and settings of one user.

Nothing here touches the network. Every method validates its input and
raises InputError before mutating anything, so a rejected call leaves the
session exactly as it was.
"""

from __future__ import annotations

import base64
import logging
from pathlib import PurePath

from pydantic import BaseModel, Field, ValidationError

from script_craft import script as script_ops
from script_craft.documents import UploadedFile
from script_craft.models import (
    MAX_DOCUMENTS_PER_PERSONA,
    ContextFile,
    GenerationSettings,
    InputError,
    Persona,
    ScriptLine,
    SourceDocument,
)

logger = logging.getLogger(__name__)

MB = 1024 * 1024

AVATAR_TYPES = ("image/png", "image/jpeg", "image/webp")
MAX_AVATAR_BYTES = 1 * MB

SPEAKING_CONTEXT_EXTENSIONS = (".md", ".txt", ".html", ".pdf")
MAX_SPEAKING_CONTEXT_BYTES = 2 * MB

DEEPER_CHARS_TYPES = ("audio/", "video/")
MAX_DEEPER_CHARS_BYTES = 10 * MB

MIN_SCRIPT_PERSONAS = 2


class NotFoundError(LookupError):
    """Raised when a persona, document or script line id is unknown."""


def to_data_url(upload: UploadedFile) -> str:
    mime = upload.content_type or "application/octet-stream"
    return f"data:{mime};base64,{base64.b64encode(upload.data).decode('ascii')}"


def _check_size(upload: UploadedFile, limit: int) -> None:
    if len(upload.data) > limit:
        raise InputError(f"File is too large. Please select a file under {limit // MB}MB.")


class Session(BaseModel):
    """One wizard session. Concurrent operations apply last-write-wins."""

    personas: list[Persona] = Field(default_factory=list)
    show_intro: str = ""
    script: list[ScriptLine] = Field(default_factory=list)
    settings: GenerationSettings = Field(default_factory=GenerationSettings)

    # ── Personas ─────────────────────────────────────────

    def get_persona(self, persona_id: str) -> Persona:
        for p in self.personas:
            if p.id == persona_id:
                return p
        raise NotFoundError(f"Persona {persona_id!r} not found")

    def _index(self, persona_id: str) -> int:
        return self.personas.index(self.get_persona(persona_id))

    def add_persona(self, persona: Persona) -> Persona:
        if any(p.id == persona.id for p in self.personas):
            raise InputError(f"A persona with id {persona.id!r} already exists.")
        self.personas.append(persona)
        return persona

    def add_personas(self, personas: list[Persona]) -> None:
        for p in personas:
            self.add_persona(p)

    def replace_persona(self, persona: Persona) -> Persona:
        """Swap in an updated copy of an existing persona (matched by id)."""
        if not persona.name.strip() or not persona.role.strip():
            raise InputError("A persona needs a name and a role.")
        self.personas[self._index(persona.id)] = persona
        return persona

    def update_persona(self, persona_id: str, **changes) -> Persona:
        """Apply field changes; a `speaking_patterns` dict is merged key by key."""
        current = self.get_persona(persona_id)
        data = current.model_dump()
        patterns = changes.pop("speaking_patterns", None)
        if patterns:
            data["speaking_patterns"].update(patterns)
        data.update(changes)
        data["id"] = persona_id
        try:
            updated = Persona.model_validate(data)
        except ValidationError as e:
            raise InputError(f"Invalid persona: {e.errors()[0]['msg']}") from e
        return self.replace_persona(updated)

    def remove_persona(self, persona_id: str) -> None:
        """Remove a persona. Script lines it spoke are kept; they render as "Unknown"."""
        del self.personas[self._index(persona_id)]

    # ── Source documents ─────────────────────────────────

    def check_document_capacity(self, persona_id: str, incoming: int) -> None:
        persona = self.get_persona(persona_id)
        if len(persona.source_documents) + incoming > MAX_DOCUMENTS_PER_PERSONA:
            raise InputError(
                f"You can upload a maximum of {MAX_DOCUMENTS_PER_PERSONA} documents per persona."
            )

    def attach_documents(self, persona_id: str, documents: list[SourceDocument]) -> Persona:
        self.check_document_capacity(persona_id, len(documents))
        persona = self.get_persona(persona_id)
        updated = persona.model_copy(
            update={"source_documents": [*persona.source_documents, *documents]}
        )
        return self.replace_persona(updated)

    def remove_document(self, persona_id: str, document_id: str) -> Persona:
        persona = self.get_persona(persona_id)
        remaining = [d for d in persona.source_documents if d.id != document_id]
        if len(remaining) == len(persona.source_documents):
            raise NotFoundError(f"Document {document_id!r} not found")
        return self.replace_persona(persona.model_copy(update={"source_documents": remaining}))

    # ── Attachments ──────────────────────────────────────

    def set_avatar(self, persona_id: str, upload: UploadedFile | None) -> Persona:
        persona = self.get_persona(persona_id)
        if upload is None:
            return self.replace_persona(persona.model_copy(update={"avatar_url": None}))
        if upload.content_type not in AVATAR_TYPES:
            raise InputError("Invalid file type. Please select a PNG, JPG, or WEBP image.")
        _check_size(upload, MAX_AVATAR_BYTES)
        return self.replace_persona(persona.model_copy(update={"avatar_url": to_data_url(upload)}))

    def set_speaking_context(self, persona_id: str, upload: UploadedFile | None) -> Persona:
        persona = self.get_persona(persona_id)
        context_file = None
        if upload is not None:
            if PurePath(upload.name.lower()).suffix not in SPEAKING_CONTEXT_EXTENSIONS:
                raise InputError("Invalid file type. Please select a .md, .txt, .html or .pdf file.")
            _check_size(upload, MAX_SPEAKING_CONTEXT_BYTES)
            context_file = ContextFile(
                name=upload.name, type=upload.content_type, data=to_data_url(upload)
            )
        patterns = persona.speaking_patterns.model_copy(update={"speaking_context_file": context_file})
        return self.replace_persona(persona.model_copy(update={"speaking_patterns": patterns}))

    def set_deeper_chars(self, persona_id: str, upload: UploadedFile | None) -> Persona:
        persona = self.get_persona(persona_id)
        context_file = None
        if upload is not None:
            if not upload.content_type.startswith(DEEPER_CHARS_TYPES):
                raise InputError("Invalid file type. Please select an audio or video file.")
            _check_size(upload, MAX_DEEPER_CHARS_BYTES)
            context_file = ContextFile(
                name=upload.name, type=upload.content_type, data=to_data_url(upload)
            )
        return self.replace_persona(
            persona.model_copy(update={"deeper_chars_context_file": context_file})
        )

    # ── Script ───────────────────────────────────────────

    def require_script_ready(self) -> None:
        if len(self.personas) < MIN_SCRIPT_PERSONAS:
            raise InputError(
                f"At least {MIN_SCRIPT_PERSONAS} personas are needed to generate a script."
            )

    def get_line(self, line_id: str) -> ScriptLine:
        line = script_ops.find_line(self.script, line_id)
        if line is None:
            raise NotFoundError(f"Script line {line_id!r} not found")
        return line

    def edit_line(self, line_id: str, text: str) -> ScriptLine:
        self.get_line(line_id)
        self.script = script_ops.update_line(self.script, line_id, text)
        return self.get_line(line_id)

    def switch_speaker(self, line_id: str, speaker_id: str) -> ScriptLine:
        self.get_line(line_id)
        self.get_persona(speaker_id)
        self.script = script_ops.switch_speaker(self.script, line_id, speaker_id)
        return self.get_line(line_id)

    def delete_line(self, line_id: str) -> None:
        self.get_line(line_id)
        self.script = script_ops.delete_line(self.script, line_id)

    def insert_after(self, line_id: str) -> ScriptLine:
        self.get_line(line_id)
        if not self.personas:
            raise InputError("Add a persona before inserting lines.")
        self.script, new_line = script_ops.insert_after(self.script, line_id, self.personas)
        return new_line

    def reset(self) -> None:
        """Start over: clear everything back to an empty session."""
        logger.info("Session reset (%d personas, %d lines)", len(self.personas), len(self.script))
        self.personas = []
        self.show_intro = ""
        self.script = []
        self.settings = GenerationSettings()
