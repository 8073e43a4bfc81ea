"""Persona helpers: creation, merging model analysis, JSON import/export.

Export writes the full persona list as pretty-printed camelCase JSON.
Import accepts the same shape but is forgiving: ids in the file are
discarded and regenerated, missing nested fields fall back to the empty
form's defaults, and entries without a name and role are skipped (and
counted) rather than failing the whole file.
"""

from __future__ import annotations

import json
import logging
import re
import unicodedata
import uuid
from typing import Any

from pydantic import BaseModel, ValidationError

from script_craft.models import InputError, Persona, PersonaAnalysis, SpeakingPatterns

logger = logging.getLogger(__name__)

EXPORT_FILENAME = "script-craft-personas.json"


def slugify(title: str) -> str:
    """Convert a name to a URL-safe slug.

    "Dr. Evelyn Reed" → "dr-evelyn-reed"
    """
    text = unicodedata.normalize("NFKD", title)
    text = text.encode("ascii", "ignore").decode("ascii")
    text = text.lower()
    text = re.sub(r"['\"]", "", text)
    text = re.sub(r"[^a-z0-9]+", "-", text)
    text = text.strip("-")
    return text or "persona"


def persona_id_for(name: str) -> str:
    """Readable, collision-free id: name slug plus a random suffix."""
    return f"{slugify(name)}-{uuid.uuid4().hex[:8]}"


def new_persona(name: str, role: str, **fields: Any) -> Persona:
    """Create a persona from form fields; name and role are required."""
    if not name.strip() or not role.strip():
        raise InputError("A persona needs a name and a role.")
    return Persona(id=persona_id_for(name), name=name.strip(), role=role.strip(), **fields)


def apply_analysis(persona: Persona, analysis: PersonaAnalysis) -> Persona:
    """Merge a model analysis into a persona; returns an updated copy.

    Non-empty analysed values win, traits are unioned in order, and
    speaking patterns are merged key by key.
    """
    updates: dict[str, Any] = {}
    for field in (
        "name", "role", "communication_style", "expertise_level",
        "quirks", "motivations", "backstory", "emotional_range",
    ):
        value = getattr(analysis, field)
        if value:
            updates[field] = value

    if analysis.personality_traits:
        updates["personality_traits"] = list(
            dict.fromkeys([*persona.personality_traits, *analysis.personality_traits])
        )

    if analysis.speaking_patterns:
        merged = persona.speaking_patterns.model_dump(by_alias=True)
        merged.update({k: v for k, v in analysis.speaking_patterns.items() if v is not None})
        try:
            updates["speaking_patterns"] = SpeakingPatterns.model_validate(merged)
        except ValidationError as e:
            logger.warning("Ignoring analysed speaking patterns: %s", e)

    return persona.model_copy(update=updates)


def export_personas(personas: list[Persona]) -> str:
    if not personas:
        raise InputError("No personas to export.")
    return json.dumps(
        [p.model_dump(mode="json", by_alias=True) for p in personas],
        indent=2,
    )


class ImportResult(BaseModel):
    personas: list[Persona]
    skipped: int = 0


def import_personas(text: str) -> ImportResult:
    """Parse an exported persona file into new personas with fresh ids."""
    try:
        imported = json.loads(text)
    except json.JSONDecodeError as e:
        raise InputError(f"Imported file is not valid JSON: {e}") from e
    if not isinstance(imported, list):
        raise InputError("Imported file is not a valid persona array.")

    personas: list[Persona] = []
    skipped = 0
    for entry in imported:
        if not (isinstance(entry, dict) and entry.get("name") and entry.get("role")):
            skipped += 1
            continue
        data = {k: v for k, v in entry.items() if k != "id"}
        data["id"] = persona_id_for(str(entry["name"]))
        patterns = entry.get("speakingPatterns")
        data["speakingPatterns"] = {
            **SpeakingPatterns().model_dump(by_alias=True),
            **(patterns if isinstance(patterns, dict) else {}),
        }
        data["sourceDocuments"] = entry.get("sourceDocuments") or []
        data["avatarUrl"] = entry.get("avatarUrl") or None
        try:
            personas.append(Persona.model_validate(data))
        except ValidationError as e:
            logger.warning("Skipping invalid persona %r: %s", entry.get("name"), e)
            skipped += 1

    if not personas and imported:
        raise InputError(
            "No valid personas found in the file. Ensure each persona has a 'name' and 'role'."
        )
    logger.info("Imported %d persona(s), skipped %d", len(personas), skipped)
    return ImportResult(personas=personas, skipped=skipped)
