"""Response validation: untrusted model text in, validated domain objects out.

Models wrap JSON in prose or markdown fences, especially when search
grounding prepends citations. Extraction is two-stage:

  1. Parse the trimmed text directly as JSON.
  2. Otherwise take the first fenced block (```json ... ```) anywhere in the
     text; if there is none and an array is expected, slice from the first
     "[" to the last "]".

Anything that still fails to parse raises ResponseFormatError. Malformed
JSON is never partially accepted. The raw response is logged, never
returned to the caller.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Literal

from pydantic import Field, ValidationError

from script_craft.models import (
    CamelModel,
    DocumentMetadata,
    Persona,
    PersonaAnalysis,
    ScriptLine,
    new_id,
)
from script_craft.turns import speaker_after

logger = logging.getLogger(__name__)

FENCED_BLOCK = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL | re.IGNORECASE)

INVALID_SCRIPT_FORMAT = "The AI returned an invalid script format. Please try generating again."
INVALID_DATA_FORMAT = "The AI returned an invalid data format."

# How to treat a script line whose speakerId matches no persona:
#   strict            reject the whole response
#   drop_invalid      silently drop the line
#   repair_to_nearest reassign it to the most plausible persona
SpeakerPolicy = Literal["strict", "drop_invalid", "repair_to_nearest"]


class ResponseFormatError(ValueError):
    """Raised when model output is not the JSON (or text) shape that was asked for."""


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

def find_fenced_block(text: str) -> str | None:
    """Return the inner content of the first ``` fenced block, or None.

    An optional "json" tag (any case) after the opening fence is dropped,
    whether the payload follows on the same line or the next. The block may
    appear anywhere in the text. An empty block counts as no block.
    """
    match = FENCED_BLOCK.search(text)
    if match is None:
        return None
    return match.group(1).strip() or None


def _slice_array(text: str) -> str | None:
    first = text.find("[")
    last = text.rfind("]")
    if first == -1 or last <= first:
        return None
    return text[first:last + 1]


def extract_json(text: str, *, expect_array: bool = False, message: str = INVALID_DATA_FORMAT) -> Any:
    """Extract and parse the JSON payload of a model response."""
    cleaned = text.strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    candidate = find_fenced_block(cleaned)
    if candidate is None and expect_array:
        candidate = _slice_array(cleaned)
    if candidate is None:
        logger.warning("Model response contains no JSON payload: %r", text)
        raise ResponseFormatError(message)

    try:
        return json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.warning("Model response is not valid JSON (%s): %r", e, text)
        raise ResponseFormatError(message) from e


# ---------------------------------------------------------------------------
# Script lines
# ---------------------------------------------------------------------------

def _repair_speaker(raw: str, personas: list[Persona], previous: str | None) -> str:
    """Map an unknown speaker reference onto a persona id.

    A numeric reference within range is taken as a persona index; otherwise
    a case-insensitive match on id or name wins; otherwise the speaker after
    the previous line's speaker.
    """
    if raw.isdecimal() and int(raw) < len(personas):
        return personas[int(raw)].id
    folded = raw.strip().lower()
    for p in personas:
        if folded in (p.id.lower(), p.name.lower()):
            return p.id
    return speaker_after(personas, previous).id


def _line_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def parse_script(
    text: str,
    personas: list[Persona],
    policy: SpeakerPolicy = "drop_invalid",
) -> list[ScriptLine]:
    """Parse a generated script into ScriptLines with fresh ids.

    Speaker references that match no persona are handled per `policy`.
    """
    data = extract_json(text, expect_array=True, message=INVALID_SCRIPT_FORMAT)
    if not isinstance(data, list):
        logger.warning("Script response is %s, not an array: %r", type(data).__name__, text)
        raise ResponseFormatError(INVALID_SCRIPT_FORMAT)

    valid_ids = {p.id for p in personas}
    lines: list[ScriptLine] = []
    dropped: list[str] = []

    for item in data:
        if not isinstance(item, dict):
            logger.warning("Script element is not an object: %r", item)
            raise ResponseFormatError(INVALID_SCRIPT_FORMAT)
        speaker_id = str(item.get("speakerId", ""))
        if speaker_id not in valid_ids:
            if policy == "strict":
                logger.warning("Script references unknown speaker %r", speaker_id)
                raise ResponseFormatError(
                    f"The AI returned a line for an unknown speaker ({speaker_id!r})."
                )
            if policy == "drop_invalid":
                dropped.append(speaker_id)
                continue
            previous = lines[-1].speaker_id if lines else None
            speaker_id = _repair_speaker(speaker_id, personas, previous)
        lines.append(ScriptLine(id=new_id(), speaker_id=speaker_id, line=_line_text(item.get("line"))))

    if dropped:
        logger.info("Dropped %d script line(s) with unknown speakers: %s", len(dropped), dropped)
    return lines


# ---------------------------------------------------------------------------
# Single objects
# ---------------------------------------------------------------------------

def parse_object(text: str, message: str = INVALID_DATA_FORMAT) -> dict[str, Any]:
    """Parse a response that must be a non-null JSON object."""
    data = extract_json(text, message=message)
    if not isinstance(data, dict):
        logger.warning("Expected a JSON object, got %s: %r", type(data).__name__, text)
        raise ResponseFormatError(message)
    return data


def parse_next_line(text: str) -> str:
    message = "AI returned an invalid data format for the next line."
    data = parse_object(text, message)
    line = data.get("line")
    if not isinstance(line, str):
        logger.warning("Next-line response has no string 'line': %r", text)
        raise ResponseFormatError(message)
    return line.strip()


def parse_persona_analysis(text: str) -> PersonaAnalysis:
    data = parse_object(text)
    try:
        return PersonaAnalysis.model_validate(data)
    except ValidationError as e:
        logger.warning("Persona analysis failed validation: %s", e)
        raise ResponseFormatError(INVALID_DATA_FORMAT) from e


class AnalyzedChunk(CamelModel):
    content: str
    topics: list[str] = Field(default_factory=list)


class DocumentAnalysis(CamelModel):
    """The fixed shape requested from the model for document ingestion."""

    full_text: str = ""
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    all_topics: list[str] = Field(default_factory=list)
    chunks: list[AnalyzedChunk] = Field(default_factory=list)


def parse_document_analysis(text: str) -> DocumentAnalysis:
    data = parse_object(text)
    try:
        return DocumentAnalysis.model_validate(data)
    except ValidationError as e:
        logger.warning("Document analysis failed validation: %s", e)
        raise ResponseFormatError(INVALID_DATA_FORMAT) from e


def parse_string_list(text: str) -> list[str]:
    data = extract_json(text, expect_array=True)
    if not isinstance(data, list) or not all(isinstance(s, str) for s in data):
        logger.warning("Expected a JSON array of strings: %r", text)
        raise ResponseFormatError(INVALID_DATA_FORMAT)
    return data


def parse_plain_text(text: str, message: str = INVALID_DATA_FORMAT) -> str:
    """Plain-text responses: trimmed, and never empty."""
    cleaned = text.strip()
    if not cleaned:
        raise ResponseFormatError(message)
    return cleaned
