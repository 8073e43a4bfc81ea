"""Script editing operations and text exports.

Edits return a new list and leave the input untouched; the session swaps
the result in. Lines are only reordered by inserting after a given line.
"""

from __future__ import annotations

from script_craft.models import Persona, ScriptLine
from script_craft.turns import speaker_after


def _index_of(script: list[ScriptLine], line_id: str) -> int:
    for i, line in enumerate(script):
        if line.id == line_id:
            return i
    raise KeyError(line_id)


def find_line(script: list[ScriptLine], line_id: str) -> ScriptLine | None:
    return next((line for line in script if line.id == line_id), None)


def update_line(script: list[ScriptLine], line_id: str, text: str) -> list[ScriptLine]:
    i = _index_of(script, line_id)
    return [*script[:i], script[i].model_copy(update={"line": text}), *script[i + 1:]]


def switch_speaker(script: list[ScriptLine], line_id: str, speaker_id: str) -> list[ScriptLine]:
    i = _index_of(script, line_id)
    return [*script[:i], script[i].model_copy(update={"speaker_id": speaker_id}), *script[i + 1:]]


def delete_line(script: list[ScriptLine], line_id: str) -> list[ScriptLine]:
    i = _index_of(script, line_id)
    return [*script[:i], *script[i + 1:]]


def insert_after(
    script: list[ScriptLine], line_id: str, personas: list[Persona]
) -> tuple[list[ScriptLine], ScriptLine]:
    """Insert an empty line after `line_id`, spoken by the next persona in turn."""
    i = _index_of(script, line_id)
    speaker = speaker_after(personas, script[i].speaker_id)
    new_line = ScriptLine(speaker_id=speaker.id, line="")
    return [*script[:i + 1], new_line, *script[i + 1:]], new_line


def _name(personas: list[Persona], speaker_id: str) -> str:
    return next((p.name for p in personas if p.id == speaker_id), "Unknown")


def format_production_script(script: list[ScriptLine], personas: list[Persona]) -> str:
    """Plain-text script: "Name:" then the line, blocks separated by a blank line."""
    return "\n\n".join(f"{_name(personas, line.speaker_id)}:\n{line.line}" for line in script)


def format_teleprompter(script: list[ScriptLine], personas: list[Persona]) -> str:
    return "\n\n---\n\n".join(
        f"{_name(personas, line.speaker_id).upper()}\n\n{line.line}" for line in script
    )
