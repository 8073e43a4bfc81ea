"""Conversation turn policy: strict round-robin over the persona list.

next_speaker(personas, script)
  no personas        → ValueError
  one persona        → that persona, always
  empty script       → personas[0]
  otherwise          → personas[(index(last speaker) + 1) mod N]

A last speaker that is no longer in the list has index -1, so the turn
falls back to personas[0].
"""

from __future__ import annotations

from script_craft.models import Persona, ScriptLine


def speaker_after(personas: list[Persona], speaker_id: str | None) -> Persona:
    """Return the persona who speaks after `speaker_id` (None: nobody spoke yet)."""
    if not personas:
        raise ValueError("No personas available to generate a line for.")
    if len(personas) == 1 or speaker_id is None:
        return personas[0]
    index = next((i for i, p in enumerate(personas) if p.id == speaker_id), -1)
    return personas[(index + 1) % len(personas)]


def next_speaker(personas: list[Persona], script: list[ScriptLine]) -> Persona:
    last = script[-1].speaker_id if script else None
    return speaker_after(personas, last)
