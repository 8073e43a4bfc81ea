"""Tests for script_craft.personas: creation, analysis merge, import/export."""

import json

import pytest

from script_craft.models import InputError, PersonaAnalysis, SourceDocument
from script_craft.personas import (
    apply_analysis,
    export_personas,
    import_personas,
    new_persona,
    persona_id_for,
    slugify,
)


class TestSlugify:
    def test_basic(self) -> None:
        assert slugify("Dr. Evelyn Reed") == "dr-evelyn-reed"

    def test_accents_and_quotes(self) -> None:
        assert slugify("Zoë O'Brien") == "zoe-obrien"

    def test_empty(self) -> None:
        assert slugify("!!!") == "persona"


def test_persona_id_is_slug_plus_suffix() -> None:
    pid = persona_id_for("Sam Lee")
    assert pid.startswith("sam-lee-")
    assert pid != persona_id_for("Sam Lee")


class TestNewPersona:
    def test_defaults(self) -> None:
        p = new_persona("Alex", "Host")
        assert p.communication_style == "Conversational"
        assert p.id.startswith("alex-")

    def test_fields(self) -> None:
        p = new_persona(" Sam ", "Analyst", expertise_level="Expert")
        assert p.name == "Sam"
        assert p.expertise_level == "Expert"

    @pytest.mark.parametrize("name,role", [("", "Host"), ("Alex", "  ")])
    def test_requires_name_and_role(self, name: str, role: str) -> None:
        with pytest.raises(InputError):
            new_persona(name, role)


class TestApplyAnalysis:
    def test_non_empty_values_win(self, alex) -> None:
        analysis = PersonaAnalysis(role="Physicist", quirks="", expertise_level="Expert")
        updated = apply_analysis(alex, analysis)
        assert updated.role == "Physicist"
        assert updated.expertise_level == "Expert"
        assert updated.name == "Alex"
        assert updated.motivations == "Make science accessible"
        assert updated.id == alex.id

    def test_traits_unioned(self, alex) -> None:
        updated = apply_analysis(alex, PersonaAnalysis(personality_traits=["Creative", "Curious"]))
        assert updated.personality_traits == ["Curious", "Creative"]

    def test_speaking_patterns_merged(self, alex) -> None:
        alex.speaking_patterns.filler_words = "um"
        analysis = PersonaAnalysis(speaking_patterns={"humorLevel": "Witty", "commonPauses": "long"})
        updated = apply_analysis(alex, analysis)
        assert updated.speaking_patterns.humor_level == "Witty"
        assert updated.speaking_patterns.common_pauses == "long"
        assert updated.speaking_patterns.filler_words == "um"

    def test_invalid_speaking_patterns_ignored(self, alex) -> None:
        analysis = PersonaAnalysis(speaking_patterns={"humorLevel": "Hilarious"})
        updated = apply_analysis(alex, analysis)
        assert updated.speaking_patterns.humor_level == "Subtle"

    def test_original_untouched(self, alex) -> None:
        apply_analysis(alex, PersonaAnalysis(name="Someone Else"))
        assert alex.name == "Alex"


class TestExport:
    def test_pretty_camel_case(self, personas) -> None:
        text = export_personas(personas)
        data = json.loads(text)
        assert [p["name"] for p in data] == ["Alex", "Sam"]
        assert data[1]["communicationStyle"] == "Analytical"
        assert '\n  {\n    "id": "a1"' in text

    def test_empty_rejected(self) -> None:
        with pytest.raises(InputError, match="No personas to export"):
            export_personas([])


class TestImport:
    def test_skips_entries_without_role(self) -> None:
        text = json.dumps([
            {"id": "p1", "name": "Alex", "role": "Host"},
            {"id": "p2", "name": "Sam"},
        ])
        result = import_personas(text)
        assert len(result.personas) == 1
        assert result.skipped == 1
        imported = result.personas[0]
        assert imported.name == "Alex"
        assert imported.id not in {"p1", "p2"}

    def test_defaults_missing_nested_fields(self) -> None:
        result = import_personas('[{"name": "Alex", "role": "Host", "speakingPatterns": {"humorLevel": "Witty"}}]')
        p = result.personas[0]
        assert p.speaking_patterns.humor_level == "Witty"
        assert p.speaking_patterns.sentence_length == "Medium"
        assert p.source_documents == []
        assert p.avatar_url is None

    def test_round_trip_keeps_documents(self, alex) -> None:
        doc = SourceDocument(name="a.txt")
        doc.complete("hello")
        alex.source_documents = [doc]
        p = import_personas(export_personas([alex])).personas[0]
        assert p.source_documents[0].content == "hello"
        assert p.id != alex.id

    def test_invalid_entries_skipped(self) -> None:
        text = json.dumps([
            {"name": "Alex", "role": "Host", "communicationStyle": "Mumbling"},
            {"name": "Sam", "role": "Analyst"},
        ])
        result = import_personas(text)
        assert [p.name for p in result.personas] == ["Sam"]
        assert result.skipped == 1

    @pytest.mark.parametrize("text,message", [
        ("{not json", "not valid JSON"),
        ('{"name": "Alex"}', "not a valid persona array"),
        ('[{"name": "Alex"}, 3]', "No valid personas found"),
    ])
    def test_rejected_files(self, text: str, message: str) -> None:
        with pytest.raises(InputError, match=message):
            import_personas(text)

    def test_empty_array(self) -> None:
        result = import_personas("[]")
        assert result.personas == []
        assert result.skipped == 0
