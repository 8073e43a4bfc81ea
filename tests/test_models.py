"""Tests for script_craft.models."""

import pytest
from pydantic import ValidationError

from script_craft.models import (
    GenerationSettings,
    Persona,
    PersonaAnalysis,
    SourceDocument,
    new_id,
)


class TestPersona:
    def test_empty_form_defaults(self) -> None:
        p = Persona(name="Alex", role="Host")
        assert p.communication_style == "Conversational"
        assert p.expertise_level == "Intermediate"
        assert p.speaking_patterns.sentence_length == "Medium"
        assert p.speaking_patterns.vocabulary_complexity == "Average"
        assert p.speaking_patterns.humor_level == "Subtle"
        assert p.source_documents == []
        assert p.id

    def test_traits_are_deduplicated_in_order(self) -> None:
        p = Persona(name="A", role="B", personality_traits=["Curious", "Creative", "Curious"])
        assert p.personality_traits == ["Curious", "Creative"]

    def test_rejects_unknown_style(self) -> None:
        with pytest.raises(ValidationError):
            Persona(name="A", role="B", communication_style="Shouting")

    def test_dumps_camel_case(self) -> None:
        data = Persona(name="A", role="B").model_dump(by_alias=True)
        assert "communicationStyle" in data
        assert "sentenceLength" in data["speakingPatterns"]

    def test_accepts_camel_case(self) -> None:
        p = Persona.model_validate({"name": "A", "role": "B", "expertiseLevel": "Expert"})
        assert p.expertise_level == "Expert"


class TestSourceDocument:
    def test_starts_processing(self) -> None:
        assert SourceDocument(name="a.txt").processing_status == "processing"

    def test_complete(self) -> None:
        doc = SourceDocument(name="a.txt")
        doc.complete("hello", topics=["greeting"])
        assert doc.processing_status == "completed"
        assert doc.content == "hello"
        assert doc.topics == ["greeting"]

    def test_fail(self) -> None:
        doc = SourceDocument(name="a.txt")
        doc.fail("boom")
        assert doc.processing_status == "error"
        assert doc.error_message == "boom"

    def test_transitions_only_once(self) -> None:
        doc = SourceDocument(name="a.txt")
        doc.complete("hello")
        with pytest.raises(ValueError, match="already finished"):
            doc.fail("late")
        assert doc.processing_status == "completed"


class TestGenerationSettings:
    def test_defaults(self) -> None:
        s = GenerationSettings()
        assert s.dialogue_length_in_minutes == 10
        assert s.conversation_style == "Discussion"
        assert s.complexity_level == "Accessible"
        assert s.model_name == "gemini-2.5-flash"
        assert s.temperature == 0.7
        assert s.enable_search_grounding is False
        assert s.thinking_budget == 0

    @pytest.mark.parametrize("minutes", [0, 61])
    def test_length_bounds(self, minutes: int) -> None:
        with pytest.raises(ValidationError):
            GenerationSettings(dialogue_length_in_minutes=minutes)

    def test_temperature_bounds(self) -> None:
        with pytest.raises(ValidationError):
            GenerationSettings(temperature=2.5)

    def test_model_name_alias(self) -> None:
        assert GenerationSettings.model_validate({"modelName": "x"}).model_name == "x"


def test_analysis_fields_all_optional() -> None:
    assert PersonaAnalysis().model_dump(exclude_none=True) == {}


def test_new_id_is_unique() -> None:
    assert len({new_id() for _ in range(100)}) == 100
