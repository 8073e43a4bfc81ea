"""Pydantic request models for API endpoints.

Bodies accept camelCase (as the persona export file uses) or snake_case keys.
"""

from pydantic import ConfigDict

from script_craft.models import (
    CamelModel,
    CommunicationStyle,
    ComplexityLevel,
    ConversationStyle,
    ExpertiseLevel,
    HumorLevel,
    SentenceLength,
    SpeakingPatterns,
    VocabComplexity,
)


class CreatePersona(CamelModel):
    name: str
    role: str
    communication_style: CommunicationStyle = "Conversational"
    expertise_level: ExpertiseLevel = "Intermediate"
    personality_traits: list[str] = []
    quirks: str = ""
    motivations: str = ""
    backstory: str = ""
    emotional_range: str = ""
    speaking_patterns: SpeakingPatterns | None = None


class UpdateSpeakingPatterns(CamelModel):
    sentence_length: SentenceLength | None = None
    vocabulary_complexity: VocabComplexity | None = None
    humor_level: HumorLevel | None = None
    filler_words: str | None = None
    common_pauses: str | None = None
    speech_impediments: str | None = None


class UpdatePersona(CamelModel):
    name: str | None = None
    role: str | None = None
    communication_style: CommunicationStyle | None = None
    expertise_level: ExpertiseLevel | None = None
    personality_traits: list[str] | None = None
    quirks: str | None = None
    motivations: str | None = None
    backstory: str | None = None
    emotional_range: str | None = None
    speaking_patterns: UpdateSpeakingPatterns | None = None


class TranscriptBody(CamelModel):
    transcript: str


class TopicsBody(CamelModel):
    text: str


class IntroBody(CamelModel):
    text: str


class UpdateLine(CamelModel):
    line: str | None = None
    speaker_id: str | None = None


class ReviseBody(CamelModel):
    instruction: str


class UpdateSettings(CamelModel):
    dialogue_length_in_minutes: int | None = None
    conversation_style: ConversationStyle | None = None
    complexity_level: ComplexityLevel | None = None
    model_name: str | None = None
    temperature: float | None = None
    enable_search_grounding: bool | None = None
    thinking_budget: int | None = None

    model_config = ConfigDict(**CamelModel.model_config, protected_namespaces=())
