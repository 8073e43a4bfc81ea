"""Core domain models.

Every component (prompt builder, parser, ingestion, session, API) operates
on these types. Pydantic is used for validation and serialisation at every
data boundary. Attributes are snake_case in Python; the JSON shape used by
persona export files, HTTP bodies and model responses is camelCase.
"""

from __future__ import annotations

import uuid
from typing import Literal, get_args

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

CommunicationStyle = Literal[
    "Conversational",
    "Analytical",
    "Storytelling",
    "Instructional",
    "Debate",
]
ExpertiseLevel = Literal["Beginner", "Intermediate", "Advanced", "Expert"]
SentenceLength = Literal["Short", "Medium", "Long", "Varied"]
VocabComplexity = Literal["Simple", "Average", "Complex", "Academic"]
HumorLevel = Literal["None", "Subtle", "Witty", "Frequent"]
ProcessingStatus = Literal["processing", "completed", "error"]
ConversationStyle = Literal[
    "Interview",
    "Discussion",
    "Monologue with Interjections",
    "Debate",
]
ComplexityLevel = Literal[
    "Highly Technical",
    "Accessible",
    "Simplified for Beginners",
]

COMMUNICATION_STYLES: tuple[str, ...] = get_args(CommunicationStyle)
EXPERTISE_LEVELS: tuple[str, ...] = get_args(ExpertiseLevel)
SENTENCE_LENGTHS: tuple[str, ...] = get_args(SentenceLength)
VOCAB_COMPLEXITIES: tuple[str, ...] = get_args(VocabComplexity)
HUMOR_LEVELS: tuple[str, ...] = get_args(HumorLevel)
CONVERSATION_STYLE_OPTIONS: tuple[str, ...] = get_args(ConversationStyle)
COMPLEXITY_LEVEL_OPTIONS: tuple[str, ...] = get_args(ComplexityLevel)

PERSONALITY_TRAIT_OPTIONS = (
    "Curious", "Skeptical", "Supportive", "Challenging",
    "Optimistic", "Pessimistic", "Pragmatic", "Creative",
)

MIN_DIALOGUE_LENGTH_MINUTES = 1
MAX_DIALOGUE_LENGTH_MINUTES = 60
DEFAULT_DIALOGUE_LENGTH_MINUTES = 10

MAX_DOCUMENTS_PER_PERSONA = 3

DEFAULT_MODEL = "gemini-2.5-flash"
MODEL_OPTIONS = ("gemini-2.5-flash", "gemini-2.5-pro", "gemini-3-pro-preview")


def new_id() -> str:
    """Return a fresh random identifier (unique across the whole session)."""
    return uuid.uuid4().hex


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Source documents
# ---------------------------------------------------------------------------

class DocumentMetadata(CamelModel):
    author: str | None = None
    date: str | None = None
    domain: str | None = None
    file_type: str | None = None


class DocumentChunk(CamelModel):
    id: str = Field(default_factory=new_id)
    content: str
    topics: list[str] = Field(default_factory=list)
    start_index: int | None = None


class SourceDocument(CamelModel):
    """User-supplied reference material in one persona's knowledge base.

    Created in the ``processing`` state when a file is uploaded and moved to
    ``completed`` or ``error`` exactly once.
    """

    id: str = Field(default_factory=new_id)
    name: str
    content: str = ""
    metadata: DocumentMetadata | None = None
    chunks: list[DocumentChunk] | None = None
    topics: list[str] | None = None
    processing_status: ProcessingStatus = "processing"
    error_message: str | None = None

    def complete(
        self,
        content: str,
        metadata: DocumentMetadata | None = None,
        chunks: list[DocumentChunk] | None = None,
        topics: list[str] | None = None,
    ) -> None:
        self._leave_processing()
        self.content = content
        self.metadata = metadata
        self.chunks = chunks
        self.topics = topics
        self.processing_status = "completed"

    def fail(self, message: str) -> None:
        self._leave_processing()
        self.processing_status = "error"
        self.error_message = message

    def _leave_processing(self) -> None:
        if self.processing_status != "processing":
            raise ValueError(
                f"Document {self.name!r} already finished processing "
                f"({self.processing_status})"
            )


# ---------------------------------------------------------------------------
# Personas
# ---------------------------------------------------------------------------

class ContextFile(CamelModel):
    """A file attached to a persona, kept as a base64 data URL."""

    name: str
    type: str  # MIME type
    data: str


class SpeakingPatterns(CamelModel):
    sentence_length: SentenceLength = "Medium"
    vocabulary_complexity: VocabComplexity = "Average"
    humor_level: HumorLevel = "Subtle"
    filler_words: str = ""
    common_pauses: str = ""
    speech_impediments: str = ""
    speaking_context_file: ContextFile | None = None


class Persona(CamelModel):
    """A configured synthetic speaker driving one voice in the dialogue."""

    id: str = Field(default_factory=new_id)
    name: str
    role: str
    communication_style: CommunicationStyle = "Conversational"
    expertise_level: ExpertiseLevel = "Intermediate"
    personality_traits: list[str] = Field(default_factory=list)
    quirks: str = ""
    motivations: str = ""
    backstory: str = ""
    emotional_range: str = ""
    speaking_patterns: SpeakingPatterns = Field(default_factory=SpeakingPatterns)
    deeper_chars_context_file: ContextFile | None = None
    source_documents: list[SourceDocument] = Field(default_factory=list)
    avatar_url: str | None = None

    @field_validator("personality_traits")
    @classmethod
    def _dedupe_traits(cls, traits: list[str]) -> list[str]:
        return list(dict.fromkeys(traits))


class PersonaAnalysis(CamelModel):
    """Persona fields inferred by the model from documents or a transcript."""

    name: str | None = None
    role: str | None = None
    communication_style: CommunicationStyle | None = None
    expertise_level: ExpertiseLevel | None = None
    personality_traits: list[str] | None = None
    quirks: str | None = None
    motivations: str | None = None
    backstory: str | None = None
    emotional_range: str | None = None
    speaking_patterns: dict | None = None


# ---------------------------------------------------------------------------
# Script & settings
# ---------------------------------------------------------------------------

class ScriptLine(CamelModel):
    """One attributed utterance in the dialogue."""

    id: str = Field(default_factory=new_id)
    speaker_id: str
    line: str = ""


class GenerationSettings(CamelModel):
    dialogue_length_in_minutes: int = Field(
        DEFAULT_DIALOGUE_LENGTH_MINUTES,
        ge=MIN_DIALOGUE_LENGTH_MINUTES,
        le=MAX_DIALOGUE_LENGTH_MINUTES,
    )
    conversation_style: ConversationStyle = "Discussion"
    complexity_level: ComplexityLevel = "Accessible"
    model_name: str = DEFAULT_MODEL
    temperature: float = Field(0.7, ge=0.0, le=2.0)
    enable_search_grounding: bool = False
    thinking_budget: int = Field(0, ge=0)

    # "model_" is a protected namespace in pydantic; model_name is a real field.
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )


class InputError(ValueError):
    """Raised when user input is rejected before any network call."""
