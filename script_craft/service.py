"""Operation layer: one coroutine per AI-backed user action.

Each operation builds a prompt, calls the injected LLM once and parses the
reply. Transport failures (LLMError) are logged and re-raised as
GenerationError carrying a fixed user-facing message; malformed replies
surface as ResponseFormatError. Input problems raise InputError before any
call is made.
"""

from __future__ import annotations

import logging

from script_craft import documents
from script_craft.llm import (
    LLM,
    NEXT_LINE_SCHEMA,
    SCRIPT_SCHEMA,
    LLMError,
    LLMRequest,
    build_generation_config,
    persona_analysis_schema,
)
from script_craft.models import (
    COMMUNICATION_STYLES,
    DEFAULT_MODEL,
    EXPERTISE_LEVELS,
    HUMOR_LEVELS,
    SENTENCE_LENGTHS,
    VOCAB_COMPLEXITIES,
    GenerationSettings,
    InputError,
    Persona,
    PersonaAnalysis,
    ScriptLine,
    SourceDocument,
)
from script_craft.parsing import (
    SpeakerPolicy,
    parse_next_line,
    parse_persona_analysis,
    parse_plain_text,
    parse_script,
)
from script_craft.prompts import (
    build_intro_prompt,
    build_next_line_prompt,
    build_persona_from_documents_prompt,
    build_persona_from_transcript_prompt,
    build_revision_prompt,
    build_script_prompt,
)
from script_craft.turns import next_speaker

logger = logging.getLogger(__name__)

SCRIPT_FAILED = (
    "Failed to communicate with the AI service. Please check your connection and API key."
)
INTRO_FAILED = (
    "Failed to generate an intro suggestion. The AI service may be temporarily unavailable."
)
REVISE_FAILED = "Failed to revise the line using AI."
NEXT_LINE_FAILED = "Failed to generate the next line using AI."
TRANSCRIPT_FAILED = "Failed to analyze the transcript using AI."
DOCUMENTS_FAILED = "Failed to analyze the documents using AI."

INTRO_TEMPERATURE = 0.6
REVISION_TEMPERATURE = 0.7
NEXT_LINE_TEMPERATURE = 0.8
PERSONA_ANALYSIS_TEMPERATURE = 0.5

PERSONA_ANALYSIS_SCHEMA = persona_analysis_schema(
    COMMUNICATION_STYLES, EXPERTISE_LEVELS, SENTENCE_LENGTHS, VOCAB_COMPLEXITIES, HUMOR_LEVELS,
)


class GenerationError(RuntimeError):
    """An AI-backed operation failed; the message is safe to show to users."""


class ScriptCraft:
    """AI-backed operations over personas, documents and scripts.

    Args:
        llm:    The model client every operation calls.
        policy: How generated script lines with unknown speakers are handled.
        model:  Model used by every operation except full-script generation,
                which takes its model from GenerationSettings.
    """

    def __init__(
        self, llm: LLM, policy: SpeakerPolicy = "drop_invalid", model: str = DEFAULT_MODEL
    ) -> None:
        self.llm = llm
        self.policy = policy
        self.model = model

    async def _call(self, stage: str, request: LLMRequest, failure: str) -> str:
        try:
            return await self.llm(stage, request)
        except LLMError as e:
            logger.error("%s failed: %s", stage, e)
            raise GenerationError(failure) from e

    async def generate_script(
        self, personas: list[Persona], settings: GenerationSettings, show_intro: str = ""
    ) -> list[ScriptLine]:
        if len(personas) < 2:
            raise InputError("At least 2 personas are needed to generate a script.")
        request = LLMRequest(
            model=settings.model_name,
            contents=build_script_prompt(personas, settings, show_intro),
            config=build_generation_config(
                temperature=settings.temperature,
                model=settings.model_name,
                schema=SCRIPT_SCHEMA,
                enable_search_grounding=settings.enable_search_grounding,
                thinking_budget=settings.thinking_budget,
            ),
            context={"speaker_ids": [p.id for p in personas]},
        )
        text = await self._call("script", request, SCRIPT_FAILED)
        lines = parse_script(text, personas, self.policy)
        logger.info("Generated script with %d line(s)", len(lines))
        return lines

    async def suggest_intro(self, personas: list[Persona]) -> str:
        if not personas:
            raise InputError("Add at least one persona before suggesting an intro.")
        request = LLMRequest(
            model=self.model,
            contents=build_intro_prompt(personas),
            config=build_generation_config(temperature=INTRO_TEMPERATURE, model=self.model),
            context={"persona_names": [p.name for p in personas]},
        )
        text = await self._call("intro", request, INTRO_FAILED)
        return parse_plain_text(text, "The AI returned an empty intro.")

    async def revise_line(
        self, script: list[ScriptLine], personas: list[Persona], line_id: str, instruction: str
    ) -> str:
        """Return the revised text of one line. The script itself is not modified."""
        target = next((line for line in script if line.id == line_id), None)
        if target is None:
            raise InputError("Line to revise not found in script.")
        speaker = next((p for p in personas if p.id == target.speaker_id), None)
        if speaker is None:
            raise InputError("Speaker of the line not found.")
        if not instruction.strip():
            raise InputError("Please provide an instruction for the revision.")

        request = LLMRequest(
            model=self.model,
            contents=build_revision_prompt(script, personas, target, speaker, instruction),
            config=build_generation_config(temperature=REVISION_TEMPERATURE, model=self.model),
            context={"instruction": instruction, "original_line": target.line},
        )
        text = await self._call("revise_line", request, REVISE_FAILED)
        return parse_plain_text(text, "The AI returned an empty revision.")

    async def generate_next_line(
        self, script: list[ScriptLine], personas: list[Persona]
    ) -> ScriptLine:
        """Generate the line that follows the script, spoken by the next persona in turn."""
        try:
            speaker = next_speaker(personas, script)
        except ValueError as e:
            raise InputError(str(e)) from e

        request = LLMRequest(
            model=self.model,
            contents=build_next_line_prompt(personas, script, speaker),
            config=build_generation_config(
                temperature=NEXT_LINE_TEMPERATURE, model=self.model, schema=NEXT_LINE_SCHEMA,
            ),
            context={"speaker_id": speaker.id},
        )
        text = await self._call("next_line", request, NEXT_LINE_FAILED)
        return ScriptLine(speaker_id=speaker.id, line=parse_next_line(text))

    async def analyze_documents(self, docs: list[SourceDocument]) -> PersonaAnalysis:
        """Infer a persona profile from already processed documents."""
        usable = [d for d in docs if d.processing_status == "completed"]
        if not usable:
            raise InputError("No processed documents to analyze.")
        request = LLMRequest(
            model=self.model,
            contents=build_persona_from_documents_prompt(usable),
            config=build_generation_config(
                temperature=PERSONA_ANALYSIS_TEMPERATURE,
                model=self.model,
                schema=PERSONA_ANALYSIS_SCHEMA,
            ),
        )
        text = await self._call("persona_from_documents", request, DOCUMENTS_FAILED)
        return parse_persona_analysis(text)

    async def analyze_transcript(self, transcript: str) -> PersonaAnalysis:
        if not transcript.strip():
            raise InputError("Transcript is empty.")
        request = LLMRequest(
            model=self.model,
            contents=build_persona_from_transcript_prompt(transcript),
            config=build_generation_config(
                temperature=PERSONA_ANALYSIS_TEMPERATURE,
                model=self.model,
                schema=PERSONA_ANALYSIS_SCHEMA,
            ),
        )
        text = await self._call("persona_from_transcript", request, TRANSCRIPT_FAILED)
        return parse_persona_analysis(text)

    async def process_document(self, upload: documents.UploadedFile) -> SourceDocument:
        return await documents.ingest_document(upload, self.llm, self.model)

    async def process_documents(
        self, uploads: list[documents.UploadedFile], existing: int = 0
    ) -> list[SourceDocument]:
        return await documents.ingest_batch(uploads, self.llm, existing, self.model)

    async def extract_topics(self, text: str) -> list[str]:
        return await documents.extract_topics(text, self.llm, self.model)
