"""AI Gateway: the single outbound "generate content" operation.

Every component that needs the model receives an LLM callable matching:

    async def __call__(self, stage: str, request: LLMRequest) -> str: ...

`stage` names the calling operation (e.g. "script", "next_line",
"document_analysis"). Live clients use it only for logging; the fixed
response client uses it to pick a canned reply.

Two implementations are provided:

    GeminiLLM         real HTTP client for the Gemini generateContent
                        REST endpoint.
    FixedResponseLLM  deterministic canned replies after an optional
                        delay. No network. Selected when no credential
                        is configured.

`llm_from_config()` picks one at construction time; nothing downstream
branches on whether a credential exists.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Literal, Protocol, Union

import httpx
from pydantic import BaseModel, Field, model_validator

from script_craft.config import DEFAULT_BASE_URL, AppConfig

logger = logging.getLogger(__name__)

Stage = Literal[
    "script",
    "next_line",
    "revise_line",
    "intro",
    "document_analysis",
    "topics",
    "persona_from_documents",
    "persona_from_transcript",
]


# ---------------------------------------------------------------------------
# Request model
# ---------------------------------------------------------------------------

class TextPart(BaseModel):
    text: str


class InlineDataPart(BaseModel):
    """A binary attachment sent inline (base64) next to the text parts."""

    mime_type: str
    data: str


Part = Union[TextPart, InlineDataPart]


class GenerationConfig(BaseModel):
    temperature: float | None = None
    response_mime_type: str | None = None
    response_schema: dict[str, Any] | None = None
    tools: list[dict[str, Any]] | None = None
    thinking_config: dict[str, Any] | None = None

    @model_validator(mode="after")
    def _schema_excludes_tools(self) -> GenerationConfig:
        if self.response_schema is not None and self.tools:
            raise ValueError("response_schema and tools cannot be requested together")
        return self


class LLMRequest(BaseModel):
    """One generate-content call.

    `context` carries the structured inputs the prompt was rendered from
    (speaker ids, the line being revised, ...). Live clients ignore it;
    FixedResponseLLM uses it to shape its canned replies.
    """

    model: str
    contents: str | list[Part]
    config: GenerationConfig = Field(default_factory=GenerationConfig)
    context: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Declared response schemas
# ---------------------------------------------------------------------------

SCRIPT_SCHEMA: dict[str, Any] = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "speakerId": {"type": "STRING"},
            "line": {"type": "STRING"},
        },
        "required": ["speakerId", "line"],
    },
}

NEXT_LINE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {"line": {"type": "STRING"}},
    "required": ["line"],
}

TOPICS_SCHEMA: dict[str, Any] = {"type": "ARRAY", "items": {"type": "STRING"}}

DOCUMENT_ANALYSIS_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "fullText": {
            "type": "STRING",
            "description": "The full extracted text of the document.",
        },
        "metadata": {
            "type": "OBJECT",
            "properties": {
                "author": {"type": "STRING"},
                "date": {"type": "STRING"},
                "domain": {"type": "STRING"},
            },
        },
        "allTopics": {
            "type": "ARRAY",
            "items": {"type": "STRING"},
            "description": "Top-level consistent topics across the document.",
        },
        "chunks": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "content": {"type": "STRING"},
                    "topics": {"type": "ARRAY", "items": {"type": "STRING"}},
                },
                "required": ["content", "topics"],
            },
        },
    },
    "required": ["fullText", "metadata", "chunks", "allTopics"],
}


def persona_analysis_schema(
    communication_styles: tuple[str, ...],
    expertise_levels: tuple[str, ...],
    sentence_lengths: tuple[str, ...],
    vocab_complexities: tuple[str, ...],
    humor_levels: tuple[str, ...],
) -> dict[str, Any]:
    """Schema for persona analysis, constrained to the given option lists."""
    return {
        "type": "OBJECT",
        "properties": {
            "name": {"type": "STRING"},
            "role": {"type": "STRING"},
            "communicationStyle": {"type": "STRING", "enum": list(communication_styles)},
            "expertiseLevel": {"type": "STRING", "enum": list(expertise_levels)},
            "personalityTraits": {"type": "ARRAY", "items": {"type": "STRING"}},
            "quirks": {"type": "STRING", "description": "Noticeable quirks."},
            "motivations": {"type": "STRING", "description": "Inferred primary motivation."},
            "backstory": {"type": "STRING", "description": "A brief, inferred backstory."},
            "emotionalRange": {"type": "STRING", "description": "The typical emotional tone."},
            "speakingPatterns": {
                "type": "OBJECT",
                "properties": {
                    "sentenceLength": {"type": "STRING", "enum": list(sentence_lengths)},
                    "vocabularyComplexity": {"type": "STRING", "enum": list(vocab_complexities)},
                    "humorLevel": {"type": "STRING", "enum": list(humor_levels)},
                    "fillerWords": {
                        "type": "STRING",
                        "description": "A comma-separated list of filler words detected.",
                    },
                    "commonPauses": {"type": "STRING", "description": "How pauses are manifested."},
                    "speechImpediments": {
                        "type": "STRING",
                        "description": "Any noticeable speech impediments.",
                    },
                },
            },
        },
    }


# ---------------------------------------------------------------------------
# Config building
# ---------------------------------------------------------------------------

def supports_thinking(model: str) -> bool:
    """Extended reasoning is available on the 2.5 series and 3 Pro."""
    return "2.5" in model or "3-pro" in model


def build_generation_config(
    *,
    temperature: float,
    model: str,
    schema: dict[str, Any] | None = None,
    enable_search_grounding: bool = False,
    thinking_budget: int = 0,
) -> GenerationConfig:
    """Build the config for one request.

    Search grounding and a declared schema are mutually exclusive: with
    grounding on the schema is dropped and the prompt's own format
    instructions have to carry the shape.
    """
    fields: dict[str, Any] = {"temperature": temperature}
    if enable_search_grounding:
        fields["tools"] = [{"googleSearch": {}}]
    elif schema is not None:
        fields["response_mime_type"] = "application/json"
        fields["response_schema"] = schema
    if thinking_budget > 0 and supports_thinking(model):
        fields["thinking_config"] = {"thinkingBudget": thinking_budget}
    return GenerationConfig(**fields)


# ---------------------------------------------------------------------------
# Protocol: every LLM implementation must match this signature
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def __call__(self, stage: str, request: LLMRequest) -> str: ...


# ---------------------------------------------------------------------------
# GeminiLLM: connects to the hosted model
# ---------------------------------------------------------------------------

class GeminiLLM:
    """Async HTTP client for the Gemini ``generateContent`` endpoint.

    POST {base_url}/v1beta/models/{model}:generateContent
      Body:     {"contents": [...], "generationConfig": {...}, "tools": [...]}
      Response: {"candidates": [{"content": {"parts": [{"text": "..."}]}}]}

    One attempt per call: no retries, no backoff. `timeout` defaults to
    None (no timeout), so a hung request hangs the awaiting operation.

    Args:
        api_key:  Credential sent in the ``x-goog-api-key`` header.
        base_url: API root. Defaults to the public endpoint.
        timeout:  HTTP timeout in seconds, or None.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json", "x-goog-api-key": self._api_key}

    def _build_request(self, request: LLMRequest) -> tuple[str, dict]:
        """Return (url, body) for one request."""
        url = f"{self._base_url}/v1beta/models/{request.model}:generateContent"

        if isinstance(request.contents, str):
            parts: list[dict] = [{"text": request.contents}]
        else:
            parts = []
            for part in request.contents:
                if isinstance(part, InlineDataPart):
                    parts.append({"inlineData": {"mimeType": part.mime_type, "data": part.data}})
                else:
                    parts.append({"text": part.text})

        cfg = request.config
        generation: dict[str, Any] = {}
        if cfg.temperature is not None:
            generation["temperature"] = cfg.temperature
        if cfg.response_mime_type:
            generation["responseMimeType"] = cfg.response_mime_type
        if cfg.response_schema is not None:
            generation["responseSchema"] = cfg.response_schema
        if cfg.thinking_config:
            generation["thinkingConfig"] = cfg.thinking_config

        body: dict[str, Any] = {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": generation,
        }
        if cfg.tools:
            body["tools"] = cfg.tools
        return url, body

    def _parse_response(self, data: dict) -> str:
        """Concatenate the text parts of the first candidate."""
        candidates = data.get("candidates")
        if not candidates:
            raise LLMError("Unexpected response format from Gemini: no candidates")
        parts = (candidates[0].get("content") or {}).get("parts")
        if not parts:
            raise LLMError("Unexpected response format from Gemini: empty content")
        texts = [p.get("text", "") for p in parts if not p.get("thought")]
        if not all(isinstance(t, str) for t in texts):
            raise LLMError("Unexpected response format from Gemini: non-text part")
        return "".join(texts)

    async def __call__(self, stage: str, request: LLMRequest) -> str:
        url, body = self._build_request(request)
        logger.debug("llm call stage=%s model=%s", stage, request.model)

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to Gemini at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(f"Gemini returned HTTP {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise LLMError(f"Gemini timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise LLMError(f"Gemini request failed: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise LLMError("Unexpected response format from Gemini: body is not JSON") from e
        if not isinstance(data, dict):
            raise LLMError("Unexpected response format from Gemini: body is not an object")
        text = self._parse_response(data)
        logger.debug("llm response stage=%s len=%d", stage, len(text))
        return text


# ---------------------------------------------------------------------------
# FixedResponseLLM: canned replies, used when no credential is configured
# ---------------------------------------------------------------------------

MOCK_SCRIPT: list[dict[str, str]] = [
    {
        "speakerId": "0",
        "line": (
            "Welcome, everyone! Today, we're diving into a fascinating topic: "
            "the future of renewable energy. To start, what's the biggest "
            "misconception people have about solar power?"
        ),
    },
    {
        "speakerId": "1",
        "line": (
            "That's a great question. I think the most common myth is that solar "
            "is only viable in constantly sunny climates. The reality is, modern "
            "panels are incredibly efficient and can generate significant power "
            "even on overcast days. The technology has come a long way."
        ),
    },
    {
        "speakerId": "0",
        "line": (
            "That's a critical point. So it's more about the technology's "
            "efficiency than just raw sunlight?"
        ),
    },
    {
        "speakerId": "1",
        "line": (
            "Exactly. It's about the annual average of solar irradiance, not just "
            "having perfect blue skies. Plus, advancements in battery storage are "
            "solving the intermittency problem, making it a truly reliable power "
            "source."
        ),
    },
]

MOCK_NEXT_LINE = "This is a contextually generated next line based on the previous statement."

MOCK_TOPICS = [
    "Renewable Energy", "Solar Efficiency", "Grid Storage", "Climate Myths", "Technology Trends",
]

MOCK_DOCUMENT_PERSONA: dict[str, Any] = {
    "name": "Dr. Alex Chen",
    "role": "AI Researcher",
    "communicationStyle": "Analytical",
    "expertiseLevel": "Expert",
    "personalityTraits": ["Curious", "Pragmatic"],
    "quirks": "Uses academic language even in simple explanations.",
    "motivations": "To find the underlying patterns in complex data.",
    "backstory": "Seems to have a background in both computer science and linguistics.",
    "emotionalRange": "Generally objective and calm, but shows enthusiasm for new discoveries.",
    "speakingPatterns": {
        "sentenceLength": "Medium",
        "vocabularyComplexity": "Complex",
        "humorLevel": "Subtle",
        "fillerWords": "so, essentially",
        "commonPauses": "Uses ellipses to connect related but distinct ideas.",
        "speechImpediments": "None apparent from text.",
    },
}

MOCK_TRANSCRIPT_PERSONA: dict[str, Any] = {
    "name": "Analyzed Speaker",
    "role": "Expert from Audio",
    "communicationStyle": "Conversational",
    "expertiseLevel": "Intermediate",
    "personalityTraits": ["Enthusiastic", "Creative"],
    "quirks": 'Often starts sentences with "So, the thing is..."',
    "motivations": "Excited about sharing their passion project with others.",
    "backstory": "An independent developer who built this project in their spare time.",
    "emotionalRange": "Upbeat and positive.",
    "speakingPatterns": {
        "sentenceLength": "Medium",
        "vocabularyComplexity": "Average",
        "humorLevel": "Frequent",
        "fillerWords": "like, you know, actually",
        "commonPauses": "Short pauses for emphasis.",
        "speechImpediments": "Slightly fast-paced speech.",
    },
}


def join_names(names: list[str]) -> str:
    """Join names as "A, B and C"."""
    if len(names) < 2:
        return "".join(names)
    return ", ".join(names[:-1]) + " and " + names[-1]


class FixedResponseLLM:
    """Returns deterministic canned replies per stage. No network calls.

    Lets the whole system run end-to-end without a credential. Replies are
    raw model-style text (JSON where the live model would return JSON), so
    they still pass through the response parser.

    Args:
        delay: Seconds to sleep before replying, imitating model latency.
    """

    def __init__(self, delay: float = 0.0) -> None:
        self._delay = delay

    async def __call__(self, stage: str, request: LLMRequest) -> str:
        logger.debug("FixedResponseLLM stage=%s", stage)
        if self._delay:
            await asyncio.sleep(self._delay)
        ctx = request.context

        if stage == "script":
            speaker_ids: list[str] = ctx.get("speaker_ids", [])
            lines = []
            for item in MOCK_SCRIPT:
                index = int(item["speakerId"])
                speaker = speaker_ids[index] if index < len(speaker_ids) else "0"
                lines.append({"speakerId": speaker, "line": item["line"]})
            return json.dumps(lines)

        if stage == "next_line":
            return json.dumps({"line": MOCK_NEXT_LINE})

        if stage == "revise_line":
            return f'(Revised based on: "{ctx.get("instruction", "")}") {ctx.get("original_line", "")}'

        if stage == "intro":
            names = join_names(ctx.get("persona_names", []))
            return (
                f"In this conversation I speak with {names}. They are experts in various "
                "interesting fields. In this conversation we discuss:\n"
                "- A very interesting topic synthesized from their documents.\n"
                "- Another key point that will surely engage the audience.\n"
                "- A third, crucial discussion point.\n"
                "- The future implications of their combined knowledge.\n"
                "- How these ideas challenge common perceptions.\n"
                "\n"
                f"And with that, here's the conversation with {names}."
            )

        if stage == "topics":
            return json.dumps(MOCK_TOPICS)

        if stage == "document_analysis":
            return json.dumps({
                "fullText": ctx.get("text") or "Mock content derived from file.",
                "metadata": {
                    "author": "Unknown Author",
                    "date": datetime.now(timezone.utc).isoformat(),
                },
                "allTopics": ["Topic A", "Topic B"],
                "chunks": [{"content": "Chunk 1", "topics": ["Topic A"]}],
            })

        if stage == "persona_from_documents":
            return json.dumps(MOCK_DOCUMENT_PERSONA)

        if stage == "persona_from_transcript":
            return json.dumps(MOCK_TRANSCRIPT_PERSONA)

        raise LLMError(f"No canned response for stage {stage!r}")


def llm_from_config(config: AppConfig) -> LLM:
    """Pick the live client when a credential is configured, else canned replies."""
    if config.has_credential:
        return GeminiLLM(api_key=config.api_key, base_url=config.base_url)
    logger.warning("No Gemini API key configured; using canned responses.")
    return FixedResponseLLM(delay=config.mock_delay)


# ---------------------------------------------------------------------------
# LLMError: raised for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the model endpoint cannot be reached or returns an error."""
