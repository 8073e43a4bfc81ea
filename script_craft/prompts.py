"""Prompt builder: renders session state into model instructions.

Pure functions: no model call, no I/O, same inputs give the same prompt.
Prompt bodies are Handlebars templates rendered with pybars; persona and
knowledge-base blocks are serialised in Python first and passed in as
pre-formatted strings. Templates use triple-stash ({{{x}}}) throughout so
quotes and ampersands reach the model unescaped.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from collections.abc import Callable
from typing import Any

import pybars

from script_craft.llm import InlineDataPart, Part, TextPart
from script_craft.models import (
    COMMUNICATION_STYLES,
    EXPERTISE_LEVELS,
    HUMOR_LEVELS,
    PERSONALITY_TRAIT_OPTIONS,
    SENTENCE_LENGTHS,
    VOCAB_COMPLEXITIES,
    GenerationSettings,
    Persona,
    ScriptLine,
    SourceDocument,
)

logger = logging.getLogger(__name__)

MAX_ANALYSIS_CHARS = 30_000
NEXT_LINE_HISTORY = 10

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


# ── Custom Handlebars helpers ────────────────────────────


def _helper_last(this, options, items, count):
    """{{#last array N}}...{{/last}}: iterate over the last N items."""
    result = []
    for item in list(items)[-int(count):]:
        result.extend(options["fn"](item))
    return result


def _helper_join(this, items, separator=", "):
    """{{{join array ", "}}}: join a list of strings."""
    return separator.join(str(i) for i in items or [])


_HELPERS: dict[str, Callable] = {
    "last": _helper_last,
    "join": _helper_join,
}


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context, helpers=_HELPERS))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


# ── Persona serialisation ────────────────────────────────


def persona_details(p: Persona) -> str:
    """Bullet list describing one persona's voice.

    Attached audio/video files are mentioned by type and name only.
    """
    sp = p.speaking_patterns
    details = [
        f"- Name/Role: {p.name} / {p.role}",
        f"- Style: {p.communication_style}, {p.expertise_level} expertise.",
        f"- Personality: {', '.join(p.personality_traits)}.",
        p.emotional_range and f"- Emotional Range: {p.emotional_range}.",
        p.motivations and f"- Motivations: {p.motivations}.",
        p.backstory and f"- Backstory: {p.backstory}.",
        p.quirks and f"- Quirks: {p.quirks}.",
        p.deeper_chars_context_file and (
            "- Deeper characteristics are also informed by a provided "
            f'{p.deeper_chars_context_file.type} file named "{p.deeper_chars_context_file.name}".'
        ),
        f"- Speaking Patterns: {sp.sentence_length} sentences, "
        f"{sp.vocabulary_complexity} vocabulary, {sp.humor_level} humor.",
        sp.common_pauses and f"- Common Pauses: {sp.common_pauses}.",
        sp.filler_words and f"- Filler Words: {sp.filler_words}.",
        sp.speech_impediments and f"- Speech Impediments: {sp.speech_impediments}.",
    ]
    return "\n".join(d for d in details if d)


def decode_data_url(data: str) -> str:
    """Decode the base64 payload of a data URL as UTF-8; "" if it can't be."""
    payload = data.split(",", 1)[1] if "," in data else data
    try:
        return base64.b64decode(payload).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        logger.warning("Failed to decode context file: %s", e)
        return ""


def speaking_context(p: Persona) -> str:
    """Speaking-style reference: text files are embedded, others named only."""
    f = p.speaking_patterns.speaking_context_file
    if f is None:
        return ""
    if f.type.startswith("text/"):
        content = decode_data_url(f.data)
        if content:
            return f'Reference for speaking style from "{f.name}":\n---\n{content}\n---'
        return ""
    return f'Their speaking style is also informed by a provided file: "{f.name}".'


def _usable_documents(p: Persona) -> list[SourceDocument]:
    return [d for d in p.source_documents if d.processing_status == "completed"]


def knowledge_base(p: Persona) -> str:
    docs = _usable_documents(p)
    if not docs:
        return (
            f"No specific source documents provided for {p.name}. Base dialogue on their "
            "general persona characteristics (e.g., ask questions, facilitate)."
        )
    blocks = []
    for i, doc in enumerate(docs, start=1):
        metadata = doc.metadata.model_dump(by_alias=True, exclude_none=True) if doc.metadata else {}
        blocks.append(
            f"--- Document {i}: {doc.name} ---\n"
            f"Metadata: {json.dumps(metadata)}\n"
            f"Key Topics: {', '.join(doc.topics or []) or 'N/A'}\n"
            f"Content:\n{doc.content}\n"
            f"--- End Document {i} ---"
        )
    return f"Knowledge Base for {p.name} (MUST draw from these sources):\n" + "\n\n".join(blocks)


def persona_block(p: Persona, index: int) -> str:
    return render_prompt(PERSONA_BLOCK_TEMPLATE, {
        "index": str(index),
        "id": p.id,
        "details": persona_details(p),
        "speaking_context": speaking_context(p),
        "knowledge_base": knowledge_base(p),
    })


def _speaker_name(personas: list[Persona], speaker_id: str) -> str:
    return next((p.name for p in personas if p.id == speaker_id), "Unknown")


# ── Templates ────────────────────────────────────────────


PERSONA_BLOCK_TEMPLATE = """Persona {{index}} (id: {{{id}}}):
{{{details}}}
{{#if speaking_context}}{{{speaking_context}}}
{{/if}}{{{knowledge_base}}}"""

SCRIPT_TEMPLATE = """You are an expert scriptwriter AI. Your task is to transform provided source materials into a natural, engaging dialogue script based on defined speaker personas and a show introduction.

CONTEXT:
1. **Show Introduction**: This is the introduction that precedes the dialogue. The dialogue you generate should flow naturally from this intro. DO NOT repeat the intro. The first line of dialogue should be the start of the conversation.
--- BEGIN INTRO ---
{{{intro}}}
--- END INTRO ---

2. **Speaker Personas & Their Knowledge Base**: You must strictly adhere to the persona descriptions provided. Each line of dialogue must reflect the assigned speaker's style, expertise, personality, AND be grounded in the information from THEIR OWN source documents. This includes mimicking their specific speaking patterns like filler words, pauses, and any impediments. If a persona has no documents, their dialogue should be based on their general persona characteristics, often asking questions or facilitating the conversation.

{{#each personas}}{{{this}}}

{{/each}}
3. **Source Material Interaction**: The conversation should be a dynamic exchange where speakers reference, build upon, or challenge points from their respective source materials. Do not simply have each speaker summarize their documents in turn. Create a real conversation.

4. **Generation Settings**:
- Desired Dialogue Length: Approximately {{minutes}} minutes of spoken dialogue. This is a guideline; focus on a natural conversation flow that respects this length.
- Conversation Style: {{{conversation_style}}}
- Complexity: {{{complexity_level}}}

TASK:
Generate a dialogue script based on the context above. The dialogue should begin immediately after the provided intro, with the first speaker starting the conversation.

OUTPUT FORMAT:
You MUST return a valid JSON array of objects. Each object in the array represents a single line of dialogue and must have the following structure:
{
  "speakerId": "string",  // The ID of the persona speaking (e.g., "{{{first_id}}}")
  "line": "string"        // The text of the dialogue line.
}

Example:
[
  { "speakerId": "{{{first_id}}}", "line": "Drawing from my research on solar efficiency, the latest panels are not as reliant on direct sunlight as one might think." },
  { "speakerId": "{{{second_id}}}", "line": "That's interesting, because my sources on grid management highlight the storage problem. How do we reconcile those two points?" }
]

Do not include any explanations or introductory text outside of the JSON array. The entire response must be the JSON data itself."""

NEXT_LINE_TEMPLATE = """You are an expert scriptwriter AI. Your task is to generate the very next line of dialogue in an ongoing conversation, ensuring it is a natural continuation.

RECENT CONVERSATION HISTORY (last {{history_label}} lines):
{{#last lines history_size}}{{{speaker}}}: {{{text}}}
{{/last}}
SPEAKER PERSONAS:
{{#each personas}}{{{this}}}

{{/each}}
TASK:
The last speaker was {{{last_speaker}}}.
The next line should be spoken by **{{{next_name}}} (id: {{{next_id}}})**.
Write a single, natural, and context-aware line of dialogue for them. The line must be consistent with their persona (including specific speaking patterns) and the flow of the conversation.

OUTPUT FORMAT:
You MUST return a valid JSON object with ONLY a "line" property.
Example:
{
  "line": "And how does that connect back to the initial findings you mentioned?"
}"""

REVISION_TEMPLATE = """You are an expert script editor. Your task is to revise a single line of dialogue based on a user's instruction, while maintaining the conversational context and the speaker's persona.

FULL SCRIPT CONTEXT:
(The line to revise is marked with '<<< THIS LINE')
{{#each lines}}{{{speaker}}}: {{{text}}}{{#if current}} (<<< THIS LINE){{/if}}
{{/each}}
SPEAKER PERSONA FOR THE LINE BEING REVISED:
{{{persona}}}

INSTRUCTION:
Revise the line "{{{original}}}" based on this user instruction: "{{{instruction}}}"

OUTPUT:
Return ONLY the revised line of dialogue as a plain text string. Do not include the speaker's name, markdown, or any other explanatory text."""

INTRO_TEMPLATE = """You are an expert podcast producer. Your task is to write a compelling introduction for a show segment based on the speakers and their source materials.

SPEAKERS:
{{{speakers}}}

SOURCE MATERIALS:
{{{sources}}}

TASK:
Write a conversational introduction for a podcast episode. The intro must follow this structure:
1. Introduce the speakers by name.
2. Briefly state their general area of expertise.
3. Create a bulleted list of 5-7 interesting and specific topics that will be discussed. These topics MUST be synthesized from the provided source materials. The topics should be intriguing and make someone want to listen.
4. Provide a concluding sentence to transition into the main conversation.

OUTPUT FORMAT:
Return only the text of the introduction. Do not include any other explanations or markdown formatting.

EXAMPLE:
In this conversation I speak with Dr. Evelyn Reed and Ben Carter. They are experts in artificial intelligence and cognitive science. In this conversation we discuss:
- The surprising ways AI models mimic human cognitive dissonance.
- How to frame questions to get unbiased opinions from language models.
- The philosophical limits of what a large language model can "know".
- Using strategic anthropomorphism to improve AI interaction.
- Uncovering and understanding the vulnerabilities in model responses.

And with that, here's the conversation with Evelyn and Ben."""

TOPICS_TEMPLATE = """Perform semantic analysis on the provided source text.
1. Identify the core topics using n-gram analysis to detect multi-word phrases (e.g., "artificial intelligence" instead of "artificial", "intelligence").
2. Filter out common stopwords and generic terms.
3. Ensure topics are strictly relevant to the document context.
4. Return the top 10 most significant topics as a list of strings.

SOURCE TEXT:
{{{text}}}"""

DOCUMENT_ANALYSIS_INSTRUCTIONS = """You are an advanced document analyzer. Process the provided document content.

TASKS:
1. **Extraction**: If the input is a PDF, extract the full raw text representation. If text is provided, use it.
2. **Metadata**: Infer the Author, Date (YYYY-MM-DD if possible), and Domain/Source context.
3. **Structuring**: Divide the document into semantic chunks (sections). Each chunk should have distinct thematic content.
4. **Topic Analysis**: For each chunk, identify relevant topics (using semantic n-gram analysis). Also provide a list of top-level topics for the entire document.

OUTPUT FORMAT:
Return a valid JSON object matching the schema."""

PERSONA_ANALYSIS_TEMPLATE = """You are a personality and speech pattern analyst. Your task is to analyze {{{subject}}} and create a persona profile for {{{target}}}. Based on the {{{basis}}}, infer their communication style, expertise level, personality traits, deeper characteristics, and speaking patterns.

{{{label}}}:
{{{material}}}

TASK:
Analyze the {{{noun}}} and provide a single, synthesized persona profile. Infer the following characteristics:
- **name**: A plausible name for the speaker. If none can be inferred, use a descriptive placeholder like "{{{placeholder}}}".
- **role**: A plausible role or profession for the speaker.
- **communicationStyle**: One of [{{{join communication_styles ", "}}}].
- **expertiseLevel**: One of [{{{join expertise_levels ", "}}}].
- **personalityTraits**: An array of 2-4 relevant traits from this list: [{{{join traits ", "}}}].
- **quirks**: Any noticeable quirks or unique habits (e.g., "Tends to use complex analogies", "Frequently uses rhetorical questions").
- **motivations**: What seems to be their primary motivation (e.g., "Driven by a desire for accuracy", "Wants to make complex topics accessible").
- **backstory**: A brief, inferred backstory that might explain their perspective.
- **emotionalRange**: The typical emotional tone (e.g., "Calm and measured", "Passionate and excitable", "Prone to sarcasm").
- **speakingPatterns**: An object containing:
  - **sentenceLength**: One of [{{{join sentence_lengths ", "}}}].
  - **vocabularyComplexity**: One of [{{{join vocab_complexities ", "}}}].
  - **humorLevel**: One of [{{{join humor_levels ", "}}}].
  - **fillerWords**: A comma-separated string of any filler words or phrases you detect (e.g., "in essence, basically").
  - **commonPauses**: Patterns that suggest pauses (e.g., "Frequent use of ellipses (...)", "long pauses between points").
  - **speechImpediments**: Any unusual syntax, repetition or impediment (e.g., "slight stutter on 't' sounds").

OUTPUT FORMAT:
Return a valid JSON object matching the schema provided. Do not include any other text or explanations."""


# ── Prompt builders ──────────────────────────────────────


def build_script_prompt(
    personas: list[Persona], settings: GenerationSettings, show_intro: str
) -> str:
    """Full-script prompt. The format example uses the real persona ids."""
    first_id = personas[0].id if personas else "persona-id-0"
    second_id = personas[1].id if len(personas) > 1 else "persona-id-1"
    return render_prompt(SCRIPT_TEMPLATE, {
        "intro": show_intro,
        "personas": [persona_block(p, i) for i, p in enumerate(personas)],
        "minutes": str(settings.dialogue_length_in_minutes),
        "conversation_style": settings.conversation_style,
        "complexity_level": settings.complexity_level,
        "first_id": first_id,
        "second_id": second_id,
    })


def build_next_line_prompt(
    personas: list[Persona], script: list[ScriptLine], speaker: Persona
) -> str:
    lines = [
        {"speaker": _speaker_name(personas, line.speaker_id), "text": line.line}
        for line in script
    ]
    last_speaker = _speaker_name(personas, script[-1].speaker_id) if script else "no one"
    return render_prompt(NEXT_LINE_TEMPLATE, {
        "history_size": NEXT_LINE_HISTORY,
        "history_label": str(NEXT_LINE_HISTORY),
        "lines": lines,
        "personas": [f"Persona (id: {p.id}):\n{persona_details(p)}" for p in personas],
        "last_speaker": last_speaker,
        "next_name": speaker.name,
        "next_id": speaker.id,
    })


def build_revision_prompt(
    script: list[ScriptLine],
    personas: list[Persona],
    target: ScriptLine,
    speaker: Persona,
    instruction: str,
) -> str:
    lines = [
        {
            "speaker": _speaker_name(personas, line.speaker_id),
            "text": line.line,
            "current": line.id == target.id,
        }
        for line in script
    ]
    return render_prompt(REVISION_TEMPLATE, {
        "lines": lines,
        "persona": persona_details(speaker),
        "original": target.line,
        "instruction": instruction,
    })


def build_intro_prompt(personas: list[Persona]) -> str:
    speakers = []
    for p in personas:
        doc_names = ", ".join(d.name for d in _usable_documents(p))
        details = [
            f"{p.name} ({p.role})",
            f"an expert in {p.expertise_level.lower()} level topics",
            p.personality_traits and f"with traits like {', '.join(p.personality_traits)}",
            p.motivations and f"motivated by {p.motivations}",
            f"Their knowledge base includes: {doc_names or 'general knowledge'}",
        ]
        speakers.append("- " + ", ".join(d for d in details if d))

    sources = [
        f"--- Document: {d.name} for speaker {p.name} ---\n{d.content}\n--- End Document ---"
        for p in personas
        for d in _usable_documents(p)
    ]
    return render_prompt(INTRO_TEMPLATE, {
        "speakers": "\n".join(speakers),
        "sources": "\n\n".join(sources),
    })


def truncate_for_analysis(text: str, limit: int = MAX_ANALYSIS_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "... (truncated for analysis)"


def build_topics_prompt(text: str) -> str:
    return render_prompt(TOPICS_TEMPLATE, {"text": truncate_for_analysis(text)})


def build_document_analysis_parts(
    *, text: str | None = None, pdf_base64: str | None = None
) -> list[Part]:
    """Ordered parts for document analysis: the document, then the instructions.

    PDFs go inline as binary; everything else as (truncated) text.
    """
    parts: list[Part] = []
    if pdf_base64 is not None:
        parts.append(InlineDataPart(mime_type="application/pdf", data=pdf_base64))
        parts.append(TextPart(text="Analyze this PDF document."))
    else:
        parts.append(TextPart(
            text=f"Analyze the following text content:\n{truncate_for_analysis(text or '')}"
        ))
    parts.append(TextPart(text=DOCUMENT_ANALYSIS_INSTRUCTIONS))
    return parts


def _persona_analysis_prompt(**context: Any) -> str:
    return render_prompt(PERSONA_ANALYSIS_TEMPLATE, {
        **context,
        "communication_styles": COMMUNICATION_STYLES,
        "expertise_levels": EXPERTISE_LEVELS,
        "traits": PERSONALITY_TRAIT_OPTIONS,
        "sentence_lengths": SENTENCE_LENGTHS,
        "vocab_complexities": VOCAB_COMPLEXITIES,
        "humor_levels": HUMOR_LEVELS,
    })


def build_persona_from_documents_prompt(documents: list[SourceDocument]) -> str:
    combined = "\n\n".join(
        f"--- Document: {d.name} ---\n{d.content}\n--- End Document ---" for d in documents
    )
    return _persona_analysis_prompt(
        subject="a collection of documents (articles, papers, transcripts)",
        target="the author or main subject",
        basis="content and writing style",
        label="DOCUMENTS",
        material=combined,
        noun="documents",
        placeholder="Lead Researcher",
    )


def build_persona_from_transcript_prompt(transcript: str) -> str:
    return _persona_analysis_prompt(
        subject="a text transcript of someone speaking",
        target="them",
        basis="transcript",
        label="TRANSCRIPT",
        material=f'"{transcript}"',
        noun="transcript",
        placeholder="Speaker 1",
    )
