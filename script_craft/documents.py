"""Document ingestion: uploaded files in, analysed SourceDocuments out.

Plain text and Markdown are decoded locally and Word files are read with
python-docx; both are then sent to the model as text. PDFs are not parsed
locally: the bytes go inline to the model, which returns the full text.
Every file is analysed against one fixed schema (full text, metadata,
top-level topics, topic-tagged chunks).

ingest_document() never raises: any failure leaves the document in the
"error" state with a readable message, so one bad file in a batch never
stops the others.
"""

from __future__ import annotations

import base64
import logging
from io import BytesIO
from typing import Literal

from docx import Document
from pydantic import BaseModel

from script_craft.llm import (
    DOCUMENT_ANALYSIS_SCHEMA,
    LLM,
    TOPICS_SCHEMA,
    LLMError,
    LLMRequest,
    build_generation_config,
)
from script_craft.models import (
    DEFAULT_MODEL,
    MAX_DOCUMENTS_PER_PERSONA,
    DocumentChunk,
    InputError,
    SourceDocument,
    new_id,
)
from script_craft.parsing import ResponseFormatError, parse_document_analysis, parse_string_list
from script_craft.prompts import build_document_analysis_parts, build_topics_prompt

logger = logging.getLogger(__name__)

MAX_DOCUMENT_BYTES = 20 * 1024 * 1024
ANALYSIS_TEMPERATURE = 0.3

WORD_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PDF_MIME = "application/pdf"

PROCESS_FAILED = "Failed to process document with AI."

DocumentKind = Literal["text", "word", "pdf"]


class IngestionError(Exception):
    """Raised when a file cannot be read locally."""


class UploadedFile(BaseModel):
    name: str
    content_type: str = ""
    data: bytes


def classify(upload: UploadedFile) -> DocumentKind:
    name = upload.name.lower()
    if upload.content_type in (WORD_MIME, "application/msword") or name.endswith((".docx", ".doc")):
        return "word"
    if upload.content_type == PDF_MIME or name.endswith(".pdf"):
        return "pdf"
    return "text"


def decode_text(raw: bytes) -> str:
    """Decode text bytes: UTF-8 (BOM-aware), falling back to latin-1."""
    if raw.startswith(b"\xef\xbb\xbf"):
        return raw.decode("utf-8-sig")
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def extract_docx_text(raw: bytes) -> str:
    """Raw text of a Word document: paragraphs, then tables as pipe-delimited rows."""
    try:
        doc = Document(BytesIO(raw))
    except Exception as e:
        logger.warning("python-docx could not open file: %s", e)
        raise IngestionError("Failed to parse Word document.") from e

    parts = [para.text for para in doc.paragraphs if para.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            parts.append(" | ".join(cell.text.strip() for cell in row.cells))
    return "\n".join(parts)


def validate_uploads(uploads: list[UploadedFile], existing: int = 0) -> None:
    """Reject a batch before any network call: document cap and file size."""
    if existing + len(uploads) > MAX_DOCUMENTS_PER_PERSONA:
        raise InputError(
            f"You can upload a maximum of {MAX_DOCUMENTS_PER_PERSONA} documents per persona."
        )
    for upload in uploads:
        if len(upload.data) > MAX_DOCUMENT_BYTES:
            raise InputError(
                f"{upload.name} is too large. Please select a file under "
                f"{MAX_DOCUMENT_BYTES // (1024 * 1024)}MB."
            )


async def ingest_document(
    upload: UploadedFile, llm: LLM, model: str = DEFAULT_MODEL
) -> SourceDocument:
    """Read and analyse one file. Always returns; failures end in the "error" state."""
    doc = SourceDocument(name=upload.name)
    try:
        kind = classify(upload)
        text: str | None = None
        pdf_base64: str | None = None
        if kind == "word":
            text = extract_docx_text(upload.data)
        elif kind == "pdf":
            pdf_base64 = base64.b64encode(upload.data).decode("ascii")
        else:
            text = decode_text(upload.data)

        request = LLMRequest(
            model=model,
            contents=build_document_analysis_parts(text=text, pdf_base64=pdf_base64),
            config=build_generation_config(
                temperature=ANALYSIS_TEMPERATURE, model=model, schema=DOCUMENT_ANALYSIS_SCHEMA,
            ),
            context={"text": text, "file_name": upload.name, "file_type": upload.content_type},
        )
        analysis = parse_document_analysis(await llm("document_analysis", request))
    except IngestionError as e:
        doc.fail(str(e))
    except LLMError as e:
        logger.error("Document analysis failed for %s: %s", upload.name, e)
        doc.fail(PROCESS_FAILED)
    except ResponseFormatError as e:
        doc.fail(str(e))
    except Exception as e:
        logger.exception("Unexpected error processing %s", upload.name)
        doc.fail(f"{PROCESS_FAILED} ({e})")
    else:
        # Local text is authoritative for text and Word files; PDFs rely on the model.
        doc.complete(
            content=text or analysis.full_text,
            metadata=analysis.metadata.model_copy(update={"file_type": upload.content_type}),
            chunks=[
                DocumentChunk(id=new_id(), content=c.content, topics=c.topics)
                for c in analysis.chunks
            ],
            topics=analysis.all_topics,
        )
        logger.info("Processed %s: %d chunk(s)", upload.name, len(doc.chunks or []))
    return doc


async def ingest_batch(
    uploads: list[UploadedFile], llm: LLM, existing: int = 0, model: str = DEFAULT_MODEL
) -> list[SourceDocument]:
    """Validate a batch, then ingest files one after another."""
    validate_uploads(uploads, existing)
    documents = []
    for upload in uploads:
        documents.append(await ingest_document(upload, llm, model))
    return documents


async def extract_topics(text: str, llm: LLM, model: str = DEFAULT_MODEL) -> list[str]:
    """Top topics of a text. Returns [] on any failure."""
    request = LLMRequest(
        model=model,
        contents=build_topics_prompt(text),
        config=build_generation_config(
            temperature=ANALYSIS_TEMPERATURE, model=model, schema=TOPICS_SCHEMA,
        ),
    )
    try:
        return parse_string_list(await llm("topics", request))
    except (LLMError, ResponseFormatError) as e:
        logger.error("Topic extraction failed: %s", e)
        return []
