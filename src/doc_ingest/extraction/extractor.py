"""Byte → page conversion for uploaded documents.

PDF pages map 1:1 to source pages.  Flat formats (TXT, DOCX) have no
pages, so their word stream is cut into fixed windows of
``words_per_page`` words.  Everything here is a pure function of its
input: no storage, no network.
"""

from __future__ import annotations

import io
import logging
import zipfile
from datetime import datetime
from html import escape
from pathlib import PurePath
from typing import Any, Callable

from pydantic import BaseModel, Field

from doc_ingest.errors import ExtractionFailed, UnsupportedFormatError
from doc_ingest.extraction.boilerplate import detect_headers_footers
from doc_ingest.extraction.formatting import (
    count_words,
    detect_equations,
    detect_tables,
    extract_title,
    paragraphs_to_html,
    text_to_html,
)

logger = logging.getLogger(__name__)

DEFAULT_WORDS_PER_PAGE = 500


class ExtractedPage(BaseModel):
    page_number: int
    text: str
    html: str | None = None
    word_count: int = 0
    has_tables: bool = False
    has_equations: bool = False


class ExtractionResult(BaseModel):
    """Everything the persistence and embedding stages need from a file."""

    total_pages: int
    pages: list[ExtractedPage]
    metadata: dict[str, Any] = Field(default_factory=dict)
    detected_headers: list[str] = Field(default_factory=list)
    detected_footers: list[str] = Field(default_factory=list)


def file_extension(filename: str) -> str:
    return PurePath(filename).suffix.lower().lstrip(".")


def paginate_words(
    text: str,
    *,
    words_per_page: int = DEFAULT_WORDS_PER_PAGE,
    has_tables: bool = False,
    render: Callable[[str], str] = paragraphs_to_html,
) -> list[ExtractedPage]:
    """Split *text* into pages of at most *words_per_page* words."""
    words = text.split()
    pages: list[ExtractedPage] = []
    for start in range(0, len(words), words_per_page):
        chunk = words[start : start + words_per_page]
        page_text = " ".join(chunk)
        pages.append(
            ExtractedPage(
                page_number=start // words_per_page + 1,
                text=page_text,
                html=render(page_text),
                word_count=len(chunk),
                has_tables=has_tables,
                has_equations=detect_equations(page_text),
            )
        )
    return pages


# ── format handlers ───────────────────────────────────────────────────


def _pdf_date(value: Any) -> str | None:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value) if value else None


def extract_pdf(data: bytes) -> tuple[list[ExtractedPage], dict[str, Any]]:
    from pypdf import PdfReader
    from pypdf.errors import PdfReadError

    try:
        reader = PdfReader(io.BytesIO(data))
        raw_pages = [(page.extract_text() or "").strip() for page in reader.pages]
        info = reader.metadata
    except (PdfReadError, ValueError, KeyError, OSError) as exc:
        raise ExtractionFailed(f"Failed to process PDF file: {exc}") from exc

    metadata: dict[str, Any] = {}
    if info is not None:
        metadata = {
            "title": info.title,
            "author": info.author,
            "subject": info.subject,
            "keywords": info.get("/Keywords"),
            "creator": info.creator,
            "producer": info.producer,
            "creation_date": _pdf_date(info.get("/CreationDate")),
        }

    pages = [
        ExtractedPage(
            page_number=number,
            text=text,
            html=text_to_html(text),
            word_count=count_words(text),
            has_tables=detect_tables(text),
            has_equations=detect_equations(text),
        )
        for number, text in enumerate(raw_pages, start=1)
    ]
    return pages, {k: v for k, v in metadata.items() if v}


def extract_docx(data: bytes, *, words_per_page: int) -> tuple[list[ExtractedPage], dict[str, Any]]:
    import docx
    from docx.opc.exceptions import PackageNotFoundError

    try:
        document = docx.Document(io.BytesIO(data))
    except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as exc:
        raise ExtractionFailed(f"Failed to process DOCX file: {exc}") from exc

    blocks = [p.text for p in document.paragraphs if p.text.strip()]
    for table in document.tables:
        for row in table.rows:
            blocks.append(" ".join(cell.text for cell in row.cells))
    text = "\n".join(blocks)

    pages = paginate_words(
        text,
        words_per_page=words_per_page,
        has_tables=bool(document.tables),
        render=lambda t: f'<div class="prose">{escape(t)}</div>',
    )
    props = document.core_properties
    metadata = {
        "title": props.title or extract_title(text),
        "author": props.author or None,
        "subject": props.subject or None,
        "keywords": props.keywords or None,
        "creation_date": props.created.isoformat() if props.created else None,
    }
    return pages, {k: v for k, v in metadata.items() if v}


def extract_txt(data: bytes, *, words_per_page: int) -> tuple[list[ExtractedPage], dict[str, Any]]:
    text = data.decode("utf-8", errors="replace")
    pages = paginate_words(text, words_per_page=words_per_page)
    return pages, {"title": extract_title(text)}


# ── public entry point ────────────────────────────────────────────────


SUPPORTED_EXTENSIONS = frozenset({"pdf", "docx", "doc", "txt"})


def ensure_supported(filename: str) -> str:
    """Return the extension of *filename* or raise :class:`UnsupportedFormatError`."""
    extension = file_extension(filename)
    if extension not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFormatError(extension)
    return extension


def extract_document(
    data: bytes,
    filename: str,
    *,
    words_per_page: int = DEFAULT_WORDS_PER_PAGE,
) -> ExtractionResult:
    """Convert an uploaded file into pages plus metadata.

    Parameters
    ----------
    data:
        Raw file bytes.
    filename:
        Original file name; only its extension is used.
    words_per_page:
        Page size for formats without native pagination.

    Raises
    ------
    UnsupportedFormatError
        The extension is not one of pdf, docx, doc, txt.
    ExtractionFailed
        The file is corrupt or contains no text at all.
    """
    extension = ensure_supported(filename)

    if extension == "pdf":
        pages, metadata = extract_pdf(data)
    elif extension == "docx":
        pages, metadata = extract_docx(data, words_per_page=words_per_page)
    else:
        if extension == "doc":
            logger.warning(".doc has limited support, reading %s as plain text", filename)
        pages, metadata = extract_txt(data, words_per_page=words_per_page)

    if not pages:
        raise ExtractionFailed(f"Failed to extract text from {filename}")

    boilerplate = detect_headers_footers([p.text for p in pages])
    logger.info("Extracted %d page(s) from %s", len(pages), filename)
    return ExtractionResult(
        total_pages=len(pages),
        pages=pages,
        metadata=metadata,
        detected_headers=boilerplate.headers,
        detected_footers=boilerplate.footers,
    )
