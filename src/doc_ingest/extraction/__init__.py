"""
Extraction — raw upload bytes to cleaned, paginated text.

Public surface
--------------
- :func:`extract_document` — pdf / docx / doc / txt to :class:`ExtractionResult`.
- :func:`detect_headers_footers`, :func:`remove_boilerplate` — running header cleanup.
- :func:`sanitize`, :func:`truncate` — store-safe text.
"""

from doc_ingest.extraction.boilerplate import detect_headers_footers, remove_boilerplate
from doc_ingest.extraction.extractor import (
    SUPPORTED_EXTENSIONS,
    ExtractedPage,
    ExtractionResult,
    ensure_supported,
    extract_document,
)
from doc_ingest.extraction.sanitizer import sanitize, truncate

__all__ = [
    "SUPPORTED_EXTENSIONS",
    "ExtractedPage",
    "ExtractionResult",
    "detect_headers_footers",
    "ensure_supported",
    "extract_document",
    "remove_boilerplate",
    "sanitize",
    "truncate",
]
