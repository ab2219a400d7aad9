"""Exception taxonomy for the ingestion pipeline.

Only :class:`EmbeddingCallFailed` is page-local; the scheduler catches it
and moves on.  Every other error propagates to the orchestrator, which
rolls the ingestion back and reports a failed outcome.
"""

from __future__ import annotations


class IngestionError(Exception):
    """Base class for all pipeline errors."""


class ExtractionFailed(IngestionError):
    """The upload could not be turned into pages (corrupt or empty input)."""


class UnsupportedFormatError(ExtractionFailed):
    """The file extension has no extractor."""

    def __init__(self, extension: str) -> None:
        super().__init__(f"Unsupported file format: {extension or '<none>'}")
        self.extension = extension


class FileTooLargeError(ExtractionFailed):
    """The upload exceeds the configured size limit."""

    def __init__(self, size_bytes: int, limit_bytes: int) -> None:
        super().__init__(f"File too large: {size_bytes} bytes (limit {limit_bytes})")
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes


class EmbeddingCallFailed(IngestionError):
    """A single page could not be embedded."""

    def __init__(self, document_id: str, page_number: int, cause: BaseException) -> None:
        super().__init__(f"Embedding failed for {document_id} page {page_number}: {cause}")
        self.document_id = document_id
        self.page_number = page_number


class VectorDimensionMismatch(IngestionError):
    """A vector (or an existing collection) does not have the expected size."""

    def __init__(self, expected: int, actual: int, *, where: str = "vector") -> None:
        super().__init__(f"Invalid {where} dimensions. Expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class VectorStoreUnavailable(IngestionError):
    """The vector backend could not be reached or rejected the request."""


class PipelineTimeout(IngestionError):
    """The ingestion exceeded its wall-clock budget."""

    def __init__(self, seconds: float) -> None:
        super().__init__(f"Ingestion exceeded its {seconds:g}s budget")
        self.seconds = seconds


class PartialRollbackFailure(IngestionError):
    """One or more compensating actions failed.

    Never raised to callers: the orchestrator logs it and reports
    ``rollback_complete=False``.  Whatever the failed steps were meant to
    remove may be left orphaned.
    """

    def __init__(self, failed_steps: dict[str, str]) -> None:
        summary = ", ".join(f"{step}: {err}" for step, err in failed_steps.items())
        super().__init__(f"Rollback incomplete ({summary})")
        self.failed_steps = failed_steps
