"""Domain models shared by every stage of the pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from doc_ingest.vector_index.ids import semantic_key, vector_point_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStatus(str, Enum):
    UPLOADING = "uploading"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class Document(BaseModel):
    """Relational metadata row for one upload.

    ``status`` tells which stores hold committed data: ``ready`` means
    pages and vectors are complete, anything else means they must not be
    relied on.  Dedup reference records point at the indexed original via
    ``original_document_id`` and own no pages or vectors themselves.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    owner_id: str
    filename: str
    mime_type: str = "application/octet-stream"
    size_bytes: int = 0
    content_hash: str
    status: DocumentStatus = DocumentStatus.UPLOADING
    total_pages: int = 0
    storage_key: str = ""
    original_document_id: str | None = None
    is_duplicate: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
    processed_at: datetime | None = None

    @property
    def content_document_id(self) -> str:
        """Id under which this document's pages and vectors are stored."""
        return self.original_document_id or self.id


class Page(BaseModel):
    """One extracted page as kept in the document store."""

    document_id: str
    page_number: int = Field(ge=1)
    plain_text: str
    html_content: str | None = None
    word_count: int = 0
    has_tables: bool = False
    has_equations: bool = False
    vector_id: str | None = None


class DocumentContent(BaseModel):
    """Document-store record describing what extraction produced."""

    document_id: str
    filename: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    detected_headers: list[str] = Field(default_factory=list)
    detected_footers: list[str] = Field(default_factory=list)
    vector_ids: list[str] = Field(default_factory=list)
    processing_status: str = "processing"
    updated_at: datetime = Field(default_factory=_utcnow)


class EmbeddingVector(BaseModel):
    """A page embedding on its way to the vector index."""

    document_id: str
    page_number: int
    values: list[float]
    payload: dict[str, Any] = Field(default_factory=dict)

    @property
    def key(self) -> str:
        return semantic_key(self.document_id, self.page_number)

    @property
    def id(self) -> str:
        return vector_point_id(self.key)


class VectorMatch(BaseModel):
    """One hit returned by :meth:`VectorIndexBase.query`."""

    id: str
    score: float
    payload: dict[str, Any] = Field(default_factory=dict)


class LogStage(str, Enum):
    EXTRACTION = "extraction"
    EMBEDDING = "embedding"
    COMPLETION = "completion"


class LogStatus(str, Enum):
    STARTED = "started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class ProcessingLog(BaseModel):
    """Append-only progress entry.  Observability only, never read for recovery."""

    document_id: str
    stage: LogStage
    status: LogStatus
    message: str
    progress: int = Field(default=0, ge=0, le=100)
    error: str | None = None
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: datetime | None = None


class IngestionOutcome(BaseModel):
    """What the caller gets back: ready with counts, or failed with rollback flags."""

    status: DocumentStatus
    document_id: str | None = None
    total_pages: int = 0
    vectors_indexed: int = 0
    skipped_pages: list[int] = Field(default_factory=list)
    failed_pages: list[int] = Field(default_factory=list)
    duplicate: bool = False
    error: str | None = None
    rollback_attempted: bool = False
    rollback_complete: bool | None = None
    rollback_errors: dict[str, str] = Field(default_factory=dict)
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status is DocumentStatus.READY
