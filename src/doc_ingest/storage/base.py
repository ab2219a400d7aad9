"""Storage protocols the orchestrator depends on.

Each store is an independent system with no shared transaction, which is
why every write the orchestrator makes through these protocols has a
matching compensating call.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Protocol, runtime_checkable

from doc_ingest.models import Document, DocumentContent, Page, ProcessingLog

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.\-]")


def object_key(owner_id: str, document_id: str, filename: str, timestamp: datetime) -> str:
    """Blob key ``documents/{owner}/{document}/{millis}-{sanitized filename}``."""
    millis = int(timestamp.timestamp() * 1000)
    return f"documents/{owner_id}/{document_id}/{millis}-{_UNSAFE_CHARS.sub('_', filename)}"


@runtime_checkable
class ObjectStore(Protocol):
    def put(self, key: str, data: bytes, content_type: str) -> str: ...

    def get(self, key: str) -> bytes: ...

    def delete(self, key: str) -> None: ...


@runtime_checkable
class MetadataStore(Protocol):
    def create_document(self, document: Document) -> None: ...

    def get_document(self, document_id: str) -> Document | None: ...

    def update_document(self, document: Document) -> None: ...

    def delete_document(self, document_id: str) -> None: ...

    def find_ready_by_hash(self, content_hash: str) -> Document | None:
        """Return the ready, non-duplicate document with this content hash."""
        ...

    def find_owned_copy(self, owner_id: str, original_id: str) -> Document | None:
        """Return *owner_id*'s original or reference record for *original_id*."""
        ...


@runtime_checkable
class ContentStore(Protocol):
    def save_pages(self, pages: list[Page]) -> None: ...

    def get_pages(self, document_id: str) -> list[Page]: ...

    def assign_vector_ids(self, document_id: str, vector_ids: dict[int, str]) -> None: ...

    def save_content(self, content: DocumentContent) -> None: ...

    def get_content(self, document_id: str) -> DocumentContent | None: ...

    def delete_document_content(self, document_id: str) -> None:
        """Remove pages and the content record of *document_id*."""
        ...


@runtime_checkable
class QuotaStore(Protocol):
    def get_upload_count(self, owner_id: str) -> int: ...

    def set_upload_count(self, owner_id: str, count: int) -> None: ...

    def increment_upload_count(self, owner_id: str) -> int: ...

    def count_owned_documents(self, owner_id: str) -> int:
        """Ground truth: non-duplicate, non-failed documents owned by *owner_id*."""
        ...


@runtime_checkable
class ProgressSink(Protocol):
    def append(self, entry: ProcessingLog) -> None: ...

    def list_logs(self, document_id: str) -> list[ProcessingLog]: ...
