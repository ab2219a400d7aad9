"""Dict-backed stores for tests and single-process runs."""

from __future__ import annotations

import threading
from collections import defaultdict

from doc_ingest.models import Document, DocumentContent, DocumentStatus, Page, ProcessingLog


class InMemoryObjectStore:
    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def put(self, key: str, data: bytes, content_type: str) -> str:
        with self._lock:
            self.blobs[key] = data
        return key

    def get(self, key: str) -> bytes:
        with self._lock:
            return self.blobs[key]

    def delete(self, key: str) -> None:
        with self._lock:
            self.blobs.pop(key, None)


class InMemoryStores:
    """Metadata, content, quota and progress stores sharing one lock.

    One instance satisfies :class:`MetadataStore`, :class:`ContentStore`,
    :class:`QuotaStore` and :class:`ProgressSink`.
    """

    def __init__(self) -> None:
        self.documents: dict[str, Document] = {}
        self.pages: dict[str, dict[int, Page]] = {}
        self.contents: dict[str, DocumentContent] = {}
        self.upload_counts: dict[str, int] = defaultdict(int)
        self.logs: list[ProcessingLog] = []
        self._lock = threading.RLock()

    # -- MetadataStore --------------------------------------------------------

    def create_document(self, document: Document) -> None:
        with self._lock:
            if document.id in self.documents:
                raise KeyError(f"Document {document.id} already exists")
            self.documents[document.id] = document.model_copy()

    def get_document(self, document_id: str) -> Document | None:
        with self._lock:
            document = self.documents.get(document_id)
            return document.model_copy() if document else None

    def update_document(self, document: Document) -> None:
        with self._lock:
            if document.id not in self.documents:
                raise KeyError(f"Document {document.id} not found")
            self.documents[document.id] = document.model_copy()

    def delete_document(self, document_id: str) -> None:
        with self._lock:
            self.documents.pop(document_id, None)

    def find_ready_by_hash(self, content_hash: str) -> Document | None:
        with self._lock:
            for document in self.documents.values():
                if (
                    document.content_hash == content_hash
                    and document.status is DocumentStatus.READY
                    and not document.is_duplicate
                ):
                    return document.model_copy()
        return None

    def find_owned_copy(self, owner_id: str, original_id: str) -> Document | None:
        with self._lock:
            for document in self.documents.values():
                if document.owner_id == owner_id and document.content_document_id == original_id:
                    return document.model_copy()
        return None

    # -- ContentStore ---------------------------------------------------------

    def save_pages(self, pages: list[Page]) -> None:
        with self._lock:
            for page in pages:
                self.pages.setdefault(page.document_id, {})[page.page_number] = page.model_copy()

    def get_pages(self, document_id: str) -> list[Page]:
        with self._lock:
            stored = self.pages.get(document_id, {})
            return [stored[n].model_copy() for n in sorted(stored)]

    def assign_vector_ids(self, document_id: str, vector_ids: dict[int, str]) -> None:
        with self._lock:
            stored = self.pages.get(document_id, {})
            for page_number, vector_id in vector_ids.items():
                if page_number in stored:
                    stored[page_number].vector_id = vector_id

    def save_content(self, content: DocumentContent) -> None:
        with self._lock:
            self.contents[content.document_id] = content.model_copy()

    def get_content(self, document_id: str) -> DocumentContent | None:
        with self._lock:
            content = self.contents.get(document_id)
            return content.model_copy() if content else None

    def delete_document_content(self, document_id: str) -> None:
        with self._lock:
            self.pages.pop(document_id, None)
            self.contents.pop(document_id, None)

    # -- QuotaStore -----------------------------------------------------------

    def get_upload_count(self, owner_id: str) -> int:
        with self._lock:
            return self.upload_counts[owner_id]

    def set_upload_count(self, owner_id: str, count: int) -> None:
        with self._lock:
            self.upload_counts[owner_id] = count

    def increment_upload_count(self, owner_id: str) -> int:
        with self._lock:
            self.upload_counts[owner_id] += 1
            return self.upload_counts[owner_id]

    def count_owned_documents(self, owner_id: str) -> int:
        with self._lock:
            return sum(
                1
                for d in self.documents.values()
                if d.owner_id == owner_id
                and not d.is_duplicate
                and d.status is not DocumentStatus.FAILED
            )

    # -- ProgressSink ---------------------------------------------------------

    def append(self, entry: ProcessingLog) -> None:
        with self._lock:
            self.logs.append(entry.model_copy())

    def list_logs(self, document_id: str) -> list[ProcessingLog]:
        with self._lock:
            return [log.model_copy() for log in self.logs if log.document_id == document_id]
