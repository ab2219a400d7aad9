"""SQLite-backed relational and document stores.

``SqliteMetadataStore`` holds the document rows, per-owner upload
counters and processing logs; ``SqliteContentStore`` holds pages and the
per-document content record.  Both may share one :class:`SqliteClient`
or point at separate database files.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any

from doc_ingest.models import Document, DocumentContent, DocumentStatus, Page, ProcessingLog

logger = logging.getLogger(__name__)

METADATA_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    filename TEXT NOT NULL,
    mime_type TEXT NOT NULL,
    size_bytes INTEGER NOT NULL,
    content_hash TEXT NOT NULL,
    status TEXT NOT NULL,
    total_pages INTEGER NOT NULL DEFAULT 0,
    storage_key TEXT NOT NULL DEFAULT '',
    original_document_id TEXT,
    is_duplicate INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    processed_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_documents_hash ON documents(content_hash);
CREATE INDEX IF NOT EXISTS idx_documents_owner ON documents(owner_id);
CREATE TABLE IF NOT EXISTS user_upload_limits (
    owner_id TEXT PRIMARY KEY,
    upload_count INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS processing_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id TEXT NOT NULL,
    stage TEXT NOT NULL,
    status TEXT NOT NULL,
    message TEXT NOT NULL,
    progress INTEGER NOT NULL,
    error TEXT,
    started_at TEXT NOT NULL,
    completed_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_logs_document ON processing_logs(document_id);
"""

CONTENT_SCHEMA = """
CREATE TABLE IF NOT EXISTS pages (
    document_id TEXT NOT NULL,
    page_number INTEGER NOT NULL,
    plain_text TEXT NOT NULL,
    html_content TEXT,
    word_count INTEGER NOT NULL,
    has_tables INTEGER NOT NULL,
    has_equations INTEGER NOT NULL,
    vector_id TEXT,
    PRIMARY KEY (document_id, page_number)
);
CREATE TABLE IF NOT EXISTS document_content (
    document_id TEXT PRIMARY KEY,
    filename TEXT NOT NULL,
    metadata TEXT NOT NULL,
    detected_headers TEXT NOT NULL,
    detected_footers TEXT NOT NULL,
    vector_ids TEXT NOT NULL,
    processing_status TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""

_DOCUMENT_COLUMNS = (
    "id", "owner_id", "filename", "mime_type", "size_bytes", "content_hash", "status",
    "total_pages", "storage_key", "original_document_id", "is_duplicate", "created_at",
    "processed_at",
)


class SqliteClient:
    """SQLite connection shared across threads behind a lock."""

    def __init__(self, path: str | Path) -> None:
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._connection = sqlite3.connect(self.path, check_same_thread=False)
        self._connection.row_factory = sqlite3.Row
        self.lock = threading.RLock()

    def execute(self, query: str, params: tuple | dict = ()) -> list[sqlite3.Row]:
        """Execute one statement, commit, and return all rows."""
        with self.lock, self._connection:
            cursor = self._connection.execute(query, params)
            rows = cursor.fetchall()
            cursor.close()
            return rows

    def executemany(self, query: str, rows: list[tuple]) -> None:
        with self.lock, self._connection:
            self._connection.executemany(query, rows)

    def executescript(self, script: str) -> None:
        with self.lock:
            self._connection.executescript(script)

    def close(self) -> None:
        self._connection.close()

    def __enter__(self) -> SqliteClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False


def _document_from_row(row: sqlite3.Row) -> Document:
    return Document(**dict(row))


class SqliteMetadataStore:
    """Relational store: documents, upload counters and processing logs."""

    def __init__(self, client: SqliteClient) -> None:
        self._db = client
        self._db.executescript(METADATA_SCHEMA)
        logger.debug("Metadata tables initialized in %s", client.path)

    # -- MetadataStore --------------------------------------------------------

    def create_document(self, document: Document) -> None:
        values = document.model_dump(mode="json")
        placeholders = ", ".join("?" for _ in _DOCUMENT_COLUMNS)
        self._db.execute(
            f"INSERT INTO documents ({', '.join(_DOCUMENT_COLUMNS)}) VALUES ({placeholders})",
            tuple(values[c] for c in _DOCUMENT_COLUMNS),
        )

    def get_document(self, document_id: str) -> Document | None:
        rows = self._db.execute("SELECT * FROM documents WHERE id = ?", (document_id,))
        return _document_from_row(rows[0]) if rows else None

    def update_document(self, document: Document) -> None:
        values = document.model_dump(mode="json")
        assignments = ", ".join(f"{c} = ?" for c in _DOCUMENT_COLUMNS[1:])
        self._db.execute(
            f"UPDATE documents SET {assignments} WHERE id = ?",
            tuple(values[c] for c in _DOCUMENT_COLUMNS[1:]) + (document.id,),
        )

    def delete_document(self, document_id: str) -> None:
        self._db.execute("DELETE FROM documents WHERE id = ?", (document_id,))

    def find_ready_by_hash(self, content_hash: str) -> Document | None:
        rows = self._db.execute(
            "SELECT * FROM documents WHERE content_hash = ? AND status = ? AND is_duplicate = 0 "
            "ORDER BY created_at LIMIT 1",
            (content_hash, DocumentStatus.READY.value),
        )
        return _document_from_row(rows[0]) if rows else None

    def find_owned_copy(self, owner_id: str, original_id: str) -> Document | None:
        rows = self._db.execute(
            "SELECT * FROM documents WHERE owner_id = ? AND (id = ? OR original_document_id = ?) "
            "LIMIT 1",
            (owner_id, original_id, original_id),
        )
        return _document_from_row(rows[0]) if rows else None

    # -- QuotaStore -----------------------------------------------------------

    def get_upload_count(self, owner_id: str) -> int:
        rows = self._db.execute(
            "SELECT upload_count FROM user_upload_limits WHERE owner_id = ?", (owner_id,)
        )
        return rows[0]["upload_count"] if rows else 0

    def set_upload_count(self, owner_id: str, count: int) -> None:
        self._db.execute(
            "INSERT INTO user_upload_limits (owner_id, upload_count) VALUES (?, ?) "
            "ON CONFLICT(owner_id) DO UPDATE SET upload_count = excluded.upload_count",
            (owner_id, count),
        )

    def increment_upload_count(self, owner_id: str) -> int:
        with self._db.lock:
            self._db.execute(
                "INSERT INTO user_upload_limits (owner_id, upload_count) VALUES (?, 1) "
                "ON CONFLICT(owner_id) DO UPDATE SET upload_count = upload_count + 1",
                (owner_id,),
            )
            return self.get_upload_count(owner_id)

    def count_owned_documents(self, owner_id: str) -> int:
        rows = self._db.execute(
            "SELECT COUNT(*) AS n FROM documents "
            "WHERE owner_id = ? AND is_duplicate = 0 AND status != ?",
            (owner_id, DocumentStatus.FAILED.value),
        )
        return rows[0]["n"]

    # -- ProgressSink ---------------------------------------------------------

    def append(self, entry: ProcessingLog) -> None:
        values = entry.model_dump(mode="json")
        self._db.execute(
            "INSERT INTO processing_logs "
            "(document_id, stage, status, message, progress, error, started_at, completed_at) "
            "VALUES (:document_id, :stage, :status, :message, :progress, :error, :started_at, "
            ":completed_at)",
            values,
        )

    def list_logs(self, document_id: str) -> list[ProcessingLog]:
        rows = self._db.execute(
            "SELECT document_id, stage, status, message, progress, error, started_at, completed_at "
            "FROM processing_logs WHERE document_id = ? ORDER BY id",
            (document_id,),
        )
        return [ProcessingLog(**dict(row)) for row in rows]


class SqliteContentStore:
    """Document store: extracted pages and per-document content records."""

    def __init__(self, client: SqliteClient) -> None:
        self._db = client
        self._db.executescript(CONTENT_SCHEMA)

    def save_pages(self, pages: list[Page]) -> None:
        self._db.executemany(
            "INSERT OR REPLACE INTO pages (document_id, page_number, plain_text, html_content, "
            "word_count, has_tables, has_equations, vector_id) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            [
                (
                    p.document_id, p.page_number, p.plain_text, p.html_content, p.word_count,
                    int(p.has_tables), int(p.has_equations), p.vector_id,
                )
                for p in pages
            ],
        )

    def get_pages(self, document_id: str) -> list[Page]:
        rows = self._db.execute(
            "SELECT * FROM pages WHERE document_id = ? ORDER BY page_number", (document_id,)
        )
        return [Page(**dict(row)) for row in rows]

    def assign_vector_ids(self, document_id: str, vector_ids: dict[int, str]) -> None:
        self._db.executemany(
            "UPDATE pages SET vector_id = ? WHERE document_id = ? AND page_number = ?",
            [(vector_id, document_id, number) for number, vector_id in vector_ids.items()],
        )

    def save_content(self, content: DocumentContent) -> None:
        values: dict[str, Any] = content.model_dump(mode="json")
        for column in ("metadata", "detected_headers", "detected_footers", "vector_ids"):
            values[column] = json.dumps(values[column])
        self._db.execute(
            "INSERT OR REPLACE INTO document_content (document_id, filename, metadata, "
            "detected_headers, detected_footers, vector_ids, processing_status, updated_at) "
            "VALUES (:document_id, :filename, :metadata, :detected_headers, :detected_footers, "
            ":vector_ids, :processing_status, :updated_at)",
            values,
        )

    def get_content(self, document_id: str) -> DocumentContent | None:
        rows = self._db.execute(
            "SELECT * FROM document_content WHERE document_id = ?", (document_id,)
        )
        if not rows:
            return None
        values = dict(rows[0])
        for column in ("metadata", "detected_headers", "detected_footers", "vector_ids"):
            values[column] = json.loads(values[column])
        return DocumentContent(**values)

    def delete_document_content(self, document_id: str) -> None:
        self._db.execute("DELETE FROM pages WHERE document_id = ?", (document_id,))
        self._db.execute("DELETE FROM document_content WHERE document_id = ?", (document_id,))
