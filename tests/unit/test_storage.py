"""Unit tests for the storage adapters."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from doc_ingest.models import (
    Document,
    DocumentContent,
    DocumentStatus,
    LogStage,
    LogStatus,
    Page,
    ProcessingLog,
)
from doc_ingest.storage import (
    ContentStore,
    InMemoryStores,
    LocalObjectStore,
    MetadataStore,
    ProgressSink,
    QuotaStore,
    SqliteClient,
    SqliteContentStore,
    SqliteMetadataStore,
    object_key,
)


def _document(**overrides) -> Document:
    fields = {"owner_id": "u-1", "filename": "a.txt", "content_hash": "h1"}
    fields.update(overrides)
    return Document(**fields)


@pytest.fixture(params=["memory", "sqlite"])
def relational(request, tmp_path: Path):
    if request.param == "memory":
        return InMemoryStores()
    return SqliteMetadataStore(SqliteClient(tmp_path / "meta.db"))


@pytest.fixture(params=["memory", "sqlite"])
def documents_store(request, tmp_path: Path):
    if request.param == "memory":
        return InMemoryStores()
    return SqliteContentStore(SqliteClient(tmp_path / "content.db"))


class TestProtocols:
    def test_memory_satisfies_every_protocol(self) -> None:
        stores = InMemoryStores()
        for protocol in (MetadataStore, ContentStore, QuotaStore, ProgressSink):
            assert isinstance(stores, protocol)

    def test_sqlite_split(self, tmp_path: Path) -> None:
        client = SqliteClient(tmp_path / "db.sqlite")
        assert isinstance(SqliteMetadataStore(client), MetadataStore)
        assert isinstance(SqliteContentStore(client), ContentStore)


class TestMetadataStore:
    def test_round_trip_and_update(self, relational) -> None:
        document = _document(status=DocumentStatus.PROCESSING)
        relational.create_document(document)

        document.status = DocumentStatus.READY
        document.total_pages = 4
        relational.update_document(document)

        stored = relational.get_document(document.id)
        assert stored.status is DocumentStatus.READY
        assert stored.total_pages == 4
        assert stored.is_duplicate is False

    def test_missing_document(self, relational) -> None:
        assert relational.get_document("nope") is None

    def test_find_ready_by_hash_ignores_duplicates_and_in_flight(self, relational) -> None:
        relational.create_document(_document(status=DocumentStatus.PROCESSING))
        original = _document(owner_id="u-2", status=DocumentStatus.READY)
        relational.create_document(original)
        relational.create_document(
            _document(
                owner_id="u-3",
                status=DocumentStatus.READY,
                is_duplicate=True,
                original_document_id=original.id,
            )
        )
        assert relational.find_ready_by_hash("h1").id == original.id
        assert relational.find_ready_by_hash("other") is None

    def test_find_owned_copy(self, relational) -> None:
        original = _document(status=DocumentStatus.READY)
        reference = _document(
            owner_id="u-2", is_duplicate=True, original_document_id=original.id
        )
        relational.create_document(original)
        relational.create_document(reference)
        assert relational.find_owned_copy("u-1", original.id).id == original.id
        assert relational.find_owned_copy("u-2", original.id).id == reference.id
        assert relational.find_owned_copy("u-3", original.id) is None

    def test_delete(self, relational) -> None:
        document = _document()
        relational.create_document(document)
        relational.delete_document(document.id)
        assert relational.get_document(document.id) is None


class TestQuotaStore:
    def test_increment_and_set(self, relational) -> None:
        assert relational.get_upload_count("u-1") == 0
        assert relational.increment_upload_count("u-1") == 1
        assert relational.increment_upload_count("u-1") == 2
        relational.set_upload_count("u-1", 7)
        assert relational.get_upload_count("u-1") == 7

    def test_ground_truth_excludes_duplicates_and_failed(self, relational) -> None:
        relational.create_document(_document(status=DocumentStatus.READY))
        relational.create_document(_document(status=DocumentStatus.PROCESSING))
        relational.create_document(_document(status=DocumentStatus.FAILED))
        relational.create_document(_document(is_duplicate=True, original_document_id="x"))
        relational.create_document(_document(owner_id="u-2"))
        assert relational.count_owned_documents("u-1") == 2


class TestProgressSink:
    def test_logs_in_order(self, relational) -> None:
        for progress in (0, 30, 100):
            relational.append(
                ProcessingLog(
                    document_id="d",
                    stage=LogStage.EXTRACTION,
                    status=LogStatus.IN_PROGRESS,
                    message=f"at {progress}",
                    progress=progress,
                )
            )
        relational.append(
            ProcessingLog(document_id="other", stage=LogStage.EMBEDDING,
                          status=LogStatus.STARTED, message="x")
        )
        logs = relational.list_logs("d")
        assert [log.progress for log in logs] == [0, 30, 100]
        assert logs[0].stage is LogStage.EXTRACTION


class TestContentStore:
    def test_pages_and_vector_ids(self, documents_store) -> None:
        documents_store.save_pages(
            [
                Page(document_id="d", page_number=2, plain_text="two", has_tables=True),
                Page(document_id="d", page_number=1, plain_text="one"),
            ]
        )
        documents_store.assign_vector_ids("d", {1: "v1"})
        pages = documents_store.get_pages("d")
        assert [p.page_number for p in pages] == [1, 2]
        assert pages[0].vector_id == "v1"
        assert pages[1].vector_id is None
        assert pages[1].has_tables is True

    def test_content_record(self, documents_store) -> None:
        content = DocumentContent(
            document_id="d",
            filename="a.pdf",
            metadata={"title": "T"},
            detected_headers=["Head"],
            vector_ids=["v1", "v2"],
        )
        documents_store.save_content(content)
        stored = documents_store.get_content("d")
        assert stored.metadata == {"title": "T"}
        assert stored.detected_headers == ["Head"]
        assert stored.vector_ids == ["v1", "v2"]

    def test_delete_document_content(self, documents_store) -> None:
        documents_store.save_pages([Page(document_id="d", page_number=1, plain_text="one")])
        documents_store.save_content(DocumentContent(document_id="d", filename="a.pdf"))
        documents_store.delete_document_content("d")
        assert documents_store.get_pages("d") == []
        assert documents_store.get_content("d") is None


class TestObjects:
    def test_object_key_sanitizes_filename(self) -> None:
        ts = datetime(2024, 1, 2, tzinfo=timezone.utc)
        key = object_key("u-1", "d-1", "my report (final).pdf", ts)
        assert key == f"documents/u-1/d-1/{int(ts.timestamp() * 1000)}-my_report__final_.pdf"

    def test_local_store(self, tmp_path: Path) -> None:
        store = LocalObjectStore(tmp_path)
        store.put("documents/u/d/1-a.txt", b"hello", "text/plain")
        assert store.get("documents/u/d/1-a.txt") == b"hello"
        store.delete("documents/u/d/1-a.txt")
        store.delete("documents/u/d/1-a.txt")
        assert not (tmp_path / "documents/u/d/1-a.txt").exists()

    def test_local_store_rejects_escaping_keys(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError):
            LocalObjectStore(tmp_path / "root").put("../outside.txt", b"x", "text/plain")
