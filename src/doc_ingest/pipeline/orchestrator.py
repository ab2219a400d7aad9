"""End-to-end ingestion of one upload across every store.

Stages run in order: quota → object storage → document row → extraction →
pages → embedding/indexing → ready.  Each write pushes its compensating
action on a :class:`~doc_ingest.pipeline.saga.Saga`; any failure (or the
wall-clock timeout) unwinds the stack newest-first and the caller gets a
failed :class:`IngestionOutcome` instead of an exception.

Usage::

    orchestrator = IngestionOrchestrator.from_settings()
    outcome = asyncio.run(orchestrator.ingest(data, "report.pdf", owner_id="u-1"))
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from doc_ingest.config import IngestionPolicy, Settings, settings
from doc_ingest.embedding.scheduler import CleanedPage, EmbeddingReport, EmbeddingScheduler
from doc_ingest.errors import ExtractionFailed, FileTooLargeError, PipelineTimeout
from doc_ingest.extraction.boilerplate import remove_boilerplate
from doc_ingest.extraction.extractor import ExtractionResult, ensure_supported, extract_document
from doc_ingest.extraction.formatting import count_words
from doc_ingest.extraction.sanitizer import sanitize, truncate
from doc_ingest.models import (
    Document,
    DocumentContent,
    DocumentStatus,
    EmbeddingVector,
    IngestionOutcome,
    LogStage,
    LogStatus,
    Page,
    ProcessingLog,
)
from doc_ingest.pipeline.saga import Saga
from doc_ingest.storage.base import (
    ContentStore,
    MetadataStore,
    ObjectStore,
    ProgressSink,
    QuotaStore,
    object_key,
)

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from doc_ingest.vector_index.base import VectorIndexBase

logger = logging.getLogger(__name__)

T = TypeVar("T")

MIME_TYPES = {
    "pdf": "application/pdf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "doc": "application/msword",
    "txt": "text/plain",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Run:
    document: Document
    saga: Saga
    stage: LogStage = LogStage.EXTRACTION
    writes: list[asyncio.Future] = field(default_factory=list)


class IngestionOrchestrator:
    """Drives one upload to ``ready`` or rolls every store back.

    Parameters
    ----------
    objects, metadata, content, quota, progress:
        Store adapters; see :mod:`doc_ingest.storage.base`.
    index:
        Vector index receiving one vector per embedded page.
    embedder:
        LangChain embeddings model.
    policy:
        Ingestion constants; defaults to the values in ``settings``.
    """

    def __init__(
        self,
        *,
        objects: ObjectStore,
        metadata: MetadataStore,
        content: ContentStore,
        quota: QuotaStore,
        progress: ProgressSink,
        index: VectorIndexBase,
        embedder: Embeddings,
        policy: IngestionPolicy | None = None,
    ) -> None:
        self.objects = objects
        self.metadata = metadata
        self.content = content
        self.quota = quota
        self.progress = progress
        self.index = index
        self.embedder = embedder
        self.policy = policy or IngestionPolicy.from_settings()

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> IngestionOrchestrator:
        """Wire SQLite, local object storage and the configured vector backend."""
        from doc_ingest.embedding.embedder import get_embedding_function
        from doc_ingest.storage.objects import LocalObjectStore
        from doc_ingest.storage.sqlite import SqliteClient, SqliteContentStore, SqliteMetadataStore
        from doc_ingest.vector_index import get_vector_index

        config = config or settings
        client = SqliteClient(config.sqlite_path)
        relational = SqliteMetadataStore(client)
        return cls(
            objects=LocalObjectStore(config.object_store_root),
            metadata=relational,
            content=SqliteContentStore(client),
            quota=relational,
            progress=relational,
            index=get_vector_index(config),
            embedder=get_embedding_function(config),
            policy=IngestionPolicy.from_settings(config),
        )

    # -- public API -----------------------------------------------------------

    async def ingest(self, data: bytes, filename: str, owner_id: str) -> IngestionOutcome:
        """Ingest one upload.

        Never raises for pipeline errors: the result is either ``ready``
        with page and vector counts, or ``failed`` with the error message
        and whether the rollback completed.
        """
        t0 = time.monotonic()
        try:
            extension = ensure_supported(filename)
            if len(data) > self.policy.max_upload_bytes:
                raise FileTooLargeError(len(data), self.policy.max_upload_bytes)
            if not data:
                raise ExtractionFailed(f"Empty upload: {filename}")

            content_hash = hashlib.sha256(data).hexdigest()
            duplicate = await asyncio.to_thread(
                self._deduplicate, content_hash, filename, owner_id, len(data), extension
            )
        except Exception as exc:
            logger.warning("Rejected %s for %s: %s", filename, owner_id, exc)
            return IngestionOutcome(
                status=DocumentStatus.FAILED,
                error=str(exc),
                elapsed_seconds=time.monotonic() - t0,
            )
        if duplicate is not None:
            duplicate.elapsed_seconds = time.monotonic() - t0
            return duplicate

        document = Document(
            owner_id=owner_id,
            filename=filename,
            mime_type=MIME_TYPES[extension],
            size_bytes=len(data),
            content_hash=content_hash,
        )
        run = _Run(document=document, saga=Saga(document.id))
        logger.info("Ingesting %s as %s for %s", filename, document.id, owner_id)

        try:
            report = await asyncio.wait_for(
                self._run(run, data), timeout=self.policy.pipeline_timeout_seconds
            )
        except asyncio.TimeoutError:
            error: Exception = PipelineTimeout(self.policy.pipeline_timeout_seconds)
        except Exception as exc:
            error = exc
        else:
            elapsed = time.monotonic() - t0
            logger.info(
                "%s ready: %d page(s), %d vector(s) in %.1fs",
                document.id,
                document.total_pages,
                report.vectors_indexed,
                elapsed,
            )
            return IngestionOutcome(
                status=DocumentStatus.READY,
                document_id=document.id,
                total_pages=document.total_pages,
                vectors_indexed=report.vectors_indexed,
                skipped_pages=report.skipped_pages,
                failed_pages=report.failed_pages,
                elapsed_seconds=elapsed,
            )

        logger.error("Ingestion of %s failed during %s: %s", document.id, run.stage.value, error)
        if run.writes:
            # Threads outlive a cancelled run; undo only once their writes have landed.
            await asyncio.gather(*run.writes, return_exceptions=True)
        await asyncio.to_thread(
            self._log, document.id, run.stage, LogStatus.FAILED, "Processing failed", 0,
            error=str(error),
        )
        rollback = await asyncio.to_thread(run.saga.compensate)
        return IngestionOutcome(
            status=DocumentStatus.FAILED,
            document_id=document.id,
            error=str(error),
            rollback_attempted=rollback.attempted,
            rollback_complete=rollback.complete,
            rollback_errors=rollback.failed_steps,
            elapsed_seconds=time.monotonic() - t0,
        )

    # -- stages ---------------------------------------------------------------

    async def _run(self, run: _Run, data: bytes) -> EmbeddingReport:
        document, saga = run.document, run.saga
        owner_id = document.owner_id

        # Undo steps go on before their writes: each tolerates a missing target.
        saga.push("quota", lambda: self._reconcile_quota(owner_id))
        await self._write(run, self.quota.increment_upload_count, owner_id)

        key = object_key(owner_id, document.id, document.filename, document.created_at)
        saga.push("object", lambda: self.objects.delete(key))
        await self._write(run, self.objects.put, key, data, document.mime_type)

        document.storage_key = key
        document.status = DocumentStatus.PROCESSING
        saga.push("record", lambda: self._undo_record(document))
        await self._write(run, self.metadata.create_document, document)

        await self._write(
            run, self._log, document.id, LogStage.EXTRACTION, LogStatus.STARTED,
            "Starting text extraction", 0,
        )
        extraction = await asyncio.to_thread(
            extract_document, data, document.filename, words_per_page=self.policy.words_per_page
        )
        pages = self._clean_pages(document.id, extraction)
        await self._write(
            run, self._log, document.id, LogStage.EXTRACTION, LogStatus.COMPLETED,
            f"Extracted {len(pages)} pages", 30,
        )

        content = DocumentContent(
            document_id=document.id,
            filename=document.filename,
            metadata=extraction.metadata,
            detected_headers=extraction.detected_headers,
            detected_footers=extraction.detected_footers,
        )
        saga.push("content", lambda: self.content.delete_document_content(document.id))
        await self._write(run, self.content.save_pages, pages)
        await self._write(run, self.content.save_content, content)

        run.stage = LogStage.EMBEDDING
        await self._write(
            run, self._log, document.id, LogStage.EMBEDDING, LogStatus.STARTED,
            "Generating embeddings", 40,
        )
        saga.push("vectors", lambda: self.index.delete_by_document(document.id))
        report = await self._embed(run, pages)

        run.stage = LogStage.COMPLETION
        content.vector_ids = [report.vector_ids[n] for n in sorted(report.vector_ids)]
        content.processing_status = "completed"
        content.updated_at = _utcnow()
        await self._write(run, self.content.save_content, content)

        document.status = DocumentStatus.READY
        document.total_pages = extraction.total_pages
        document.processed_at = _utcnow()
        await self._write(run, self.metadata.update_document, document)
        await self._write(
            run, self._log, document.id, LogStage.COMPLETION, LogStatus.COMPLETED,
            "Processing completed", 100,
        )
        return report

    async def _write(self, run: _Run, func: Callable[..., T], *args: Any) -> T:
        """Run a blocking store call in a worker thread.

        The thread is shielded from cancellation and recorded on *run*, so a
        timeout stops the pipeline without abandoning a half-finished write.
        """
        future = asyncio.ensure_future(asyncio.to_thread(func, *args))
        run.writes.append(future)
        return await asyncio.shield(future)

    async def _embed(self, run: _Run, pages: list[Page]) -> EmbeddingReport:
        document_id = run.document.id
        policy = self.policy
        scheduler = EmbeddingScheduler(
            self.embedder,
            window_size=policy.embed_window_size,
            flush_threshold=policy.flush_threshold,
            min_chars=policy.min_embed_chars,
            max_input_chars=policy.max_embed_input_chars,
        )
        cleaned = [
            CleanedPage(
                page_number=page.page_number,
                text=page.plain_text,
                payload={
                    "word_count": page.word_count,
                    "has_tables": page.has_tables,
                    "has_equations": page.has_equations,
                    "text_preview": truncate(page.plain_text, policy.preview_chars),
                },
            )
            for page in pages
        ]

        def index_batch(batch: list[EmbeddingVector]) -> None:
            ids = self.index.upsert(batch)
            self.content.assign_vector_ids(
                document_id, {vector.page_number: point_id for vector, point_id in zip(batch, ids)}
            )

        async def flush(batch: list[EmbeddingVector]) -> None:
            await self._write(run, index_batch, batch)

        async def on_progress(done: int, total: int) -> None:
            await self._write(
                run, self._log, document_id, LogStage.EMBEDDING, LogStatus.IN_PROGRESS,
                f"Processed {done}/{total} pages", 40 + int(done / total * 50),
            )

        return await scheduler.run(document_id, cleaned, flush=flush, progress=on_progress)

    def _clean_pages(self, document_id: str, extraction: ExtractionResult) -> list[Page]:
        headers, footers = extraction.detected_headers, extraction.detected_footers
        pages = []
        for page in extraction.pages:
            plain_text = sanitize(remove_boilerplate(page.text, headers, footers))
            pages.append(
                Page(
                    document_id=document_id,
                    page_number=page.page_number,
                    plain_text=plain_text,
                    html_content=sanitize(page.html) if page.html else None,
                    word_count=count_words(plain_text),
                    has_tables=page.has_tables,
                    has_equations=page.has_equations,
                )
            )
        return pages

    # -- dedup ----------------------------------------------------------------

    def _deduplicate(
        self, content_hash: str, filename: str, owner_id: str, size: int, extension: str
    ) -> IngestionOutcome | None:
        original = self.metadata.find_ready_by_hash(content_hash)
        if original is None:
            return None

        existing = self.metadata.find_owned_copy(owner_id, original.id)
        if existing is not None:
            logger.info("%s already holds %s as %s", owner_id, original.id, existing.id)
            return self._duplicate_outcome(existing)

        reference = Document(
            owner_id=owner_id,
            filename=filename,
            mime_type=MIME_TYPES[extension],
            size_bytes=size,
            content_hash=content_hash,
            status=DocumentStatus.READY,
            total_pages=original.total_pages,
            storage_key=original.storage_key,
            original_document_id=original.id,
            is_duplicate=True,
            processed_at=_utcnow(),
        )
        self.metadata.create_document(reference)
        logger.info("Duplicate of %s stored as reference %s", original.id, reference.id)
        return self._duplicate_outcome(reference)

    def _duplicate_outcome(self, document: Document) -> IngestionOutcome:
        content = self.content.get_content(document.content_document_id)
        return IngestionOutcome(
            status=DocumentStatus.READY,
            document_id=document.id,
            total_pages=document.total_pages,
            vectors_indexed=len(content.vector_ids) if content else 0,
            duplicate=document.is_duplicate,
        )

    # -- compensation ---------------------------------------------------------

    def _reconcile_quota(self, owner_id: str) -> None:
        self.quota.set_upload_count(owner_id, self.quota.count_owned_documents(owner_id))

    def _undo_record(self, document: Document) -> None:
        try:
            self.metadata.delete_document(document.id)
        except Exception:
            # A row that cannot be removed must at least stop claiming to be in flight.
            document.status = DocumentStatus.FAILED
            self.metadata.update_document(document)
            raise

    def _log(
        self,
        document_id: str,
        stage: LogStage,
        status: LogStatus,
        message: str,
        progress: int,
        *,
        error: str | None = None,
    ) -> None:
        done = status in (LogStatus.COMPLETED, LogStatus.FAILED)
        entry = ProcessingLog(
            document_id=document_id,
            stage=stage,
            status=status,
            message=message,
            progress=progress,
            error=error,
            completed_at=_utcnow() if done else None,
        )
        try:
            self.progress.append(entry)
        except Exception:
            logger.warning("Could not record progress for %s", document_id, exc_info=True)
