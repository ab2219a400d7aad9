"""Bounded-concurrency page embedding.

Embedding calls are I/O bound and rate limited by the provider, so pages
are embedded in fixed windows of ``window_size`` concurrent calls rather
than all at once.  Finished vectors are handed to ``flush`` as soon as
``flush_threshold`` of them have accumulated, which keeps memory flat on
long documents and makes early pages searchable sooner.  Both ``flush``
and ``progress`` are coroutines, so blocking store writes belong in
``asyncio.to_thread`` on the caller side.

Usage::

    async def flush(batch):
        await asyncio.to_thread(index.upsert, batch)

    scheduler = EmbeddingScheduler(get_embedding_function())
    report = await scheduler.run(document_id, pages, flush=flush)
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from doc_ingest.errors import EmbeddingCallFailed
from doc_ingest.models import EmbeddingVector

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

logger = logging.getLogger(__name__)

FlushFn = Callable[[list[EmbeddingVector]], Awaitable[None]]
ProgressFn = Callable[[int, int], Awaitable[None]]


@dataclass
class CleanedPage:
    """A page ready for embedding.

    Attributes
    ----------
    page_number:
        1-based page number.
    text:
        Header/footer-stripped, sanitized text; this exact string is embedded.
    payload:
        Extra fields stored next to the vector (word count, preview, …).
    """

    page_number: int
    text: str
    payload: dict = field(default_factory=dict)


@dataclass
class EmbeddingReport:
    """Outcome of one :meth:`EmbeddingScheduler.run`."""

    windows: list[int] = field(default_factory=list)
    vector_ids: dict[int, str] = field(default_factory=dict)
    skipped_pages: list[int] = field(default_factory=list)
    failed_pages: list[int] = field(default_factory=list)
    flushes: int = 0
    elapsed_seconds: float = 0.0

    @property
    def vectors_indexed(self) -> int:
        return len(self.vector_ids)


class EmbeddingScheduler:
    """Embed pages window by window and flush vectors eagerly.

    Parameters
    ----------
    embedder:
        Any LangChain embeddings model; only ``aembed_query`` is used.
    window_size:
        Pages embedded concurrently per window.
    flush_threshold:
        Accumulated vectors that trigger a call to ``flush``.
    min_chars:
        Pages whose stripped text is shorter are skipped without error.
    max_input_chars:
        Text is cut to this length before it is sent to the model.
    """

    def __init__(
        self,
        embedder: Embeddings,
        *,
        window_size: int = 5,
        flush_threshold: int = 100,
        min_chars: int = 50,
        max_input_chars: int = 8000,
    ) -> None:
        if window_size < 1 or flush_threshold < 1:
            raise ValueError("window_size and flush_threshold must be >= 1")
        self._embedder = embedder
        self.window_size = window_size
        self.flush_threshold = flush_threshold
        self.min_chars = min_chars
        self.max_input_chars = max_input_chars

    async def run(
        self,
        document_id: str,
        pages: Sequence[CleanedPage],
        *,
        flush: FlushFn,
        progress: ProgressFn | None = None,
    ) -> EmbeddingReport:
        """Embed every eligible page of *document_id*.

        A page-local embedding error is logged and the page excluded.  Any
        exception raised by *flush* is fatal: it propagates immediately and
        no further window is started.
        """
        report = EmbeddingReport()
        pending: list[EmbeddingVector] = []
        total = len(pages)
        t0 = time.monotonic()

        async def _flush(batch: list[EmbeddingVector]) -> None:
            logger.info("Flushing %d vector(s) for %s", len(batch), document_id)
            await flush(batch)
            report.flushes += 1
            for vector in batch:
                report.vector_ids[vector.page_number] = vector.id

        for start in range(0, total, self.window_size):
            window = pages[start : start + self.window_size]
            report.windows.append(len(window))
            logger.debug(
                "Window %d/%d (%d pages) for %s",
                len(report.windows),
                -(-total // self.window_size),
                len(window),
                document_id,
            )

            results = await asyncio.gather(*(self._embed_page(document_id, p) for p in window))
            for page, result in zip(window, results):
                if result is None:
                    report.skipped_pages.append(page.page_number)
                elif isinstance(result, EmbeddingCallFailed):
                    report.failed_pages.append(page.page_number)
                else:
                    pending.append(result)

            while len(pending) >= self.flush_threshold:
                batch, pending = pending[: self.flush_threshold], pending[self.flush_threshold :]
                await _flush(batch)

            if progress is not None:
                await progress(min(start + len(window), total), total)

        if pending:
            await _flush(pending)

        report.elapsed_seconds = time.monotonic() - t0
        logger.info(
            "Embedded %s: %d vector(s), %d skipped, %d failed in %.1fs",
            document_id,
            report.vectors_indexed,
            len(report.skipped_pages),
            len(report.failed_pages),
            report.elapsed_seconds,
        )
        return report

    async def _embed_page(
        self, document_id: str, page: CleanedPage
    ) -> EmbeddingVector | EmbeddingCallFailed | None:
        text = page.text.strip()
        if len(text) < self.min_chars:
            logger.debug("Skipping %s page %d (too short)", document_id, page.page_number)
            return None
        try:
            values = await self._embedder.aembed_query(text[: self.max_input_chars])
        except Exception as exc:
            error = EmbeddingCallFailed(document_id, page.page_number, exc)
            logger.warning("%s", error)
            return error
        return EmbeddingVector(
            document_id=document_id,
            page_number=page.page_number,
            values=list(values),
            payload={"document_id": document_id, "page_number": page.page_number, **page.payload},
        )
