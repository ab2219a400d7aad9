"""Unit tests for the windowed embedding scheduler."""

from __future__ import annotations

import asyncio

import pytest
from langchain_core.embeddings import Embeddings

from doc_ingest.embedding.scheduler import CleanedPage, EmbeddingScheduler


def _pages(n: int, *, chars: int = 80) -> list[CleanedPage]:
    return [
        CleanedPage(page_number=i, text=(f"page {i} " + "x" * chars)[:chars])
        for i in range(1, n + 1)
    ]


class ConcurrencyProbe(Embeddings):
    """Async embedder that records how many calls overlap."""

    def __init__(self) -> None:
        self.in_flight = 0
        self.max_in_flight = 0
        self.calls = 0

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [[1.0, 0.0] for _ in texts]

    def embed_query(self, text: str) -> list[float]:
        return [1.0, 0.0]

    async def aembed_query(self, text: str) -> list[float]:
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0.01)
        self.in_flight -= 1
        return [1.0, 0.0]


def _collect(sink: list):
    """Coroutine callback appending its arguments to *sink*."""

    async def callback(*args):
        sink.append(args[0] if len(args) == 1 else args)

    return callback


async def _discard(batch) -> None:
    return None


def _run(scheduler: EmbeddingScheduler, pages, flush=None, progress=None):
    flush = flush or _discard
    return asyncio.run(scheduler.run("doc-1", pages, flush=flush, progress=progress))


class TestWindowing:
    def test_23_pages_in_windows_of_five(self) -> None:
        probe = ConcurrencyProbe()
        report = _run(EmbeddingScheduler(probe, window_size=5), _pages(23))
        assert report.windows == [5, 5, 5, 5, 3]
        assert probe.max_in_flight <= 5
        assert report.vectors_indexed == 23

    def test_progress_after_each_window(self) -> None:
        seen: list[tuple[int, int]] = []
        _run(
            EmbeddingScheduler(ConcurrencyProbe(), window_size=5),
            _pages(23),
            progress=_collect(seen),
        )
        assert seen == [(5, 23), (10, 23), (15, 23), (20, 23), (23, 23)]

    def test_no_pages(self) -> None:
        report = _run(EmbeddingScheduler(ConcurrencyProbe()), [])
        assert report.windows == []
        assert report.vectors_indexed == 0

    def test_invalid_window(self) -> None:
        with pytest.raises(ValueError):
            EmbeddingScheduler(ConcurrencyProbe(), window_size=0)


class TestPageOutcomes:
    def test_short_pages_are_skipped(self, embeddings) -> None:
        pages = _pages(3)
        pages[1] = CleanedPage(page_number=2, text="   too short   ")
        report = _run(EmbeddingScheduler(embeddings, min_chars=50), pages)
        assert report.skipped_pages == [2]
        assert sorted(report.vector_ids) == [1, 3]
        assert report.failed_pages == []

    def test_failing_page_is_excluded(self, embeddings) -> None:
        embeddings.fail_on = {"BROKEN"}
        pages = _pages(4)
        pages[2] = CleanedPage(page_number=3, text="BROKEN " + "y" * 80)
        report = _run(EmbeddingScheduler(embeddings), pages)
        assert report.failed_pages == [3]
        assert sorted(report.vector_ids) == [1, 2, 4]

    def test_input_is_truncated(self, embeddings) -> None:
        report = _run(
            EmbeddingScheduler(embeddings, min_chars=10, max_input_chars=60),
            [CleanedPage(page_number=1, text="z" * 100)],
        )
        assert embeddings.calls == ["z" * 60]
        assert report.vectors_indexed == 1

    def test_vector_payload(self, embeddings) -> None:
        batches = []
        page = CleanedPage(page_number=7, text="q" * 80, payload={"word_count": 1})
        _run(EmbeddingScheduler(embeddings), [page], flush=_collect(batches))
        vector = batches[0][0]
        assert vector.payload == {"document_id": "doc-1", "page_number": 7, "word_count": 1}
        assert vector.key == "doc-1_page_7"


class TestFlushing:
    def test_flush_at_threshold_then_remainder(self) -> None:
        batches: list = []
        report = _run(
            EmbeddingScheduler(ConcurrencyProbe(), window_size=3, flush_threshold=4),
            _pages(10),
            flush=_collect(batches),
        )
        assert [len(batch) for batch in batches] == [4, 4, 2]
        assert report.flushes == 3
        assert report.vectors_indexed == 10

    def test_flush_error_stops_further_windows(self) -> None:
        probe = ConcurrencyProbe()

        async def failing_flush(batch):
            raise RuntimeError("vector store down")

        scheduler = EmbeddingScheduler(probe, window_size=2, flush_threshold=2)
        with pytest.raises(RuntimeError, match="vector store down"):
            _run(scheduler, _pages(10), flush=failing_flush)
        assert probe.calls == 2

    def test_flushed_pages_only_count_once_written(self) -> None:
        written: list[int] = []

        async def flush(batch):
            if written:
                raise RuntimeError("second flush fails")
            written.extend(v.page_number for v in batch)

        scheduler = EmbeddingScheduler(ConcurrencyProbe(), window_size=2, flush_threshold=2)
        with pytest.raises(RuntimeError):
            _run(scheduler, _pages(6), flush=flush)
        assert written == [1, 2]
