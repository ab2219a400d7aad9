"""Unit tests for the compensation stack."""

from __future__ import annotations

from doc_ingest.errors import PartialRollbackFailure
from doc_ingest.pipeline.saga import Saga


def test_compensates_in_reverse_order() -> None:
    undone: list[str] = []
    saga = Saga("doc-1")
    for step in ("quota", "object", "record"):
        saga.push(step, lambda step=step: undone.append(step))

    report = saga.compensate()
    assert undone == ["record", "object", "quota"]
    assert report.complete
    assert report.completed_steps == ["record", "object", "quota"]
    assert saga.steps == []


def test_failure_does_not_stop_remaining_steps() -> None:
    undone: list[str] = []

    def boom() -> None:
        raise ConnectionError("vector store unreachable")

    saga = Saga("doc-1")
    saga.push("object", lambda: undone.append("object"))
    saga.push("vectors", boom)

    report = saga.compensate()
    assert undone == ["object"]
    assert report.attempted
    assert not report.complete
    assert report.failed_steps == {"vectors": "vector store unreachable"}
    error = report.as_error()
    assert isinstance(error, PartialRollbackFailure)
    assert "vectors" in str(error)


def test_empty_saga() -> None:
    report = Saga("doc-1").compensate()
    assert report.complete
    assert report.as_error() is None
