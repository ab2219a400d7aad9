"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import hashlib

import pytest
from langchain_core.embeddings import Embeddings

from doc_ingest.config import IngestionPolicy
from doc_ingest.pipeline.orchestrator import IngestionOrchestrator
from doc_ingest.storage.memory import InMemoryObjectStore, InMemoryStores
from doc_ingest.vector_index.memory import InMemoryVectorIndex

DIM = 8


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


class FakeEmbeddings(Embeddings):
    """Deterministic hash-based embeddings; records every text it sees."""

    def __init__(self, dim: int = DIM, fail_on: set[str] | None = None) -> None:
        self.dim = dim
        self.fail_on = fail_on or set()
        self.calls: list[str] = []

    def _vector(self, text: str) -> list[float]:
        self.calls.append(text)
        for marker in self.fail_on:
            if marker in text:
                raise RuntimeError(f"provider rejected input containing {marker!r}")
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return [b / 255.0 + 0.01 for b in digest[: self.dim]]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self._vector(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        return self._vector(text)


def make_page_text(n: int, words: int = 20) -> str:
    return " ".join(f"page{n}word{i}" for i in range(words))


@pytest.fixture()
def embeddings() -> FakeEmbeddings:
    return FakeEmbeddings()


@pytest.fixture()
def stores() -> InMemoryStores:
    return InMemoryStores()


@pytest.fixture()
def objects() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture()
def index() -> InMemoryVectorIndex:
    return InMemoryVectorIndex("test-collection", dimension=DIM)


@pytest.fixture()
def policy() -> IngestionPolicy:
    return IngestionPolicy(words_per_page=50, flush_threshold=100, pipeline_timeout_seconds=30)


@pytest.fixture()
def orchestrator(
    stores: InMemoryStores,
    objects: InMemoryObjectStore,
    index: InMemoryVectorIndex,
    embeddings: FakeEmbeddings,
    policy: IngestionPolicy,
) -> IngestionOrchestrator:
    return IngestionOrchestrator(
        objects=objects,
        metadata=stores,
        content=stores,
        quota=stores,
        progress=stores,
        index=index,
        embedder=embeddings,
        policy=policy,
    )
