"""
Vector index — deterministic point IDs over pluggable backends.

Public surface
--------------
- :class:`VectorIndexBase` — abstract backend (subclass for new stores).
- :class:`ChromaVectorIndex`, :class:`QdrantVectorIndex`, :class:`InMemoryVectorIndex`.
- :func:`semantic_key`, :func:`vector_point_id` — page → point ID mapping.
- :func:`get_vector_index` — backend selected by ``settings.vector_backend``.

Everything is imported lazily: :mod:`doc_ingest.models` needs the ID
helpers, and the backends need the models.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from doc_ingest.config import Settings
    from doc_ingest.vector_index.base import VectorIndexBase

__all__ = [
    "ChromaVectorIndex",
    "InMemoryVectorIndex",
    "QdrantVectorIndex",
    "VectorIndexBase",
    "get_vector_index",
    "semantic_key",
    "vector_point_id",
]

_LAZY = {
    "VectorIndexBase": "doc_ingest.vector_index.base",
    "ChromaVectorIndex": "doc_ingest.vector_index.chroma_store",
    "QdrantVectorIndex": "doc_ingest.vector_index.qdrant_store",
    "InMemoryVectorIndex": "doc_ingest.vector_index.memory",
    "semantic_key": "doc_ingest.vector_index.ids",
    "vector_point_id": "doc_ingest.vector_index.ids",
}


def get_vector_index(config: Settings | None = None) -> VectorIndexBase:
    """Build the vector index named by ``config.vector_backend``."""
    from doc_ingest.config import settings

    config = config or settings
    backend = config.vector_backend
    if backend == "chroma":
        from doc_ingest.vector_index.chroma_store import ChromaVectorIndex

        return ChromaVectorIndex(config=config)
    if backend == "qdrant":
        from doc_ingest.vector_index.qdrant_store import QdrantVectorIndex

        return QdrantVectorIndex(config=config)
    if backend == "memory":
        from doc_ingest.vector_index.memory import InMemoryVectorIndex

        return InMemoryVectorIndex(config.vector_collection, dimension=config.vector_dimension)
    raise ValueError(f"Unsupported vector_backend={backend!r}. Choose from: chroma, qdrant, memory.")


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import backends so chromadb / qdrant_client load only when used."""
    module = _LAZY.get(name)
    if module is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    import importlib

    return getattr(importlib.import_module(module), name)
