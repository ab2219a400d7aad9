"""Chroma implementation of the vector-index abstraction."""

from __future__ import annotations

import logging
from typing import Any

from doc_ingest.config import Settings, settings
from doc_ingest.errors import VectorDimensionMismatch
from doc_ingest.models import VectorMatch
from doc_ingest.vector_index.base import IndexPoint, VectorIndexBase

logger = logging.getLogger(__name__)


def _build_chroma_where(filter: dict[str, Any]) -> dict[str, Any] | None:
    """Convert an equality conjunction to Chroma ``where`` syntax."""
    if not filter:
        return None
    clauses = [{field: {"$eq": value}} for field, value in filter.items()]
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _chroma_metadata(payload: dict[str, Any]) -> dict[str, Any]:
    # Chroma metadata values must be scalars and may not be None.
    return {
        key: value
        for key, value in payload.items()
        if isinstance(value, (str, int, float, bool))
    }


class ChromaVectorIndex(VectorIndexBase):
    """Chroma-backed vector index.

    Parameters
    ----------
    collection_name:
        Name of the Chroma collection.
    dimension:
        Vector length recorded in the collection metadata.
    client:
        A ready ``chromadb`` client.  When *None*, a ``PersistentClient`` is
        used if ``chroma_persist_directory`` is set, else an ``HttpClient``.
    """

    def __init__(
        self,
        collection_name: str | None = None,
        *,
        dimension: int | None = None,
        client: Any = None,
        config: Settings | None = None,
    ) -> None:
        config = config or settings
        super().__init__(
            collection_name or config.vector_collection,
            dimension=dimension or config.vector_dimension,
        )
        if client is None:
            import chromadb

            if config.chroma_persist_directory:
                client = chromadb.PersistentClient(path=config.chroma_persist_directory)
            else:
                client = chromadb.HttpClient(host=config.chroma_host, port=config.chroma_port)
        self._client = client
        self._collection: Any = None

    # -- VectorIndexBase overrides --------------------------------------------

    def _ensure_collection(self) -> None:
        collection = self._client.get_or_create_collection(
            self.collection_name,
            metadata={"hnsw:space": "cosine", "dimension": self.dimension},
        )
        existing = (collection.metadata or {}).get("dimension")
        if existing is not None and int(existing) != self.dimension:
            raise VectorDimensionMismatch(self.dimension, int(existing), where="collection")
        self._collection = collection

    def _upsert_points(self, points: list[IndexPoint]) -> None:
        self._collection.upsert(
            ids=[p.id for p in points],
            embeddings=[p.vector for p in points],
            metadatas=[_chroma_metadata(p.payload) for p in points],
        )

    def _query(self, vector: list[float], k: int, filter: dict[str, Any]) -> list[VectorMatch]:
        results = self._collection.query(
            query_embeddings=[vector],
            n_results=k,
            where=_build_chroma_where(filter),
            include=["metadatas", "distances"],
        )

        ids = results.get("ids", [[]])[0]
        metas = results.get("metadatas", [[]])[0]
        distances = results.get("distances", [[]])[0]
        # Cosine space: distance = 1 - similarity.
        return [
            VectorMatch(id=point_id, score=1.0 - dist, payload=meta or {})
            for point_id, meta, dist in zip(ids, metas, distances)
        ]

    def _delete_ids(self, ids: list[str]) -> None:
        self.ensure_collection()
        self._collection.delete(ids=ids)

    def _delete_where(self, filter: dict[str, Any]) -> None:
        self.ensure_collection()
        self._collection.delete(where=_build_chroma_where(filter))

    def health_check(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False
