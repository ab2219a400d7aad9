"""Qdrant implementation of the vector-index abstraction."""

from __future__ import annotations

import logging
from typing import Any

from qdrant_client import QdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    MatchValue,
    PointIdsList,
    PointStruct,
    VectorParams,
)

from doc_ingest.config import Settings, settings
from doc_ingest.errors import VectorDimensionMismatch
from doc_ingest.models import VectorMatch
from doc_ingest.vector_index.base import IndexPoint, VectorIndexBase

logger = logging.getLogger(__name__)


def _build_qdrant_filter(filter: dict[str, Any]) -> Filter | None:
    if not filter:
        return None
    return Filter(
        must=[FieldCondition(key=key, match=MatchValue(value=value)) for key, value in filter.items()]
    )


class QdrantVectorIndex(VectorIndexBase):
    """Qdrant-backed vector index using a single unnamed cosine vector.

    Parameters
    ----------
    collection_name:
        Name of the Qdrant collection.
    dimension:
        Vector size the collection is created with.
    client:
        A ready :class:`QdrantClient`; built from ``qdrant_url`` when *None*.
    """

    def __init__(
        self,
        collection_name: str | None = None,
        *,
        dimension: int | None = None,
        client: QdrantClient | None = None,
        config: Settings | None = None,
    ) -> None:
        config = config or settings
        super().__init__(
            collection_name or config.vector_collection,
            dimension=dimension or config.vector_dimension,
        )
        self._client = client or QdrantClient(
            url=config.qdrant_url, api_key=config.qdrant_api_key or None
        )

    # -- VectorIndexBase overrides --------------------------------------------

    def _ensure_collection(self) -> None:
        if not self._client.collection_exists(self.collection_name):
            logger.info(
                "Creating collection '%s' (dim=%d, cosine)", self.collection_name, self.dimension
            )
            self._client.create_collection(
                collection_name=self.collection_name,
                vectors_config=VectorParams(size=self.dimension, distance=Distance.COSINE),
            )
            return

        info = self._client.get_collection(self.collection_name)
        size = getattr(info.config.params.vectors, "size", None)
        if size is not None and size != self.dimension:
            raise VectorDimensionMismatch(self.dimension, size, where="collection")

    def _upsert_points(self, points: list[IndexPoint]) -> None:
        self._client.upsert(
            collection_name=self.collection_name,
            points=[PointStruct(id=p.id, vector=p.vector, payload=p.payload) for p in points],
            wait=True,
        )

    def _query(self, vector: list[float], k: int, filter: dict[str, Any]) -> list[VectorMatch]:
        response = self._client.query_points(
            collection_name=self.collection_name,
            query=vector,
            limit=k,
            query_filter=_build_qdrant_filter(filter),
            with_payload=True,
        )
        return [
            VectorMatch(id=str(point.id), score=point.score, payload=point.payload or {})
            for point in response.points
        ]

    def _delete_ids(self, ids: list[str]) -> None:
        self._client.delete(
            collection_name=self.collection_name,
            points_selector=PointIdsList(points=ids),
            wait=True,
        )

    def _delete_where(self, filter: dict[str, Any]) -> None:
        self._client.delete(
            collection_name=self.collection_name,
            points_selector=FilterSelector(filter=_build_qdrant_filter(filter)),
            wait=True,
        )

    def health_check(self) -> bool:
        try:
            self._client.get_collections()
            return True
        except Exception:
            logger.warning("Qdrant health-check failed", exc_info=True)
            return False
