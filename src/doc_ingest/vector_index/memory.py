"""In-process vector index for tests and local runs."""

from __future__ import annotations

import math
import threading
from typing import Any

from doc_ingest.models import VectorMatch
from doc_ingest.vector_index.base import IndexPoint, VectorIndexBase


def cosine_similarity(a: list[float], b: list[float]) -> float:
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 0.0
    return sum(x * y for x, y in zip(a, b)) / norm


class InMemoryVectorIndex(VectorIndexBase):
    """Brute-force cosine search over a dict of points."""

    def __init__(self, collection_name: str = "documents", *, dimension: int = 3072) -> None:
        super().__init__(collection_name, dimension=dimension)
        self.points: dict[str, IndexPoint] = {}
        self._lock = threading.Lock()

    def _ensure_collection(self) -> None:
        pass

    def _upsert_points(self, points: list[IndexPoint]) -> None:
        with self._lock:
            for point in points:
                self.points[point.id] = point

    def _query(self, vector: list[float], k: int, filter: dict[str, Any]) -> list[VectorMatch]:
        with self._lock:
            candidates = [p for p in self.points.values() if _matches(p.payload, filter)]
        scored = [
            VectorMatch(id=p.id, score=cosine_similarity(vector, p.vector), payload=dict(p.payload))
            for p in candidates
        ]
        scored.sort(key=lambda m: m.score, reverse=True)
        return scored[:k]

    def _delete_ids(self, ids: list[str]) -> None:
        with self._lock:
            for point_id in ids:
                self.points.pop(point_id, None)

    def _delete_where(self, filter: dict[str, Any]) -> None:
        with self._lock:
            doomed = [pid for pid, p in self.points.items() if _matches(p.payload, filter)]
            for point_id in doomed:
                del self.points[point_id]

    def count(self, document_id: str | None = None) -> int:
        with self._lock:
            if document_id is None:
                return len(self.points)
            return sum(1 for p in self.points.values() if p.payload.get("document_id") == document_id)


def _matches(payload: dict[str, Any], filter: dict[str, Any]) -> bool:
    return all(payload.get(key) == value for key, value in filter.items())
