"""Abstract base class for vector-index backends.

Adding a backend only requires subclassing :class:`VectorIndexBase` and
implementing the abstract hooks.  Validation, deterministic point IDs and
payload sanitizing live here so every backend stores the same thing.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from doc_ingest.errors import IngestionError, VectorDimensionMismatch, VectorStoreUnavailable
from doc_ingest.extraction.sanitizer import sanitize
from doc_ingest.models import EmbeddingVector, VectorMatch

logger = logging.getLogger(__name__)


@dataclass
class IndexPoint:
    """A vector as it is written to the backend."""

    id: str
    vector: list[float]
    payload: dict[str, Any] = field(default_factory=dict)


def sanitize_payload(payload: dict[str, Any]) -> dict[str, Any]:
    return {key: sanitize(value) if isinstance(value, str) else value for key, value in payload.items()}


class VectorIndexBase(ABC):
    """Backend-agnostic vector-index interface.

    Parameters
    ----------
    collection_name:
        Logical name of the collection.
    dimension:
        Expected length of every vector; the collection is created with it.
    """

    def __init__(self, collection_name: str, *, dimension: int) -> None:
        self.collection_name = collection_name
        self.dimension = dimension
        self._collection_ready = False

    # -- public API -----------------------------------------------------------

    def upsert(self, vectors: Sequence[EmbeddingVector]) -> list[str]:
        """Write *vectors* and return their storage IDs.

        The batch is validated up front: a single vector of the wrong
        length rejects all of them and nothing is written.
        """
        if not vectors:
            return []
        for vector in vectors:
            self._check_dimension(vector.values, where="vector")

        self.ensure_collection()
        points = [
            IndexPoint(
                id=vector.id,
                vector=list(vector.values),
                payload=sanitize_payload({**vector.payload, "original_id": vector.key}),
            )
            for vector in vectors
        ]
        with self._backend_call("upsert"):
            self._upsert_points(points)
        logger.debug("Upserted %d point(s) into %s", len(points), self.collection_name)
        return [point.id for point in points]

    def query(
        self,
        vector: Sequence[float],
        *,
        k: int = 5,
        filter: dict[str, Any] | None = None,
    ) -> list[VectorMatch]:
        """Return the top-*k* matches by cosine similarity, best first.

        Parameters
        ----------
        vector:
            Query embedding.
        k:
            Number of matches to return.
        filter:
            Payload equality conditions, all of which must hold.
        """
        self._check_dimension(vector, where="query vector")
        self.ensure_collection()
        with self._backend_call("query"):
            return self._query(list(vector), k, filter or {})

    def delete(self, ids: Sequence[str]) -> None:
        if not ids:
            return
        with self._backend_call("delete"):
            self._delete_ids(list(ids))

    def delete_by_document(self, document_id: str) -> None:
        """Remove every point whose payload ``document_id`` matches."""
        with self._backend_call("delete_by_document"):
            self._delete_where({"document_id": document_id})
        logger.info("Deleted vectors of %s from %s", document_id, self.collection_name)

    def ensure_collection(self) -> None:
        """Create the collection if needed; idempotent.

        Raises
        ------
        VectorDimensionMismatch
            The collection exists with a different dimension.
        """
        if self._collection_ready:
            return
        with self._backend_call("ensure_collection"):
            self._ensure_collection()
        self._collection_ready = True

    def health_check(self) -> bool:
        return True

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def _ensure_collection(self) -> None: ...

    @abstractmethod
    def _upsert_points(self, points: list[IndexPoint]) -> None: ...

    @abstractmethod
    def _query(self, vector: list[float], k: int, filter: dict[str, Any]) -> list[VectorMatch]: ...

    @abstractmethod
    def _delete_ids(self, ids: list[str]) -> None: ...

    @abstractmethod
    def _delete_where(self, filter: dict[str, Any]) -> None: ...

    # -- internals ------------------------------------------------------------

    def _check_dimension(self, values: Sequence[float], *, where: str) -> None:
        if len(values) != self.dimension:
            raise VectorDimensionMismatch(self.dimension, len(values), where=where)

    @contextmanager
    def _backend_call(self, action: str) -> Iterator[None]:
        try:
            yield
        except IngestionError:
            raise
        except Exception as exc:
            logger.warning("%s %s on %s failed: %s", type(self).__name__, action,
                           self.collection_name, exc)
            raise VectorStoreUnavailable(f"{action} on {self.collection_name!r} failed: {exc}") from exc
