"""Semantic search over the pages of one document.

Usage::

    searcher = SemanticSearcher(index, embedder)
    for hit in searcher.search(document_id, "conservation of momentum", page_number=12):
        print(hit.page_number, hit.score, hit.text_preview[:80])
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel

from doc_ingest.extraction.sanitizer import truncate
from doc_ingest.models import VectorMatch

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from doc_ingest.vector_index.base import VectorIndexBase

logger = logging.getLogger(__name__)

PAGE_DISTANCE_PENALTY = 0.01


class SearchHit(BaseModel):
    """One page matching a query."""

    vector_id: str
    document_id: str
    page_number: int
    score: float
    text_preview: str = ""


class SemanticSearcher:
    """Embed a question and rank a document's pages against it.

    Parameters
    ----------
    index:
        Vector index holding the page vectors.
    embedder:
        The same embeddings model used at ingestion time.
    default_k:
        Number of hits returned by :meth:`search`.
    max_input_chars:
        The query is cut to this length before embedding.
    """

    def __init__(
        self,
        index: VectorIndexBase,
        embedder: Embeddings,
        *,
        default_k: int = 5,
        max_input_chars: int = 8000,
    ) -> None:
        self._index = index
        self._embedder = embedder
        self.default_k = default_k
        self.max_input_chars = max_input_chars

    # -- public API -----------------------------------------------------------

    def search(
        self,
        document_id: str,
        query: str,
        *,
        k: int | None = None,
        page_number: int | None = None,
    ) -> list[SearchHit]:
        """Return the best-matching pages of *document_id*.

        When *page_number* is given, twice as many candidates are fetched
        and each score is reduced by ``0.01`` per page of distance from it,
        so nearby pages win ties with far-away ones.
        """
        k = k or self.default_k
        embedding = self._embedder.embed_query(truncate(query, self.max_input_chars))
        fetch = k * 2 if page_number is not None else k
        matches = self._index.query(embedding, k=fetch, filter={"document_id": document_id})
        hits = [self._to_hit(m, document_id) for m in matches]

        if page_number is not None:
            for hit in hits:
                hit.score -= PAGE_DISTANCE_PENALTY * abs(hit.page_number - page_number)
            hits.sort(key=lambda h: h.score, reverse=True)

        logger.debug("Search in %s returned %d hit(s)", document_id, len(hits[:k]))
        return hits[:k]

    # -- internals ------------------------------------------------------------

    @staticmethod
    def _to_hit(match: VectorMatch, document_id: str) -> SearchHit:
        payload = match.payload
        return SearchHit(
            vector_id=match.id,
            document_id=payload.get("document_id", document_id),
            page_number=int(payload.get("page_number", 0)),
            score=match.score,
            text_preview=payload.get("text_preview", ""),
        )
