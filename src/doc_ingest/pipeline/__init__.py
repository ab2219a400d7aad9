"""
Pipeline — the saga-driven ingestion orchestrator and page search.

Public surface
--------------
- :class:`IngestionOrchestrator` — upload bytes to a ready, searchable document.
- :class:`Saga`, :class:`RollbackReport` — undo stack used for compensation.
- :class:`SemanticSearcher`, :class:`SearchHit` — query the indexed pages.
"""

from doc_ingest.pipeline.orchestrator import IngestionOrchestrator
from doc_ingest.pipeline.saga import RollbackReport, Saga
from doc_ingest.pipeline.search import SearchHit, SemanticSearcher

__all__ = [
    "IngestionOrchestrator",
    "RollbackReport",
    "Saga",
    "SearchHit",
    "SemanticSearcher",
]
