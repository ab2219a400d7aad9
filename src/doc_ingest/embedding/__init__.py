"""
Embedding — model factory and the windowed page scheduler.

Public surface
--------------
- :func:`get_embedding_function` — LangChain embeddings built from settings.
- :class:`EmbeddingScheduler` — bounded-concurrency embedding with eager flush.
- :class:`CleanedPage`, :class:`EmbeddingReport` — scheduler input / output.
"""

from doc_ingest.embedding.embedder import get_embedding_function
from doc_ingest.embedding.scheduler import CleanedPage, EmbeddingReport, EmbeddingScheduler

__all__ = [
    "CleanedPage",
    "EmbeddingReport",
    "EmbeddingScheduler",
    "get_embedding_function",
]
