"""
doc-ingest — document ingestion, embedding and cross-store indexing.

An upload becomes a ``ready`` document only when its blob, metadata row,
pages and page vectors have all been written; otherwise every store is
rolled back.  See :mod:`doc_ingest.pipeline.orchestrator`.
"""

__version__ = "0.1.0"
