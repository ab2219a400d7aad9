"""
Serving — FastAPI application for uploads, status, pages and search.

Run locally with ``python -m doc_ingest.serving`` or the ``doc-ingest-serve`` script.
"""
