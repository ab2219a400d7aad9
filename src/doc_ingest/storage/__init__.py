"""
Storage — protocols and adapters for blobs, rows, pages, quota and logs.

Public surface
--------------
- :class:`ObjectStore`, :class:`MetadataStore`, :class:`ContentStore`,
  :class:`QuotaStore`, :class:`ProgressSink` — what the orchestrator needs.
- :class:`InMemoryStores`, :class:`InMemoryObjectStore` — tests / local runs.
- :class:`SqliteMetadataStore`, :class:`SqliteContentStore`, :class:`SqliteClient`.
- :class:`LocalObjectStore` — filesystem blobs.
"""

from doc_ingest.storage.base import (
    ContentStore,
    MetadataStore,
    ObjectStore,
    ProgressSink,
    QuotaStore,
    object_key,
)
from doc_ingest.storage.memory import InMemoryObjectStore, InMemoryStores
from doc_ingest.storage.objects import LocalObjectStore
from doc_ingest.storage.sqlite import SqliteClient, SqliteContentStore, SqliteMetadataStore

__all__ = [
    "ContentStore",
    "InMemoryObjectStore",
    "InMemoryStores",
    "LocalObjectStore",
    "MetadataStore",
    "ObjectStore",
    "ProgressSink",
    "QuotaStore",
    "SqliteClient",
    "SqliteContentStore",
    "SqliteMetadataStore",
    "object_key",
]
