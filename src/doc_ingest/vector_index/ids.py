"""Deterministic vector identifiers.

The vector store only accepts UUIDs (or integers) as point IDs, so each
page's semantic key is hashed into a UUID.  Same key, same ID: re-indexing
a page overwrites its previous point instead of adding a second one.
"""

from __future__ import annotations

import hashlib
import uuid


def semantic_key(document_id: str, page_number: int) -> str:
    """Return the human-readable key of a page vector, e.g. ``"<doc>_page_3"``."""
    return f"{document_id}_page_{page_number}"


def vector_point_id(key: str) -> str:
    """Map *key* to a UUID-shaped storage ID.

    The first 16 bytes of ``sha256(key)`` are stamped with the RFC 4122
    variant and version-5 bits.
    """
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return str(uuid.UUID(bytes=digest[:16], version=5))
