"""Embedding model construction — single place to swap providers.

Supports two providers:

1. **OpenAI** (default) — ``text-embedding-3-large`` (3072 dimensions).
   Set ``EMBEDDING_BASE_URL`` to point at any OpenAI-compatible server.
2. **HuggingFace** — a local sentence-transformer model.

Both are returned as LangChain :class:`~langchain_core.embeddings.Embeddings`
so the scheduler only ever sees ``aembed_query``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from doc_ingest.config import Settings, settings

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

logger = logging.getLogger(__name__)


def get_embedding_function(config: Settings | None = None) -> Embeddings:
    """Return the configured embedding model."""
    config = config or settings

    if config.embedding_provider == "huggingface":
        from langchain_huggingface import HuggingFaceEmbeddings

        return HuggingFaceEmbeddings(
            model_name=config.embedding_model,
            encode_kwargs={"normalize_embeddings": True},
        )

    if config.embedding_provider != "openai":
        raise ValueError(
            f"Unsupported embedding_provider={config.embedding_provider!r}. "
            "Choose from: openai, huggingface."
        )

    from langchain_openai import OpenAIEmbeddings

    kwargs: dict = {"model": config.embedding_model, "api_key": config.openai_api_key or None}
    if config.embedding_base_url:
        logger.info("Using embedding endpoint: %s", config.embedding_base_url)
        kwargs["base_url"] = config.embedding_base_url
        # Self-hosted servers don't need a real key; the client requires a non-empty value.
        kwargs["api_key"] = config.openai_api_key or "EMPTY"
    return OpenAIEmbeddings(**kwargs)
