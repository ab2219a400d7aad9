"""Unit tests for settings, policy and the embedding factory."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from doc_ingest.config import IngestionPolicy, Settings
from doc_ingest.embedding.embedder import get_embedding_function


def test_settings_defaults() -> None:
    config = Settings(_env_file=None)
    assert config.embedding_model == "text-embedding-3-large"
    assert config.vector_dimension == 3072
    assert config.max_upload_bytes == 50 * 1024 * 1024


def test_settings_from_env(monkeypatch) -> None:
    monkeypatch.setenv("FLUSH_THRESHOLD", "25")
    monkeypatch.setenv("VECTOR_BACKEND", "qdrant")
    config = Settings(_env_file=None)
    assert config.flush_threshold == 25
    assert config.vector_backend == "qdrant"


def test_policy_from_settings() -> None:
    config = Settings(_env_file=None, embed_window_size=3, min_embed_chars=10)
    policy = IngestionPolicy.from_settings(config)
    assert policy.embed_window_size == 3
    assert policy.min_embed_chars == 10
    assert policy.words_per_page == 500


def test_policy_validation() -> None:
    with pytest.raises(ValidationError):
        IngestionPolicy(embed_window_size=0)


def test_openai_embeddings() -> None:
    from langchain_openai import OpenAIEmbeddings

    config = Settings(_env_file=None, openai_api_key="sk-test")
    embedder = get_embedding_function(config)
    assert isinstance(embedder, OpenAIEmbeddings)
    assert embedder.model == "text-embedding-3-large"


def test_unknown_provider() -> None:
    with pytest.raises(ValueError, match="Unsupported embedding_provider"):
        get_embedding_function(Settings(_env_file=None, embedding_provider="cohere"))
