"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # Embedding
    embedding_provider: str = Field(default="openai", description="'openai' or 'huggingface'")
    embedding_model: str = "text-embedding-3-large"
    openai_api_key: str = Field(default="", description="OpenAI API key for the embedding model")
    embedding_base_url: str = Field(
        default="",
        description=(
            "Base URL of an OpenAI-compatible embedding endpoint. "
            "Leave empty to use OpenAI cloud."
        ),
    )

    # Vector store
    vector_backend: str = Field(default="chroma", description="'chroma', 'qdrant' or 'memory'")
    vector_dimension: int = 3072
    vector_collection: str = "documents"
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_persist_directory: str = Field(
        default="",
        description="When set, use an embedded persistent Chroma instead of the HTTP server",
    )
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: str = ""

    # Relational metadata + document store
    sqlite_path: str = "data/doc_ingest.db"

    # Object storage
    object_store_root: str = "data/objects"

    # Ingestion policy
    min_embed_chars: int = 50
    embed_window_size: int = 5
    flush_threshold: int = 100
    words_per_page: int = 500
    preview_chars: int = 200
    max_embed_input_chars: int = 8000
    max_upload_bytes: int = 50 * 1024 * 1024
    pipeline_timeout_seconds: float = 300.0

    # API server
    api_host: str = "0.0.0.0"
    api_port: int = 8080

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


class IngestionPolicy(BaseModel):
    """Tunable constants of one ingestion run.

    Attributes
    ----------
    min_embed_chars:
        Pages whose cleaned text is shorter than this are stored but not embedded.
    embed_window_size:
        Number of concurrent embedding calls per window.
    flush_threshold:
        Accumulated vector count that triggers an eager upsert.
    words_per_page:
        Window size used to paginate flat formats (TXT, DOCX).
    preview_chars:
        Length of the ``text_preview`` payload field.
    max_embed_input_chars:
        Text sent to the embedding model is cut to this many characters.
    max_upload_bytes:
        Larger uploads are rejected before any side effect.
    pipeline_timeout_seconds:
        Wall-clock budget of a whole ingestion.
    """

    min_embed_chars: int = 50
    embed_window_size: int = Field(default=5, ge=1)
    flush_threshold: int = Field(default=100, ge=1)
    words_per_page: int = Field(default=500, ge=1)
    preview_chars: int = 200
    max_embed_input_chars: int = 8000
    max_upload_bytes: int = 50 * 1024 * 1024
    pipeline_timeout_seconds: float = 300.0

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> IngestionPolicy:
        source = source or settings
        return cls(**{name: getattr(source, name) for name in cls.model_fields})


# Process-wide instance; tests build their own Settings.
settings = Settings()
