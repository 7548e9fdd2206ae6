"""Shared configuration loaded from environment / ``.env``."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # Vector store
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    index_name: str = "embeddings"
    distance_metric: str = Field(default="cosine", description="Chroma hnsw:space for new indexes")
    upsert_batch_size: int = 5000
    verify_index_dimension: bool = Field(
        default=False,
        description=(
            "Reject ingestion when an existing index was created with a different "
            "dimension. Off by default: an existing index is accepted as-is."
        ),
    )

    # Embedding
    embedding_provider: str = Field(default="huggingface", description="'huggingface' or 'openai'")
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_base_url: str = Field(
        default="",
        description=(
            "Base URL of an OpenAI-compatible embedding endpoint. Leave empty to use "
            "OpenAI cloud, e.g. 'http://localhost:8081/v1' for a vLLM server."
        ),
    )
    openai_api_key: str = Field(default="", description="OpenAI API key (or dummy value for local vLLM)")
    embedding_dimension: int | None = Field(
        default=None,
        description="Dimension declared when creating the index; None infers it from the first vector.",
    )
    embedding_timeout: float = 60.0

    # Chunking
    chunk_strategy: str = Field(default="auto", description="auto | recursive | paragraph | character")
    chunk_size: int = 512
    chunk_overlap: int = 50
    chunk_separator: str | None = None

    # Acquisition
    fetch_timeout: float = 30.0
    render_html: bool = True
    render_timeout: float = 30.0
    user_agent: str = "vectorize-rag/0.1 (+https://github.com/)"

    document_version: int = 1
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton — import `settings` wherever needed.
settings = Settings()
