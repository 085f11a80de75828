"""Application settings loaded from environment variables via pydantic-settings.

Values come from, highest priority first:

  1. Environment variables, e.g. ``OPENAI_API_KEY=sk-...``
  2. A ``.env`` file in the working directory (local development)
  3. The defaults declared below

Field ``chunk_size`` maps to ``CHUNK_SIZE`` and so on; pydantic-settings
upper-cases and matches automatically.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """docrag application settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Provider ===
    # Empty key = "not configured"; the OpenAI adapters report unavailable.
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoints (Azure proxy, TogetherAI, ...)
    openai_text_model: str = "gpt-3.5-turbo"
    openai_embedding_model: str = "text-embedding-ada-002"
    embedding_dimension: int = Field(default=1536, gt=0)
    llm_temperature: float = 0.7
    llm_max_tokens: int = 500

    # === Chunking ===
    chunk_size: int = Field(default=1000, gt=0)
    chunk_overlap: int = Field(default=200, ge=0)
    chunk_boundary_slack: int = Field(default=50, ge=0)

    # === Retrieval ===
    rag_top_k: int = Field(default=3, gt=0)
    # Euclidean (L2) distance, not a similarity: lower is closer.
    rag_similarity_threshold: float = 0.7

    # === Embedding gateway ===
    embedding_max_text_length: int = 8000
    embedding_batch_size: int = Field(default=5, gt=0)
    embedding_max_retries: int = Field(default=3, gt=0)
    embedding_retry_delay: float = 1.0
    embedding_backoff_multiplier: float = 2.0
    embedding_batch_pause: float = 0.2
    embedding_max_concurrency: int = Field(default=3, gt=0)

    # === Streaming ingestion ===
    streaming_threshold: int = 50_000
    stream_batch_size: int = Field(default=10, gt=0)
    stream_batch_pause: float = 0.1
    max_document_size: int = 2_000_000

    # === Circuit breaker ===
    breaker_failure_threshold: int = 5
    breaker_success_threshold: int = 3
    breaker_open_timeout: float = 60.0
    breaker_rate_window: float = 60.0
    breaker_max_requests_per_window: int = 100

    # === Stores ===
    vector_store_backend: Literal["chromadb", "memory"] = "chromadb"
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "docrag_chunks"
    document_db_path: str = "data/documents.db"

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"
