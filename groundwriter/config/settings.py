"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# Values are resolved in priority order:
#
#   1. Environment variables, e.g. OPENAI_API_KEY=sk-abc123
#   2. The .env file in the project root (local development)
#   3. The defaults declared below
#
# Field ``chunk_size`` maps to env var ``CHUNK_SIZE`` and so on.  Keep
# secrets out of config/config.yaml; that file only holds tunables.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """groundwriter application settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === OpenAI ===
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_text_model: str = "gpt-4o"
    openai_vision_model: str = "gpt-4o"
    openai_embedding_model: str = "text-embedding-3-small"
    openai_request_timeout: float = 60.0

    # === Vector store ===
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "groundwriter_sources"

    # === Record store ===
    document_db_path: str = "data/documents.db"

    # === Chunking / ingestion ===
    chunk_size: int = 1000
    chunk_overlap: int = 200
    min_chunk_length: int = 50
    ingest_batch_size: int = 10
    ingest_batch_delay: float = 0.1

    # === Deadlines for external calls (seconds) ===
    embedding_timeout: float = 60.0
    vector_store_timeout: float = 30.0
    llm_timeout: float = 90.0
    extraction_timeout: float = 120.0

    # === Retrieval ===
    rag_top_k: int = 6
    rag_max_context_chars: int = 12000
    rag_temperature: float = 0.7
    rag_max_tokens: int = 2000

    # === Uploads ===
    max_upload_bytes: int = 50 * 1024 * 1024

    # === Status streaming ===
    status_heartbeat_interval: float = 30.0
    reconnect_max_attempts: int = 3
    reconnect_delay: float = 2.0

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]

    @model_validator(mode="after")
    def _check_chunking(self) -> "Settings":
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than "
                f"chunk_size ({self.chunk_size})"
            )
        return self

    def has_openai(self) -> bool:
        """Return ``True`` when an OpenAI-compatible API key is configured."""
        return bool(self.openai_api_key)
