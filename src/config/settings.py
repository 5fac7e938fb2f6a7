"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ─────────────────────────────────────────────────
#
# Configuration is read from two sources (in priority order):
#
#   1. **Environment variables** -- e.g., OPENAI_API_KEY=sk-abc123
#   2. **.env file** -- key=value lines in the project root .env file
#
# Field `vector_store_type` maps to env var `VECTOR_STORE_TYPE`
# (pydantic-settings uppercases and matches).
#
# Defaults below are used when neither an env var nor a .env entry exists.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Ragline application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === LLM / Embedding credentials ===
    # Empty string = "not configured".  EMBEDDING_API_KEY wins over
    # OPENAI_API_KEY for embeddings so the two can be billed separately.
    openai_api_key: str = ""
    embedding_api_key: str = ""
    openai_base_url: str = ""
    llm_model: str = "gpt-4o-mini"

    # === Embedding ===
    embedding_provider: str = "openai"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 0  # 0 = use the model's known dimension

    # === Vector store ===
    vector_store_type: str = "faiss"  # chromadb | pgvector | faiss
    vector_store_connection_string: str = "./data/faiss"
    vector_store_api_key: str = ""

    # === Chunking defaults ===
    default_chunking_strategy: str = "fixed_size"
    default_chunk_size: int = 1000
    default_chunk_overlap: int = 200

    # === Ingestion ===
    ingestion_max_concurrency: int = 4

    # === Persistence ===
    sqlite_db_path: str = "data/ragline.db"

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def get_embedding_api_key(self) -> str:
        """Return the key used for embeddings, preferring EMBEDDING_API_KEY."""
        return self.embedding_api_key or self.openai_api_key
