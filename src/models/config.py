"""Configuration models for chunking, cleansing, embedding and vector stores.

These are the typed shapes that collection descriptors and ingest requests
reference by id.  They are stored as JSON bodies by the SQLite repository
and validated back into models on read, so every structured field here is
typed rather than a raw dict.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChunkingStrategyType(str, Enum):
    """Available chunking algorithms."""

    FIXED_SIZE = "fixed_size"
    SENTENCE = "sentence"
    PARAGRAPH = "paragraph"
    SLIDING_WINDOW = "sliding_window"
    SEMANTIC = "semantic"
    CUSTOM = "custom"


class VectorStoreType(str, Enum):
    CHROMADB = "chromadb"
    PGVECTOR = "pgvector"
    FAISS = "faiss"


class EmbeddingProviderType(str, Enum):
    OPENAI = "openai"
    GEMINI = "gemini"
    OLLAMA = "ollama"
    CUSTOM = "custom"


class RerankingType(str, Enum):
    MODEL_BASED = "model_based"
    RULE_BASED = "rule_based"
    HYBRID = "hybrid"
    NONE = "none"


# ---------------------------------------------------------------------------
# Chunking
# ---------------------------------------------------------------------------
class ChunkingOptions(BaseModel):
    """Size parameters shared by every chunking strategy.

    ``chunk_size`` is measured in characters for fixed-size, sentence and
    paragraph strategies and in whitespace tokens for the sliding window.
    ``max_chunk_size`` falls back to ``chunk_size`` when unset.
    Validation of the relationships between fields happens in the
    strategy so a per-call override is checked the same way.
    """

    model_config = ConfigDict(frozen=True)

    chunk_size: int = 1000
    chunk_overlap: int = 200
    min_chunk_size: int = 100
    max_chunk_size: int | None = None
    separator: str | None = None


class ChunkingStrategyConfig(BaseModel):
    """A named, persisted chunking configuration."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    name: str = "default"
    type: ChunkingStrategyType = ChunkingStrategyType.FIXED_SIZE
    chunk_size: int = 1000
    chunk_overlap: int = 200
    min_chunk_size: int = 100
    max_chunk_size: int | None = None
    separator: str | None = None
    is_default: bool = False

    def to_options(self) -> ChunkingOptions:
        return ChunkingOptions(
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            min_chunk_size=self.min_chunk_size,
            max_chunk_size=self.max_chunk_size,
            separator=self.separator,
        )


# ---------------------------------------------------------------------------
# Cleansing
# ---------------------------------------------------------------------------
class CleansingRule(BaseModel):
    """An ordered regex substitution applied after the built-in rules.

    ``flags`` is a string of single-letter regex flags: ``i`` (ignore
    case), ``m`` (multiline), ``s`` (dot matches newline), ``x`` (verbose).
    """

    model_config = ConfigDict(frozen=True)

    pattern: str
    replacement: str = ""
    flags: str = ""


class CleansingConfig(BaseModel):
    """Cleansing options plus optional LLM settings."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    name: str = "default"
    remove_headers: bool = True
    remove_footers: bool = True
    remove_page_numbers: bool = True
    normalize_whitespace: bool = True
    fix_encoding: bool = True
    remove_urls: bool = False
    remove_emails: bool = False
    custom_rules: list[CleansingRule] = Field(default_factory=list)
    llm_model_id: str | None = Field(
        default=None, description="LLM model used for the optional second cleansing pass."
    )
    cleansing_prompt: str | None = Field(
        default=None, description="Overrides the built-in LLM cleansing prompt."
    )
    is_default: bool = False


# ---------------------------------------------------------------------------
# Embedding / vector store / reranking
# ---------------------------------------------------------------------------
class EmbeddingConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: str = EmbeddingProviderType.OPENAI.value
    model: str = "text-embedding-3-small"
    dimensions: int | None = None
    api_key: str | None = None
    base_url: str | None = None


class VectorStoreConfig(BaseModel):
    """Connection details for one vector store instance."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    name: str | None = None
    type: str = VectorStoreType.FAISS.value
    connection_string: str | None = None
    api_key: str | None = None
    settings: dict[str, Any] = Field(default_factory=dict)


class RerankingConfig(BaseModel):
    """Reranking configuration shape.

    Only ``min_score`` and ``top_k`` are applied by the retrieval service;
    the model/strategy fields are carried for callers that rerank
    externally.
    """

    model_config = ConfigDict(frozen=True)

    strategy_id: str | None = None
    type: RerankingType = RerankingType.NONE
    model_id: str | None = None
    api_key: str | None = None
    base_url: str | None = None
    top_k: int | None = Field(default=None, ge=1)
    min_score: float | None = None
    settings: dict[str, Any] = Field(default_factory=dict)
