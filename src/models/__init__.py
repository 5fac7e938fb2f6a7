"""Ragline domain models -- re-exports all public model classes.

The models are organized across three submodules by concern:
    - config.py    -- Chunking, cleansing, embedding, vector-store and
                     reranking configuration shapes
    - document.py  -- Document records, collection descriptors, the
                     processing status state machine, request/response shapes
    - rag.py       -- Chunks, stored vectors, search results, collection stats
"""

from __future__ import annotations

from src.models.config import (
    ChunkingOptions,
    ChunkingStrategyConfig,
    ChunkingStrategyType,
    CleansingConfig,
    CleansingRule,
    EmbeddingConfig,
    EmbeddingProviderType,
    RerankingConfig,
    RerankingType,
    VectorStoreConfig,
    VectorStoreType,
)
from src.models.document import (
    CollectionDescriptor,
    DocumentRecord,
    IngestRequest,
    ProcessingStatus,
    SearchHit,
    SearchRequest,
)
from src.models.rag import (
    Collection,
    CollectionStats,
    DocumentChunk,
    ProcessedDocument,
    SearchResult,
    TextChunk,
)

__all__ = [
    "ChunkingOptions",
    "ChunkingStrategyConfig",
    "ChunkingStrategyType",
    "CleansingConfig",
    "CleansingRule",
    "Collection",
    "CollectionDescriptor",
    "CollectionStats",
    "DocumentChunk",
    "DocumentRecord",
    "EmbeddingConfig",
    "EmbeddingProviderType",
    "IngestRequest",
    "ProcessedDocument",
    "ProcessingStatus",
    "RerankingConfig",
    "RerankingType",
    "SearchHit",
    "SearchRequest",
    "SearchResult",
    "TextChunk",
    "VectorStoreConfig",
    "VectorStoreType",
]
