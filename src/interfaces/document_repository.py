"""Abstract base class for the document / configuration repository.

The repository persists everything the orchestrator needs outside the
vector store: vector-store connection configs, collection descriptors,
chunking strategies, cleansing configs, document records and chunk rows.
Implementations: an in-process dict store (tests, one-shot CLI runs) and an
``aiosqlite`` store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.config import ChunkingStrategyConfig, CleansingConfig, VectorStoreConfig
from src.models.document import CollectionDescriptor, DocumentRecord, ProcessingStatus
from src.models.rag import DocumentChunk


# Concrete implementations: MemoryDocumentRepository, SQLiteDocumentRepository
# Located in: src/providers/repository/
class IDocumentRepository(ABC):
    """Contract for persistence of documents and their configuration."""

    async def initialize(self) -> None:
        """Create storage (tables, directories) if needed.  Default: no-op."""

    # -- Vector stores --------------------------------------------------

    @abstractmethod
    async def save_vector_store(self, config: VectorStoreConfig) -> VectorStoreConfig:
        """Insert or replace a vector-store config (``id`` is required)."""

    @abstractmethod
    async def get_vector_store(self, vector_store_id: str) -> VectorStoreConfig | None:
        """Return the config or ``None``."""

    # -- Collections ----------------------------------------------------

    @abstractmethod
    async def save_collection(self, collection: CollectionDescriptor) -> CollectionDescriptor:
        """Insert or replace a collection descriptor."""

    @abstractmethod
    async def get_collection(self, collection_id: str) -> CollectionDescriptor | None:
        """Return the descriptor or ``None``."""

    @abstractmethod
    async def list_collections(self, active_only: bool = False) -> list[CollectionDescriptor]:
        """Return descriptors ordered by creation time."""

    # -- Chunking / cleansing configuration -----------------------------

    @abstractmethod
    async def save_chunking_strategy(
        self, strategy: ChunkingStrategyConfig
    ) -> ChunkingStrategyConfig:
        """Insert or replace a chunking strategy config."""

    @abstractmethod
    async def get_chunking_strategy(self, strategy_id: str) -> ChunkingStrategyConfig | None:
        """Return the strategy config or ``None``."""

    @abstractmethod
    async def get_default_chunking_strategy(self) -> ChunkingStrategyConfig | None:
        """Return the strategy flagged ``is_default``, if any."""

    @abstractmethod
    async def save_cleansing_config(self, config: CleansingConfig) -> CleansingConfig:
        """Insert or replace a cleansing config."""

    @abstractmethod
    async def get_cleansing_config(self, config_id: str) -> CleansingConfig | None:
        """Return the cleansing config or ``None``."""

    # -- Documents ------------------------------------------------------

    @abstractmethod
    async def save_document(self, document: DocumentRecord) -> DocumentRecord:
        """Insert or replace a document record."""

    @abstractmethod
    async def get_document(self, document_id: str) -> DocumentRecord | None:
        """Return the record or ``None``."""

    @abstractmethod
    async def find_document_by_hash(
        self, collection_id: str, file_hash: str
    ) -> DocumentRecord | None:
        """Return the record with this content hash in the collection, if any."""

    @abstractmethod
    async def list_documents(
        self,
        collection_id: str | None = None,
        status: ProcessingStatus | None = None,
    ) -> list[DocumentRecord]:
        """Return records, optionally filtered by collection and/or status."""

    @abstractmethod
    async def delete_document(self, document_id: str) -> None:
        """Delete a record and its chunk rows."""

    # -- Chunks ---------------------------------------------------------

    @abstractmethod
    async def save_chunks(self, chunks: list[DocumentChunk]) -> None:
        """Insert or replace chunk rows (embeddings are not persisted)."""

    @abstractmethod
    async def get_chunks(self, document_id: str) -> list[DocumentChunk]:
        """Return the document's chunks ordered by ``chunk_index``."""

    @abstractmethod
    async def delete_chunks(self, document_id: str) -> int:
        """Delete the document's chunk rows, returning how many were removed."""

    async def close(self) -> None:
        """Release resources.  Default: no-op."""
