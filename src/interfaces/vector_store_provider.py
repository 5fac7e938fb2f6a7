"""Abstract base class for vector-store service providers.

Defines the contract for storing, querying and managing embedded document
chunks across named collections.  Implementations wrap ChromaDB (HTTP
server), PostgreSQL with the pgvector extension, or a local Faiss flat
index.  The adapter pattern keeps ingestion and retrieval independent of
the chosen backend.

Every mutating and querying method is async.  Calling any of them before
:meth:`IVectorStoreProvider.connect` raises
:class:`~src.utils.errors.VectorStoreError` with code
``CONNECTION_ERROR``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from src.models.rag import Collection, CollectionStats, DocumentChunk, SearchResult


# Concrete implementations: ChromaDBProvider, PgVectorProvider, FaissProvider
# Located in: src/providers/vector_store/
class IVectorStoreProvider(ABC):
    """Contract for vector-store services.

    **Scores.**  :meth:`search` returns results with a similarity score
    where higher is more similar, sorted descending.  Backends map native
    distances onto that scale (cosine: ``1 - d``; L2: ``1 / (1 + d)``).

    **Filters.**  The *filter* dict of :meth:`search` is a flat mapping of
    metadata key to required value (equality only).
    """

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    async def connect(self) -> None:
        """Open connections / load persisted state.

        Raises
        ------
        src.utils.errors.VectorStoreError
            ``CONNECTION_ERROR`` or ``CONFIG_ERROR`` on failure.
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """Release connections and flush state.  Safe to call twice."""

    @abstractmethod
    def is_connected(self) -> bool:
        """Return ``True`` between a successful connect and disconnect."""

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_collection(
        self,
        name: str,
        dimensions: int,
        metadata: dict[str, Any] | None = None,
    ) -> Collection:
        """Create a collection with a fixed embedding dimensionality.

        Raises
        ------
        src.utils.errors.VectorStoreError
            ``INVALID_COLLECTION_NAME`` / ``INVALID_DIMENSIONS`` for bad
            arguments, ``COLLECTION_EXISTS`` if the name is taken.
        """

    @abstractmethod
    async def delete_collection(self, name: str) -> None:
        """Delete a collection and every vector in it."""

    @abstractmethod
    async def list_collections(self) -> list[Collection]:
        """Return every collection in the store."""

    @abstractmethod
    async def get_collection(self, name: str) -> Collection | None:
        """Return the collection, or ``None`` if it does not exist."""

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    @abstractmethod
    async def add_documents(self, collection: str, documents: list[DocumentChunk]) -> None:
        """Insert or replace chunks (keyed by ``id``).

        Every chunk must carry an embedding whose length equals the
        collection's dimensionality.

        Raises
        ------
        src.utils.errors.VectorStoreError
            ``INVALID_DOCUMENTS``, ``MISSING_EMBEDDING``,
            ``DIMENSION_MISMATCH`` or ``COLLECTION_NOT_FOUND``.
        """

    @abstractmethod
    async def update_document(
        self,
        collection: str,
        document_id: str,
        content: str | None = None,
        embedding: list[float] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Partially update one chunk; omitted fields keep their values.

        ``metadata`` is merged into the stored metadata.
        """

    @abstractmethod
    async def delete_document(self, collection: str, document_id: str) -> None:
        """Delete one chunk by id.  Unknown ids are ignored."""

    @abstractmethod
    async def delete_documents(self, collection: str, document_ids: list[str]) -> None:
        """Delete several chunks by id.  Unknown ids are ignored."""

    @abstractmethod
    async def get_document(self, collection: str, document_id: str) -> DocumentChunk | None:
        """Return one chunk (with its embedding when available) or ``None``."""

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    @abstractmethod
    async def search(
        self,
        collection: str,
        query_embedding: list[float],
        top_k: int = 10,
        filter: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        """Return at most *top_k* nearest chunks, best first."""

    @abstractmethod
    async def search_by_text(
        self,
        collection: str,
        query: str,
        top_k: int = 10,
        filter: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        """Text search.  Always raises ``NOT_IMPLEMENTED``; embed then :meth:`search`."""

    # ------------------------------------------------------------------
    # Batch operations
    # ------------------------------------------------------------------

    @abstractmethod
    async def batch_add_documents(
        self,
        collection: str,
        documents: list[DocumentChunk],
        batch_size: int = 100,
    ) -> None:
        """Add documents in sub-batches of *batch_size*."""

    @abstractmethod
    async def batch_delete_documents(
        self,
        collection: str,
        document_ids: list[str],
        batch_size: int = 100,
    ) -> None:
        """Delete documents in sub-batches of *batch_size*."""

    # ------------------------------------------------------------------
    # Indexes and statistics
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_index(
        self,
        collection: str,
        index_type: str,
        options: dict[str, Any] | None = None,
    ) -> None:
        """Build an ANN index.  Only pgvector supports this."""

    @abstractmethod
    async def drop_index(self, collection: str) -> None:
        """Drop ANN indexes built by :meth:`create_index`."""

    @abstractmethod
    async def get_collection_stats(self, collection: str) -> CollectionStats:
        """Return document count, dimensionality and index type."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the backend type tag: ``"chromadb"``, ``"pgvector"`` or ``"faiss"``."""
