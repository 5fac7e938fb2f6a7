"""In-process document repository backed by plain dicts."""

from __future__ import annotations

from src.interfaces.document_repository import IDocumentRepository
from src.models.config import ChunkingStrategyConfig, CleansingConfig, VectorStoreConfig
from src.models.document import CollectionDescriptor, DocumentRecord, ProcessingStatus
from src.models.rag import DocumentChunk


class MemoryDocumentRepository(IDocumentRepository):
    """Keeps everything in memory; contents are lost when the process exits."""

    def __init__(self) -> None:
        self._vector_stores: dict[str, VectorStoreConfig] = {}
        self._collections: dict[str, CollectionDescriptor] = {}
        self._strategies: dict[str, ChunkingStrategyConfig] = {}
        self._cleansing: dict[str, CleansingConfig] = {}
        self._documents: dict[str, DocumentRecord] = {}
        self._chunks: dict[str, dict[str, DocumentChunk]] = {}

    async def save_vector_store(self, config: VectorStoreConfig) -> VectorStoreConfig:
        self._vector_stores[config.id] = config
        return config

    async def get_vector_store(self, vector_store_id: str) -> VectorStoreConfig | None:
        return self._vector_stores.get(vector_store_id)

    async def save_collection(self, collection: CollectionDescriptor) -> CollectionDescriptor:
        self._collections[collection.id] = collection
        return collection

    async def get_collection(self, collection_id: str) -> CollectionDescriptor | None:
        return self._collections.get(collection_id)

    async def list_collections(self, active_only: bool = False) -> list[CollectionDescriptor]:
        collections = sorted(self._collections.values(), key=lambda c: c.created_at)
        return [c for c in collections if c.is_active or not active_only]

    async def save_chunking_strategy(
        self, strategy: ChunkingStrategyConfig
    ) -> ChunkingStrategyConfig:
        self._strategies[strategy.id] = strategy
        return strategy

    async def get_chunking_strategy(self, strategy_id: str) -> ChunkingStrategyConfig | None:
        return self._strategies.get(strategy_id)

    async def get_default_chunking_strategy(self) -> ChunkingStrategyConfig | None:
        return next((s for s in self._strategies.values() if s.is_default), None)

    async def save_cleansing_config(self, config: CleansingConfig) -> CleansingConfig:
        self._cleansing[config.id] = config
        return config

    async def get_cleansing_config(self, config_id: str) -> CleansingConfig | None:
        return self._cleansing.get(config_id)

    async def save_document(self, document: DocumentRecord) -> DocumentRecord:
        self._documents[document.id] = document
        return document

    async def get_document(self, document_id: str) -> DocumentRecord | None:
        return self._documents.get(document_id)

    async def find_document_by_hash(
        self, collection_id: str, file_hash: str
    ) -> DocumentRecord | None:
        for document in self._documents.values():
            if document.collection_id == collection_id and document.file_hash == file_hash:
                return document
        return None

    async def list_documents(
        self,
        collection_id: str | None = None,
        status: ProcessingStatus | None = None,
    ) -> list[DocumentRecord]:
        documents = sorted(self._documents.values(), key=lambda d: d.created_at)
        return [
            d
            for d in documents
            if (collection_id is None or d.collection_id == collection_id)
            and (status is None or d.processing_status == status)
        ]

    async def delete_document(self, document_id: str) -> None:
        self._documents.pop(document_id, None)
        self._chunks.pop(document_id, None)

    async def save_chunks(self, chunks: list[DocumentChunk]) -> None:
        for chunk in chunks:
            self._chunks.setdefault(chunk.document_id, {})[chunk.id] = chunk.model_copy(
                update={"embedding": None}
            )

    async def get_chunks(self, document_id: str) -> list[DocumentChunk]:
        chunks = self._chunks.get(document_id, {}).values()
        return sorted(chunks, key=lambda c: c.chunk_index)

    async def delete_chunks(self, document_id: str) -> int:
        return len(self._chunks.pop(document_id, {}))
