"""Similarity search over ingested collections.

The retrieval service is the read side of the engine:

  1. RESOLVE  -- the requested collection (must exist and be active), or
                 every active collection when none is named.
  2. EMBED    -- the query is embedded with each collection's own model;
                 collections sharing a model share one query vector.
  3. SEARCH   -- each collection's vector store returns scored chunks.
  4. ENRICH   -- hits gain the owning document's title and filename.
  5. TRIM     -- hits are merged by score, filtered by the reranking
                 ``min_score`` and cut to ``top_k``.

Reranking models are not run here; only the ``min_score`` / ``top_k``
fields of a :class:`RerankingConfig` are applied.
"""

from __future__ import annotations

from typing import Any

import structlog

from src.interfaces.document_repository import IDocumentRepository
from src.models.config import EmbeddingConfig, RerankingConfig
from src.models.document import CollectionDescriptor, DocumentRecord, SearchHit, SearchRequest
from src.providers.embedding.factory import EmbeddingProviderFactory
from src.providers.vector_store.factory import VectorStoreRegistry
from src.utils.errors import IngestionError

logger = structlog.get_logger(logger_name=__name__)


class RetrievalService:
    """Embeds a query and searches one or all active collections."""

    def __init__(
        self,
        repository: IDocumentRepository,
        embedding_factory: EmbeddingProviderFactory,
        vector_store_registry: VectorStoreRegistry,
    ) -> None:
        self._repository = repository
        self._embedding_factory = embedding_factory
        self._vector_stores = vector_store_registry

    async def search(
        self,
        request: SearchRequest,
        reranking: RerankingConfig | None = None,
    ) -> list[SearchHit]:
        """Return hits ordered by descending score.

        Raises
        ------
        IngestionError
            ``COLLECTION_NOT_FOUND`` or ``COLLECTION_INACTIVE`` for a named
            collection.
        """
        if request.collection_id:
            collections = [await self._require_active(request.collection_id)]
        else:
            collections = await self._repository.list_collections(active_only=True)

        query_vectors: dict[tuple[str, str, int], list[float]] = {}
        documents: dict[str, DocumentRecord | None] = {}
        hits: list[SearchHit] = []
        for collection in collections:
            vector = await self._query_vector(request.query, collection, query_vectors)
            store = await self._vector_stores.get(collection.vector_store_id)
            results = await store.search(
                collection.name, vector, top_k=request.top_k, filter=request.filter
            )
            for result in results:
                if result.document_id not in documents:
                    documents[result.document_id] = await self._repository.get_document(
                        result.document_id
                    )
                document = documents[result.document_id]
                hits.append(
                    SearchHit(
                        chunk_id=result.id,
                        document_id=result.document_id,
                        collection_id=collection.id,
                        content=result.content,
                        score=result.score,
                        metadata=result.metadata,
                        document_title=document.title if document else None,
                        document_filename=document.filename if document else None,
                    )
                )

        hits.sort(key=lambda hit: hit.score, reverse=True)
        limit = request.top_k
        if reranking is not None:
            if reranking.min_score is not None:
                hits = [hit for hit in hits if hit.score >= reranking.min_score]
            if reranking.top_k is not None:
                limit = min(limit, reranking.top_k)

        logger.info(
            "search_completed",
            collections=len(collections),
            hits=min(len(hits), limit),
            top_k=request.top_k,
        )
        return hits[:limit]

    async def _query_vector(
        self,
        query: str,
        collection: CollectionDescriptor,
        cache: dict[tuple[str, str, int], list[float]],
    ) -> list[float]:
        key = (
            collection.embedding_provider,
            collection.embedding_model,
            collection.embedding_dimensions,
        )
        if key not in cache:
            provider = self._embedding_factory.create(
                EmbeddingConfig(
                    provider=collection.embedding_provider,
                    model=collection.embedding_model,
                    dimensions=collection.embedding_dimensions,
                )
            )
            cache[key] = await provider.embed_single(query)
        return cache[key]

    async def _require_active(self, collection_id: str) -> CollectionDescriptor:
        collection = await self._repository.get_collection(collection_id)
        if collection is None:
            raise IngestionError(
                message=f"Collection '{collection_id}' not found", code="COLLECTION_NOT_FOUND"
            )
        if not collection.is_active:
            raise IngestionError(
                message=f"Collection '{collection_id}' is inactive", code="COLLECTION_INACTIVE"
            )
        return collection

    @staticmethod
    def describe(hit: SearchHit) -> dict[str, Any]:
        """Plain-dict view of a hit (document id, content, score, metadata)."""
        return {
            "document_id": hit.document_id,
            "content": hit.content,
            "score": hit.score,
            "metadata": hit.metadata,
            "title": hit.document_title,
        }
