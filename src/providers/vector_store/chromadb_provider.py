"""ChromaDB vector store provider adapter.

Talks to a ChromaDB server through ``chromadb.HttpClient`` when the
connection string is an ``http(s)://`` URL, or to an on-disk
``chromadb.PersistentClient`` when it is a directory path.  Collections
use cosine distance; the similarity score is ``1 - distance``.
"""

from __future__ import annotations

import os
from typing import Any
from urllib.parse import urlparse

# Telemetry is disabled before chromadb is imported; Settings below
# repeats it for versions that ignore the environment variable.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import chromadb
import structlog

from src.models.config import VectorStoreConfig
from src.models.rag import Collection, CollectionStats, DocumentChunk, SearchResult
from src.providers.vector_store.base import (
    RESERVED_METADATA_KEYS,
    BaseVectorStore,
    flatten_metadata,
    restore_metadata,
)

logger = structlog.get_logger(logger_name=__name__)


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Stops ChromaDB from loading its default ONNX model.

    Every write and query passes pre-computed vectors, so this is never
    invoked.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "Embeddings are pre-computed; ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        return "noop_precomputed"


class ChromaDBProvider(BaseVectorStore):
    """Vector store provider backed by ChromaDB.

    Parameters
    ----------
    config:
        ``connection_string`` is a server URL (default
        ``http://localhost:8000``) or a persistence directory.
        ``api_key`` is sent as a bearer token to remote servers.
    client:
        Pre-built chromadb client; skips client construction in
        :meth:`connect`.
    """

    provider_name = "chromadb"

    def __init__(self, config: VectorStoreConfig, client: Any | None = None) -> None:
        super().__init__(config)
        self._client = client
        self._target = config.connection_string or "http://localhost:8000"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        try:
            if self._client is None:
                self._client = self._build_client()
            self._client.heartbeat()
        except Exception as exc:
            self._client = None
            raise self._error(
                f"Failed to connect to ChromaDB at {self._target}: {exc}",
                "CONNECTION_ERROR",
            ) from exc
        self._connected = True
        logger.info("chromadb_connected", target=self._target)

    async def disconnect(self) -> None:
        self._client = None
        self._connected = False
        logger.info("chromadb_disconnected")

    def _build_client(self) -> Any:
        target = self._target
        settings = chromadb.config.Settings(anonymized_telemetry=False)
        if target.startswith(("http://", "https://")):
            parsed = urlparse(target)
            headers = (
                {"Authorization": f"Bearer {self._config.api_key}"} if self._config.api_key else None
            )
            return chromadb.HttpClient(
                host=parsed.hostname or "localhost",
                port=parsed.port or (443 if parsed.scheme == "https" else 8000),
                ssl=parsed.scheme == "https",
                headers=headers,
                settings=settings,
            )
        return chromadb.PersistentClient(path=target, settings=settings)

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    async def create_collection(
        self,
        name: str,
        dimensions: int,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self._ensure_connected()
        self._validate_collection_name(name)
        self._validate_dimensions(dimensions)
        if name in self._collection_names():
            raise self._error(f"Collection '{name}' already exists", "COLLECTION_EXISTS")

        collection_metadata: dict[str, Any] = {
            **flatten_metadata(metadata or {}),
            "hnsw:space": "cosine",
            "dimensions": dimensions,
        }
        try:
            self._client.create_collection(
                name=name,
                metadata=collection_metadata,
                embedding_function=_NoopEmbeddingFunction(),
            )
        except Exception as exc:
            raise self._error(
                f"Failed to create collection '{name}': {exc}", "COLLECTION_CREATE_ERROR"
            ) from exc
        logger.info("chromadb_collection_created", collection=name, dimensions=dimensions)

    async def delete_collection(self, name: str) -> None:
        self._ensure_connected()
        if name not in self._collection_names():
            raise self._error(f"Collection '{name}' not found", "COLLECTION_NOT_FOUND")
        try:
            self._client.delete_collection(name=name)
        except Exception as exc:
            raise self._error(
                f"Failed to delete collection '{name}': {exc}", "COLLECTION_DELETE_ERROR"
            ) from exc
        logger.info("chromadb_collection_deleted", collection=name)

    async def list_collections(self) -> list[Collection]:
        self._ensure_connected()
        collections = []
        for name in self._collection_names():
            collection = await self.get_collection(name)
            if collection is not None:
                collections.append(collection)
        return collections

    async def get_collection(self, name: str) -> Collection | None:
        self._ensure_connected()
        if name not in self._collection_names():
            return None
        handle = self._open(name)
        meta = restore_metadata(
            {k: v for k, v in (handle.metadata or {}).items() if not k.startswith("hnsw:")}
        )
        dimensions = int(meta.pop("dimensions", 0) or 0)
        description = meta.pop("description", None)
        return Collection(
            id=str(getattr(handle, "id", name)),
            name=name,
            description=description,
            dimensions=dimensions,
            metadata=meta,
        )

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def add_documents(self, collection: str, documents: list[DocumentChunk]) -> None:
        self._ensure_connected()
        handle = self._require(collection)
        self._validate_documents(
            documents, dimensions=self._dimensions_of(handle), require_embedding=True
        )
        try:
            # upsert, not add: re-adding an id replaces it instead of raising.
            handle.upsert(
                ids=[doc.id for doc in documents],
                embeddings=[list(doc.embedding or []) for doc in documents],
                documents=[doc.content for doc in documents],
                metadatas=[self._to_chroma_metadata(doc) for doc in documents],
            )
        except Exception as exc:
            raise self._error(
                f"Failed to add documents to '{collection}': {exc}", "DOCUMENT_ADD_ERROR"
            ) from exc
        logger.debug("chromadb_documents_added", collection=collection, count=len(documents))

    async def update_document(
        self,
        collection: str,
        document_id: str,
        content: str | None = None,
        embedding: list[float] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self._ensure_connected()
        handle = self._require(collection)
        existing = await self.get_document(collection, document_id)
        if existing is None:
            raise self._error(
                f"Document '{document_id}' not found in '{collection}'", "DOCUMENT_NOT_FOUND"
            )
        if embedding is not None:
            self._validate_embedding(embedding, self._dimensions_of(handle))

        updated = existing.model_copy(
            update={
                "content": content if content is not None else existing.content,
                "metadata": {**existing.metadata, **(metadata or {})},
            }
        )
        kwargs: dict[str, Any] = {
            "ids": [document_id],
            "metadatas": [self._to_chroma_metadata(updated)],
        }
        if content is not None:
            kwargs["documents"] = [content]
        if embedding is not None:
            kwargs["embeddings"] = [list(embedding)]
        try:
            handle.update(**kwargs)
        except Exception as exc:
            raise self._error(
                f"Failed to update document '{document_id}': {exc}", "DOCUMENT_UPDATE_ERROR"
            ) from exc

    async def delete_document(self, collection: str, document_id: str) -> None:
        await self.delete_documents(collection, [document_id])

    async def delete_documents(self, collection: str, document_ids: list[str]) -> None:
        self._ensure_connected()
        if not document_ids:
            return
        handle = self._require(collection)
        try:
            handle.delete(ids=list(document_ids))
        except Exception as exc:
            raise self._error(
                f"Failed to delete documents from '{collection}': {exc}", "DOCUMENT_DELETE_ERROR"
            ) from exc
        logger.debug("chromadb_documents_deleted", collection=collection, count=len(document_ids))

    async def get_document(self, collection: str, document_id: str) -> DocumentChunk | None:
        self._ensure_connected()
        handle = self._require(collection)
        result = handle.get(ids=[document_id], include=["documents", "metadatas", "embeddings"])
        ids = result.get("ids") or []
        if not ids:
            return None
        embeddings = result.get("embeddings")
        embedding = None
        if embeddings is not None and len(embeddings) > 0 and embeddings[0] is not None:
            embedding = [float(v) for v in embeddings[0]]
        return self._from_chroma(
            ids[0],
            (result.get("documents") or [""])[0] or "",
            (result.get("metadatas") or [{}])[0] or {},
            embedding,
        )

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(
        self,
        collection: str,
        query_embedding: list[float],
        top_k: int = 10,
        filter: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        self._ensure_connected()
        handle = self._require(collection)
        self._validate_embedding(query_embedding, self._dimensions_of(handle))

        kwargs: dict[str, Any] = {
            "query_embeddings": [list(query_embedding)],
            "n_results": top_k,
            "include": ["documents", "metadatas", "distances"],
        }
        where = self._translate_filter(filter)
        if where:
            kwargs["where"] = where
        try:
            raw = handle.query(**kwargs)
        except Exception as exc:
            raise self._error(f"Search in '{collection}' failed: {exc}", "SEARCH_ERROR") from exc

        # query() answers per query embedding; only one was sent, hence [0].
        ids = (raw.get("ids") or [[]])[0]
        documents = (raw.get("documents") or [[]])[0]
        metadatas = (raw.get("metadatas") or [[]])[0]
        distances = (raw.get("distances") or [[]])[0]

        results: list[SearchResult] = []
        for chunk_id, text, meta, distance in zip(ids, documents, metadatas, distances):
            chunk = self._from_chroma(chunk_id, text or "", meta or {}, None)
            results.append(
                SearchResult(
                    id=chunk.id,
                    document_id=chunk.document_id,
                    content=chunk.content,
                    score=1.0 - float(distance),
                    metadata=chunk.metadata,
                )
            )
        return results

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    async def get_collection_stats(self, collection: str) -> CollectionStats:
        self._ensure_connected()
        handle = self._require(collection)
        return CollectionStats(
            document_count=handle.count(),
            dimensionality=self._dimensions_of(handle) or 0,
            index_type="HNSW",
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _collection_names(self) -> list[str]:
        # Older chromadb returns Collection objects, newer returns names.
        return [getattr(c, "name", c) for c in self._client.list_collections()]

    def _open(self, name: str) -> Any:
        return self._client.get_collection(name=name, embedding_function=_NoopEmbeddingFunction())

    def _require(self, name: str) -> Any:
        if name not in self._collection_names():
            raise self._error(f"Collection '{name}' not found", "COLLECTION_NOT_FOUND")
        return self._open(name)

    @staticmethod
    def _dimensions_of(handle: Any) -> int | None:
        value = (handle.metadata or {}).get("dimensions")
        return int(value) if value else None

    @staticmethod
    def _to_chroma_metadata(doc: DocumentChunk) -> dict[str, Any]:
        system: dict[str, Any] = {
            "document_id": doc.document_id,
            "chunk_index": doc.chunk_index,
            "token_count": doc.token_count,
        }
        if doc.cleaned_content is not None:
            system["cleaned_content"] = doc.cleaned_content
        return flatten_metadata({**doc.metadata, **system})

    @staticmethod
    def _from_chroma(
        chunk_id: str,
        content: str,
        metadata: dict[str, Any],
        embedding: list[float] | None,
    ) -> DocumentChunk:
        meta = restore_metadata(metadata)
        return DocumentChunk(
            id=chunk_id,
            document_id=str(meta.get("document_id", "")),
            chunk_index=int(meta.get("chunk_index", 0)),
            content=content,
            cleaned_content=meta.get("cleaned_content"),
            embedding=embedding,
            token_count=int(meta.get("token_count", 0)),
            metadata={k: v for k, v in meta.items() if k not in RESERVED_METADATA_KEYS},
        )

    @staticmethod
    def _translate_filter(filter: dict[str, Any] | None) -> dict[str, Any] | None:
        """Build a Chroma ``where`` clause; several keys are combined with ``$and``."""
        if not filter:
            return None
        clauses = [{key: value} for key, value in filter.items()]
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}
