"""Local Faiss vector store provider adapter.

Each collection is an exact ``faiss.IndexFlatL2`` plus a JSON side file
mapping index positions to chunk ids and chunk bodies.  Everything lives
under the directory named by the connection string:

    collections.json          name -> {id, dimensions, metadata}
    <name>.index              the Faiss index
    <name>_documents.json     {"labels": [...], "documents": {...}}

A flat index cannot remove vectors, so deletes and embedding updates
leave a tombstone (a ``None`` label) that search skips; :meth:`compact`
rebuilds the index without them.  Score is ``1 / (1 + distance)``.
"""

from __future__ import annotations

import json
import uuid
from pathlib import Path
from typing import Any

import faiss
import numpy as np
import structlog

from src.models.config import VectorStoreConfig
from src.models.rag import Collection, CollectionStats, DocumentChunk, SearchResult
from src.providers.vector_store.base import BaseVectorStore

logger = structlog.get_logger(logger_name=__name__)

_COLLECTIONS_FILE = "collections.json"


class _FaissCollection:
    """In-memory state of one collection."""

    def __init__(self, info: dict[str, Any], index: Any, documents: dict, labels: list) -> None:
        self.info = info
        self.index = index
        self.documents: dict[str, dict[str, Any]] = documents
        self.labels: list[str | None] = labels

    @property
    def dimensions(self) -> int:
        return int(self.info["dimensions"])

    @property
    def tombstones(self) -> int:
        return sum(1 for label in self.labels if label is None)


class FaissProvider(BaseVectorStore):
    """Vector store provider backed by local Faiss flat indexes."""

    provider_name = "faiss"

    def __init__(self, config: VectorStoreConfig) -> None:
        super().__init__(config)
        self._root = Path(config.connection_string or "./faiss_data")
        self._collections: dict[str, _FaissCollection] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            manifest = self._root / _COLLECTIONS_FILE
            infos = json.loads(manifest.read_text(encoding="utf-8")) if manifest.exists() else {}
            self._collections = {name: self._load(name, info) for name, info in infos.items()}
        except Exception as exc:
            raise self._error(
                f"Failed to load Faiss data from {self._root}: {exc}", "CONNECTION_ERROR"
            ) from exc
        self._connected = True
        logger.info("faiss_connected", path=str(self._root), collections=len(self._collections))

    async def disconnect(self) -> None:
        if self._connected:
            for name in self._collections:
                self._persist(name)
            self._write_manifest()
        self._collections = {}
        self._connected = False
        logger.info("faiss_disconnected")

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
        if name in self._collections:
            raise self._error(f"Collection '{name}' already exists", "COLLECTION_EXISTS")

        info = {"id": str(uuid.uuid4()), "dimensions": dimensions, "metadata": metadata or {}}
        self._collections[name] = _FaissCollection(info, faiss.IndexFlatL2(dimensions), {}, [])
        self._persist(name)
        self._write_manifest()
        logger.info("faiss_collection_created", collection=name, dimensions=dimensions)

    async def delete_collection(self, name: str) -> None:
        self._ensure_connected()
        self._require(name)
        del self._collections[name]
        for path in (self._index_path(name), self._documents_path(name)):
            path.unlink(missing_ok=True)
        self._write_manifest()
        logger.info("faiss_collection_deleted", collection=name)

    async def list_collections(self) -> list[Collection]:
        self._ensure_connected()
        return [self._to_collection(name, state) for name, state in self._collections.items()]

    async def get_collection(self, name: str) -> Collection | None:
        self._ensure_connected()
        state = self._collections.get(name)
        return self._to_collection(name, state) if state is not None else None

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def add_documents(self, collection: str, documents: list[DocumentChunk]) -> None:
        self._ensure_connected()
        state = self._require(collection)
        self._validate_documents(documents, dimensions=state.dimensions, require_embedding=True)

        for doc in documents:
            if doc.id in state.documents:
                self._tombstone(state, doc.id)
        vectors = np.asarray([doc.embedding for doc in documents], dtype=np.float32)
        start = state.index.ntotal
        state.index.add(vectors)
        for offset, doc in enumerate(documents):
            state.labels.append(doc.id)
            state.documents[doc.id] = self._to_record(doc, start + offset)
        self._persist(collection)
        logger.debug("faiss_documents_added", collection=collection, count=len(documents))

    async def update_document(
        self,
        collection: str,
        document_id: str,
        content: str | None = None,
        embedding: list[float] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self._ensure_connected()
        state = self._require(collection)
        record = state.documents.get(document_id)
        if record is None:
            raise self._error(
                f"Document '{document_id}' not found in '{collection}'", "DOCUMENT_NOT_FOUND"
            )
        if embedding is not None:
            self._validate_embedding(embedding, state.dimensions)
        if content is not None:
            record["content"] = content
        if metadata:
            record["metadata"] = {**record["metadata"], **metadata}
        if embedding is not None:
            self._tombstone(state, document_id)
            record["position"] = state.index.ntotal
            state.index.add(np.asarray([embedding], dtype=np.float32))
            state.labels.append(document_id)
            logger.warning(
                "faiss_vector_replaced",
                collection=collection,
                document_id=document_id,
                tombstones=state.tombstones,
            )
        self._persist(collection)

    async def delete_document(self, collection: str, document_id: str) -> None:
        await self.delete_documents(collection, [document_id])

    async def delete_documents(self, collection: str, document_ids: list[str]) -> None:
        self._ensure_connected()
        state = self._require(collection)
        removed = 0
        for document_id in document_ids:
            if document_id in state.documents:
                self._tombstone(state, document_id)
                del state.documents[document_id]
                removed += 1
        if removed:
            self._persist(collection)
            logger.warning(
                "faiss_vectors_retained",
                collection=collection,
                deleted=removed,
                tombstones=state.tombstones,
            )

    async def get_document(self, collection: str, document_id: str) -> DocumentChunk | None:
        self._ensure_connected()
        state = self._require(collection)
        record = state.documents.get(document_id)
        if record is None:
            return None
        vector = state.index.reconstruct(int(record["position"]))
        return self._from_record(document_id, record, [float(v) for v in vector])

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
        state = self._require(collection)
        self._validate_embedding(query_embedding, state.dimensions)
        total = state.index.ntotal
        if total == 0 or top_k <= 0:
            return []

        # Tombstones and filters can drop hits, so scan everything then.
        k = total if (filter or state.tombstones) else min(top_k, total)
        distances, positions = state.index.search(
            np.asarray([query_embedding], dtype=np.float32), k
        )

        results: list[SearchResult] = []
        for distance, position in zip(distances[0], positions[0]):
            if position < 0:
                continue
            chunk_id = state.labels[position]
            if chunk_id is None:
                continue
            record = state.documents[chunk_id]
            if filter and not self._matches(record, filter):
                continue
            results.append(
                SearchResult(
                    id=chunk_id,
                    document_id=record["document_id"],
                    content=record["content"],
                    score=1.0 / (1.0 + float(distance)),
                    metadata=dict(record["metadata"]),
                )
            )
            if len(results) >= top_k:
                break
        return results

    # ------------------------------------------------------------------
    # Stats and maintenance
    # ------------------------------------------------------------------

    async def get_collection_stats(self, collection: str) -> CollectionStats:
        self._ensure_connected()
        state = self._require(collection)
        return CollectionStats(
            document_count=len(state.documents),
            dimensionality=state.dimensions,
            index_type="Flat",
        )

    async def compact(self, collection: str) -> int:
        """Rebuild *collection*'s index without tombstones.

        Returns
        -------
        int
            Number of vectors removed.
        """
        self._ensure_connected()
        state = self._require(collection)
        removed = state.tombstones
        if not removed:
            return 0

        live = [(pos, label) for pos, label in enumerate(state.labels) if label is not None]
        index = faiss.IndexFlatL2(state.dimensions)
        if live:
            vectors = state.index.reconstruct_n(0, state.index.ntotal)
            index.add(np.ascontiguousarray(vectors[[pos for pos, _ in live]], dtype=np.float32))
        state.index = index
        state.labels = [label for _, label in live]
        for new_pos, label in enumerate(state.labels):
            state.documents[label]["position"] = new_pos
        self._persist(collection)
        logger.info("faiss_collection_compacted", collection=collection, removed=removed)
        return removed

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require(self, name: str) -> _FaissCollection:
        state = self._collections.get(name)
        if state is None:
            raise self._error(f"Collection '{name}' not found", "COLLECTION_NOT_FOUND")
        return state

    @staticmethod
    def _tombstone(state: _FaissCollection, document_id: str) -> None:
        position = int(state.documents[document_id]["position"])
        state.labels[position] = None

    @staticmethod
    def _matches(record: dict[str, Any], filter: dict[str, Any]) -> bool:
        fields = {
            **record["metadata"],
            "document_id": record["document_id"],
            "chunk_index": record["chunk_index"],
        }
        return all(fields.get(key) == value for key, value in filter.items())

    @staticmethod
    def _to_record(doc: DocumentChunk, position: int) -> dict[str, Any]:
        return {
            "document_id": doc.document_id,
            "chunk_index": doc.chunk_index,
            "content": doc.content,
            "cleaned_content": doc.cleaned_content,
            "token_count": doc.token_count,
            "metadata": dict(doc.metadata),
            "position": position,
        }

    @staticmethod
    def _from_record(
        chunk_id: str, record: dict[str, Any], embedding: list[float] | None
    ) -> DocumentChunk:
        return DocumentChunk(
            id=chunk_id,
            document_id=record["document_id"],
            chunk_index=record["chunk_index"],
            content=record["content"],
            cleaned_content=record.get("cleaned_content"),
            token_count=record.get("token_count", 0),
            embedding=embedding,
            metadata=dict(record["metadata"]),
        )

    @staticmethod
    def _to_collection(name: str, state: _FaissCollection) -> Collection:
        metadata = dict(state.info.get("metadata") or {})
        description = metadata.pop("description", None)
        return Collection(
            id=state.info["id"],
            name=name,
            description=description,
            dimensions=state.dimensions,
            metadata=metadata,
        )

    def _index_path(self, name: str) -> Path:
        return self._root / f"{name}.index"

    def _documents_path(self, name: str) -> Path:
        return self._root / f"{name}_documents.json"

    def _load(self, name: str, info: dict[str, Any]) -> _FaissCollection:
        index_path = self._index_path(name)
        index = (
            faiss.read_index(str(index_path))
            if index_path.exists()
            else faiss.IndexFlatL2(int(info["dimensions"]))
        )
        documents_path = self._documents_path(name)
        body = (
            json.loads(documents_path.read_text(encoding="utf-8"))
            if documents_path.exists()
            else {"labels": [], "documents": {}}
        )
        return _FaissCollection(info, index, body["documents"], body["labels"])

    def _persist(self, name: str) -> None:
        state = self._collections[name]
        faiss.write_index(state.index, str(self._index_path(name)))
        self._documents_path(name).write_text(
            json.dumps({"labels": state.labels, "documents": state.documents}, default=str),
            encoding="utf-8",
        )

    def _write_manifest(self) -> None:
        manifest = {name: state.info for name, state in self._collections.items()}
        (self._root / _COLLECTIONS_FILE).write_text(
            json.dumps(manifest, indent=2, default=str), encoding="utf-8"
        )
