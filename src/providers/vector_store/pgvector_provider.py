"""PostgreSQL + pgvector vector store provider adapter.

All collections share two tables: ``vector_collections`` holds one row per
collection and ``vector_documents`` holds every chunk, keyed by chunk id.
The ``embedding`` column is an untyped ``vector`` so collections of
different widths can coexist; searches and ANN indexes cast it to the
collection's width (``embedding::vector(N)``) so an index built for a
collection is usable by its queries.  Similarity is cosine:
``score = 1 - (embedding <=> query)``.
"""

from __future__ import annotations

import json
from typing import Any

# asyncpg is the async PostgreSQL driver; its pool is shared by every call.
import asyncpg
# Embeddings are sent as float32 arrays, which the pgvector codec encodes.
import numpy as np
import structlog
# register_vector installs the binary codec for the ``vector`` type on each
# pooled connection, so numpy arrays go in and come back without parsing text.
from pgvector.asyncpg import register_vector

from src.models.config import VectorStoreConfig
from src.models.rag import Collection, CollectionStats, DocumentChunk, SearchResult
from src.providers.vector_store.base import BaseVectorStore

logger = structlog.get_logger(logger_name=__name__)

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_CREATE_EXTENSION_SQL = "CREATE EXTENSION IF NOT EXISTS vector"

_CREATE_COLLECTIONS_SQL = """
CREATE TABLE IF NOT EXISTS vector_collections (
    id SERIAL PRIMARY KEY,
    name VARCHAR(255) UNIQUE NOT NULL,
    description TEXT,
    embedding_dimensions INTEGER NOT NULL,
    metadata JSONB DEFAULT '{}'::jsonb,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
)
"""

_CREATE_DOCUMENTS_SQL = """
CREATE TABLE IF NOT EXISTS vector_documents (
    id VARCHAR(255) PRIMARY KEY,
    collection_id INTEGER REFERENCES vector_collections(id) ON DELETE CASCADE,
    document_id VARCHAR(255),
    chunk_index INTEGER DEFAULT 0,
    content TEXT NOT NULL,
    cleaned_content TEXT,
    token_count INTEGER DEFAULT 0,
    embedding vector,
    metadata JSONB DEFAULT '{}'::jsonb,
    created_at TIMESTAMPTZ DEFAULT NOW()
)
"""

_CREATE_INDEXES_SQL = (
    "CREATE INDEX IF NOT EXISTS idx_vector_documents_collection "
    "ON vector_documents(collection_id)",
    "CREATE INDEX IF NOT EXISTS idx_vector_documents_document "
    "ON vector_documents(document_id)",
)

_UPSERT_DOCUMENT_SQL = """
INSERT INTO vector_documents
    (id, collection_id, document_id, chunk_index, content, cleaned_content,
     token_count, embedding, metadata)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9::jsonb)
ON CONFLICT (id) DO UPDATE SET
    collection_id = EXCLUDED.collection_id,
    document_id = EXCLUDED.document_id,
    chunk_index = EXCLUDED.chunk_index,
    content = EXCLUDED.content,
    cleaned_content = EXCLUDED.cleaned_content,
    token_count = EXCLUDED.token_count,
    embedding = EXCLUDED.embedding,
    metadata = EXCLUDED.metadata
"""

_SELECT_COLLECTION_SQL = """
SELECT id, name, description, embedding_dimensions, metadata
FROM vector_collections WHERE name = $1
"""

_SELECT_DOCUMENT_SQL = """
SELECT id, document_id, chunk_index, content, cleaned_content, token_count,
       embedding, metadata
FROM vector_documents WHERE collection_id = $1 AND id = $2
"""

_INDEX_TYPES: dict[str, str] = {"ivfflat": "IVFFlat", "hnsw": "HNSW"}

# Filter keys that map to vector_documents columns rather than metadata fields.
_COLUMN_FILTERS: frozenset[str] = frozenset({"document_id", "chunk_index"})


def _json_text(value: Any) -> str:
    """Render a filter value the way ``metadata->>key`` renders JSON values."""
    return value if isinstance(value, str) else json.dumps(value)


def _quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class PgVectorProvider(BaseVectorStore):
    """Vector store provider backed by PostgreSQL with the pgvector extension.

    Parameters
    ----------
    config:
        ``connection_string`` is a PostgreSQL DSN.  ``settings["pool_size"]``
        caps the asyncpg pool (default 10).
    pool:
        Pre-built asyncpg pool whose connections already have the vector
        codec registered.  When given, :meth:`connect` only ensures the
        schema and :meth:`disconnect` leaves the pool open.
    """

    provider_name = "pgvector"

    def __init__(self, config: VectorStoreConfig, pool: Any | None = None) -> None:
        super().__init__(config)
        self._pool = pool
        self._owns_pool = pool is None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        if self._pool is None and not self._config.connection_string:
            raise self._error("pgvector requires a PostgreSQL connection string", "CONFIG_ERROR")
        try:
            if self._pool is None:
                # The extension must exist before the codec can be registered.
                conn = await asyncpg.connect(self._config.connection_string)
                try:
                    await conn.execute(_CREATE_EXTENSION_SQL)
                finally:
                    await conn.close()
                self._pool = await asyncpg.create_pool(
                    self._config.connection_string,
                    min_size=1,
                    max_size=int(self._config.settings.get("pool_size", 10)),
                    # Runs once per new pooled connection.
                    init=register_vector,
                )
            async with self._pool.acquire() as conn:
                await conn.execute(_CREATE_EXTENSION_SQL)
                await conn.execute(_CREATE_COLLECTIONS_SQL)
                await conn.execute(_CREATE_DOCUMENTS_SQL)
                for statement in _CREATE_INDEXES_SQL:
                    await conn.execute(statement)
        except Exception as exc:
            if self._owns_pool and self._pool is not None:
                await self._pool.close()
                self._pool = None
            raise self._error(f"Failed to connect to PostgreSQL: {exc}", "CONNECTION_ERROR") from exc
        self._connected = True
        logger.info("pgvector_connected")

    async def disconnect(self) -> None:
        if self._pool is not None and self._owns_pool:
            await self._pool.close()
            self._pool = None
        self._connected = False
        logger.info("pgvector_disconnected")

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
        meta = dict(metadata or {})
        description = meta.pop("description", None)

        async with self._pool.acquire() as conn:
            if await conn.fetchrow(_SELECT_COLLECTION_SQL, name) is not None:
                raise self._error(f"Collection '{name}' already exists", "COLLECTION_EXISTS")
            try:
                await conn.execute(
                    "INSERT INTO vector_collections (name, description, embedding_dimensions, "
                    "metadata) VALUES ($1, $2, $3, $4::jsonb)",
                    name,
                    description,
                    dimensions,
                    json.dumps(meta, default=str),
                )
            except asyncpg.UniqueViolationError as exc:
                raise self._error(
                    f"Collection '{name}' already exists", "COLLECTION_EXISTS"
                ) from exc
            except Exception as exc:
                raise self._error(
                    f"Failed to create collection '{name}': {exc}", "COLLECTION_CREATE_ERROR"
                ) from exc
        logger.info("pgvector_collection_created", collection=name, dimensions=dimensions)

    async def delete_collection(self, name: str) -> None:
        self._ensure_connected()
        await self._require(name)
        await self.drop_index(name)
        async with self._pool.acquire() as conn:
            try:
                await conn.execute("DELETE FROM vector_collections WHERE name = $1", name)
            except Exception as exc:
                raise self._error(
                    f"Failed to delete collection '{name}': {exc}", "COLLECTION_DELETE_ERROR"
                ) from exc
        logger.info("pgvector_collection_deleted", collection=name)

    async def list_collections(self) -> list[Collection]:
        self._ensure_connected()
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT id, name, description, embedding_dimensions, metadata "
                "FROM vector_collections ORDER BY name"
            )
        return [self._row_to_collection(row) for row in rows]

    async def get_collection(self, name: str) -> Collection | None:
        self._ensure_connected()
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(_SELECT_COLLECTION_SQL, name)
        return self._row_to_collection(row) if row is not None else None

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def add_documents(self, collection: str, documents: list[DocumentChunk]) -> None:
        self._ensure_connected()
        info = await self._require(collection)
        self._validate_documents(documents, dimensions=info.dimensions, require_embedding=True)
        collection_id = int(info.id)
        rows = [
            (
                doc.id,
                collection_id,
                doc.document_id,
                doc.chunk_index,
                doc.content,
                doc.cleaned_content,
                doc.token_count,
                np.asarray(doc.embedding, dtype=np.float32),
                json.dumps(doc.metadata, default=str),
            )
            for doc in documents
        ]
        async with self._pool.acquire() as conn:
            try:
                async with conn.transaction():
                    await conn.executemany(_UPSERT_DOCUMENT_SQL, rows)
            except Exception as exc:
                raise self._error(
                    f"Failed to add documents to '{collection}': {exc}", "DOCUMENT_ADD_ERROR"
                ) from exc
        logger.debug("pgvector_documents_added", collection=collection, count=len(documents))

    async def update_document(
        self,
        collection: str,
        document_id: str,
        content: str | None = None,
        embedding: list[float] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self._ensure_connected()
        info = await self._require(collection)
        if embedding is not None:
            self._validate_embedding(embedding, info.dimensions)

        assignments: list[str] = []
        params: list[Any] = []
        if content is not None:
            params.append(content)
            assignments.append(f"content = ${len(params)}")
        if embedding is not None:
            params.append(np.asarray(embedding, dtype=np.float32))
            assignments.append(f"embedding = ${len(params)}")
        if metadata:
            params.append(json.dumps(metadata, default=str))
            assignments.append(f"metadata = metadata || ${len(params)}::jsonb")

        params.extend([int(info.id), document_id])
        set_clause = ", ".join(assignments) or "id = id"
        sql = (
            f"UPDATE vector_documents SET {set_clause} "
            f"WHERE collection_id = ${len(params) - 1} AND id = ${len(params)} RETURNING id"
        )
        async with self._pool.acquire() as conn:
            try:
                updated = await conn.fetchval(sql, *params)
            except Exception as exc:
                raise self._error(
                    f"Failed to update document '{document_id}': {exc}", "DOCUMENT_UPDATE_ERROR"
                ) from exc
        if updated is None:
            raise self._error(
                f"Document '{document_id}' not found in '{collection}'", "DOCUMENT_NOT_FOUND"
            )

    async def delete_document(self, collection: str, document_id: str) -> None:
        await self.delete_documents(collection, [document_id])

    async def delete_documents(self, collection: str, document_ids: list[str]) -> None:
        self._ensure_connected()
        if not document_ids:
            return
        info = await self._require(collection)
        async with self._pool.acquire() as conn:
            try:
                await conn.execute(
                    "DELETE FROM vector_documents WHERE collection_id = $1 AND id = ANY($2::text[])",
                    int(info.id),
                    list(document_ids),
                )
            except Exception as exc:
                raise self._error(
                    f"Failed to delete documents from '{collection}': {exc}",
                    "DOCUMENT_DELETE_ERROR",
                ) from exc

    async def get_document(self, collection: str, document_id: str) -> DocumentChunk | None:
        self._ensure_connected()
        info = await self._require(collection)
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(_SELECT_DOCUMENT_SQL, int(info.id), document_id)
        if row is None:
            return None
        embedding = row["embedding"]
        return DocumentChunk(
            id=row["id"],
            document_id=row["document_id"] or "",
            chunk_index=row["chunk_index"] or 0,
            content=row["content"],
            cleaned_content=row["cleaned_content"],
            token_count=row["token_count"] or 0,
            embedding=[float(v) for v in embedding] if embedding is not None else None,
            metadata=self._decode_json(row["metadata"]),
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
        info = await self._require(collection)
        self._validate_embedding(query_embedding, info.dimensions)

        distance = f"(embedding::vector({int(info.dimensions or len(query_embedding))}) <=> $1)"
        params: list[Any] = [np.asarray(query_embedding, dtype=np.float32), int(info.id)]
        conditions = ["collection_id = $2"]
        for key, value in (filter or {}).items():
            if key in _COLUMN_FILTERS:
                # Stored as columns, not inside the metadata JSON.
                params.append(value)
                conditions.append(f"{key} = ${len(params)}")
            else:
                params.extend([key, _json_text(value)])
                conditions.append(f"metadata->>${len(params) - 1} = ${len(params)}")
        params.append(top_k)

        sql = (
            f"SELECT id, document_id, content, metadata, 1 - {distance} AS similarity "
            f"FROM vector_documents WHERE {' AND '.join(conditions)} "
            f"ORDER BY {distance} LIMIT ${len(params)}"
        )
        async with self._pool.acquire() as conn:
            try:
                rows = await conn.fetch(sql, *params)
            except Exception as exc:
                raise self._error(f"Search in '{collection}' failed: {exc}", "SEARCH_ERROR") from exc

        return [
            SearchResult(
                id=row["id"],
                document_id=row["document_id"] or "",
                content=row["content"],
                score=float(row["similarity"]),
                metadata=self._decode_json(row["metadata"]),
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Indexes and stats
    # ------------------------------------------------------------------

    async def create_index(
        self,
        collection: str,
        index_type: str,
        options: dict[str, Any] | None = None,
    ) -> None:
        """Build an IVFFlat or HNSW index over one collection's vectors.

        Options: ``lists`` (ivfflat, default 100); ``m`` and
        ``ef_construction`` (hnsw, defaults 16 and 64).  An existing index
        of the same type on the collection is replaced.
        """
        self._ensure_connected()
        index_type = index_type.lower()
        if index_type not in _INDEX_TYPES:
            raise self._error(
                f"Unsupported index type '{index_type}'; use ivfflat or hnsw",
                "INVALID_INDEX_TYPE",
            )
        info = await self._require(collection)
        options = options or {}
        index_name = _quote_ident(f"idx_{collection}_embedding_{index_type}")
        target = f"((embedding::vector({int(info.dimensions or 0)})) vector_cosine_ops)"
        if index_type == "ivfflat":
            with_clause = f"lists = {int(options.get('lists', 100))}"
        else:
            with_clause = (
                f"m = {int(options.get('m', 16))}, "
                f"ef_construction = {int(options.get('ef_construction', 64))}"
            )
        sql = (
            f"CREATE INDEX {index_name} ON vector_documents USING {index_type} {target} "
            f"WITH ({with_clause}) WHERE collection_id = {int(info.id)}"
        )
        async with self._pool.acquire() as conn:
            try:
                await conn.execute(f"DROP INDEX IF EXISTS {index_name}")
                await conn.execute(sql)
            except Exception as exc:
                raise self._error(
                    f"Failed to create {index_type} index on '{collection}': {exc}",
                    "INDEX_CREATE_ERROR",
                ) from exc
        logger.info("pgvector_index_created", collection=collection, index_type=index_type)

    async def drop_index(self, collection: str) -> None:
        self._ensure_connected()
        async with self._pool.acquire() as conn:
            try:
                rows = await conn.fetch(
                    "SELECT indexname FROM pg_indexes "
                    "WHERE tablename = 'vector_documents' AND indexname LIKE $1",
                    self._index_pattern(collection),
                )
                for row in rows:
                    await conn.execute(f"DROP INDEX IF EXISTS {_quote_ident(row['indexname'])}")
            except Exception as exc:
                raise self._error(
                    f"Failed to drop indexes on '{collection}': {exc}", "INDEX_DROP_ERROR"
                ) from exc

    async def get_collection_stats(self, collection: str) -> CollectionStats:
        self._ensure_connected()
        info = await self._require(collection)
        async with self._pool.acquire() as conn:
            count = await conn.fetchval(
                "SELECT COUNT(*) FROM vector_documents WHERE collection_id = $1", int(info.id)
            )
            rows = await conn.fetch(
                "SELECT indexname FROM pg_indexes "
                "WHERE tablename = 'vector_documents' AND indexname LIKE $1",
                self._index_pattern(collection),
            )
        index_type = None
        for row in rows:
            suffix = str(row["indexname"]).rsplit("_", 1)[-1]
            if suffix in _INDEX_TYPES:
                index_type = _INDEX_TYPES[suffix]
                break
        return CollectionStats(
            document_count=int(count or 0),
            dimensionality=info.dimensions or 0,
            index_type=index_type,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _require(self, name: str) -> Collection:
        collection = await self.get_collection(name)
        if collection is None:
            raise self._error(f"Collection '{name}' not found", "COLLECTION_NOT_FOUND")
        return collection

    @staticmethod
    def _index_pattern(collection: str) -> str:
        escaped = collection.replace("\\", "\\\\").replace("_", "\\_").replace("%", "\\%")
        return f"idx\\_{escaped}\\_embedding\\_%"

    @staticmethod
    def _decode_json(value: Any) -> dict[str, Any]:
        if value is None:
            return {}
        if isinstance(value, str):
            return json.loads(value)
        return dict(value)

    def _row_to_collection(self, row: Any) -> Collection:
        return Collection(
            id=str(row["id"]),
            name=row["name"],
            description=row["description"],
            dimensions=row["embedding_dimensions"],
            metadata=self._decode_json(row["metadata"]),
        )
