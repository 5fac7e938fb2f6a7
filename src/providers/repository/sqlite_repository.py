"""SQLite-backed document repository.

Persists vector-store configs, collections, chunking and cleansing
configs, document records and chunk rows to a local SQLite database
(default ``data/ragline.db``).  Uses ``aiosqlite`` for async I/O.  Each
row stores the full model as JSON in ``body``; the other columns exist
for lookups and ordering.
"""

from __future__ import annotations

from pathlib import Path

import aiosqlite
import structlog

from src.interfaces.document_repository import IDocumentRepository
from src.models.config import ChunkingStrategyConfig, CleansingConfig, VectorStoreConfig
from src.models.document import CollectionDescriptor, DocumentRecord, ProcessingStatus
from src.models.rag import DocumentChunk

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/ragline.db")

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS vector_stores (
    id    TEXT PRIMARY KEY,
    body  TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS collections (
    id          TEXT PRIMARY KEY,
    is_active   INTEGER NOT NULL DEFAULT 1,
    created_at  TEXT NOT NULL,
    body        TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS chunking_strategies (
    id          TEXT PRIMARY KEY,
    is_default  INTEGER NOT NULL DEFAULT 0,
    body        TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS cleansing_configs (
    id    TEXT PRIMARY KEY,
    body  TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS documents (
    id             TEXT PRIMARY KEY,
    collection_id  TEXT NOT NULL,
    file_hash      TEXT NOT NULL,
    status         TEXT NOT NULL,
    created_at     TEXT NOT NULL,
    body           TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS chunks (
    id           TEXT PRIMARY KEY,
    document_id  TEXT NOT NULL,
    chunk_index  INTEGER NOT NULL,
    body         TEXT NOT NULL
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents(collection_id);",
    "CREATE INDEX IF NOT EXISTS idx_documents_hash ON documents(collection_id, file_hash);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_document ON chunks(document_id, chunk_index);",
]


class SQLiteDocumentRepository(IDocumentRepository):
    """SQLite-backed repository persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            for table_sql in _CREATE_TABLES_SQL:
                await db.execute(table_sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("repository_db_initialized", path=str(self._db_path))

    # -- Vector stores --------------------------------------------------

    async def save_vector_store(self, config: VectorStoreConfig) -> VectorStoreConfig:
        await self._write(
            "INSERT OR REPLACE INTO vector_stores (id, body) VALUES (?, ?)",
            (config.id, config.model_dump_json()),
        )
        return config

    async def get_vector_store(self, vector_store_id: str) -> VectorStoreConfig | None:
        body = await self._fetch_body("SELECT body FROM vector_stores WHERE id = ?", (vector_store_id,))
        return VectorStoreConfig.model_validate_json(body) if body else None

    # -- Collections ----------------------------------------------------

    async def save_collection(self, collection: CollectionDescriptor) -> CollectionDescriptor:
        await self._write(
            "INSERT OR REPLACE INTO collections (id, is_active, created_at, body) "
            "VALUES (?, ?, ?, ?)",
            (
                collection.id,
                int(collection.is_active),
                collection.created_at.isoformat(),
                collection.model_dump_json(),
            ),
        )
        return collection

    async def get_collection(self, collection_id: str) -> CollectionDescriptor | None:
        body = await self._fetch_body("SELECT body FROM collections WHERE id = ?", (collection_id,))
        return CollectionDescriptor.model_validate_json(body) if body else None

    async def list_collections(self, active_only: bool = False) -> list[CollectionDescriptor]:
        sql = "SELECT body FROM collections"
        if active_only:
            sql += " WHERE is_active = 1"
        rows = await self._fetch_bodies(sql + " ORDER BY created_at", ())
        return [CollectionDescriptor.model_validate_json(body) for body in rows]

    # -- Chunking / cleansing configuration -----------------------------

    async def save_chunking_strategy(
        self, strategy: ChunkingStrategyConfig
    ) -> ChunkingStrategyConfig:
        await self._write(
            "INSERT OR REPLACE INTO chunking_strategies (id, is_default, body) VALUES (?, ?, ?)",
            (strategy.id, int(strategy.is_default), strategy.model_dump_json()),
        )
        return strategy

    async def get_chunking_strategy(self, strategy_id: str) -> ChunkingStrategyConfig | None:
        body = await self._fetch_body(
            "SELECT body FROM chunking_strategies WHERE id = ?", (strategy_id,)
        )
        return ChunkingStrategyConfig.model_validate_json(body) if body else None

    async def get_default_chunking_strategy(self) -> ChunkingStrategyConfig | None:
        body = await self._fetch_body(
            "SELECT body FROM chunking_strategies WHERE is_default = 1 LIMIT 1", ()
        )
        return ChunkingStrategyConfig.model_validate_json(body) if body else None

    async def save_cleansing_config(self, config: CleansingConfig) -> CleansingConfig:
        await self._write(
            "INSERT OR REPLACE INTO cleansing_configs (id, body) VALUES (?, ?)",
            (config.id, config.model_dump_json()),
        )
        return config

    async def get_cleansing_config(self, config_id: str) -> CleansingConfig | None:
        body = await self._fetch_body("SELECT body FROM cleansing_configs WHERE id = ?", (config_id,))
        return CleansingConfig.model_validate_json(body) if body else None

    # -- Documents ------------------------------------------------------

    async def save_document(self, document: DocumentRecord) -> DocumentRecord:
        await self._write(
            "INSERT OR REPLACE INTO documents "
            "(id, collection_id, file_hash, status, created_at, body) VALUES (?, ?, ?, ?, ?, ?)",
            (
                document.id,
                document.collection_id,
                document.file_hash,
                document.processing_status.value,
                document.created_at.isoformat(),
                document.model_dump_json(),
            ),
        )
        return document

    async def get_document(self, document_id: str) -> DocumentRecord | None:
        body = await self._fetch_body("SELECT body FROM documents WHERE id = ?", (document_id,))
        return DocumentRecord.model_validate_json(body) if body else None

    async def find_document_by_hash(
        self, collection_id: str, file_hash: str
    ) -> DocumentRecord | None:
        body = await self._fetch_body(
            "SELECT body FROM documents WHERE collection_id = ? AND file_hash = ? "
            "ORDER BY created_at LIMIT 1",
            (collection_id, file_hash),
        )
        return DocumentRecord.model_validate_json(body) if body else None

    async def list_documents(
        self,
        collection_id: str | None = None,
        status: ProcessingStatus | None = None,
    ) -> list[DocumentRecord]:
        clauses: list[str] = []
        params: list[str] = []
        if collection_id is not None:
            clauses.append("collection_id = ?")
            params.append(collection_id)
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        sql = "SELECT body FROM documents"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        rows = await self._fetch_bodies(sql + " ORDER BY created_at", tuple(params))
        return [DocumentRecord.model_validate_json(body) for body in rows]

    async def delete_document(self, document_id: str) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute("DELETE FROM chunks WHERE document_id = ?", (document_id,))
            await db.execute("DELETE FROM documents WHERE id = ?", (document_id,))
            await db.commit()

    # -- Chunks ---------------------------------------------------------

    async def save_chunks(self, chunks: list[DocumentChunk]) -> None:
        if not chunks:
            return
        rows = [
            (
                chunk.id,
                chunk.document_id,
                chunk.chunk_index,
                chunk.model_copy(update={"embedding": None}).model_dump_json(),
            )
            for chunk in chunks
        ]
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.executemany(
                "INSERT OR REPLACE INTO chunks (id, document_id, chunk_index, body) "
                "VALUES (?, ?, ?, ?)",
                rows,
            )
            await db.commit()

    async def get_chunks(self, document_id: str) -> list[DocumentChunk]:
        rows = await self._fetch_bodies(
            "SELECT body FROM chunks WHERE document_id = ? ORDER BY chunk_index", (document_id,)
        )
        return [DocumentChunk.model_validate_json(body) for body in rows]

    async def delete_chunks(self, document_id: str) -> int:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute("DELETE FROM chunks WHERE document_id = ?", (document_id,))
            await db.commit()
            return cursor.rowcount

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _write(self, sql: str, params: tuple) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(sql, params)
            await db.commit()

    async def _fetch_body(self, sql: str, params: tuple) -> str | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(sql, params)
            row = await cursor.fetchone()
        return row["body"] if row is not None else None

    async def _fetch_bodies(self, sql: str, params: tuple) -> list[str]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
        return [row["body"] for row in rows]
