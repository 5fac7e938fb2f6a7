"""Orchestrator for the document ingestion pipeline.

Pipeline stages: **extract -> chunk -> cleanse -> embed -> store**.

The :class:`IngestionService` coordinates the text extractor, a chunking
strategy, the cleansing service, an embedding provider and a vector store
without any of them knowing about each other.  For one document the flow
is:

    1. Dedup -- a file whose SHA-256 already exists in the collection
       returns the existing record.
    2. Record -- a ``pending`` :class:`DocumentRecord` is saved, then moved
       to ``processing`` under the document's lock.
    3. TextExtractor -- bytes become plain text plus format metadata.
    4. Chunking strategy -- text becomes ``DocumentChunk`` objects with ids
       ``"{document_id}_{index}"``.
    5. CleansingService -- each chunk gains ``cleaned_content``.
    6. IEmbeddingProvider -- one vector per chunk, collection width.
    7. IVectorStoreProvider -- chunks are written in sub-batches; a failure
       removes every id written for this document.
    8. Repository -- chunk rows are saved and the record is ``completed``.

Failures in steps 3-8 mark the record ``failed`` with
``error_message = "[CODE] message"``; they are never raised from
:meth:`IngestionService.ingest`.  Documents run concurrently, bounded by
``max_concurrency``; the stages of one document run in order.

All dependencies are injected via the constructor so tests can swap in
fakes (in-memory repository, fake embedding provider, local Faiss).
"""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from typing import Any

import structlog

from src.interfaces.document_repository import IDocumentRepository
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.config import (
    ChunkingStrategyConfig,
    ChunkingStrategyType,
    CleansingConfig,
    EmbeddingConfig,
)
from src.models.document import (
    CollectionDescriptor,
    DocumentRecord,
    IngestRequest,
    ProcessingStatus,
    content_type_for,
)
from src.models.rag import DocumentChunk
from src.providers.embedding.factory import EmbeddingProviderFactory
from src.providers.vector_store.factory import VectorStoreRegistry
from src.services.cleansing.cleansing_service import CleansingService
from src.services.ingestion.chunking.factory import ChunkingStrategyFactory
from src.services.ingestion.text_extractor import TextExtractor
from src.utils.concurrency import KeyedLock, bounded_gather
from src.utils.errors import EmbeddingError, IngestionError, RaglineError

logger = structlog.get_logger(logger_name=__name__)

# Record metadata keys written by the pipeline rather than the caller.
_SYSTEM_METADATA_KEYS: frozenset[str] = frozenset({"extraction", "processing_config"})

_BUILTIN_CHUNKING = ChunkingStrategyConfig(
    name="builtin",
    type=ChunkingStrategyType.FIXED_SIZE,
    chunk_size=1000,
    chunk_overlap=200,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IngestionService:
    """Orchestrates ingestion, regeneration and deletion of documents.

    Parameters
    ----------
    repository:
        Persists collections, configs, document records and chunk rows.
    extractor:
        Turns file bytes into text and metadata.
    cleansing_service:
        Picks the basic or LLM cleanser for a cleansing config.
    embedding_factory:
        Builds the embedding provider named by a collection.
    vector_store_registry:
        Supplies the connected store a collection lives in.
    max_concurrency:
        Upper bound on documents processed at once by :meth:`ingest_many`.
    default_chunking:
        Used when neither the request, the collection nor the repository
        names a chunking strategy.  Defaults to fixed-size 1000/200.
    """

    def __init__(
        self,
        repository: IDocumentRepository,
        extractor: TextExtractor,
        cleansing_service: CleansingService,
        embedding_factory: EmbeddingProviderFactory,
        vector_store_registry: VectorStoreRegistry,
        max_concurrency: int = 4,
        default_chunking: ChunkingStrategyConfig | None = None,
    ) -> None:
        self._repository = repository
        self._extractor = extractor
        self._cleansing = cleansing_service
        self._embedding_factory = embedding_factory
        self._vector_stores = vector_store_registry
        self._max_concurrency = max(1, max_concurrency)
        self._default_chunking = default_chunking or _BUILTIN_CHUNKING
        self._document_locks: KeyedLock[str] = KeyedLock()
        self._hash_locks: KeyedLock[tuple[str, str]] = KeyedLock()

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    async def create_collection(self, descriptor: CollectionDescriptor) -> CollectionDescriptor:
        """Save *descriptor* and create its physical collection if missing."""
        store = await self._vector_stores.get(descriptor.vector_store_id)
        if await store.get_collection(descriptor.name) is None:
            metadata: dict[str, Any] = {"embedding_model": descriptor.embedding_model}
            if descriptor.description:
                metadata["description"] = descriptor.description
            await store.create_collection(
                descriptor.name, descriptor.embedding_dimensions, metadata
            )
        saved = await self._repository.save_collection(descriptor)
        logger.info(
            "collection_registered",
            collection_id=descriptor.id,
            name=descriptor.name,
            vector_store_id=descriptor.vector_store_id,
        )
        return saved

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def ingest(self, request: IngestRequest) -> DocumentRecord:
        """Ingest one document and return its final record.

        A duplicate (same bytes in the same collection) returns the
        existing record without creating a new one.

        Raises
        ------
        IngestionError
            ``COLLECTION_NOT_FOUND`` / ``COLLECTION_INACTIVE`` before any
            record exists.  Pipeline failures are recorded, not raised.
        """
        collection = await self._require_collection(request.collection_id)
        file_hash = self._extractor.calculate_file_hash(request.data)

        async with self._hash_locks.hold((collection.id, file_hash)):
            existing = await self._repository.find_document_by_hash(collection.id, file_hash)
            if existing is not None:
                logger.info(
                    "duplicate_document_skipped",
                    document_id=existing.id,
                    collection_id=collection.id,
                    filename=request.filename,
                )
                return existing

            record = DocumentRecord(
                id=str(uuid.uuid4()),
                collection_id=collection.id,
                title=request.title or request.filename,
                filename=request.filename,
                file_type=request.mime_type,
                content_type=content_type_for(request.mime_type),
                file_size=len(request.data),
                file_hash=file_hash,
                metadata=dict(request.metadata),
            )
            await self._repository.save_document(record)

        async with self._document_locks.hold(record.id):
            return await self._process(
                record,
                collection,
                data=request.data,
                chunking_strategy_id=request.chunking_strategy_id,
                cleansing_config_id=request.cleansing_config_id,
            )

    async def ingest_many(
        self, requests: list[IngestRequest]
    ) -> list[DocumentRecord | BaseException]:
        """Ingest several documents concurrently.

        Results keep input order.  One document's failure never affects
        another; a request that could not even be recorded (for example an
        unknown collection) yields its exception in place of a record.
        """
        results = await bounded_gather(
            [self.ingest(request) for request in requests], limit=self._max_concurrency
        )
        for request, result in zip(requests, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "ingest_request_rejected",
                    filename=request.filename,
                    collection_id=request.collection_id,
                    code=getattr(result, "code", "INGESTION_ERROR"),
                    error=str(result),
                )
        return results

    # ------------------------------------------------------------------
    # Regeneration
    # ------------------------------------------------------------------

    async def regenerate(
        self,
        document_id: str,
        collection_id: str | None = None,
        chunking_strategy_id: str | None = None,
        cleansing_config_id: str | None = None,
        data: bytes | None = None,
    ) -> DocumentRecord:
        """Rebuild a document's chunks and embeddings.

        Existing chunks are removed from the vector store and repository
        first.  The stored processing configuration is replayed unless
        overridden.  Text comes from *data* when given, else the stored
        raw content, else the stored chunks.  Embeddings are always
        recomputed.

        Raises
        ------
        IngestionError
            ``DOCUMENT_NOT_FOUND``, ``ALREADY_PROCESSING``, ``NO_CONTENT``
            (nothing to rebuild from), or ``COLLECTION_NOT_FOUND`` /
            ``COLLECTION_INACTIVE`` / ``STRATEGY_NOT_FOUND`` /
            ``CLEANSING_CONFIG_NOT_FOUND`` for a bad override.  These are all
            raised before any existing chunk is removed.
        """
        async with self._document_locks.hold(document_id):
            record = await self._require_document(document_id)
            if record.processing_status == ProcessingStatus.PROCESSING:
                raise IngestionError(
                    message=f"Document {document_id} is already being processed",
                    code="ALREADY_PROCESSING",
                )

            old_chunks = await self._repository.get_chunks(document_id)
            text: str | None = None
            if data is None:
                if record.raw_content:
                    text = record.raw_content
                elif old_chunks:
                    text = "\n\n".join(chunk.content for chunk in old_chunks)
                else:
                    raise IngestionError(
                        message=f"Document {document_id} has no stored content to regenerate from",
                        code="NO_CONTENT",
                    )

            # Validate everything that can be rejected before touching the old chunks.
            target = await self._require_collection(collection_id or record.collection_id)
            await self._check_config_ids(chunking_strategy_id, cleansing_config_id)

            old_collection = await self._repository.get_collection(record.collection_id)
            await self._remove_chunks(record, old_collection, old_chunks)

            replay = record.metadata.get("processing_config") or {}
            updates: dict[str, Any] = {"collection_id": target.id}
            if data is not None:
                updates["file_hash"] = self._extractor.calculate_file_hash(data)
                updates["file_size"] = len(data)
            record = record.model_copy(update=updates)
            if record.processing_status != ProcessingStatus.PENDING:
                record = await self._transition(record, ProcessingStatus.PENDING)
            else:
                await self._repository.save_document(record)

            logger.info(
                "document_regeneration_started",
                document_id=document_id,
                collection_id=target.id,
                source="data" if data is not None else "stored",
            )
            return await self._process(
                record,
                target,
                data=data,
                text=text,
                chunking_strategy_id=chunking_strategy_id,
                cleansing_config_id=cleansing_config_id,
                replay=replay,
            )

    async def reprocess(self, document_id: str) -> DocumentRecord:
        """Regenerate with the document's carried-over configuration."""
        return await self.regenerate(document_id)

    async def delete_document(self, document_id: str) -> None:
        """Remove a document's chunks from store and repository, then the record."""
        async with self._document_locks.hold(document_id):
            record = await self._require_document(document_id)
            if record.processing_status == ProcessingStatus.PROCESSING:
                raise IngestionError(
                    message=f"Document {document_id} is being processed",
                    code="ALREADY_PROCESSING",
                )
            collection = await self._repository.get_collection(record.collection_id)
            chunks = await self._repository.get_chunks(document_id)
            await self._remove_chunks(record, collection, chunks)
            await self._repository.delete_document(document_id)
        logger.info("document_deleted", document_id=document_id, chunks=len(chunks))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_document(self, document_id: str) -> DocumentRecord | None:
        return await self._repository.get_document(document_id)

    async def list_documents(
        self,
        collection_id: str | None = None,
        status: ProcessingStatus | None = None,
    ) -> list[DocumentRecord]:
        return await self._repository.list_documents(collection_id, status)

    async def get_collection_stats(self, collection_id: str) -> dict[str, Any]:
        """Return document counts by status plus the vector store's stats."""
        collection = await self._require_collection(collection_id, allow_inactive=True)
        documents = await self._repository.list_documents(collection_id)
        by_status = {status.value: 0 for status in ProcessingStatus}
        for document in documents:
            by_status[document.processing_status.value] += 1

        store = await self._vector_stores.get(collection.vector_store_id)
        stats = await store.get_collection_stats(collection.name)
        return {
            "collection_id": collection.id,
            "name": collection.name,
            "documents": len(documents),
            "by_status": by_status,
            "chunks": stats.document_count,
            "dimensions": stats.dimensionality,
            "index_type": stats.index_type,
        }

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _process(
        self,
        record: DocumentRecord,
        collection: CollectionDescriptor,
        data: bytes | None = None,
        text: str | None = None,
        chunking_strategy_id: str | None = None,
        cleansing_config_id: str | None = None,
        replay: dict[str, Any] | None = None,
    ) -> DocumentRecord:
        """Run steps 3-8 for *record*.  Caller holds the document lock."""
        record = await self._transition(record, ProcessingStatus.PROCESSING)
        started = time.perf_counter()
        written_ids: list[str] = []
        store: IVectorStoreProvider | None = None
        try:
            extraction: dict[str, Any] = dict(record.metadata.get("extraction") or {})
            if text is None:
                text = self._extractor.extract_text(data or b"", record.file_type)
                extraction = self._extractor.extract_metadata(data or b"", record.file_type)
            if not text.strip():
                raise IngestionError(
                    message=f"No text could be extracted from {record.filename}",
                    code="NO_CONTENT",
                )

            replay = replay or {}
            strategy = await self._resolve_chunking(
                chunking_strategy_id or replay.get("chunking_strategy_id"), collection, replay
            )
            cleansing = await self._resolve_cleansing(
                cleansing_config_id or replay.get("cleansing_config_id"), collection
            )

            chunks = self._build_chunks(record, text, strategy)
            if not chunks:
                raise IngestionError(
                    message=f"Chunking produced no chunks for {record.filename}",
                    code="NO_CONTENT",
                )
            if cleansing is not None:
                chunks = await self._cleansing.cleanse_document_chunks(chunks, cleansing)

            chunks = await self._embed(chunks, collection)

            store = await self._vector_stores.get(collection.vector_store_id)
            written_ids = [chunk.id for chunk in chunks]
            await store.batch_add_documents(collection.name, chunks)
            await self._repository.save_chunks(chunks)

            metadata = {
                **self._user_metadata(record),
                "extraction": extraction,
                "processing_config": {
                    "chunking_strategy_id": strategy.id,
                    "cleansing_config_id": cleansing.id if cleansing else None,
                    "chunking_strategy_type": strategy.type.value,
                    "chunk_size": strategy.chunk_size,
                    "chunk_overlap": strategy.chunk_overlap,
                },
            }
            record = record.model_copy(
                update={
                    "raw_content": text,
                    "metadata": metadata,
                    "error_message": None,
                    "error_code": None,
                }
            )
            record = await self._transition(record, ProcessingStatus.COMPLETED)
        except Exception as exc:
            code = exc.code if isinstance(exc, RaglineError) else "INGESTION_ERROR"
            message = exc.message if isinstance(exc, RaglineError) else str(exc)
            if not isinstance(exc, RaglineError):
                logger.exception("document_ingestion_unexpected_error", document_id=record.id)
            await self._rollback(store, collection, written_ids, record.id)
            return await self._fail(record, code, message)

        logger.info(
            "document_ingested",
            document_id=record.id,
            collection_id=collection.id,
            chunks=len(written_ids),
            strategy=strategy.type.value,
            elapsed_s=round(time.perf_counter() - started, 3),
        )
        return record

    def _build_chunks(
        self,
        record: DocumentRecord,
        text: str,
        strategy: ChunkingStrategyConfig,
    ) -> list[DocumentChunk]:
        text_chunks = ChunkingStrategyFactory.from_config(strategy).chunk(text)
        base_metadata = {
            **self._user_metadata(record),
            "documentTitle": record.title,
            "documentType": record.content_type,
        }
        return [
            DocumentChunk(
                id=f"{record.id}_{index}",
                document_id=record.id,
                chunk_index=index,
                content=chunk.content,
                token_count=len(chunk.content.split()),
                metadata={
                    **base_metadata,
                    **chunk.metadata,
                    "start_index": chunk.start_index,
                    "end_index": chunk.end_index,
                },
            )
            for index, chunk in enumerate(text_chunks)
        ]

    async def _embed(
        self, chunks: list[DocumentChunk], collection: CollectionDescriptor
    ) -> list[DocumentChunk]:
        provider = self._embedding_factory.create(
            EmbeddingConfig(
                provider=collection.embedding_provider,
                model=collection.embedding_model,
                dimensions=collection.embedding_dimensions,
            )
        )
        vectors = await provider.embed([chunk.embedding_text for chunk in chunks])
        if len(vectors) != len(chunks):
            raise EmbeddingError(
                message=f"Expected {len(chunks)} embeddings, received {len(vectors)}",
                code="GENERATION_ERROR",
                provider_name=provider.get_provider_name(),
            )
        for vector in vectors:
            if len(vector) != collection.embedding_dimensions:
                raise EmbeddingError(
                    message=(
                        f"Embedding has {len(vector)} dimensions, collection "
                        f"'{collection.name}' expects {collection.embedding_dimensions}"
                    ),
                    code="DIMENSION_MISMATCH",
                    provider_name=provider.get_provider_name(),
                )
        return [
            chunk.model_copy(update={"embedding": vector}) for chunk, vector in zip(chunks, vectors)
        ]

    # ------------------------------------------------------------------
    # Configuration resolution
    # ------------------------------------------------------------------

    async def _resolve_chunking(
        self,
        strategy_id: str | None,
        collection: CollectionDescriptor,
        replay: dict[str, Any],
    ) -> ChunkingStrategyConfig:
        """Explicit id, replayed settings, collection default, repository default, built-in."""
        if strategy_id:
            strategy = await self._repository.get_chunking_strategy(strategy_id)
            if strategy is None:
                raise IngestionError(
                    message=f"Chunking strategy '{strategy_id}' not found",
                    code="STRATEGY_NOT_FOUND",
                )
            return strategy
        if replay.get("chunking_strategy_type"):
            return ChunkingStrategyConfig(
                name="replayed",
                type=replay["chunking_strategy_type"],
                chunk_size=replay.get("chunk_size", self._default_chunking.chunk_size),
                chunk_overlap=replay.get("chunk_overlap", self._default_chunking.chunk_overlap),
            )
        if collection.default_chunking_strategy_id:
            strategy = await self._repository.get_chunking_strategy(
                collection.default_chunking_strategy_id
            )
            if strategy is not None:
                return strategy
        return await self._repository.get_default_chunking_strategy() or self._default_chunking

    async def _check_config_ids(
        self, chunking_strategy_id: str | None, cleansing_config_id: str | None
    ) -> None:
        if chunking_strategy_id and await self._repository.get_chunking_strategy(
            chunking_strategy_id
        ) is None:
            raise IngestionError(
                message=f"Chunking strategy '{chunking_strategy_id}' not found",
                code="STRATEGY_NOT_FOUND",
            )
        if cleansing_config_id and await self._repository.get_cleansing_config(
            cleansing_config_id
        ) is None:
            raise IngestionError(
                message=f"Cleansing config '{cleansing_config_id}' not found",
                code="CLEANSING_CONFIG_NOT_FOUND",
            )

    async def _resolve_cleansing(
        self,
        config_id: str | None,
        collection: CollectionDescriptor,
    ) -> CleansingConfig | None:
        if config_id:
            config = await self._repository.get_cleansing_config(config_id)
            if config is None:
                raise IngestionError(
                    message=f"Cleansing config '{config_id}' not found",
                    code="CLEANSING_CONFIG_NOT_FOUND",
                )
            return config
        if collection.default_cleansing_config_id:
            return await self._repository.get_cleansing_config(
                collection.default_cleansing_config_id
            )
        return None

    # ------------------------------------------------------------------
    # Record state
    # ------------------------------------------------------------------

    async def _transition(self, record: DocumentRecord, target: ProcessingStatus) -> DocumentRecord:
        """Move *record* to *target* if the state machine allows it, and save."""
        if not record.processing_status.can_transition_to(target):
            code = (
                "ALREADY_PROCESSING"
                if record.processing_status == ProcessingStatus.PROCESSING
                else "INVALID_STATUS_TRANSITION"
            )
            raise IngestionError(
                message=(
                    f"Document {record.id} cannot move from "
                    f"{record.processing_status.value} to {target.value}"
                ),
                code=code,
            )
        updated = record.model_copy(update={"processing_status": target, "updated_at": _utcnow()})
        return await self._repository.save_document(updated)

    async def _fail(self, record: DocumentRecord, code: str, message: str) -> DocumentRecord:
        failed = record.model_copy(
            update={"error_message": f"[{code}] {message}", "error_code": code}
        )
        failed = await self._transition(failed, ProcessingStatus.FAILED)
        logger.warning(
            "document_ingestion_failed",
            document_id=record.id,
            filename=record.filename,
            code=code,
            error=message,
        )
        return failed

    async def _rollback(
        self,
        store: IVectorStoreProvider | None,
        collection: CollectionDescriptor,
        written_ids: list[str],
        document_id: str,
    ) -> None:
        """Best-effort removal of this run's vectors and chunk rows."""
        if store is None or not written_ids:
            return
        try:
            await store.delete_documents(collection.name, written_ids)
            await self._repository.delete_chunks(document_id)
        except Exception as exc:
            logger.error(
                "ingestion_rollback_failed",
                document_id=document_id,
                collection=collection.name,
                error=str(exc),
            )

    async def _remove_chunks(
        self,
        record: DocumentRecord,
        collection: CollectionDescriptor | None,
        chunks: list[DocumentChunk],
    ) -> None:
        if chunks and collection is not None:
            store = await self._vector_stores.get(collection.vector_store_id)
            await store.delete_documents(collection.name, [chunk.id for chunk in chunks])
        await self._repository.delete_chunks(record.id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _user_metadata(record: DocumentRecord) -> dict[str, Any]:
        return {k: v for k, v in record.metadata.items() if k not in _SYSTEM_METADATA_KEYS}

    async def _require_collection(
        self, collection_id: str, allow_inactive: bool = False
    ) -> CollectionDescriptor:
        collection = await self._repository.get_collection(collection_id)
        if collection is None:
            raise IngestionError(
                message=f"Collection '{collection_id}' not found", code="COLLECTION_NOT_FOUND"
            )
        if not collection.is_active and not allow_inactive:
            raise IngestionError(
                message=f"Collection '{collection_id}' is inactive", code="COLLECTION_INACTIVE"
            )
        return collection

    async def _require_document(self, document_id: str) -> DocumentRecord:
        record = await self._repository.get_document(document_id)
        if record is None:
            raise IngestionError(
                message=f"Document '{document_id}' not found", code="DOCUMENT_NOT_FOUND"
            )
        return record
