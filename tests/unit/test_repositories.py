"""Unit tests for the in-memory and SQLite document repositories.

Both implementations run the same behavioural tests through a
parametrized fixture.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from src.models.config import ChunkingStrategyConfig, CleansingConfig, VectorStoreConfig
from src.models.document import CollectionDescriptor, DocumentRecord, ProcessingStatus
from src.models.rag import DocumentChunk
from src.providers.repository.memory_repository import MemoryDocumentRepository
from src.providers.repository.sqlite_repository import SQLiteDocumentRepository

_T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture(params=["memory", "sqlite"])
async def repo(request, tmp_path):
    if request.param == "memory":
        repository = MemoryDocumentRepository()
    else:
        repository = SQLiteDocumentRepository(tmp_path / "db" / "ragline.db")
    await repository.initialize()
    yield repository
    await repository.close()


def _record(record_id: str, **overrides) -> DocumentRecord:
    fields = {
        "id": record_id,
        "collection_id": "c1",
        "title": record_id,
        "filename": f"{record_id}.txt",
        "file_type": "text/plain",
        "file_hash": f"hash-{record_id}",
        "raw_content": "body",
    }
    fields.update(overrides)
    return DocumentRecord(**fields)


def _collection(collection_id: str, offset: int = 0, **overrides) -> CollectionDescriptor:
    fields = {
        "id": collection_id,
        "vector_store_id": "local",
        "name": collection_id,
        "created_at": _T0 + timedelta(minutes=offset),
    }
    fields.update(overrides)
    return CollectionDescriptor(**fields)


class TestConfigurationStorage:
    @pytest.mark.asyncio
    async def test_vector_store_round_trip(self, repo) -> None:
        config = VectorStoreConfig(id="vs", type="pgvector", connection_string="postgresql://x")
        await repo.save_vector_store(config)
        assert await repo.get_vector_store("vs") == config
        assert await repo.get_vector_store("missing") is None

    @pytest.mark.asyncio
    async def test_collections_ordered_and_filtered(self, repo) -> None:
        await repo.save_collection(_collection("b", offset=2))
        await repo.save_collection(_collection("a", offset=1, is_active=False))

        assert [c.id for c in await repo.list_collections()] == ["a", "b"]
        assert [c.id for c in await repo.list_collections(active_only=True)] == ["b"]
        assert (await repo.get_collection("a")).is_active is False

    @pytest.mark.asyncio
    async def test_default_chunking_strategy(self, repo) -> None:
        assert await repo.get_default_chunking_strategy() is None
        await repo.save_chunking_strategy(ChunkingStrategyConfig(id="s1", chunk_size=500))
        await repo.save_chunking_strategy(
            ChunkingStrategyConfig(id="s2", type="sentence", is_default=True)
        )

        assert (await repo.get_chunking_strategy("s1")).chunk_size == 500
        assert (await repo.get_default_chunking_strategy()).id == "s2"

    @pytest.mark.asyncio
    async def test_cleansing_config(self, repo) -> None:
        config = CleansingConfig(id="clean", remove_urls=True)
        await repo.save_cleansing_config(config)
        assert await repo.get_cleansing_config("clean") == config
        assert await repo.get_cleansing_config("nope") is None


class TestDocumentStorage:
    @pytest.mark.asyncio
    async def test_save_replaces_record(self, repo) -> None:
        await repo.save_document(_record("d1"))
        updated = _record("d1", processing_status=ProcessingStatus.COMPLETED)
        await repo.save_document(updated)

        stored = await repo.get_document("d1")
        assert stored.processing_status == ProcessingStatus.COMPLETED
        assert len(await repo.list_documents()) == 1

    @pytest.mark.asyncio
    async def test_find_by_hash_is_scoped_to_collection(self, repo) -> None:
        await repo.save_document(_record("d1", file_hash="same"))

        assert (await repo.find_document_by_hash("c1", "same")).id == "d1"
        assert await repo.find_document_by_hash("c2", "same") is None

    @pytest.mark.asyncio
    async def test_list_documents_filters(self, repo) -> None:
        await repo.save_document(_record("d1", created_at=_T0))
        await repo.save_document(
            _record(
                "d2",
                collection_id="c2",
                processing_status=ProcessingStatus.FAILED,
                created_at=_T0 + timedelta(seconds=1),
            )
        )
        await repo.save_document(_record("d3", created_at=_T0 + timedelta(seconds=2)))

        assert [d.id for d in await repo.list_documents()] == ["d1", "d2", "d3"]
        assert [d.id for d in await repo.list_documents(collection_id="c1")] == ["d1", "d3"]
        failed = await repo.list_documents(status=ProcessingStatus.FAILED)
        assert [d.id for d in failed] == ["d2"]

    @pytest.mark.asyncio
    async def test_chunks_are_stored_without_embeddings(self, repo) -> None:
        chunks = [
            DocumentChunk(id=f"d1_{i}", document_id="d1", chunk_index=i, content=f"c{i}",
                          embedding=[0.1, 0.2], metadata={"strategy": "fixed_size"})
            for i in (1, 0)
        ]
        await repo.save_chunks(chunks)

        stored = await repo.get_chunks("d1")
        assert [c.chunk_index for c in stored] == [0, 1]
        assert all(c.embedding is None for c in stored)
        assert stored[0].metadata == {"strategy": "fixed_size"}

    @pytest.mark.asyncio
    async def test_delete_chunks_returns_count(self, repo) -> None:
        await repo.save_chunks(
            [DocumentChunk(id=f"d1_{i}", document_id="d1", chunk_index=i, content="x") for i in range(3)]
        )
        assert await repo.delete_chunks("d1") == 3
        assert await repo.get_chunks("d1") == []
        assert await repo.delete_chunks("d1") == 0

    @pytest.mark.asyncio
    async def test_delete_document_removes_chunks(self, repo) -> None:
        await repo.save_document(_record("d1"))
        await repo.save_chunks([DocumentChunk(id="d1_0", document_id="d1", content="x")])

        await repo.delete_document("d1")

        assert await repo.get_document("d1") is None
        assert await repo.get_chunks("d1") == []


class TestSQLitePersistence:
    @pytest.mark.asyncio
    async def test_data_survives_new_instance(self, tmp_path) -> None:
        path = tmp_path / "ragline.db"
        first = SQLiteDocumentRepository(path)
        await first.initialize()
        await first.save_document(_record("d1"))
        await first.close()

        second = SQLiteDocumentRepository(path)
        await second.initialize()
        assert (await second.get_document("d1")).raw_content == "body"
