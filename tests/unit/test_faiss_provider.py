"""Unit tests for the local Faiss vector store provider."""

from __future__ import annotations

import math
from unittest.mock import patch

import pytest

from src.models.config import VectorStoreConfig
from src.models.rag import DocumentChunk
from src.providers.vector_store.faiss_provider import FaissProvider
from src.utils.errors import VectorStoreError

_DIM = 4


def _basis(i: int) -> list[float]:
    vector = [0.0] * _DIM
    vector[i] = 1.0
    return vector


def _chunk(
    chunk_id: str,
    embedding: list[float] | None,
    document_id: str = "doc1",
    chunk_index: int = 0,
    content: str | None = None,
    **metadata,
) -> DocumentChunk:
    return DocumentChunk(
        id=chunk_id,
        document_id=document_id,
        chunk_index=chunk_index,
        content=content or f"content of {chunk_id}",
        embedding=embedding,
        token_count=3,
        metadata=metadata,
    )


@pytest.fixture()
async def store(tmp_path):
    provider = FaissProvider(VectorStoreConfig(type="faiss", connection_string=str(tmp_path)))
    await provider.connect()
    await provider.create_collection("docs", _DIM, {"description": "Test docs", "owner": "qa"})
    yield provider
    await provider.disconnect()


class TestFaissLifecycle:
    @pytest.mark.asyncio
    async def test_calls_before_connect_fail(self, tmp_path) -> None:
        provider = FaissProvider(VectorStoreConfig(type="faiss", connection_string=str(tmp_path)))
        assert provider.is_connected() is False
        with pytest.raises(VectorStoreError) as exc_info:
            await provider.list_collections()
        assert exc_info.value.code == "CONNECTION_ERROR"

    @pytest.mark.asyncio
    async def test_data_survives_reconnect(self, tmp_path) -> None:
        provider = FaissProvider(VectorStoreConfig(type="faiss", connection_string=str(tmp_path)))
        await provider.connect()
        await provider.create_collection("docs", _DIM)
        await provider.add_documents("docs", [_chunk("a", _basis(0)), _chunk("b", _basis(1))])
        await provider.disconnect()

        assert (tmp_path / "collections.json").exists()
        assert (tmp_path / "docs.index").exists()
        assert (tmp_path / "docs_documents.json").exists()

        reopened = FaissProvider(VectorStoreConfig(type="faiss", connection_string=str(tmp_path)))
        await reopened.connect()
        results = await reopened.search("docs", _basis(1), top_k=1)
        assert [r.id for r in results] == ["b"]
        assert (await reopened.get_collection_stats("docs")).document_count == 2
        await reopened.disconnect()

    def test_provider_name(self) -> None:
        assert FaissProvider(VectorStoreConfig(type="faiss")).get_provider_name() == "faiss"


class TestFaissCollections:
    @pytest.mark.asyncio
    async def test_get_collection(self, store) -> None:
        collection = await store.get_collection("docs")
        assert collection.name == "docs"
        assert collection.dimensions == _DIM
        assert collection.description == "Test docs"
        assert collection.metadata == {"owner": "qa"}
        assert await store.get_collection("missing") is None

    @pytest.mark.asyncio
    async def test_duplicate_collection(self, store) -> None:
        with pytest.raises(VectorStoreError) as exc_info:
            await store.create_collection("docs", _DIM)
        assert exc_info.value.code == "COLLECTION_EXISTS"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["bad name", "semi;colon", ""])
    async def test_invalid_collection_name(self, store, name) -> None:
        with pytest.raises(VectorStoreError) as exc_info:
            await store.create_collection(name, _DIM)
        assert exc_info.value.code == "INVALID_COLLECTION_NAME"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("dimensions", [0, -3])
    async def test_invalid_dimensions(self, store, dimensions) -> None:
        with pytest.raises(VectorStoreError) as exc_info:
            await store.create_collection("other", dimensions)
        assert exc_info.value.code == "INVALID_DIMENSIONS"

    @pytest.mark.asyncio
    async def test_delete_collection_removes_files(self, store, tmp_path) -> None:
        await store.delete_collection("docs")
        assert await store.list_collections() == []
        assert not (tmp_path / "docs.index").exists()
        with pytest.raises(VectorStoreError) as exc_info:
            await store.delete_collection("docs")
        assert exc_info.value.code == "COLLECTION_NOT_FOUND"


class TestFaissDocuments:
    @pytest.mark.asyncio
    async def test_add_and_get(self, store) -> None:
        await store.add_documents("docs", [_chunk("a", _basis(0), source="wiki")])
        chunk = await store.get_document("docs", "a")
        assert chunk.content == "content of a"
        assert chunk.embedding == _basis(0)
        assert chunk.token_count == 3
        assert chunk.metadata == {"source": "wiki"}
        assert await store.get_document("docs", "missing") is None

    @pytest.mark.asyncio
    async def test_add_requires_embeddings(self, store) -> None:
        with pytest.raises(VectorStoreError) as exc_info:
            await store.add_documents("docs", [_chunk("a", None)])
        assert exc_info.value.code == "MISSING_EMBEDDING"

    @pytest.mark.asyncio
    async def test_add_rejects_wrong_width(self, store) -> None:
        with pytest.raises(VectorStoreError) as exc_info:
            await store.add_documents("docs", [_chunk("a", [1.0, 0.0])])
        assert exc_info.value.code == "DIMENSION_MISMATCH"

    @pytest.mark.asyncio
    async def test_add_rejects_non_finite_values(self, store) -> None:
        with pytest.raises(VectorStoreError) as exc_info:
            await store.add_documents("docs", [_chunk("a", [math.nan, 0.0, 0.0, 0.0])])
        assert exc_info.value.code == "INVALID_DOCUMENTS"

    @pytest.mark.asyncio
    async def test_add_rejects_repeated_id_in_one_batch(self, store) -> None:
        with pytest.raises(VectorStoreError) as exc_info:
            await store.add_documents("docs", [_chunk("a", _basis(0)), _chunk("a", _basis(1))])
        assert exc_info.value.code == "INVALID_DOCUMENTS"
        assert (await store.get_collection_stats("docs")).document_count == 0
        assert await store.search("docs", _basis(0), top_k=5) == []

    @pytest.mark.asyncio
    async def test_add_rejects_empty_list(self, store) -> None:
        with pytest.raises(VectorStoreError) as exc_info:
            await store.add_documents("docs", [])
        assert exc_info.value.code == "INVALID_DOCUMENTS"

    @pytest.mark.asyncio
    async def test_unknown_collection(self, store) -> None:
        with pytest.raises(VectorStoreError) as exc_info:
            await store.add_documents("missing", [_chunk("a", _basis(0))])
        assert exc_info.value.code == "COLLECTION_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_re_adding_an_id_replaces_it(self, store) -> None:
        await store.add_documents("docs", [_chunk("a", _basis(0))])
        await store.add_documents("docs", [_chunk("a", _basis(2), content="replacement")])

        results = await store.search("docs", _basis(0), top_k=5)
        assert [r.id for r in results] == ["a"]
        assert results[0].content == "replacement"
        assert (await store.get_collection_stats("docs")).document_count == 1

    @pytest.mark.asyncio
    async def test_update_content_and_metadata(self, store) -> None:
        await store.add_documents("docs", [_chunk("a", _basis(0), source="wiki")])
        await store.update_document("docs", "a", content="new text", metadata={"lang": "en"})

        chunk = await store.get_document("docs", "a")
        assert chunk.content == "new text"
        assert chunk.metadata == {"source": "wiki", "lang": "en"}
        assert chunk.embedding == _basis(0)

    @pytest.mark.asyncio
    async def test_update_embedding_moves_vector(self, store) -> None:
        await store.add_documents("docs", [_chunk("a", _basis(0)), _chunk("b", _basis(1))])
        with patch("src.providers.vector_store.faiss_provider.logger") as mock_logger:
            await store.update_document("docs", "a", embedding=_basis(3))

        assert mock_logger.warning.call_args.args[0] == "faiss_vector_replaced"
        assert (await store.get_document("docs", "a")).embedding == _basis(3)
        results = await store.search("docs", _basis(3), top_k=1)
        assert results[0].id == "a"
        assert results[0].score == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_update_missing_document(self, store) -> None:
        with pytest.raises(VectorStoreError) as exc_info:
            await store.update_document("docs", "missing", content="x")
        assert exc_info.value.code == "DOCUMENT_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_update_rejects_wrong_width(self, store) -> None:
        await store.add_documents("docs", [_chunk("a", _basis(0))])
        with pytest.raises(VectorStoreError) as exc_info:
            await store.update_document("docs", "a", embedding=[1.0])
        assert exc_info.value.code == "DIMENSION_MISMATCH"

    @pytest.mark.asyncio
    async def test_batch_add_uses_sub_batches(self, store) -> None:
        chunks = [_chunk(f"c{i}", _basis(i % _DIM), chunk_index=i) for i in range(5)]
        with patch.object(store, "add_documents", wraps=store.add_documents) as spy:
            await store.batch_add_documents("docs", chunks, batch_size=2)
        assert spy.await_count == 3
        assert (await store.get_collection_stats("docs")).document_count == 5


class TestFaissSearch:
    @pytest.mark.asyncio
    async def test_nearest_first_with_scores(self, store) -> None:
        await store.add_documents(
            "docs",
            [_chunk("a", _basis(0)), _chunk("b", _basis(1)), _chunk("c", [0.9, 0.1, 0.0, 0.0])],
        )
        results = await store.search("docs", _basis(0), top_k=2)

        assert [r.id for r in results] == ["a", "c"]
        assert results[0].score == pytest.approx(1.0)
        assert results[0].score > results[1].score
        assert results[0].document_id == "doc1"

    @pytest.mark.asyncio
    async def test_empty_collection(self, store) -> None:
        assert await store.search("docs", _basis(0)) == []

    @pytest.mark.asyncio
    async def test_query_width_checked(self, store) -> None:
        with pytest.raises(VectorStoreError) as exc_info:
            await store.search("docs", [1.0, 0.0])
        assert exc_info.value.code == "DIMENSION_MISMATCH"

    @pytest.mark.asyncio
    async def test_metadata_filter(self, store) -> None:
        await store.add_documents(
            "docs",
            [
                _chunk("a", _basis(0), source="wiki"),
                _chunk("b", [0.9, 0.1, 0.0, 0.0], source="blog"),
                _chunk("c", _basis(1), document_id="doc2", source="blog"),
            ],
        )
        results = await store.search("docs", _basis(0), top_k=5, filter={"source": "blog"})
        assert [r.id for r in results] == ["b", "c"]

        results = await store.search("docs", _basis(0), top_k=5, filter={"document_id": "doc2"})
        assert [r.id for r in results] == ["c"]

    @pytest.mark.asyncio
    async def test_text_search_not_supported(self, store) -> None:
        with pytest.raises(VectorStoreError) as exc_info:
            await store.search_by_text("docs", "hello")
        assert exc_info.value.code == "NOT_IMPLEMENTED"

    @pytest.mark.asyncio
    async def test_custom_indexes_not_supported(self, store) -> None:
        with pytest.raises(VectorStoreError) as exc_info:
            await store.create_index("docs", "hnsw")
        assert exc_info.value.code == "NOT_IMPLEMENTED"


class TestFaissTombstones:
    @pytest.mark.asyncio
    async def test_deleted_vectors_are_skipped(self, store) -> None:
        await store.add_documents("docs", [_chunk("a", _basis(0)), _chunk("b", _basis(1))])
        with patch("src.providers.vector_store.faiss_provider.logger") as mock_logger:
            await store.delete_documents("docs", ["a", "never-existed"])

        assert mock_logger.warning.call_args.args[0] == "faiss_vectors_retained"
        assert mock_logger.warning.call_args.kwargs["deleted"] == 1
        assert mock_logger.warning.call_args.kwargs["tombstones"] == 1
        results = await store.search("docs", _basis(0), top_k=5)
        assert [r.id for r in results] == ["b"]
        assert await store.get_document("docs", "a") is None
        assert (await store.get_collection_stats("docs")).document_count == 1

    @pytest.mark.asyncio
    async def test_compact_rebuilds_index(self, store) -> None:
        await store.add_documents(
            "docs", [_chunk("a", _basis(0)), _chunk("b", _basis(1)), _chunk("c", _basis(2))]
        )
        await store.delete_document("docs", "a")
        await store.update_document("docs", "b", embedding=_basis(3))

        assert await store.compact("docs") == 2
        assert await store.compact("docs") == 0

        assert (await store.get_document("docs", "b")).embedding == _basis(3)
        assert (await store.get_document("docs", "c")).embedding == _basis(2)
        results = await store.search("docs", _basis(2), top_k=1)
        assert [r.id for r in results] == ["c"]

    @pytest.mark.asyncio
    async def test_compact_everything_deleted(self, store) -> None:
        await store.add_documents("docs", [_chunk("a", _basis(0))])
        await store.delete_documents("docs", ["a"])
        assert await store.compact("docs") == 1
        assert await store.search("docs", _basis(0)) == []

    @pytest.mark.asyncio
    async def test_stats(self, store) -> None:
        await store.add_documents("docs", [_chunk("a", _basis(0))])
        stats = await store.get_collection_stats("docs")
        assert stats.document_count == 1
        assert stats.dimensionality == _DIM
        assert stats.index_type == "Flat"
