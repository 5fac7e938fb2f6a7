"""Unit tests for the ChromaDB vector store provider.

The chromadb client is replaced by a MagicMock so the adapter's
translation of calls, metadata and scores can be checked without a server.
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest

from src.models.config import VectorStoreConfig
from src.models.rag import DocumentChunk
from src.providers.vector_store.chromadb_provider import ChromaDBProvider
from src.utils.errors import VectorStoreError


def _handle(dimensions: int = 3) -> MagicMock:
    handle = MagicMock()
    handle.id = "chroma-uuid"
    handle.metadata = {
        "hnsw:space": "cosine",
        "dimensions": dimensions,
        "description": "Docs",
        "owner": "qa",
    }
    return handle


def _client(names: list[str] | None = None, handle: MagicMock | None = None) -> MagicMock:
    client = MagicMock()
    client.list_collections.return_value = list(names or [])
    client.get_collection.return_value = handle or _handle()
    return client


def _chunk(chunk_id: str = "d_0", **overrides) -> DocumentChunk:
    fields = {
        "id": chunk_id,
        "document_id": "d",
        "chunk_index": 0,
        "content": "hello world",
        "embedding": [0.1, 0.2, 0.3],
        "token_count": 2,
        "metadata": {"source": "wiki", "tags": ["a", "b"]},
    }
    fields.update(overrides)
    return DocumentChunk(**fields)


async def _connected(client: MagicMock) -> ChromaDBProvider:
    provider = ChromaDBProvider(VectorStoreConfig(type="chromadb"), client=client)
    await provider.connect()
    return provider


class TestChromaDBConnection:
    @pytest.mark.asyncio
    async def test_connect_checks_heartbeat(self) -> None:
        client = _client()
        provider = await _connected(client)
        client.heartbeat.assert_called_once()
        assert provider.is_connected() is True
        assert provider.get_provider_name() == "chromadb"

    @pytest.mark.asyncio
    async def test_connect_failure(self) -> None:
        client = _client()
        client.heartbeat.side_effect = RuntimeError("refused")
        provider = ChromaDBProvider(VectorStoreConfig(type="chromadb"), client=client)
        with pytest.raises(VectorStoreError) as exc_info:
            await provider.connect()
        assert exc_info.value.code == "CONNECTION_ERROR"
        assert provider.is_connected() is False

    @pytest.mark.asyncio
    async def test_http_client_from_url(self) -> None:
        config = VectorStoreConfig(
            type="chromadb", connection_string="https://chroma.example.com", api_key="secret"
        )
        with patch("src.providers.vector_store.chromadb_provider.chromadb.HttpClient") as http:
            await ChromaDBProvider(config).connect()

        kwargs = http.call_args.kwargs
        assert kwargs["host"] == "chroma.example.com"
        assert kwargs["port"] == 443
        assert kwargs["ssl"] is True
        assert kwargs["headers"] == {"Authorization": "Bearer secret"}

    @pytest.mark.asyncio
    async def test_default_target_is_local_server(self) -> None:
        with patch("src.providers.vector_store.chromadb_provider.chromadb.HttpClient") as http:
            await ChromaDBProvider(VectorStoreConfig(type="chromadb")).connect()
        assert http.call_args.kwargs["host"] == "localhost"
        assert http.call_args.kwargs["port"] == 8000
        assert http.call_args.kwargs["headers"] is None

    @pytest.mark.asyncio
    async def test_persistent_client_from_path(self, tmp_path) -> None:
        config = VectorStoreConfig(type="chromadb", connection_string=str(tmp_path))
        with patch(
            "src.providers.vector_store.chromadb_provider.chromadb.PersistentClient"
        ) as persistent:
            await ChromaDBProvider(config).connect()
        assert persistent.call_args.kwargs["path"] == str(tmp_path)

    @pytest.mark.asyncio
    async def test_operations_require_connection(self) -> None:
        provider = ChromaDBProvider(VectorStoreConfig(type="chromadb"), client=_client())
        with pytest.raises(VectorStoreError) as exc_info:
            await provider.list_collections()
        assert exc_info.value.code == "CONNECTION_ERROR"


class TestChromaDBCollections:
    @pytest.mark.asyncio
    async def test_create_collection_uses_cosine_space(self) -> None:
        client = _client()
        provider = await _connected(client)

        await provider.create_collection("docs", 3, {"description": "Docs", "labels": ["x"]})

        kwargs = client.create_collection.call_args.kwargs
        assert kwargs["name"] == "docs"
        assert kwargs["metadata"]["hnsw:space"] == "cosine"
        assert kwargs["metadata"]["dimensions"] == 3
        assert kwargs["metadata"]["description"] == "Docs"
        assert json.loads(kwargs["metadata"]["labels"]) == ["x"]

    @pytest.mark.asyncio
    async def test_create_existing_collection(self) -> None:
        provider = await _connected(_client(["docs"]))
        with pytest.raises(VectorStoreError) as exc_info:
            await provider.create_collection("docs", 3)
        assert exc_info.value.code == "COLLECTION_EXISTS"

    @pytest.mark.asyncio
    async def test_create_failure_is_wrapped(self) -> None:
        client = _client()
        client.create_collection.side_effect = RuntimeError("disk full")
        provider = await _connected(client)
        with pytest.raises(VectorStoreError) as exc_info:
            await provider.create_collection("docs", 3)
        assert exc_info.value.code == "COLLECTION_CREATE_ERROR"

    @pytest.mark.asyncio
    async def test_get_collection_strips_internal_keys(self) -> None:
        provider = await _connected(_client(["docs"]))
        collection = await provider.get_collection("docs")

        assert collection.id == "chroma-uuid"
        assert collection.dimensions == 3
        assert collection.description == "Docs"
        assert collection.metadata == {"owner": "qa"}
        assert await provider.get_collection("other") is None

    @pytest.mark.asyncio
    async def test_list_collections_accepts_objects_or_names(self) -> None:
        named = MagicMock()
        named.name = "docs"
        provider = await _connected(_client([named, "notes"]))
        assert [c.name for c in await provider.list_collections()] == ["docs", "notes"]

    @pytest.mark.asyncio
    async def test_delete_collection(self) -> None:
        client = _client(["docs"])
        provider = await _connected(client)
        await provider.delete_collection("docs")
        client.delete_collection.assert_called_once_with(name="docs")

        with pytest.raises(VectorStoreError) as exc_info:
            await provider.delete_collection("missing")
        assert exc_info.value.code == "COLLECTION_NOT_FOUND"


class TestChromaDBDocuments:
    @pytest.mark.asyncio
    async def test_add_documents_upserts_with_flat_metadata(self) -> None:
        handle = _handle()
        provider = await _connected(_client(["docs"], handle))

        await provider.add_documents("docs", [_chunk(cleaned_content="hello")])

        kwargs = handle.upsert.call_args.kwargs
        assert kwargs["ids"] == ["d_0"]
        assert kwargs["embeddings"] == [[0.1, 0.2, 0.3]]
        assert kwargs["documents"] == ["hello world"]
        metadata = kwargs["metadatas"][0]
        assert metadata["document_id"] == "d"
        assert metadata["chunk_index"] == 0
        assert metadata["cleaned_content"] == "hello"
        assert metadata["source"] == "wiki"
        assert json.loads(metadata["tags"]) == ["a", "b"]
        assert metadata["_json_keys"] == "tags"

    @pytest.mark.asyncio
    async def test_add_documents_validates_width(self) -> None:
        handle = _handle(dimensions=4)
        provider = await _connected(_client(["docs"], handle))
        with pytest.raises(VectorStoreError) as exc_info:
            await provider.add_documents("docs", [_chunk()])
        assert exc_info.value.code == "DIMENSION_MISMATCH"
        handle.upsert.assert_not_called()

    @pytest.mark.asyncio
    async def test_add_documents_unknown_collection(self) -> None:
        provider = await _connected(_client([]))
        with pytest.raises(VectorStoreError) as exc_info:
            await provider.add_documents("docs", [_chunk()])
        assert exc_info.value.code == "COLLECTION_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_add_failure_is_wrapped(self) -> None:
        handle = _handle()
        handle.upsert.side_effect = RuntimeError("timeout")
        provider = await _connected(_client(["docs"], handle))
        with pytest.raises(VectorStoreError) as exc_info:
            await provider.add_documents("docs", [_chunk()])
        assert exc_info.value.code == "DOCUMENT_ADD_ERROR"

    @pytest.mark.asyncio
    async def test_get_document_restores_metadata(self) -> None:
        handle = _handle()
        handle.get.return_value = {
            "ids": ["d_0"],
            "documents": ["hello world"],
            "metadatas": [
                {
                    "document_id": "d",
                    "chunk_index": 4,
                    "token_count": 2,
                    "source": "wiki",
                    "tags": '["a", "b"]',
                    "_json_keys": "tags",
                }
            ],
            "embeddings": [[0.1, 0.2, 0.3]],
        }
        provider = await _connected(_client(["docs"], handle))

        chunk = await provider.get_document("docs", "d_0")

        assert chunk.document_id == "d"
        assert chunk.chunk_index == 4
        assert chunk.token_count == 2
        assert chunk.embedding == [0.1, 0.2, 0.3]
        assert chunk.metadata == {"source": "wiki", "tags": ["a", "b"]}

    @pytest.mark.asyncio
    async def test_get_missing_document(self) -> None:
        handle = _handle()
        handle.get.return_value = {"ids": [], "documents": [], "metadatas": [], "embeddings": []}
        provider = await _connected(_client(["docs"], handle))
        assert await provider.get_document("docs", "nope") is None

    @pytest.mark.asyncio
    async def test_update_document_merges_metadata(self) -> None:
        handle = _handle()
        handle.get.return_value = {
            "ids": ["d_0"],
            "documents": ["hello world"],
            "metadatas": [{"document_id": "d", "chunk_index": 0, "source": "wiki"}],
            "embeddings": None,
        }
        provider = await _connected(_client(["docs"], handle))

        await provider.update_document("docs", "d_0", content="new", metadata={"lang": "en"})

        kwargs = handle.update.call_args.kwargs
        assert kwargs["documents"] == ["new"]
        assert "embeddings" not in kwargs
        assert kwargs["metadatas"][0]["source"] == "wiki"
        assert kwargs["metadatas"][0]["lang"] == "en"

    @pytest.mark.asyncio
    async def test_update_missing_document(self) -> None:
        handle = _handle()
        handle.get.return_value = {"ids": []}
        provider = await _connected(_client(["docs"], handle))
        with pytest.raises(VectorStoreError) as exc_info:
            await provider.update_document("docs", "nope", content="x")
        assert exc_info.value.code == "DOCUMENT_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_delete_documents(self) -> None:
        handle = _handle()
        provider = await _connected(_client(["docs"], handle))
        await provider.delete_documents("docs", ["a", "b"])
        handle.delete.assert_called_once_with(ids=["a", "b"])

        await provider.delete_documents("docs", [])
        assert handle.delete.call_count == 1


class TestChromaDBSearch:
    @pytest.mark.asyncio
    async def test_search_converts_distance_to_score(self) -> None:
        handle = _handle()
        handle.query.return_value = {
            "ids": [["d_0", "d_1"]],
            "documents": [["first", "second"]],
            "metadatas": [
                [
                    {"document_id": "d", "chunk_index": 0, "source": "wiki"},
                    {"document_id": "d", "chunk_index": 1, "source": "wiki"},
                ]
            ],
            "distances": [[0.1, 0.4]],
        }
        provider = await _connected(_client(["docs"], handle))

        results = await provider.search("docs", [0.1, 0.2, 0.3], top_k=2)

        assert [r.id for r in results] == ["d_0", "d_1"]
        assert results[0].score == pytest.approx(0.9)
        assert results[1].score == pytest.approx(0.6)
        assert results[0].metadata == {"source": "wiki"}
        kwargs = handle.query.call_args.kwargs
        assert kwargs["n_results"] == 2
        assert "where" not in kwargs

    @pytest.mark.asyncio
    async def test_search_filters(self) -> None:
        handle = _handle()
        handle.query.return_value = {"ids": [[]], "documents": [[]], "metadatas": [[]], "distances": [[]]}
        provider = await _connected(_client(["docs"], handle))

        await provider.search("docs", [0.1, 0.2, 0.3], filter={"source": "wiki"})
        assert handle.query.call_args.kwargs["where"] == {"source": "wiki"}

        await provider.search("docs", [0.1, 0.2, 0.3], filter={"source": "wiki", "lang": "en"})
        assert handle.query.call_args.kwargs["where"] == {
            "$and": [{"source": "wiki"}, {"lang": "en"}]
        }

    @pytest.mark.asyncio
    async def test_search_failure_is_wrapped(self) -> None:
        handle = _handle()
        handle.query.side_effect = RuntimeError("boom")
        provider = await _connected(_client(["docs"], handle))
        with pytest.raises(VectorStoreError) as exc_info:
            await provider.search("docs", [0.1, 0.2, 0.3])
        assert exc_info.value.code == "SEARCH_ERROR"

    @pytest.mark.asyncio
    async def test_stats(self) -> None:
        handle = _handle()
        handle.count.return_value = 12
        provider = await _connected(_client(["docs"], handle))

        stats = await provider.get_collection_stats("docs")

        assert stats.document_count == 12
        assert stats.dimensionality == 3
        assert stats.index_type == "HNSW"
