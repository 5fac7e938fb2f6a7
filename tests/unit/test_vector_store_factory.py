"""Unit tests for VectorStoreFactory and VectorStoreRegistry."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.models.config import VectorStoreConfig
from src.providers.repository.memory_repository import MemoryDocumentRepository
from src.providers.vector_store import factory as factory_module
from src.providers.vector_store.factory import VectorStoreFactory, VectorStoreRegistry
from src.providers.vector_store.faiss_provider import FaissProvider
from src.utils.errors import VectorStoreError


class TestVectorStoreFactory:
    def test_supported_types(self) -> None:
        assert VectorStoreFactory.supported_types() == ["chromadb", "faiss", "pgvector"]

    @pytest.mark.asyncio
    async def test_creates_and_connects_faiss(self, tmp_path) -> None:
        config = VectorStoreConfig(type="faiss", connection_string=str(tmp_path / "idx"))
        store = await VectorStoreFactory.create(config)
        try:
            assert isinstance(store, FaissProvider)
            assert store.is_connected() is True
        finally:
            await store.disconnect()

    @pytest.mark.asyncio
    async def test_unknown_type(self) -> None:
        with pytest.raises(VectorStoreError) as exc_info:
            await VectorStoreFactory.create(VectorStoreConfig(type="pinecone"))
        assert exc_info.value.code == "UNSUPPORTED_TYPE"

    @pytest.mark.asyncio
    async def test_connect_errors_propagate(self) -> None:
        with pytest.raises(VectorStoreError) as exc_info:
            await VectorStoreFactory.create(VectorStoreConfig(type="pgvector"))
        assert exc_info.value.code == "CONFIG_ERROR"

    @pytest.mark.asyncio
    async def test_register_adapter(self, monkeypatch) -> None:
        monkeypatch.setattr(factory_module, "_ADAPTERS", dict(factory_module._ADAPTERS))
        adapter = MagicMock()
        instance = adapter.return_value
        instance.connect = AsyncMock()

        VectorStoreFactory.register_adapter("custom", adapter)
        store = await VectorStoreFactory.create(VectorStoreConfig(type="custom"))

        assert store is instance
        instance.connect.assert_awaited_once()
        assert "custom" in VectorStoreFactory.supported_types()


class TestVectorStoreRegistry:
    @pytest.mark.asyncio
    async def test_registered_store_is_returned(self) -> None:
        registry = VectorStoreRegistry()
        store = MagicMock()
        registry.register("local", store)
        assert await registry.get("local") is store

    @pytest.mark.asyncio
    async def test_unknown_store(self) -> None:
        registry = VectorStoreRegistry(MemoryDocumentRepository())
        with pytest.raises(VectorStoreError) as exc_info:
            await registry.get("missing")
        assert exc_info.value.code == "VECTOR_STORE_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_store_is_created_once_from_repository(self, tmp_path) -> None:
        repository = MemoryDocumentRepository()
        await repository.save_vector_store(
            VectorStoreConfig(id="vs1", type="faiss", connection_string=str(tmp_path))
        )
        registry = VectorStoreRegistry(repository)

        with patch.object(
            VectorStoreFactory, "create", AsyncMock(return_value=MagicMock())
        ) as create:
            first = await registry.get("vs1")
            second = await registry.get("vs1")

        assert first is second
        create.assert_awaited_once()
        assert create.await_args.args[0].id == "vs1"

    @pytest.mark.asyncio
    async def test_close_all_logs_failures(self) -> None:
        registry = VectorStoreRegistry()
        good = MagicMock(disconnect=AsyncMock())
        bad = MagicMock(disconnect=AsyncMock(side_effect=RuntimeError("gone")))
        registry.register("bad", bad)
        registry.register("good", good)

        with patch("src.providers.vector_store.factory.logger") as mock_logger:
            await registry.close_all()

        good.disconnect.assert_awaited_once()
        assert mock_logger.warning.call_args.args[0] == "vector_store_disconnect_failed"
        assert mock_logger.warning.call_args.kwargs["vector_store_id"] == "bad"
        with pytest.raises(VectorStoreError):
            await registry.get("good")
