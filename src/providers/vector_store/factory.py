"""Vector store factory and per-process registry of connected stores."""

from __future__ import annotations

import asyncio

import structlog

from src.interfaces.document_repository import IDocumentRepository
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.config import VectorStoreConfig, VectorStoreType
from src.providers.vector_store.base import BaseVectorStore
from src.providers.vector_store.chromadb_provider import ChromaDBProvider
from src.providers.vector_store.faiss_provider import FaissProvider
from src.providers.vector_store.pgvector_provider import PgVectorProvider
from src.utils.errors import VectorStoreError

logger = structlog.get_logger(logger_name=__name__)

_ADAPTERS: dict[str, type[BaseVectorStore]] = {
    VectorStoreType.CHROMADB.value: ChromaDBProvider,
    VectorStoreType.PGVECTOR.value: PgVectorProvider,
    VectorStoreType.FAISS.value: FaissProvider,
}


class VectorStoreFactory:
    """Builds connected vector-store adapters from a :class:`VectorStoreConfig`."""

    @staticmethod
    async def create(config: VectorStoreConfig) -> IVectorStoreProvider:
        """Instantiate the adapter for ``config.type`` and connect it.

        Raises
        ------
        VectorStoreError
            ``UNSUPPORTED_TYPE`` for unknown types, or whatever the
            adapter's ``connect`` raises.
        """
        adapter = _ADAPTERS.get(config.type)
        if adapter is None:
            raise VectorStoreError(
                message=f"Unsupported vector store type: {config.type}",
                code="UNSUPPORTED_TYPE",
                provider_name=config.type,
            )
        store = adapter(config)
        await store.connect()
        logger.info("vector_store_created", type=config.type, vector_store_id=config.id)
        return store

    @staticmethod
    def register_adapter(type_name: str, adapter: type[BaseVectorStore]) -> None:
        """Make *adapter* available under *type_name*."""
        _ADAPTERS[type_name] = adapter

    @staticmethod
    def supported_types() -> list[str]:
        return sorted(_ADAPTERS)


class VectorStoreRegistry:
    """Caches one connected store per vector-store id.

    Configs are looked up in the repository on first use; tests and
    embedding callers can also :meth:`register` an already-connected store.
    """

    def __init__(
        self,
        repository: IDocumentRepository | None = None,
        factory: type[VectorStoreFactory] = VectorStoreFactory,
    ) -> None:
        self._repository = repository
        self._factory = factory
        self._stores: dict[str, IVectorStoreProvider] = {}
        self._lock = asyncio.Lock()

    def register(self, vector_store_id: str, store: IVectorStoreProvider) -> None:
        self._stores[vector_store_id] = store

    async def get(self, vector_store_id: str) -> IVectorStoreProvider:
        """Return the connected store for *vector_store_id*, creating it once."""
        store = self._stores.get(vector_store_id)
        if store is not None:
            return store

        async with self._lock:
            store = self._stores.get(vector_store_id)
            if store is not None:
                return store
            config = (
                await self._repository.get_vector_store(vector_store_id)
                if self._repository is not None
                else None
            )
            if config is None:
                raise VectorStoreError(
                    message=f"Vector store '{vector_store_id}' is not configured",
                    code="VECTOR_STORE_NOT_FOUND",
                )
            store = await self._factory.create(config)
            self._stores[vector_store_id] = store
            return store

    async def close_all(self) -> None:
        """Disconnect every cached store.  Errors are logged, not raised."""
        for vector_store_id, store in list(self._stores.items()):
            try:
                await store.disconnect()
            except Exception as exc:
                logger.warning(
                    "vector_store_disconnect_failed",
                    vector_store_id=vector_store_id,
                    error=str(exc),
                )
        self._stores.clear()
