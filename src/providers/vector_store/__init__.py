"""Vector store provider implementations.

    ChromaDBProvider  -- ChromaDB server (HttpClient) or local persistent dir.
    PgVectorProvider  -- PostgreSQL with the pgvector extension (asyncpg).
    FaissProvider     -- exact Faiss flat indexes persisted to a directory.

The type tag of a :class:`~src.models.config.VectorStoreConfig` selects the
adapter via :class:`VectorStoreFactory`; :class:`VectorStoreRegistry` keeps
one connected instance per configured store.
"""

from src.providers.vector_store.base import BaseVectorStore
from src.providers.vector_store.chromadb_provider import ChromaDBProvider
from src.providers.vector_store.factory import VectorStoreFactory, VectorStoreRegistry
from src.providers.vector_store.faiss_provider import FaissProvider
from src.providers.vector_store.pgvector_provider import PgVectorProvider

__all__ = [
    "BaseVectorStore",
    "ChromaDBProvider",
    "FaissProvider",
    "PgVectorProvider",
    "VectorStoreFactory",
    "VectorStoreRegistry",
]
