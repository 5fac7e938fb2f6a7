"""Shared pytest fixtures for the Ragline test suite."""

from __future__ import annotations

import hashlib
import math
import re
from pathlib import Path

import pytest

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.models.config import EmbeddingConfig, VectorStoreConfig
from src.models.document import CollectionDescriptor
from src.providers.embedding.factory import EmbeddingProviderFactory
from src.providers.repository.memory_repository import MemoryDocumentRepository
from src.providers.vector_store.factory import VectorStoreRegistry
from src.providers.vector_store.faiss_provider import FaissProvider
from src.services.cleansing.cleansing_service import CleansingService
from src.services.ingestion.ingestion_service import IngestionService
from src.services.ingestion.text_extractor import TextExtractor
from src.services.retrieval_service import RetrievalService

EMBEDDING_DIM = 1536
EMBEDDING_MODEL = "text-embedding-3-small"
VECTOR_STORE_ID = "local"

_WORD_RE = re.compile(r"[a-z0-9]+")


def hash_to_vector(text: str, dim: int = EMBEDDING_DIM) -> list[float]:
    """Deterministic bag-of-words vector for *text*.

    Every lower-cased word is hashed into one of *dim* buckets and the
    counts are normalised to unit length, so texts sharing vocabulary are
    close and identical texts map to identical vectors.
    """
    values = [0.0] * dim
    for word in _WORD_RE.findall(text.lower()):
        bucket = int.from_bytes(hashlib.sha256(word.encode("utf-8")).digest()[:4], "big") % dim
        values[bucket] += 1.0
    magnitude = math.sqrt(sum(v * v for v in values))
    if magnitude == 0:
        values[0] = 1.0
        return values
    return [v / magnitude for v in values]


class FakeEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests."""

    def __init__(self, dim: int = EMBEDDING_DIM, model: str = EMBEDDING_MODEL) -> None:
        self._dim = dim
        self._model = model
        self.embed_calls = 0
        self.single_calls = 0

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.embed_calls += 1
        return [hash_to_vector(t, self._dim) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.single_calls += 1
        return hash_to_vector(text, self._dim)

    def get_dimension(self) -> int:
        return self._dim

    def get_model_name(self) -> str:
        return self._model

    def get_provider_name(self) -> str:
        return "fake-embedding"

    def is_available(self) -> bool:
        return True


def words(count: int, prefix: str = "word") -> str:
    """Return *count* distinct space-separated words."""
    return " ".join(f"{prefix}{i:04d}" for i in range(count))


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, openai_api_key="", embedding_api_key="")


@pytest.fixture
def repository() -> MemoryDocumentRepository:
    return MemoryDocumentRepository()


@pytest.fixture
def embedding_provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def embedding_factory(
    settings: Settings, embedding_provider: FakeEmbeddingProvider
) -> EmbeddingProviderFactory:
    factory = EmbeddingProviderFactory(settings)
    factory.register(
        EmbeddingConfig(provider="openai", model=EMBEDDING_MODEL, dimensions=EMBEDDING_DIM),
        embedding_provider,
    )
    return factory


@pytest.fixture
async def faiss_store(tmp_path: Path):
    store = FaissProvider(
        VectorStoreConfig(id=VECTOR_STORE_ID, type="faiss", connection_string=str(tmp_path / "faiss"))
    )
    await store.connect()
    yield store
    await store.disconnect()


@pytest.fixture
def vector_stores(faiss_store: FaissProvider) -> VectorStoreRegistry:
    registry = VectorStoreRegistry()
    registry.register(VECTOR_STORE_ID, faiss_store)
    return registry


@pytest.fixture
def ingestion_service(
    repository: MemoryDocumentRepository,
    embedding_factory: EmbeddingProviderFactory,
    vector_stores: VectorStoreRegistry,
) -> IngestionService:
    return IngestionService(
        repository=repository,
        extractor=TextExtractor(),
        cleansing_service=CleansingService(),
        embedding_factory=embedding_factory,
        vector_store_registry=vector_stores,
        max_concurrency=2,
    )


@pytest.fixture
def retrieval_service(
    repository: MemoryDocumentRepository,
    embedding_factory: EmbeddingProviderFactory,
    vector_stores: VectorStoreRegistry,
) -> RetrievalService:
    return RetrievalService(repository, embedding_factory, vector_stores)


@pytest.fixture
async def collection(ingestion_service: IngestionService) -> CollectionDescriptor:
    """An active collection named ``docs`` in the local Faiss store."""
    return await ingestion_service.create_collection(
        CollectionDescriptor(
            id="docs",
            vector_store_id=VECTOR_STORE_ID,
            name="docs",
            embedding_model=EMBEDDING_MODEL,
            embedding_dimensions=EMBEDDING_DIM,
            description="Test documents",
        )
    )
