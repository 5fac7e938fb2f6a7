"""Ragline engine wiring.

Builds every provider and service from ``.env`` / environment variables
and ``config/config.yaml`` via dependency injection, and seeds the
repository with the default vector store, chunking strategy and
cleansing config so a fresh database is immediately usable.

Callers own the lifecycle: ``build_engine`` connects, ``close_engine``
disconnects every vector store and closes the repository.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from src.config.loader import load_config
from src.config.settings import Settings
from src.interfaces.document_repository import IDocumentRepository
from src.interfaces.llm_provider import ILLMProvider
from src.models.config import ChunkingStrategyConfig, CleansingConfig, VectorStoreConfig
from src.providers.embedding.factory import EmbeddingProviderFactory
from src.providers.llm.openai_provider import OpenAILLMProvider
from src.providers.repository.sqlite_repository import SQLiteDocumentRepository
from src.providers.vector_store.factory import VectorStoreRegistry
from src.services.cleansing.cleansing_service import CleansingService
from src.services.ingestion.document_processor import DocumentProcessingService
from src.services.ingestion.ingestion_service import IngestionService
from src.services.ingestion.text_extractor import TextExtractor
from src.services.retrieval_service import RetrievalService
from src.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_VECTOR_STORE_ID = "default"
DEFAULT_CHUNKING_STRATEGY_ID = "default"
DEFAULT_CLEANSING_CONFIG_ID = "default"

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Engine container
# ---------------------------------------------------------------------------


@dataclass
class Engine:
    """Every long-lived component of a running engine."""

    settings: Settings
    config: dict[str, Any]
    repository: IDocumentRepository
    vector_stores: VectorStoreRegistry
    embedding_factory: EmbeddingProviderFactory
    cleansing: CleansingService
    processor: DocumentProcessingService
    ingestion: IngestionService
    retrieval: RetrievalService
    llm_provider: ILLMProvider | None = field(default=None)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_llm_provider(app_settings: Settings) -> ILLMProvider | None:
    """Return the OpenAI LLM provider when a key is configured.

    Without one, documents processed with an LLM cleansing config fail
    with ``MISSING_API_KEY``.
    """
    if app_settings.openai_api_key:
        return OpenAILLMProvider(settings=app_settings)
    return None


async def _seed_defaults(
    repository: IDocumentRepository,
    app_settings: Settings,
    config: dict[str, Any],
) -> None:
    """Store the default vector store, chunking strategy and cleansing config if absent."""
    if await repository.get_vector_store(DEFAULT_VECTOR_STORE_ID) is None:
        await repository.save_vector_store(
            VectorStoreConfig(
                id=DEFAULT_VECTOR_STORE_ID,
                name="default",
                type=app_settings.vector_store_type,
                connection_string=app_settings.vector_store_connection_string or None,
                api_key=app_settings.vector_store_api_key or None,
            )
        )

    chunking = config.get("chunking", {})
    if await repository.get_chunking_strategy(DEFAULT_CHUNKING_STRATEGY_ID) is None:
        await repository.save_chunking_strategy(
            ChunkingStrategyConfig(
                id=DEFAULT_CHUNKING_STRATEGY_ID,
                name="default",
                type=chunking.get("strategy", app_settings.default_chunking_strategy),
                chunk_size=chunking.get("chunk_size", app_settings.default_chunk_size),
                chunk_overlap=chunking.get("chunk_overlap", app_settings.default_chunk_overlap),
                min_chunk_size=chunking.get("min_chunk_size", 100),
                is_default=True,
            )
        )

    if await repository.get_cleansing_config(DEFAULT_CLEANSING_CONFIG_ID) is None:
        cleansing = {
            key: value
            for key, value in config.get("cleansing", {}).items()
            if key in CleansingConfig.model_fields
        }
        await repository.save_cleansing_config(
            CleansingConfig(
                id=DEFAULT_CLEANSING_CONFIG_ID, name="default", is_default=True, **cleansing
            )
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def build_engine(
    app_settings: Settings | None = None,
    repository: IDocumentRepository | None = None,
    config_path: str = "config/config.yaml",
) -> Engine:
    """Configure logging, open the repository and wire every service."""
    app_settings = app_settings or Settings()
    config = load_config(config_path, app_settings)
    configure_logging(
        log_level=app_settings.log_level,
        json_output=(app_settings.app_env == "production"),
    )

    if repository is None:
        repository = SQLiteDocumentRepository(
            config.get("storage", {}).get("sqlite_db_path", app_settings.sqlite_db_path)
        )
    await repository.initialize()
    await _seed_defaults(repository, app_settings, config)

    llm_provider = _build_llm_provider(app_settings)
    cleansing = CleansingService(
        llm_provider,
        llm_batch_size=int(config.get("cleansing", {}).get("llm_batch_size", 5)),
    )
    extractor = TextExtractor()
    embedding_factory = EmbeddingProviderFactory(app_settings)
    vector_stores = VectorStoreRegistry(repository)
    default_chunking = await repository.get_chunking_strategy(DEFAULT_CHUNKING_STRATEGY_ID)

    ingestion = IngestionService(
        repository=repository,
        extractor=extractor,
        cleansing_service=cleansing,
        embedding_factory=embedding_factory,
        vector_store_registry=vector_stores,
        max_concurrency=int(
            config.get("ingestion", {}).get("max_concurrency", app_settings.ingestion_max_concurrency)
        ),
        default_chunking=default_chunking,
    )
    retrieval = RetrievalService(repository, embedding_factory, vector_stores)

    _logger.info(
        "engine_started",
        vector_store=app_settings.vector_store_type,
        embedding_model=app_settings.embedding_model,
        llm_cleansing=llm_provider is not None,
    )
    return Engine(
        settings=app_settings,
        config=config,
        repository=repository,
        vector_stores=vector_stores,
        embedding_factory=embedding_factory,
        cleansing=cleansing,
        processor=DocumentProcessingService(extractor),
        ingestion=ingestion,
        retrieval=retrieval,
        llm_provider=llm_provider,
    )


async def close_engine(engine: Engine) -> None:
    """Disconnect vector stores and close the repository."""
    await engine.vector_stores.close_all()
    await engine.repository.close()
    _logger.info("engine_stopped")
