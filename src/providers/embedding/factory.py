"""Factory that builds an embedding provider from an :class:`EmbeddingConfig`."""

from __future__ import annotations

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.models.config import EmbeddingConfig, EmbeddingProviderType
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.utils.errors import EmbeddingError

# Recognised provider tags without an adapter yet.
_PLANNED_PROVIDERS: frozenset[str] = frozenset(
    {
        EmbeddingProviderType.GEMINI.value,
        EmbeddingProviderType.OLLAMA.value,
        EmbeddingProviderType.CUSTOM.value,
    }
)


class EmbeddingProviderFactory:
    """Creates and caches embedding providers per (provider, model, dimensions).

    Collections embedded by the same model share one client.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or Settings()
        self._cache: dict[tuple[str, str, int | None, str | None], IEmbeddingProvider] = {}

    def create(self, config: EmbeddingConfig) -> IEmbeddingProvider:
        """Return a provider for *config*.

        Raises
        ------
        EmbeddingError
            ``NOT_IMPLEMENTED`` for gemini / ollama / custom,
            ``UNSUPPORTED_PROVIDER`` for unknown tags, ``MISSING_API_KEY``
            when the OpenAI provider has no credential.
        """
        key = (config.provider, config.model, config.dimensions, config.base_url)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        if config.provider == EmbeddingProviderType.OPENAI.value:
            provider: IEmbeddingProvider = OpenAIEmbeddingProvider(config, self._settings)
        elif config.provider in _PLANNED_PROVIDERS:
            raise EmbeddingError(
                message=f"Embedding provider '{config.provider}' is not implemented",
                code="NOT_IMPLEMENTED",
                provider_name=config.provider,
            )
        else:
            raise EmbeddingError(
                message=f"Unsupported embedding provider: {config.provider}",
                code="UNSUPPORTED_PROVIDER",
                provider_name=config.provider,
            )

        self._cache[key] = provider
        return provider

    def register(self, config: EmbeddingConfig, provider: IEmbeddingProvider) -> None:
        """Use *provider* for every later request matching *config*."""
        self._cache[(config.provider, config.model, config.dimensions, config.base_url)] = provider

    @staticmethod
    def supported_providers() -> list[str]:
        return [EmbeddingProviderType.OPENAI.value]
