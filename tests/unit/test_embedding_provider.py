"""Unit tests for the OpenAI embedding provider and the embedding provider factory."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from src.config.settings import Settings
from src.models.config import EmbeddingConfig
from src.providers.embedding.factory import EmbeddingProviderFactory
from src.providers.embedding.openai_embedding_provider import (
    OpenAIEmbeddingProvider,
    normalize_base_url,
)
from src.utils.errors import EmbeddingError

_PATCH_TARGET = "src.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI"


def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "embedding_api_key": "",
        "openai_base_url": "",
    }
    defaults.update(overrides)
    return Settings(**defaults)


def _response(vectors: list[list[float]], order: list[int] | None = None) -> MagicMock:
    indices = order if order is not None else list(range(len(vectors)))
    response = MagicMock()
    response.data = [MagicMock(embedding=v, index=i) for v, i in zip(vectors, indices)]
    response.usage = MagicMock(total_tokens=42)
    return response


def _mock_client(*responses) -> AsyncMock:
    client = AsyncMock()
    client.embeddings.create = AsyncMock(side_effect=list(responses))
    return client


# ======================================================================
# OpenAI Embedding Provider
# ======================================================================


class TestOpenAIEmbeddingProvider:
    def test_missing_api_key(self) -> None:
        with pytest.raises(EmbeddingError) as exc_info:
            OpenAIEmbeddingProvider(EmbeddingConfig(), _settings(openai_api_key=""))
        assert exc_info.value.code == "MISSING_API_KEY"

    def test_key_precedence(self) -> None:
        with patch(_PATCH_TARGET) as mock_cls:
            OpenAIEmbeddingProvider(
                EmbeddingConfig(api_key="sk-config"),
                _settings(embedding_api_key="sk-embed"),
            )
            assert mock_cls.call_args.kwargs["api_key"] == "sk-config"

            OpenAIEmbeddingProvider(EmbeddingConfig(), _settings(embedding_api_key="sk-embed"))
            assert mock_cls.call_args.kwargs["api_key"] == "sk-embed"

            OpenAIEmbeddingProvider(EmbeddingConfig(), _settings())
            assert mock_cls.call_args.kwargs["api_key"] == "sk-test"

    def test_base_url_is_normalised(self) -> None:
        with patch(_PATCH_TARGET) as mock_cls:
            provider = OpenAIEmbeddingProvider(
                EmbeddingConfig(base_url="http://localhost:1234/"), _settings()
            )
        assert mock_cls.call_args.kwargs["base_url"] == "http://localhost:1234/v1"
        assert provider.get_provider_name() == "openai-compatible_embedding"

    def test_normalize_base_url(self) -> None:
        assert normalize_base_url("https://host/v1/") == "https://host/v1"
        assert normalize_base_url("https://host") == "https://host/v1"

    @pytest.mark.parametrize(
        ("model", "dimensions", "expected"),
        [
            ("text-embedding-3-small", None, 1536),
            ("text-embedding-3-large", None, 3072),
            ("text-embedding-3-small", 256, 256),
            ("text-embedding-ada-002", 256, 1536),
            ("local-model", 768, 768),
            ("local-model", None, 1536),
        ],
    )
    def test_dimension_resolution(self, model, dimensions, expected) -> None:
        with patch(_PATCH_TARGET):
            provider = OpenAIEmbeddingProvider(
                EmbeddingConfig(model=model, dimensions=dimensions), _settings()
            )
        assert provider.get_dimension() == expected
        assert provider.get_model_name() == model

    @pytest.mark.asyncio
    async def test_embed_orders_by_index(self) -> None:
        client = _mock_client(_response([[0.2] * 1536, [0.1] * 1536], order=[1, 0]))
        with patch(_PATCH_TARGET, return_value=client):
            provider = OpenAIEmbeddingProvider(EmbeddingConfig(), _settings())
            result = await provider.embed(["first", "second"])

        assert result[0][0] == 0.1
        assert result[1][0] == 0.2
        kwargs = client.embeddings.create.call_args.kwargs
        assert kwargs == {"input": ["first", "second"], "model": "text-embedding-3-small"}

    @pytest.mark.asyncio
    async def test_shortened_dimensions_are_requested(self) -> None:
        client = _mock_client(_response([[0.1] * 256]))
        with patch(_PATCH_TARGET, return_value=client):
            provider = OpenAIEmbeddingProvider(EmbeddingConfig(dimensions=256), _settings())
            await provider.embed_single("hello")

        assert client.embeddings.create.call_args.kwargs["dimensions"] == 256

    @pytest.mark.asyncio
    async def test_large_inputs_are_batched(self) -> None:
        client = _mock_client(
            _response([[0.1] * 1536] * 2048),
            _response([[0.2] * 1536] * 2),
        )
        with patch(_PATCH_TARGET, return_value=client):
            provider = OpenAIEmbeddingProvider(EmbeddingConfig(), _settings())
            result = await provider.embed([f"t{i}" for i in range(2050)])

        assert len(result) == 2050
        assert client.embeddings.create.await_count == 2
        assert len(client.embeddings.create.call_args_list[1].kwargs["input"]) == 2

    @pytest.mark.asyncio
    async def test_empty_input_makes_no_request(self) -> None:
        client = _mock_client()
        with patch(_PATCH_TARGET, return_value=client):
            provider = OpenAIEmbeddingProvider(EmbeddingConfig(), _settings())
            assert await provider.embed([]) == []
        client.embeddings.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_wrong_width_fails_whole_call(self) -> None:
        client = _mock_client(_response([[0.1] * 1536, [0.1] * 10]))
        with patch(_PATCH_TARGET, return_value=client):
            provider = OpenAIEmbeddingProvider(EmbeddingConfig(), _settings())
            with pytest.raises(EmbeddingError) as exc_info:
                await provider.embed(["a", "b"])
        assert exc_info.value.code == "GENERATION_ERROR"

    @pytest.mark.asyncio
    async def test_missing_vectors_fail_whole_call(self) -> None:
        client = _mock_client(_response([[0.1] * 1536]))
        with patch(_PATCH_TARGET, return_value=client):
            provider = OpenAIEmbeddingProvider(EmbeddingConfig(), _settings())
            with pytest.raises(EmbeddingError) as exc_info:
                await provider.embed(["a", "b"])
        assert exc_info.value.code == "GENERATION_ERROR"

    @pytest.mark.asyncio
    async def test_api_status_error(self) -> None:
        request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
        error = openai.APIStatusError(
            "Rate limit reached",
            response=httpx.Response(429, request=request),
            body={"error": "rate_limit"},
        )
        client = _mock_client(error)
        with patch(_PATCH_TARGET, return_value=client):
            provider = OpenAIEmbeddingProvider(EmbeddingConfig(), _settings())
            with pytest.raises(EmbeddingError) as exc_info:
                await provider.embed(["a"])
        assert exc_info.value.code == "API_ERROR"
        assert exc_info.value.details["status_code"] == 429

    @pytest.mark.asyncio
    async def test_transport_error(self) -> None:
        client = _mock_client(ConnectionError("boom"))
        with patch(_PATCH_TARGET, return_value=client):
            provider = OpenAIEmbeddingProvider(EmbeddingConfig(), _settings())
            with pytest.raises(EmbeddingError) as exc_info:
                await provider.embed(["a"])
        assert exc_info.value.code == "GENERATION_ERROR"
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    def test_is_available(self) -> None:
        with patch(_PATCH_TARGET):
            provider = OpenAIEmbeddingProvider(EmbeddingConfig(), _settings())
        assert provider.is_available() is True
        assert provider.get_provider_name() == "openai_embedding"


# ======================================================================
# Factory
# ======================================================================


class TestEmbeddingProviderFactory:
    def test_creates_and_caches_openai_provider(self) -> None:
        factory = EmbeddingProviderFactory(_settings())
        with patch(_PATCH_TARGET):
            first = factory.create(EmbeddingConfig(model="text-embedding-3-small"))
            second = factory.create(EmbeddingConfig(model="text-embedding-3-small"))
            other = factory.create(EmbeddingConfig(model="text-embedding-3-large"))

        assert isinstance(first, OpenAIEmbeddingProvider)
        assert first is second
        assert other is not first

    @pytest.mark.parametrize("provider", ["gemini", "ollama", "custom"])
    def test_planned_providers_not_implemented(self, provider) -> None:
        with pytest.raises(EmbeddingError) as exc_info:
            EmbeddingProviderFactory(_settings()).create(EmbeddingConfig(provider=provider))
        assert exc_info.value.code == "NOT_IMPLEMENTED"

    def test_unknown_provider(self) -> None:
        with pytest.raises(EmbeddingError) as exc_info:
            EmbeddingProviderFactory(_settings()).create(EmbeddingConfig(provider="bogus"))
        assert exc_info.value.code == "UNSUPPORTED_PROVIDER"

    def test_missing_key_propagates(self) -> None:
        factory = EmbeddingProviderFactory(_settings(openai_api_key=""))
        with pytest.raises(EmbeddingError) as exc_info:
            factory.create(EmbeddingConfig())
        assert exc_info.value.code == "MISSING_API_KEY"

    def test_registered_provider_is_returned(self) -> None:
        factory = EmbeddingProviderFactory(_settings(openai_api_key=""))
        fake = MagicMock()
        config = EmbeddingConfig(model="fake-model", dimensions=8)
        factory.register(config, fake)
        assert factory.create(config) is fake

    def test_supported_providers(self) -> None:
        assert EmbeddingProviderFactory.supported_providers() == ["openai"]
