"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Supports real OpenAI and OpenAI-compatible servers via a custom
``base_url``, which is normalised to end in ``/v1``.
"""

from __future__ import annotations

import openai
import structlog

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.models.config import EmbeddingConfig
from src.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

_OPENAI_BATCH_LIMIT = 2048
_DEFAULT_DIMENSION = 1536

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


def normalize_base_url(base_url: str) -> str:
    """Return *base_url* without a trailing slash and ending in ``/v1``."""
    url = base_url.rstrip("/")
    if not url.endswith("/v1"):
        url = f"{url}/v1"
    return url


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    The API key comes from the config, else ``EMBEDDING_API_KEY``, else
    ``OPENAI_API_KEY`` (read through :class:`Settings`).  Dimension is the
    known width of the model, else the configured ``dimensions``, else 1536.
    The ``dimensions`` request parameter is only sent to
    ``text-embedding-3-*`` models, which are the only ones that accept it.

    Raises
    ------
    EmbeddingError
        ``MISSING_API_KEY`` at construction when no key can be found.
    """

    def __init__(self, config: EmbeddingConfig, settings: Settings | None = None) -> None:
        settings = settings or Settings()
        self._api_key = config.api_key or settings.get_embedding_api_key()
        if not self._api_key:
            raise EmbeddingError(
                message="No API key configured for OpenAI embeddings",
                code="MISSING_API_KEY",
                provider_name="openai",
            )

        client_kwargs: dict = {"api_key": self._api_key}
        base_url = config.base_url or settings.openai_base_url
        if base_url:
            client_kwargs["base_url"] = normalize_base_url(base_url)

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._model = config.model
        self._dimension = _MODEL_DIMENSIONS.get(
            self._model, config.dimensions or _DEFAULT_DIMENSION
        )
        # Shortened text-embedding-3 vectors are requested explicitly.
        self._request_dimensions = (
            config.dimensions
            if config.dimensions and self._model.startswith("text-embedding-3")
            else None
        )
        if self._request_dimensions:
            self._dimension = self._request_dimensions
        self._provider_label = "openai-compatible_embedding" if base_url else "openai_embedding"

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Splits into batches of 2048, preserves input order, and fails the
        whole call if any returned vector is empty or has the wrong width.
        """
        if not texts:
            return []

        all_embeddings: list[list[float]] = []
        for start in range(0, len(texts), _OPENAI_BATCH_LIMIT):
            batch = texts[start : start + _OPENAI_BATCH_LIMIT]
            all_embeddings.extend(await self._embed_batch(batch))

        if len(all_embeddings) != len(texts):
            raise EmbeddingError(
                message=f"Expected {len(texts)} embeddings, received {len(all_embeddings)}",
                code="GENERATION_ERROR",
                provider_name=self.get_provider_name(),
            )
        for vector in all_embeddings:
            if len(vector) != self._dimension:
                raise EmbeddingError(
                    message=(
                        f"Embedding has {len(vector)} dimensions, "
                        f"expected {self._dimension} for {self._model}"
                    ),
                    code="GENERATION_ERROR",
                    provider_name=self.get_provider_name(),
                )
        return all_embeddings

    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_model_name(self) -> str:
        return self._model

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _embed_batch(self, batch: list[str]) -> list[list[float]]:
        kwargs: dict = {"input": batch, "model": self._model}
        if self._request_dimensions:
            kwargs["dimensions"] = self._request_dimensions

        try:
            response = await self._client.embeddings.create(**kwargs)
        except openai.APIStatusError as exc:
            raise EmbeddingError(
                message=f"{self._provider_label} API error ({exc.status_code}): {exc.message}",
                code="API_ERROR",
                provider_name=self.get_provider_name(),
                details={"status_code": exc.status_code, "body": exc.body},
            ) from exc
        except Exception as exc:
            raise EmbeddingError(
                message=f"{self._provider_label} embedding request failed: {exc}",
                code="GENERATION_ERROR",
                provider_name=self.get_provider_name(),
            ) from exc

        # Each item carries the index of the input it embeds; sort on it so
        # output order always matches input order.
        items = sorted(response.data, key=lambda item: item.index)
        logger.info(
            "openai_embedding_batch",
            model=self._model,
            provider=self._provider_label,
            batch_size=len(batch),
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return [list(item.embedding) for item in items]
