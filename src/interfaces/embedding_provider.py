"""Abstract base class for text-embedding service providers.

Defines the contract for generating embedding vectors from text.  The
adapter pattern keeps the ingestion and retrieval services independent of
the embedding backend; concrete providers are built by
:class:`~src.providers.embedding.factory.EmbeddingProviderFactory`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OpenAIEmbeddingProvider (src/providers/embedding/)
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services.

    Embeddings are written to an
    :class:`~src.interfaces.vector_store_provider.IVectorStoreProvider`
    at ingestion time and compared against query embeddings at search time,
    so one collection must always be embedded by the same model.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.  Implementations handle
            batching internally if the underlying API has a per-call limit.

        Returns
        -------
        list[list[float]]
            Embedding vectors corresponding positionally to *texts*.  Each
            inner list has length equal to :meth:`get_dimension`.

        Raises
        ------
        src.utils.errors.EmbeddingError
            If the embedding API call fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string.

        Convenience wrapper around :meth:`embed` for the query case.
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        This value is constant for the lifetime of the provider and must
        match the dimension of any collection the vectors are written to.
        """

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the model identifier, e.g. ``"text-embedding-3-small"``."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this embedding provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials (if any) are present."""
