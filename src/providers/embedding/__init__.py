"""Embedding provider implementations.

Embeddings convert text into numeric vectors that capture semantic meaning.
They are written to a vector store at ingestion time and compared against
query embeddings at search time.

    OpenAIEmbeddingProvider  -- text-embedding-3-small/-large, ada-002, or any
                               OpenAI-compatible server via base_url.
    EmbeddingProviderFactory -- picks the provider from a config's tag and
                               caches one instance per model.
"""

from src.providers.embedding.factory import EmbeddingProviderFactory
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["EmbeddingProviderFactory", "OpenAIEmbeddingProvider"]
