"""Public interface definitions for every pluggable component.

Every external service (embedding API, LLM, vector database, persistence)
and every interchangeable algorithm (chunking, cleansing) is accessed
through the abstract base classes defined in this package.  Concrete
adapters implement these interfaces and are wired together in
``src/main.py``, so unit tests can inject fakes without network access.

CONCRETE IMPLEMENTATION MAP:
    Interface                  →  Concrete implementations
    ─────────────────────────────────────────────────────────────────────
    IChunkingStrategy          →  FixedSizeChunkingStrategy,
                                  SentenceChunkingStrategy,
                                  ParagraphChunkingStrategy,
                                  SlidingWindowChunkingStrategy
    ITextCleanser              →  BasicTextCleanser, LLMTextCleanser
    IEmbeddingProvider         →  OpenAIEmbeddingProvider
    ILLMProvider               →  OpenAILLMProvider
    IVectorStoreProvider       →  ChromaDBProvider, PgVectorProvider,
                                  FaissProvider
    IDocumentRepository        →  MemoryDocumentRepository,
                                  SQLiteDocumentRepository
"""

from src.interfaces.chunking_strategy import IChunkingStrategy
from src.interfaces.document_repository import IDocumentRepository
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.text_cleanser import ITextCleanser
from src.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IChunkingStrategy",
    "IDocumentRepository",
    "IEmbeddingProvider",
    "ILLMProvider",
    "ITextCleanser",
    "IVectorStoreProvider",
]
