"""Abstract base class for chunking strategies.

A chunking strategy turns one extracted text into an ordered list of
:class:`~src.models.rag.TextChunk` objects.  Strategies are pure and
synchronous: they do no I/O and keep no state between calls, so one
instance can be shared across concurrent document pipelines.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.config import ChunkingOptions
from src.models.rag import TextChunk


# Concrete implementations: FixedSizeChunkingStrategy, SentenceChunkingStrategy,
# ParagraphChunkingStrategy, SlidingWindowChunkingStrategy
# Located in: src/services/ingestion/chunking/
class IChunkingStrategy(ABC):
    """Contract for text chunkers."""

    @abstractmethod
    def chunk(self, text: str, options: ChunkingOptions | None = None) -> list[TextChunk]:
        """Split *text* into chunks.

        Parameters
        ----------
        text:
            The extracted document text.
        options:
            Optional per-call override of the options the strategy was
            constructed with.  Overrides are validated like constructor
            options.

        Returns
        -------
        list[TextChunk]
            Chunks in source order.  Empty text yields an empty list.

        Raises
        ------
        src.utils.errors.DocumentProcessingError
            ``INVALID_CHUNKING_OPTIONS`` when the options are inconsistent.
        """

    @abstractmethod
    def get_name(self) -> str:
        """Return the strategy type tag, e.g. ``"fixed_size"``."""

    @abstractmethod
    def get_description(self) -> str:
        """Return a one-line human-readable description."""
