"""Shared option validation and chunk construction for chunking strategies."""

from __future__ import annotations

from abc import abstractmethod

from src.interfaces.chunking_strategy import IChunkingStrategy
from src.models.config import ChunkingOptions
from src.models.rag import TextChunk
from src.utils.errors import DocumentProcessingError


class BaseChunkingStrategy(IChunkingStrategy):
    """Common behaviour for every concrete strategy.

    Subclasses implement :meth:`_split`, which receives non-blank text and
    already-validated options.  Chunks are built through
    :meth:`_make_chunk` so that trimming and the minimum-size guard are
    applied identically everywhere.

    Parameters
    ----------
    options:
        Default options for :meth:`chunk`.  Validated immediately, so an
        inconsistent configuration fails before any text is processed.
    """

    name: str = ""
    description: str = ""

    def __init__(self, options: ChunkingOptions | None = None) -> None:
        self._options = self.validate_options(options or ChunkingOptions())

    @property
    def options(self) -> ChunkingOptions:
        return self._options

    def chunk(self, text: str, options: ChunkingOptions | None = None) -> list[TextChunk]:
        opts = self.validate_options(options) if options is not None else self._options
        if not text or not text.strip():
            return []
        return self._split(text, opts)

    def get_name(self) -> str:
        return self.name

    def get_description(self) -> str:
        return self.description

    @abstractmethod
    def _split(self, text: str, options: ChunkingOptions) -> list[TextChunk]:
        """Split non-blank *text* using validated *options*."""

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def validate_options(options: ChunkingOptions) -> ChunkingOptions:
        """Reject inconsistent sizes with ``INVALID_CHUNKING_OPTIONS``."""
        problems: list[str] = []
        if options.chunk_size <= 0:
            problems.append("chunk_size must be positive")
        if options.chunk_overlap < 0:
            problems.append("chunk_overlap cannot be negative")
        if options.chunk_overlap >= options.chunk_size:
            problems.append("chunk_overlap must be smaller than chunk_size")
        if options.min_chunk_size < 0:
            problems.append("min_chunk_size cannot be negative")
        if options.max_chunk_size is not None:
            if options.max_chunk_size <= 0:
                problems.append("max_chunk_size must be positive")
            elif options.min_chunk_size > options.max_chunk_size:
                problems.append("min_chunk_size cannot exceed max_chunk_size")
        if problems:
            raise DocumentProcessingError(
                message="Invalid chunking options: " + "; ".join(problems),
                code="INVALID_CHUNKING_OPTIONS",
                details=options.model_dump(),
            )
        return options

    @staticmethod
    def max_size(options: ChunkingOptions) -> int:
        """Effective upper bound for character-measured strategies."""
        return options.max_chunk_size or options.chunk_size

    def _make_chunk(
        self,
        text: str,
        start: int,
        end: int,
        options: ChunkingOptions,
        **metadata: object,
    ) -> TextChunk | None:
        """Build a chunk for ``text[start:end]`` with whitespace trimmed off both ends.

        Offsets move inward with the trim so ``content`` always equals
        ``text[chunk.start_index:chunk.end_index]``.  Returns ``None`` when the
        trimmed content is shorter than ``min_chunk_size`` or empty.
        """
        while start < end and text[start].isspace():
            start += 1
        while end > start and text[end - 1].isspace():
            end -= 1
        if end <= start or end - start < options.min_chunk_size:
            return None
        return TextChunk(
            content=text[start:end],
            start_index=start,
            end_index=end,
            metadata={"strategy": self.name, **metadata},
        )
