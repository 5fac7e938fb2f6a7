"""Factory that maps a strategy type tag to a chunking strategy instance."""

from __future__ import annotations

from src.models.config import ChunkingOptions, ChunkingStrategyConfig, ChunkingStrategyType
from src.services.ingestion.chunking.base import BaseChunkingStrategy
from src.services.ingestion.chunking.fixed_size import FixedSizeChunkingStrategy
from src.services.ingestion.chunking.paragraph import ParagraphChunkingStrategy
from src.services.ingestion.chunking.sentence import SentenceChunkingStrategy
from src.services.ingestion.chunking.sliding_window import SlidingWindowChunkingStrategy
from src.utils.errors import DocumentProcessingError

_STRATEGIES: dict[str, type[BaseChunkingStrategy]] = {
    ChunkingStrategyType.FIXED_SIZE.value: FixedSizeChunkingStrategy,
    ChunkingStrategyType.SENTENCE.value: SentenceChunkingStrategy,
    ChunkingStrategyType.PARAGRAPH.value: ParagraphChunkingStrategy,
    ChunkingStrategyType.SLIDING_WINDOW.value: SlidingWindowChunkingStrategy,
}

# Reserved tags: recognised but not implemented.
_RESERVED: frozenset[str] = frozenset(
    {ChunkingStrategyType.SEMANTIC.value, ChunkingStrategyType.CUSTOM.value}
)


class ChunkingStrategyFactory:
    """Creates chunking strategies from a type tag or a stored config."""

    @staticmethod
    def create(
        strategy_type: str | ChunkingStrategyType,
        options: ChunkingOptions | None = None,
    ) -> BaseChunkingStrategy:
        """Return a strategy instance for *strategy_type*.

        Raises
        ------
        DocumentProcessingError
            ``NOT_IMPLEMENTED`` for ``semantic`` / ``custom``,
            ``UNKNOWN_STRATEGY`` for any other unknown tag, and
            ``INVALID_CHUNKING_OPTIONS`` if *options* are inconsistent.
        """
        tag = strategy_type.value if isinstance(strategy_type, ChunkingStrategyType) else strategy_type
        strategy_cls = _STRATEGIES.get(tag)
        if strategy_cls is None:
            if tag in _RESERVED:
                raise DocumentProcessingError(
                    message=f"Chunking strategy '{tag}' is not implemented",
                    code="NOT_IMPLEMENTED",
                )
            raise DocumentProcessingError(
                message=f"Unknown chunking strategy: {tag}",
                code="UNKNOWN_STRATEGY",
            )
        return strategy_cls(options)

    @classmethod
    def from_config(cls, config: ChunkingStrategyConfig) -> BaseChunkingStrategy:
        return cls.create(config.type, config.to_options())

    @staticmethod
    def available_strategies() -> list[str]:
        return list(_STRATEGIES)

    @staticmethod
    def default_strategy() -> str:
        return ChunkingStrategyType.FIXED_SIZE.value
