"""Chunking strategies: fixed-size, sentence, paragraph and sliding window.

Use :class:`ChunkingStrategyFactory` to obtain a strategy from its type tag.
"""

from src.services.ingestion.chunking.base import BaseChunkingStrategy
from src.services.ingestion.chunking.factory import ChunkingStrategyFactory
from src.services.ingestion.chunking.fixed_size import FixedSizeChunkingStrategy
from src.services.ingestion.chunking.paragraph import ParagraphChunkingStrategy
from src.services.ingestion.chunking.sentence import SentenceChunkingStrategy
from src.services.ingestion.chunking.sliding_window import SlidingWindowChunkingStrategy

__all__ = [
    "BaseChunkingStrategy",
    "ChunkingStrategyFactory",
    "FixedSizeChunkingStrategy",
    "ParagraphChunkingStrategy",
    "SentenceChunkingStrategy",
    "SlidingWindowChunkingStrategy",
]
