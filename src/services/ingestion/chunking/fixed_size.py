"""Character-window chunking that prefers natural break points."""

from __future__ import annotations

from src.models.config import ChunkingOptions
from src.models.rag import TextChunk
from src.services.ingestion.chunking.base import BaseChunkingStrategy

# Searched in order; the first one found past the window midpoint wins.
_BREAK_SEQUENCES: tuple[str, ...] = ("\n\n", "\n", ". ", "! ", "? ", "; ", ", ", " ")


class FixedSizeChunkingStrategy(BaseChunkingStrategy):
    """Splits text into windows of ``chunk_size`` characters.

    Before cutting, the window end is pulled back to the nearest break
    sequence (paragraph, line, sentence, clause, word) if that break lies
    beyond the midpoint of the window, so chunks rarely end mid-word
    without producing tiny fragments.  Consecutive windows overlap by
    ``chunk_overlap`` characters.  A window whose trimmed text falls below
    ``min_chunk_size`` is folded into the chunk before it, so the final
    chunk may run past ``chunk_size``.
    """

    name = "fixed_size"
    description = "Fixed-size character windows snapped to the nearest natural break"

    def _split(self, text: str, options: ChunkingOptions) -> list[TextChunk]:
        size = min(options.chunk_size, self.max_size(options))
        overlap = min(options.chunk_overlap, size - 1)
        length = len(text)
        chunks: list[TextChunk] = []

        start = 0
        pending: int | None = None
        while start < length:
            end = min(start + size, length)
            if end < length:
                breakpoint_ = self._find_break_point(text, start, end)
                if breakpoint_ > start + options.min_chunk_size:
                    end = breakpoint_

            chunk_start = start if pending is None else pending
            chunk = self._make_chunk(text, chunk_start, end, options)
            if chunk is not None:
                chunks.append(chunk)
                pending = None
            elif chunks:
                # Undersized window: fold it into the previous chunk so no text is lost.
                chunks[-1] = self._extend_to(text, chunks[-1], end)
            else:
                pending = chunk_start

            if end >= length:
                break
            # Always advance, even when a break point sits inside the overlap.
            start = max(end - overlap, start + 1)

        return chunks

    @staticmethod
    def _extend_to(text: str, chunk: TextChunk, end: int) -> TextChunk:
        while end > chunk.end_index and text[end - 1].isspace():
            end -= 1
        if end <= chunk.end_index:
            return chunk
        return chunk.model_copy(
            update={"content": text[chunk.start_index : end], "end_index": end}
        )

    @staticmethod
    def _find_break_point(text: str, start: int, end: int) -> int:
        """Return the cut position after the best break sequence, or *end*."""
        midpoint = start + (end - start) * 0.5
        for sequence in _BREAK_SEQUENCES:
            index = text.rfind(sequence, start, end)
            if index > midpoint:
                return index + len(sequence)
        return end
