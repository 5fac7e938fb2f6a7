"""Token-count sliding windows over whitespace-delimited tokens."""

from __future__ import annotations

import re

from src.models.config import ChunkingOptions
from src.models.rag import TextChunk
from src.services.ingestion.chunking.base import BaseChunkingStrategy

_TOKEN_RE = re.compile(r"\S+")


class SlidingWindowChunkingStrategy(BaseChunkingStrategy):
    """Windows of ``chunk_size`` tokens stepping by ``chunk_size - chunk_overlap``.

    Unlike :class:`FixedSizeChunkingStrategy`, sizes are measured in
    whitespace tokens, not characters.  Each chunk spans from the first
    character of its first token to the last character of its last token.
    ``min_chunk_size`` still applies to the chunk's character length; a
    trailing window below it is folded into the previous chunk so the end
    of the text stays covered.
    """

    name = "sliding_window"
    description = "Overlapping windows measured in whitespace tokens"

    def _split(self, text: str, options: ChunkingOptions) -> list[TextChunk]:
        tokens = [(m.start(), m.end()) for m in _TOKEN_RE.finditer(text)]
        window = options.chunk_size
        step = options.chunk_size - options.chunk_overlap
        chunks: list[TextChunk] = []

        first = 0
        while first < len(tokens):
            last = min(first + window, len(tokens))
            chunk = self._make_chunk(
                text,
                tokens[first][0],
                tokens[last - 1][1],
                options,
                token_start=first,
                token_end=last,
            )
            if chunk is not None:
                chunks.append(chunk)
            elif chunks and last == len(tokens):
                previous = chunks[-1]
                chunks[-1] = previous.model_copy(
                    update={
                        "content": text[previous.start_index : tokens[last - 1][1]],
                        "end_index": tokens[last - 1][1],
                        "metadata": {**previous.metadata, "token_end": last},
                    }
                )

            if last >= len(tokens):
                break
            first += step

        return chunks
