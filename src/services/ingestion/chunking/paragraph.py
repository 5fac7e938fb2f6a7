"""Paragraph-accumulating chunking with sentence fallback for long paragraphs."""

from __future__ import annotations

import re

from src.models.config import ChunkingOptions
from src.models.rag import TextChunk
from src.services.ingestion.chunking.base import BaseChunkingStrategy
from src.services.ingestion.chunking.sentence import SentenceChunkingStrategy

_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")


def paragraph_spans(text: str) -> list[tuple[int, int]]:
    """Return ``(start, end)`` offsets of each non-blank paragraph."""
    spans: list[tuple[int, int]] = []
    cursor = 0
    for match in _PARAGRAPH_BREAK_RE.finditer(text):
        if text[cursor : match.start()].strip():
            spans.append((cursor, match.start()))
        cursor = match.end()
    if text[cursor:].strip():
        spans.append((cursor, len(text)))
    return spans


class ParagraphChunkingStrategy(BaseChunkingStrategy):
    """Groups whole paragraphs (blank-line separated) into chunks.

    Paragraphs accumulate until adding the next would exceed
    ``max_chunk_size``.  A paragraph that alone exceeds the limit is handed
    to :class:`SentenceChunkingStrategy` and its sub-chunks are spliced in
    with offsets shifted to the paragraph's position.
    """

    name = "paragraph"
    description = "Groups whole paragraphs, splitting oversized ones by sentence"

    def _split(self, text: str, options: ChunkingOptions) -> list[TextChunk]:
        limit = self.max_size(options)
        sentence_chunker = SentenceChunkingStrategy(options)
        chunks: list[TextChunk] = []
        current: tuple[int, int] | None = None

        for start, end in paragraph_spans(text):
            if end - start > limit:
                if current is not None:
                    self._emit(chunks, text, current, options)
                    current = None
                for sub in sentence_chunker.chunk(text[start:end]):
                    chunks.append(
                        sub.model_copy(
                            update={
                                "start_index": sub.start_index + start,
                                "end_index": sub.end_index + start,
                                "metadata": {**sub.metadata, "strategy": self.name},
                            }
                        )
                    )
                continue

            if current is None:
                current = (start, end)
            elif end - current[0] > limit:
                self._emit(chunks, text, current, options)
                current = (start, end)
            else:
                current = (current[0], end)

        if current is not None:
            self._emit(chunks, text, current, options)
        return chunks

    def _emit(
        self,
        chunks: list[TextChunk],
        text: str,
        span: tuple[int, int],
        options: ChunkingOptions,
    ) -> None:
        chunk = self._make_chunk(text, span[0], span[1], options)
        if chunk is not None:
            chunks.append(chunk)
