"""Sentence-accumulating chunking with abbreviation-aware splitting.

Sentences are found by punctuation (``.``, ``!``, ``?``) followed by
whitespace or end of text.  Known abbreviations such as "Dr." or "Ph.D."
are masked first so their periods never end a sentence.  Sentences are
then accumulated greedily into chunks no longer than ``max_chunk_size``.
"""

from __future__ import annotations

import re

from src.models.config import ChunkingOptions
from src.models.rag import TextChunk
from src.services.ingestion.chunking.base import BaseChunkingStrategy

# Abbreviations whose periods should NOT trigger a sentence split.
_ABBREVIATIONS: tuple[str, ...] = (
    "Mr",
    "Mrs",
    "Dr",
    "Ms",
    "Prof",
    "Sr",
    "Jr",
    "Ph.D",
    "M.D",
    "B.A",
    "M.A",
    "B.S",
    "M.S",
)

_ABBREVIATION_RE = re.compile(
    r"\b(?:" + "|".join(re.escape(a) for a in sorted(_ABBREVIATIONS, key=len, reverse=True)) + r")\."
)
_SENTENCE_END_RE = re.compile(r"[.!?]+(?=\s|$)")


def _mask_abbreviations(text: str) -> str:
    # Same-length placeholder keeps every offset valid against the original.
    return _ABBREVIATION_RE.sub(lambda m: m.group(0).replace(".", "\x00"), text)


def sentence_spans(text: str) -> list[tuple[int, int]]:
    """Return ``(start, end)`` offsets of each sentence in *text*.

    Leading whitespace is excluded from each span; trailing text without
    terminal punctuation forms a final sentence.
    """
    masked = _mask_abbreviations(text)
    spans: list[tuple[int, int]] = []
    cursor = 0
    for match in _SENTENCE_END_RE.finditer(masked):
        start = cursor
        while start < match.end() and text[start].isspace():
            start += 1
        if start < match.end():
            spans.append((start, match.end()))
        cursor = match.end()

    tail_start = cursor
    tail_end = len(text)
    while tail_start < tail_end and text[tail_start].isspace():
        tail_start += 1
    while tail_end > tail_start and text[tail_end - 1].isspace():
        tail_end -= 1
    if tail_start < tail_end:
        spans.append((tail_start, tail_end))
    return spans


class SentenceChunkingStrategy(BaseChunkingStrategy):
    """Groups whole sentences into chunks of at most ``max_chunk_size`` characters.

    A single sentence longer than the limit becomes a chunk on its own;
    sentences are never split.
    """

    name = "sentence"
    description = "Groups whole sentences up to the maximum chunk size"

    def _split(self, text: str, options: ChunkingOptions) -> list[TextChunk]:
        limit = self.max_size(options)
        chunks: list[TextChunk] = []
        current: tuple[int, int] | None = None

        for start, end in sentence_spans(text):
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
