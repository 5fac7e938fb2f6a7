"""Retrieval data models: chunks, vector-store documents and search results.

Defines Pydantic v2 models for the units that flow between the chunkers,
the embedding provider and the vector-store adapters.  All models use
frozen config to enforce immutability; use ``model_copy(update=...)`` to
derive a modified instance.

Flow for a single document:

    1. CHUNKING: a strategy turns extracted text into :class:`TextChunk`
       objects with exact source offsets.
    2. CLEANSING: each chunk gains ``cleaned_content`` next to the raw text.
    3. EMBEDDING: the cleaned (or raw) text becomes a vector.
    4. STORAGE: :class:`DocumentChunk` objects (content + embedding +
       metadata) are written to a vector-store collection.
    5. RETRIEVAL: the store returns :class:`SearchResult` objects ranked by
       a similarity score where higher means more similar.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# TextChunk -- output of a chunking strategy.
# ---------------------------------------------------------------------------
class TextChunk(BaseModel):
    """A contiguous span of extracted text produced by a chunking strategy.

    ``content`` is the whitespace-trimmed slice ``text[start_index:end_index]``
    of the text that was chunked, so offsets can be used to highlight the
    passage in the source.
    """

    model_config = ConfigDict(frozen=True)

    content: str = Field(description="Trimmed text of the chunk.")
    start_index: int = Field(ge=0, description="Offset of the first character in the source text.")
    end_index: int = Field(ge=0, description="Offset one past the last character.")
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_span(self) -> TextChunk:
        if self.end_index <= self.start_index:
            raise ValueError("end_index must be greater than start_index")
        return self


# ---------------------------------------------------------------------------
# DocumentChunk -- the fundamental stored unit.
# ---------------------------------------------------------------------------
class DocumentChunk(BaseModel):
    """A chunk of a source document, ready for (or already carrying) an embedding.

    The same model is written to vector stores and persisted by the
    document repository.  ``id`` is ``"{document_id}_{chunk_index}"`` for
    chunks created by the ingestion pipeline.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique chunk identifier within a collection.")
    document_id: str = Field(description="Identifier of the parent document.")
    chunk_index: int = Field(default=0, ge=0, description="Position of the chunk in its document.")
    content: str = Field(description="Raw chunk text.")
    cleaned_content: str | None = Field(
        default=None, description="Cleansed text, when cleansing ran for this chunk."
    )
    embedding: list[float] | None = Field(
        default=None, description="Embedding vector; required when writing to a vector store."
    )
    token_count: int = Field(default=0, ge=0, description="Whitespace-delimited word count.")
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def embedding_text(self) -> str:
        """Text that should be embedded for this chunk."""
        return self.cleaned_content or self.content


# ---------------------------------------------------------------------------
# SearchResult -- a similarity hit returned by a vector store.
# ---------------------------------------------------------------------------
class SearchResult(BaseModel):
    """A stored chunk returned from a similarity search with its score.

    Higher ``score`` means more similar.  Each backend maps its native
    distance onto this scale (cosine: ``1 - distance``; L2: ``1 / (1 + d)``).
    """

    model_config = ConfigDict(frozen=True)

    id: str
    document_id: str
    content: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Collection / CollectionStats -- vector-store level namespaces.
# ---------------------------------------------------------------------------
class Collection(BaseModel):
    """A named namespace of vectors inside one vector store."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str | None = None
    dimensions: int | None = Field(default=None, description="Fixed embedding width.")
    metadata: dict[str, Any] = Field(default_factory=dict)


class CollectionStats(BaseModel):
    """Aggregate statistics for one collection."""

    model_config = ConfigDict(frozen=True)

    document_count: int = Field(default=0, ge=0)
    dimensionality: int = Field(default=0, ge=0)
    index_type: str | None = None


# ---------------------------------------------------------------------------
# ProcessedDocument -- output of DocumentProcessingService for one file.
# ---------------------------------------------------------------------------
class ProcessedDocument(BaseModel):
    """Extracted text, chunks and metadata for one uploaded file."""

    model_config = ConfigDict(frozen=True)

    id: str
    filename: str
    mime_type: str
    content: str
    chunks: list[TextChunk] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    file_size: int = Field(default=0, ge=0)
    file_hash: str
    processing_time: float = Field(default=0.0, ge=0.0, description="Seconds spent processing.")
