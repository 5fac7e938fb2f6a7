"""Document lifecycle models: records, collections, requests and search hits.

:class:`DocumentRecord` carries the processing status state machine::

    pending ──> processing ──> completed
       ^             │              │
       │             v              │
       └──────── failed             │
       └────────────────────────────┘  (regeneration)

A record in ``processing`` is owned by exactly one pipeline run; the
orchestrator enforces that with a per-document lock plus the conditional
transition implemented by :meth:`ProcessingStatus.can_transition_to`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProcessingStatus(str, Enum):
    """Processing state of a document."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    def can_transition_to(self, target: ProcessingStatus) -> bool:
        return target in _ALLOWED_TRANSITIONS[self]


_ALLOWED_TRANSITIONS: dict[ProcessingStatus, frozenset[ProcessingStatus]] = {
    ProcessingStatus.PENDING: frozenset({ProcessingStatus.PROCESSING}),
    ProcessingStatus.PROCESSING: frozenset({ProcessingStatus.COMPLETED, ProcessingStatus.FAILED}),
    ProcessingStatus.COMPLETED: frozenset({ProcessingStatus.PENDING}),
    ProcessingStatus.FAILED: frozenset({ProcessingStatus.PENDING}),
}

# MIME type -> short content type tag stored on the record.
CONTENT_TYPES: dict[str, str] = {
    "application/pdf": "pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": "pptx",
    "application/vnd.ms-powerpoint": "ppt",
    "text/plain": "txt",
    "text/html": "html",
    "text/markdown": "markdown",
    "text/csv": "csv",
    "application/json": "json",
}


def content_type_for(mime_type: str) -> str:
    """Return the short content type tag for *mime_type* (``"unknown"`` if unmapped)."""
    return CONTENT_TYPES.get(mime_type, "unknown")


# ---------------------------------------------------------------------------
# CollectionDescriptor -- a logical collection bound to a vector store.
# ---------------------------------------------------------------------------
class CollectionDescriptor(BaseModel):
    """A logical collection: where its vectors live and how it is embedded.

    ``name`` is also the physical collection name inside the vector store,
    so it must satisfy the store's naming rule (letters, digits, ``_``
    and ``-``).
    """

    model_config = ConfigDict(frozen=True)

    id: str
    vector_store_id: str
    name: str
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = Field(default=1536, gt=0)
    embedding_provider: str = "openai"
    default_chunking_strategy_id: str | None = None
    default_cleansing_config_id: str | None = None
    is_active: bool = True
    description: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# DocumentRecord -- one ingested file.
# ---------------------------------------------------------------------------
class DocumentRecord(BaseModel):
    """A document and its processing state.

    ``raw_content`` keeps the extracted text so regeneration can re-chunk
    without the original bytes.  ``metadata["processing_config"]`` records
    the chunking/cleansing configuration the last successful run used.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    collection_id: str
    title: str
    filename: str
    file_type: str = Field(description="MIME type of the uploaded file.")
    content_type: str = Field(default="unknown", description="Short type tag, e.g. 'pdf'.")
    file_size: int = Field(default=0, ge=0)
    file_hash: str
    raw_content: str | None = None
    processing_status: ProcessingStatus = ProcessingStatus.PENDING
    error_message: str | None = None
    error_code: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Requests and responses at the orchestrator boundary.
# ---------------------------------------------------------------------------
class IngestRequest(BaseModel):
    """Raw bytes plus routing information for one document to ingest."""

    model_config = ConfigDict(frozen=True)

    collection_id: str
    filename: str
    mime_type: str
    data: bytes
    title: str | None = None
    chunking_strategy_id: str | None = None
    cleansing_config_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class SearchRequest(BaseModel):
    """Similarity search over one collection or, when unset, all active ones."""

    model_config = ConfigDict(frozen=True)

    query: str = Field(min_length=1)
    collection_id: str | None = None
    top_k: int = Field(default=10, ge=1)
    filter: dict[str, Any] | None = None


class SearchHit(BaseModel):
    """A search result enriched with the owning document's descriptor fields."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    document_id: str
    collection_id: str
    content: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)
    document_title: str | None = None
    document_filename: str | None = None
