"""Validation and batching shared by every vector-store adapter."""

from __future__ import annotations

import json
import math
import re
from typing import Any

import structlog

from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.config import VectorStoreConfig
from src.models.rag import DocumentChunk, SearchResult
from src.utils.errors import VectorStoreError

logger = structlog.get_logger(logger_name=__name__)

_COLLECTION_NAME_RE = re.compile(r"^[a-zA-Z0-9_-]+$")

DEFAULT_BATCH_SIZE = 100

# Keys the adapters store next to user metadata.
RESERVED_METADATA_KEYS: frozenset[str] = frozenset(
    {"document_id", "chunk_index", "token_count", "cleaned_content"}
)


class BaseVectorStore(IVectorStoreProvider):
    """Common behaviour: connection guard, argument validation, sub-batching.

    Subclasses set :attr:`provider_name` and implement the storage calls.
    ``create_index`` / ``drop_index`` / ``search_by_text`` raise
    ``NOT_IMPLEMENTED`` unless overridden.
    """

    provider_name: str = "vector_store"

    def __init__(self, config: VectorStoreConfig) -> None:
        self._config = config
        self._connected = False

    def is_connected(self) -> bool:
        return self._connected

    def get_provider_name(self) -> str:
        return self.provider_name

    # ------------------------------------------------------------------
    # Defaults for optional capabilities
    # ------------------------------------------------------------------

    async def search_by_text(
        self,
        collection: str,
        query: str,
        top_k: int = 10,
        filter: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        raise self._error(
            "Text search is not supported; embed the query and call search()",
            "NOT_IMPLEMENTED",
        )

    async def create_index(
        self,
        collection: str,
        index_type: str,
        options: dict[str, Any] | None = None,
    ) -> None:
        raise self._error(f"{self.provider_name} does not support custom indexes", "NOT_IMPLEMENTED")

    async def drop_index(self, collection: str) -> None:
        raise self._error(f"{self.provider_name} does not support custom indexes", "NOT_IMPLEMENTED")

    async def batch_add_documents(
        self,
        collection: str,
        documents: list[DocumentChunk],
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self._ensure_connected()
        self._validate_documents(documents)
        for start in range(0, len(documents), batch_size):
            await self.add_documents(collection, documents[start : start + batch_size])
        logger.info(
            "vector_store_batch_add",
            provider=self.provider_name,
            collection=collection,
            count=len(documents),
            batches=math.ceil(len(documents) / batch_size),
        )

    async def batch_delete_documents(
        self,
        collection: str,
        document_ids: list[str],
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self._ensure_connected()
        for start in range(0, len(document_ids), batch_size):
            await self.delete_documents(collection, document_ids[start : start + batch_size])
        logger.info(
            "vector_store_batch_delete",
            provider=self.provider_name,
            collection=collection,
            count=len(document_ids),
        )

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _error(self, message: str, code: str, **details: Any) -> VectorStoreError:
        return VectorStoreError(
            message=message, code=code, provider_name=self.provider_name, details=details or None
        )

    def _ensure_connected(self) -> None:
        if not self._connected:
            raise self._error("Vector store is not connected", "CONNECTION_ERROR")

    def _validate_collection_name(self, name: str) -> None:
        if not name or not _COLLECTION_NAME_RE.match(name):
            raise self._error(
                f"Invalid collection name '{name}': use letters, digits, '_' and '-' only",
                "INVALID_COLLECTION_NAME",
            )

    def _validate_dimensions(self, dimensions: int) -> None:
        if isinstance(dimensions, bool) or not isinstance(dimensions, int) or dimensions <= 0:
            raise self._error(
                f"Dimensions must be a positive integer, got {dimensions!r}",
                "INVALID_DIMENSIONS",
            )

    def _validate_documents(
        self,
        documents: list[DocumentChunk],
        dimensions: int | None = None,
        require_embedding: bool = False,
    ) -> None:
        """Check ids, content and embeddings before any write is attempted."""
        if not documents:
            raise self._error("Documents must be a non-empty list", "INVALID_DOCUMENTS")
        seen: set[str] = set()
        for doc in documents:
            if not doc.id:
                raise self._error("Every document needs a non-empty id", "INVALID_DOCUMENTS")
            if doc.id in seen:
                raise self._error(
                    f"Document id {doc.id} appears more than once in the batch",
                    "INVALID_DOCUMENTS",
                    id=doc.id,
                )
            seen.add(doc.id)
            if not doc.content:
                raise self._error(
                    f"Document {doc.id} has empty content", "INVALID_DOCUMENTS", id=doc.id
                )
            if doc.embedding is None:
                if require_embedding:
                    raise self._error(
                        f"Document {doc.id} has no embedding", "MISSING_EMBEDDING", id=doc.id
                    )
                continue
            if not all(isinstance(v, (int, float)) and math.isfinite(v) for v in doc.embedding):
                raise self._error(
                    f"Document {doc.id} embedding must contain only finite numbers",
                    "INVALID_DOCUMENTS",
                    id=doc.id,
                )
            if dimensions is not None and len(doc.embedding) != dimensions:
                raise self._error(
                    f"Document {doc.id} embedding has {len(doc.embedding)} dimensions, "
                    f"collection expects {dimensions}",
                    "DIMENSION_MISMATCH",
                    id=doc.id,
                )

    def _validate_embedding(self, embedding: list[float], dimensions: int | None) -> None:
        if dimensions is not None and len(embedding) != dimensions:
            raise self._error(
                f"Embedding has {len(embedding)} dimensions, collection expects {dimensions}",
                "DIMENSION_MISMATCH",
            )


# ---------------------------------------------------------------------------
# Metadata flattening for stores that only accept scalar metadata values.
# ---------------------------------------------------------------------------

_JSON_KEYS_FIELD = "_json_keys"


def flatten_metadata(metadata: dict[str, Any]) -> dict[str, str | int | float | bool]:
    """JSON-encode non-scalar values and drop ``None`` values.

    The names of encoded keys are recorded under ``_json_keys`` so
    :func:`restore_metadata` can decode them again.
    """
    flat: dict[str, str | int | float | bool] = {}
    encoded: list[str] = []
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            flat[key] = value
        else:
            flat[key] = json.dumps(value, default=str)
            encoded.append(key)
    if encoded:
        flat[_JSON_KEYS_FIELD] = ",".join(encoded)
    return flat


def restore_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """Inverse of :func:`flatten_metadata`."""
    restored = dict(metadata)
    encoded = restored.pop(_JSON_KEYS_FIELD, "")
    for key in filter(None, str(encoded).split(",")):
        if key in restored and isinstance(restored[key], str):
            restored[key] = json.loads(restored[key])
    return restored
