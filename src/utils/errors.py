"""Custom exception hierarchy for Ragline.

All application exceptions inherit from :class:`RaglineError`, which
carries a stable machine-readable ``code`` (e.g. ``"UNSUPPORTED_MIME_TYPE"``)
and an optional ``provider_name`` so error handlers can identify which
component or external service (e.g. "openai", "chromadb", "faiss") caused
the failure.

The hierarchy is organized by pipeline stage:

    RaglineError  (base -- catch-all for any ragline error)
    +-- DocumentProcessingError  (extraction and chunking)
    +-- CleansingError           (rule-based or LLM cleansing)
    +-- EmbeddingError           (embedding generation)
    +-- VectorStoreError         (any vector-store adapter failure)
    +-- IngestionError           (orchestration / status transitions)
    +-- ConfigurationError       (startup / missing config)
    +-- LLMError                 (any LLM API call failure)

The orchestrator records ``code`` and ``message`` on the failed document
record, so codes are part of the persisted contract and must not be
renamed casually.
"""

from __future__ import annotations

from typing import Any


class RaglineError(Exception):
    """Base exception for all Ragline errors.

    Every subclass carries a human-readable ``message``, a stable ``code``
    and an optional ``provider_name``.  The ``__str__`` method prefixes the
    provider name in brackets for structured log output, e.g.
    ``[faiss] Collection not found: docs``.
    """

    default_code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        code: str | None = None,
        provider_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self._message = message
        self._code = code or self.default_code
        self._provider_name = provider_name
        self._details = details or {}
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def code(self) -> str:
        return self._code

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    @property
    def details(self) -> dict[str, Any]:
        return self._details

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Extraction / chunking errors
# ---------------------------------------------------------------------------

class DocumentProcessingError(RaglineError):
    """Raised when text extraction or chunking fails."""

    default_code = "PROCESSING_ERROR"

    def __init__(
        self,
        message: str = "Document processing failed",
        code: str | None = None,
        provider_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, code=code, provider_name=provider_name, details=details)


class CleansingError(RaglineError):
    """Raised when text cleansing fails (missing LLM key, LLM failure)."""

    default_code = "CLEANSING_ERROR"

    def __init__(
        self,
        message: str = "Text cleansing failed",
        code: str | None = None,
        provider_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, code=code, provider_name=provider_name, details=details)


# ---------------------------------------------------------------------------
# Embedding / vector-store errors
# ---------------------------------------------------------------------------

class EmbeddingError(RaglineError):
    """Raised when an embedding provider cannot produce vectors."""

    default_code = "GENERATION_ERROR"

    def __init__(
        self,
        message: str = "Embedding generation failed",
        code: str | None = None,
        provider_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, code=code, provider_name=provider_name, details=details)


class VectorStoreError(RaglineError):
    """Raised when a vector-store adapter operation fails."""

    default_code = "VECTOR_STORE_ERROR"

    def __init__(
        self,
        message: str = "Vector store operation failed",
        code: str | None = None,
        provider_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, code=code, provider_name=provider_name, details=details)


# ---------------------------------------------------------------------------
# Orchestration / configuration errors
# ---------------------------------------------------------------------------

class IngestionError(RaglineError):
    """Raised by the ingestion orchestrator (unknown document, bad transition)."""

    default_code = "INGESTION_ERROR"

    def __init__(
        self,
        message: str = "Document ingestion failed",
        code: str | None = None,
        provider_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, code=code, provider_name=provider_name, details=details)


class ConfigurationError(RaglineError):
    """Raised when configuration is invalid or missing at startup."""

    default_code = "CONFIG_ERROR"

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        code: str | None = None,
        provider_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, code=code, provider_name=provider_name, details=details)


class LLMError(RaglineError):
    """Raised when an LLM API call fails or returns an unusable response."""

    default_code = "LLM_ERROR"

    def __init__(
        self,
        message: str = "LLM API call failed",
        code: str | None = None,
        provider_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, code=code, provider_name=provider_name, details=details)
