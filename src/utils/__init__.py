"""Utility modules for Ragline.

- **errors** -- Coded exception hierarchy rooted at RaglineError; each
  pipeline stage raises its own subclass so callers can handle failures
  granularly and the orchestrator can persist a stable error code.
- **concurrency** -- bounded gather and batch helpers that cap parallel
  document pipelines and LLM calls, plus a per-key lock.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

# -- Domain exception hierarchy --------------------------------------------
from src.utils.errors import (
    CleansingError,
    ConfigurationError,
    DocumentProcessingError,
    EmbeddingError,
    IngestionError,
    LLMError,
    RaglineError,
    VectorStoreError,
)

# -- Async concurrency helpers ---------------------------------------------
from src.utils.concurrency import KeyedLock, bounded_gather, gather_in_batches

# -- Structured logging setup ----------------------------------------------
from src.utils.logging import configure_logging, get_logger

__all__ = [
    "CleansingError",
    "ConfigurationError",
    "DocumentProcessingError",
    "EmbeddingError",
    "IngestionError",
    "KeyedLock",
    "LLMError",
    "RaglineError",
    "VectorStoreError",
    "bounded_gather",
    "configure_logging",
    "gather_in_batches",
    "get_logger",
]
