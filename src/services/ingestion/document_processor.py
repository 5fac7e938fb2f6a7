"""Extraction + chunking for standalone files.

:class:`DocumentProcessingService` bundles the text extractor and a
chunking strategy into one call that turns file bytes into a
:class:`~src.models.rag.ProcessedDocument`.  It does not embed or store
anything; the CLI uses it for previews and the ingestion service uses the
same building blocks directly.
"""

from __future__ import annotations

import time
import uuid

import structlog

from src.models.config import ChunkingOptions, ChunkingStrategyType
from src.models.rag import ProcessedDocument
from src.services.ingestion.chunking.factory import ChunkingStrategyFactory
from src.services.ingestion.text_extractor import SUPPORTED_MIME_TYPES, TextExtractor
from src.utils.errors import DocumentProcessingError

logger = structlog.get_logger(logger_name=__name__)


class DocumentProcessingService:
    """Turns raw file bytes into extracted text plus chunks."""

    def __init__(self, extractor: TextExtractor | None = None) -> None:
        self._extractor = extractor or TextExtractor()

    def process_document(
        self,
        data: bytes,
        filename: str,
        mime_type: str,
        strategy: str | ChunkingStrategyType = ChunkingStrategyType.FIXED_SIZE,
        options: ChunkingOptions | None = None,
        extract_metadata: bool = True,
    ) -> ProcessedDocument:
        """Extract and chunk one file.

        Parameters
        ----------
        data:
            Raw file bytes.
        filename:
            Original file name, carried into the result.
        mime_type:
            MIME type used to pick the extractor.
        strategy:
            Chunking strategy type tag.
        options:
            Chunking options; strategy defaults when omitted.
        extract_metadata:
            When ``False`` only ``file_type`` is recorded in metadata.

        Raises
        ------
        DocumentProcessingError
            Component errors propagate unchanged; anything else is wrapped
            with code ``PROCESSING_ERROR``.
        """
        started = time.perf_counter()
        try:
            text = self._extractor.extract_text(data, mime_type)
            chunker = ChunkingStrategyFactory.create(strategy, options)
            chunks = chunker.chunk(text)
            metadata = self._extractor.extract_metadata(data, mime_type) if extract_metadata else {}
            metadata["file_type"] = SUPPORTED_MIME_TYPES[mime_type]
        except DocumentProcessingError:
            raise
        except Exception as exc:
            raise DocumentProcessingError(
                message=f"Failed to process {filename}: {exc}",
                code="PROCESSING_ERROR",
            ) from exc

        elapsed = time.perf_counter() - started
        logger.info(
            "document_processed",
            filename=filename,
            mime_type=mime_type,
            chunks=len(chunks),
            seconds=round(elapsed, 3),
        )
        return ProcessedDocument(
            id=str(uuid.uuid4()),
            filename=filename,
            mime_type=mime_type,
            content=text,
            chunks=chunks,
            metadata=metadata,
            file_size=len(data),
            file_hash=self._extractor.calculate_file_hash(data),
            processing_time=elapsed,
        )

    def process_documents(
        self,
        files: list[tuple[bytes, str, str]],
        strategy: str | ChunkingStrategyType = ChunkingStrategyType.FIXED_SIZE,
        options: ChunkingOptions | None = None,
    ) -> list[ProcessedDocument]:
        """Process ``(data, filename, mime_type)`` tuples, skipping failures."""
        results: list[ProcessedDocument] = []
        for data, filename, mime_type in files:
            try:
                results.append(
                    self.process_document(data, filename, mime_type, strategy, options)
                )
            except DocumentProcessingError as exc:
                logger.error(
                    "document_processing_failed",
                    filename=filename,
                    code=exc.code,
                    error=exc.message,
                )
        return results

    @staticmethod
    def supported_mime_types() -> list[str]:
        return list(SUPPORTED_MIME_TYPES)

    @staticmethod
    def supported_file_types() -> list[str]:
        return sorted(set(SUPPORTED_MIME_TYPES.values()))

    @staticmethod
    def available_chunking_strategies() -> list[str]:
        return ChunkingStrategyFactory.available_strategies()
