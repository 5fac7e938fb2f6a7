"""Unit tests for document lifecycle and configuration models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.models.config import (
    ChunkingStrategyConfig,
    ChunkingStrategyType,
    CleansingConfig,
    CleansingRule,
    EmbeddingConfig,
    RerankingConfig,
    RerankingType,
    VectorStoreConfig,
)
from src.models.document import (
    CollectionDescriptor,
    DocumentRecord,
    IngestRequest,
    ProcessingStatus,
    SearchRequest,
    content_type_for,
)


# ======================================================================
# ProcessingStatus
# ======================================================================


class TestProcessingStatus:
    @pytest.mark.parametrize(
        ("source", "target"),
        [
            (ProcessingStatus.PENDING, ProcessingStatus.PROCESSING),
            (ProcessingStatus.PROCESSING, ProcessingStatus.COMPLETED),
            (ProcessingStatus.PROCESSING, ProcessingStatus.FAILED),
            (ProcessingStatus.COMPLETED, ProcessingStatus.PENDING),
            (ProcessingStatus.FAILED, ProcessingStatus.PENDING),
        ],
    )
    def test_allowed_transitions(self, source, target) -> None:
        assert source.can_transition_to(target) is True

    @pytest.mark.parametrize(
        ("source", "target"),
        [
            (ProcessingStatus.PENDING, ProcessingStatus.COMPLETED),
            (ProcessingStatus.PROCESSING, ProcessingStatus.PROCESSING),
            (ProcessingStatus.PROCESSING, ProcessingStatus.PENDING),
            (ProcessingStatus.COMPLETED, ProcessingStatus.PROCESSING),
            (ProcessingStatus.FAILED, ProcessingStatus.COMPLETED),
        ],
    )
    def test_rejected_transitions(self, source, target) -> None:
        assert source.can_transition_to(target) is False

    def test_string_values(self) -> None:
        assert ProcessingStatus("completed") is ProcessingStatus.COMPLETED


class TestContentType:
    def test_known_mime_types(self) -> None:
        assert content_type_for("application/pdf") == "pdf"
        assert content_type_for("text/markdown") == "markdown"

    def test_unknown_mime_type(self) -> None:
        assert content_type_for("image/png") == "unknown"


# ======================================================================
# Records and requests
# ======================================================================


class TestDocumentRecord:
    def _record(self, **overrides) -> DocumentRecord:
        fields = {
            "id": "d1",
            "collection_id": "docs",
            "title": "Handbook",
            "filename": "handbook.pdf",
            "file_type": "application/pdf",
            "file_hash": "abc",
        }
        fields.update(overrides)
        return DocumentRecord(**fields)

    def test_defaults(self) -> None:
        record = self._record()
        assert record.processing_status == ProcessingStatus.PENDING
        assert record.content_type == "unknown"
        assert record.raw_content is None
        assert record.error_code is None
        assert record.metadata == {}
        assert record.created_at.tzinfo is not None

    def test_frozen(self) -> None:
        record = self._record()
        with pytest.raises(ValidationError):
            record.title = "Other"

    def test_status_update_via_copy(self) -> None:
        record = self._record()
        failed = record.model_copy(
            update={"processing_status": ProcessingStatus.FAILED, "error_code": "NO_CONTENT"}
        )
        assert failed.processing_status == ProcessingStatus.FAILED
        assert record.processing_status == ProcessingStatus.PENDING

    def test_negative_file_size_rejected(self) -> None:
        with pytest.raises(ValidationError):
            self._record(file_size=-1)


class TestCollectionDescriptor:
    def test_defaults(self) -> None:
        collection = CollectionDescriptor(id="docs", vector_store_id="default", name="docs")
        assert collection.embedding_model == "text-embedding-3-small"
        assert collection.embedding_dimensions == 1536
        assert collection.is_active is True
        assert collection.default_chunking_strategy_id is None

    def test_dimensions_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            CollectionDescriptor(
                id="docs", vector_store_id="default", name="docs", embedding_dimensions=0
            )


class TestRequests:
    def test_ingest_request_defaults(self) -> None:
        request = IngestRequest(
            collection_id="docs", filename="a.txt", mime_type="text/plain", data=b"hello"
        )
        assert request.title is None
        assert request.chunking_strategy_id is None
        assert request.metadata == {}

    def test_search_request_defaults(self) -> None:
        request = SearchRequest(query="leave policy")
        assert request.collection_id is None
        assert request.top_k == 10
        assert request.filter is None

    def test_search_request_rejects_empty_query(self) -> None:
        with pytest.raises(ValidationError):
            SearchRequest(query="")

    def test_search_request_rejects_zero_top_k(self) -> None:
        with pytest.raises(ValidationError):
            SearchRequest(query="q", top_k=0)


# ======================================================================
# Configuration models
# ======================================================================


class TestConfigModels:
    def test_chunking_strategy_to_options(self) -> None:
        config = ChunkingStrategyConfig(
            id="small", type="sentence", chunk_size=400, chunk_overlap=50, separator="\n"
        )
        options = config.to_options()
        assert config.type == ChunkingStrategyType.SENTENCE
        assert (options.chunk_size, options.chunk_overlap) == (400, 50)
        assert options.min_chunk_size == 100
        assert options.max_chunk_size is None
        assert options.separator == "\n"

    def test_unknown_strategy_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ChunkingStrategyConfig(type="bogus")

    def test_cleansing_defaults(self) -> None:
        config = CleansingConfig()
        assert config.remove_headers is True
        assert config.remove_urls is False
        assert config.custom_rules == []
        assert config.llm_model_id is None

    def test_cleansing_rules_from_dicts(self) -> None:
        config = CleansingConfig.model_validate(
            {"custom_rules": [{"pattern": "foo", "flags": "i"}]}
        )
        assert config.custom_rules == [CleansingRule(pattern="foo", replacement="", flags="i")]

    def test_embedding_config_defaults(self) -> None:
        config = EmbeddingConfig()
        assert (config.provider, config.model, config.dimensions) == (
            "openai",
            "text-embedding-3-small",
            None,
        )

    def test_vector_store_config_defaults(self) -> None:
        config = VectorStoreConfig()
        assert config.type == "faiss"
        assert config.settings == {}

    def test_reranking_defaults(self) -> None:
        config = RerankingConfig()
        assert config.type == RerankingType.NONE
        assert config.top_k is None
        assert config.min_score is None

    def test_reranking_top_k_positive(self) -> None:
        with pytest.raises(ValidationError):
            RerankingConfig(top_k=0)
