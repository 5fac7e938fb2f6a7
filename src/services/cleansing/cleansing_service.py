"""Picks the right cleanser for a cleansing config and applies it to chunks."""

from __future__ import annotations

import structlog

from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.text_cleanser import ITextCleanser
from src.models.config import CleansingConfig
from src.models.rag import DocumentChunk
from src.services.cleansing.basic_cleanser import BasicTextCleanser
from src.services.cleansing.llm_cleanser import LLMTextCleanser
from src.utils.errors import CleansingError

logger = structlog.get_logger(logger_name=__name__)


class CleansingService:
    """Facade over the basic and LLM cleansers.

    A config that names an LLM model needs an injected LLM provider; without
    one :meth:`get_cleanser` raises ``MISSING_API_KEY`` rather than quietly
    running the basic cleanser in its place.
    """

    def __init__(self, llm_provider: ILLMProvider | None = None, llm_batch_size: int = 5) -> None:
        self._basic = BasicTextCleanser()
        self._llm_cleanser = (
            LLMTextCleanser(llm_provider, self._basic, batch_size=llm_batch_size)
            if llm_provider is not None
            else None
        )

    def get_cleanser(self, config: CleansingConfig | None) -> ITextCleanser:
        if config is not None and config.llm_model_id:
            if self._llm_cleanser is not None:
                return self._llm_cleanser
            logger.error(
                "llm_cleanser_unavailable",
                config=config.name,
                model=config.llm_model_id,
            )
            raise CleansingError(
                message=f"Cleansing config {config.name!r} asks for model "
                f"{config.llm_model_id!r} but no LLM provider is configured",
                code="MISSING_API_KEY",
            )
        return self._basic

    async def cleanse_text(self, text: str, config: CleansingConfig | None = None) -> str:
        return await self.get_cleanser(config).cleanse(text, config)

    async def cleanse_texts(
        self, texts: list[str], config: CleansingConfig | None = None
    ) -> list[str]:
        return await self.get_cleanser(config).cleanse_chunks(texts, config)

    async def cleanse_document_chunks(
        self,
        chunks: list[DocumentChunk],
        config: CleansingConfig | None = None,
    ) -> list[DocumentChunk]:
        """Return copies of *chunks* with ``cleaned_content`` filled in.

        The raw ``content`` is left untouched so both versions are stored.
        """
        cleaned = await self.cleanse_texts([c.content for c in chunks], config)
        return [
            chunk.model_copy(update={"cleaned_content": text})
            for chunk, text in zip(chunks, cleaned)
        ]
