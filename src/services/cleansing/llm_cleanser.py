"""LLM-assisted cleanser that decorates the rule-based cleanser.

The basic rules always run first.  When the cleansing config names a
model and the text is non-empty, the basic output is sent through a fixed
instruction prompt.  Any failure of the LLM call degrades to the basic
output (logged as ``llm_cleansing_failed``); cleansing is a quality
improvement, never a reason to fail a document.  A missing credential is
the exception: it is raised before any call is attempted.
"""

from __future__ import annotations

import structlog

from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.text_cleanser import ITextCleanser
from src.models.config import CleansingConfig
from src.services.cleansing.basic_cleanser import BasicTextCleanser
from src.utils.concurrency import gather_in_batches
from src.utils.errors import CleansingError

logger = structlog.get_logger(logger_name=__name__)

_SYSTEM_PROMPT = "You clean up text extracted from documents. You never add new information."

DEFAULT_CLEANSING_PROMPT = """\
You are a text cleaning assistant. Your task is to clean and improve the following text \
while preserving its meaning and important information.

Instructions:
1. Fix any formatting issues
2. Correct obvious spelling and grammar errors
3. Remove redundant information
4. Ensure proper paragraph structure
5. Maintain the original meaning and facts
6. Remove any metadata, headers, footers that don't contribute to the content
7. Keep technical terms and domain-specific language intact

Return only the cleaned text without any explanations or metadata.

Text to clean:
{text}"""

_BATCH_SIZE = 5
_TEMPERATURE = 0.3
_MAX_TOKENS = 2000


class LLMTextCleanser(ITextCleanser):
    """Rule-based cleansing followed by an optional LLM rewrite.

    Parameters
    ----------
    llm_provider:
        Completion backend.  Its ``is_available()`` is checked before every
        LLM call; ``False`` raises ``MISSING_API_KEY``.
    basic_cleanser:
        The wrapped rule-based cleanser.
    batch_size:
        Maximum concurrent LLM calls in :meth:`cleanse_chunks`.
    """

    def __init__(
        self,
        llm_provider: ILLMProvider,
        basic_cleanser: BasicTextCleanser | None = None,
        batch_size: int = _BATCH_SIZE,
    ) -> None:
        self._llm = llm_provider
        self._basic = basic_cleanser or BasicTextCleanser()
        self._batch_size = batch_size

    def get_name(self) -> str:
        return "llm"

    async def cleanse(self, text: str, options: CleansingConfig | None = None) -> str:
        opts = options or CleansingConfig()
        cleaned = self._basic.clean(text, opts)
        if not opts.llm_model_id or not cleaned.strip():
            return cleaned

        if not self._llm.is_available():
            raise CleansingError(
                message="LLM API key not configured",
                code="MISSING_API_KEY",
                provider_name=self._llm.get_provider_name(),
            )

        try:
            return await self._llm_cleanse(cleaned, opts)
        except CleansingError as exc:
            logger.warning(
                "llm_cleansing_failed",
                model=opts.llm_model_id,
                code=exc.code,
                error=exc.message,
            )
            return cleaned

    async def cleanse_chunks(
        self, texts: list[str], options: CleansingConfig | None = None
    ) -> list[str]:
        return await gather_in_batches(
            texts, lambda t: self.cleanse(t, options), batch_size=self._batch_size
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _llm_cleanse(self, text: str, options: CleansingConfig) -> str:
        prompt = self.build_prompt(text, options)
        try:
            response = await self._llm.complete(
                system_prompt=_SYSTEM_PROMPT,
                user_prompt=prompt,
                temperature=_TEMPERATURE,
                max_tokens=_MAX_TOKENS,
                model=options.llm_model_id,
            )
        except Exception as exc:
            raise CleansingError(
                message=f"LLM cleansing failed: {exc}",
                code="LLM_CLEANSING_ERROR",
                provider_name=self._llm.get_provider_name(),
            ) from exc

        result = response.strip()
        if not result:
            raise CleansingError(
                message="LLM returned empty cleansed text",
                code="LLM_CLEANSING_ERROR",
                provider_name=self._llm.get_provider_name(),
            )
        return result

    @staticmethod
    def build_prompt(text: str, options: CleansingConfig) -> str:
        """Fill the prompt template, adding URL/email instructions when enabled."""
        prompt = options.cleansing_prompt or DEFAULT_CLEANSING_PROMPT
        extra: list[str] = []
        if options.remove_urls:
            extra.append("Remove all URLs")
        if options.remove_emails:
            extra.append("Remove all email addresses")
        if extra:
            requirements = "\n".join(f"- {line}" for line in extra)
            prompt = prompt.replace(
                "Return only the cleaned text",
                f"Additional requirements:\n{requirements}\n\nReturn only the cleaned text",
                1,
            )
        if "{text}" in prompt:
            return prompt.replace("{text}", text)
        return f"{prompt}\n\n{text}"
