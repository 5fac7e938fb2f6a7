"""OpenAI-compatible LLM provider adapter.

Wraps the ``openai`` async client to implement :class:`ILLMProvider`.
When ``openai_base_url`` is configured (vLLM, TogetherAI, any
OpenAI-compatible server) the client points at that URL instead of the
default OpenAI endpoint.
"""

from __future__ import annotations

# The official OpenAI Python SDK (async client). Its chat completions
# endpoint is what every OpenAI-compatible server also exposes.
import openai
# structlog provides structured logging (see src/utils/logging.py).
# Completion log entries carry the model name and token usage.
import structlog

# Settings loads the API key, base URL and default model from the environment.
from src.config.settings import Settings
# ILLMProvider is the abstract interface this class implements.
from src.interfaces.llm_provider import ILLMProvider
# LLMError wraps SDK exceptions so callers only ever catch one type.
from src.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)


class OpenAILLMProvider(ILLMProvider):
    """Chat-completion provider backed by an OpenAI-compatible API.

    Uses ``settings.llm_model`` unless a call passes ``model`` explicitly
    (cleansing configs name their own model).
    """

    def __init__(self, settings: Settings) -> None:
        # API key loaded from OPENAI_API_KEY via Pydantic Settings.  May be
        # empty; is_available() reports that instead of failing here.
        self._api_key = settings.openai_api_key

        # The SDK refuses to build a client without some key, so a
        # placeholder is passed when none is configured.  base_url is added
        # only for OpenAI-compatible servers.
        client_kwargs: dict = {
            "api_key": self._api_key or "missing",
            "timeout": openai.Timeout(60.0, connect=5.0),
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._model = settings.llm_model
        self._provider_label = "openai-compatible" if settings.openai_base_url else "openai"

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
        model: str | None = None,
    ) -> str:
        model_name = model or self._model
        try:
            # Chat completions with a system message (the instructions) and
            # a user message (the text to work on).
            response = await self._client.chat.completions.create(
                model=model_name,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APITimeoutError as exc:
            raise LLMError(
                message=f"{self._provider_label} request timed out",
                code="TIMEOUT",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise LLMError(
                message=f"{self._provider_label} API error: {exc}",
                code="API_ERROR",
                provider_name=self.get_provider_name(),
            ) from exc

        # choices[0] is the only completion requested; content can be None
        # when the model stops early or returns a refusal.
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMError(
                message=f"{self._provider_label} returned empty response",
                code="EMPTY_RESPONSE",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "openai_completion",
            model=model_name,
            provider=self._provider_label,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)
