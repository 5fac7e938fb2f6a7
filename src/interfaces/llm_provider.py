"""Abstract base class for LLM service providers.

Defines the contract for a text-completion backend.  The only consumer is
the LLM cleanser (:mod:`src.services.cleansing.llm_cleanser`), which asks
the model to tidy chunk text and falls back to rule-based output on any
failure.
"""

from __future__ import annotations

# abstractmethod marks what a concrete provider must override; instantiating
# a subclass that misses one raises TypeError at startup, not mid-pipeline.
from abc import ABC, abstractmethod


# Concrete implementation: OpenAILLMProvider (src/providers/llm/)
class ILLMProvider(ABC):
    """Contract for text-completion services."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
        model: str | None = None,
    ) -> str:
        """Generate a text completion from the model.

        Parameters
        ----------
        system_prompt:
            The system/instruction message that sets the model's behaviour.
        user_prompt:
            The user-facing prompt containing the actual request or data.
        temperature:
            Sampling temperature (0.0 = deterministic, 1.0 = creative).
        max_tokens:
            Upper bound on the number of tokens in the response.
        model:
            Overrides the provider's default model for this call.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        src.utils.errors.LLMError
            If the API call fails or returns an empty response.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this LLM provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are configured.

        Does not contact the remote service.
        """
