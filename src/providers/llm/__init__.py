"""LLM provider adapters.

    OpenAILLMProvider -- chat completions against OpenAI or any
                        OpenAI-compatible server (set OPENAI_BASE_URL).

Used only by the LLM cleanser; main.py creates it when an API key exists.
"""

from src.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OpenAILLMProvider"]
