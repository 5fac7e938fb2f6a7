"""Abstract base class for text cleansers.

Cleansers remove extraction noise (headers, footers, page numbers,
mojibake, stray whitespace) from chunk text before embedding.  They are
async because the LLM cleanser calls a remote model; the rule-based
cleanser simply never awaits anything.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.config import CleansingConfig


# Concrete implementations: BasicTextCleanser, LLMTextCleanser
# Located in: src/services/cleansing/
class ITextCleanser(ABC):
    """Contract for text cleansers."""

    @abstractmethod
    async def cleanse(self, text: str, options: CleansingConfig | None = None) -> str:
        """Return a cleansed copy of *text*.

        Parameters
        ----------
        text:
            Raw chunk or document text.
        options:
            Which rules to apply.  ``None`` means the defaults of
            :class:`~src.models.config.CleansingConfig`.
        """

    @abstractmethod
    async def cleanse_chunks(
        self, texts: list[str], options: CleansingConfig | None = None
    ) -> list[str]:
        """Cleanse every text, returning results in input order."""

    @abstractmethod
    def get_name(self) -> str:
        """Return the cleanser identifier, e.g. ``"basic"``."""
