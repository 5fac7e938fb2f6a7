"""Rule-based text cleanser.

Applies a fixed sequence of independently toggled steps::

    fix encoding -> headers -> footers -> page numbers -> URLs -> emails
                 -> custom rules -> whitespace

Header and footer removal are line heuristics: lines are scanned from the
top (headers) or bottom (footers) and scanning stops at the first line
longer than 50 characters or the first line that is neither blank, a page
number, nor a header/footer.  There is no fixed line window, so a second
pass finds the same first content line and removes nothing more.
"""

from __future__ import annotations

import re

import structlog

from src.interfaces.text_cleanser import ITextCleanser
from src.models.config import CleansingConfig, CleansingRule

logger = structlog.get_logger(logger_name=__name__)

# Longest sequences first: several share the "â€" prefix.
_MOJIBAKE: tuple[tuple[str, str], ...] = (
    ("â€™", "'"),
    ("â€˜", "'"),
    ("â€œ", '"'),
    ("â€\x9d", '"'),
    ("â€”", "—"),
    ("â€“", "–"),
    ("Ã©", "é"),
    ("Ã¨", "è"),
    ("Ã¢", "â"),
    ("Ã§", "ç"),
    ("Ã\xa0", "à"),
    ("Ã ", "à"),
)

# Control characters except tab, line feed and carriage return.
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")

_MAX_MARKER_LINE = 50

_HEADER_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^(page|document|chapter|section)\s*\d+", re.IGNORECASE),
    re.compile(r"^(confidential|proprietary|draft)", re.IGNORECASE),
    re.compile(r"^\d{1,2}/\d{1,2}/\d{2,4}"),
)
_ALL_CAPS_RE = re.compile(r"^[A-Z\s]+$")

_FOOTER_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^(copyright|©|\(c\))", re.IGNORECASE),
    re.compile(r"^(page|p\.)\s*\d+", re.IGNORECASE),
    re.compile(r"confidential|proprietary", re.IGNORECASE),
    re.compile(r"all rights reserved", re.IGNORECASE),
)

_PAGE_NUMBER_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^[ \t]*\d+[ \t]*$", re.MULTILINE),
    re.compile(r"^Page[ \t]+\d+[ \t]*$", re.MULTILINE | re.IGNORECASE),
    re.compile(r"^[ \t]*\d+[ \t]*/[ \t]*\d+[ \t]*$", re.MULTILINE),
    re.compile(r"^[ \t]*-[ \t]*\d+[ \t]*-[ \t]*$", re.MULTILINE),
)

_URL_RE = re.compile(r"https?://\S+")
_EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

_REGEX_FLAGS: dict[str, re.RegexFlag] = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}


def _is_header_line(line: str) -> bool:
    if any(p.search(line) for p in _HEADER_PATTERNS):
        return True
    return len(line) < _MAX_MARKER_LINE and bool(_ALL_CAPS_RE.match(line))


def _is_footer_line(line: str) -> bool:
    return any(p.search(line) for p in _FOOTER_PATTERNS)


def _is_page_number_line(line: str) -> bool:
    return any(p.match(line) for p in _PAGE_NUMBER_PATTERNS)


class BasicTextCleanser(ITextCleanser):
    """Deterministic, rule-based cleanser.  No I/O."""

    def get_name(self) -> str:
        return "basic"

    async def cleanse(self, text: str, options: CleansingConfig | None = None) -> str:
        return self.clean(text, options)

    async def cleanse_chunks(
        self, texts: list[str], options: CleansingConfig | None = None
    ) -> list[str]:
        return [self.clean(t, options) for t in texts]

    def clean(self, text: str, options: CleansingConfig | None = None) -> str:
        """Synchronous form of :meth:`cleanse`."""
        opts = options or CleansingConfig()
        result = text
        if opts.fix_encoding:
            result = self.fix_encoding(result)
        if opts.remove_headers:
            result = self.remove_headers(result)
        if opts.remove_footers:
            result = self.remove_footers(result)
        if opts.remove_page_numbers:
            result = self.remove_page_numbers(result)
        if opts.remove_urls:
            result = _URL_RE.sub("", result)
        if opts.remove_emails:
            result = _EMAIL_RE.sub("", result)
        if opts.custom_rules:
            result = self.apply_custom_rules(result, opts.custom_rules)
        if opts.normalize_whitespace:
            result = self.normalize_whitespace(result)
        return result

    # ------------------------------------------------------------------
    # Individual steps
    # ------------------------------------------------------------------

    @staticmethod
    def fix_encoding(text: str) -> str:
        """Repair common UTF-8-read-as-CP1252 sequences and strip control characters."""
        for broken, fixed in _MOJIBAKE:
            text = text.replace(broken, fixed)
        return _CONTROL_CHARS_RE.sub("", text)

    @staticmethod
    def remove_headers(text: str) -> str:
        lines = text.split("\n")
        removed: set[int] = set()
        for index, raw in enumerate(lines):
            line = raw.strip()
            if not line or _is_page_number_line(line):
                continue
            if len(line) > _MAX_MARKER_LINE or not _is_header_line(line):
                break
            removed.add(index)
        if not removed:
            return text
        return "\n".join(l for i, l in enumerate(lines) if i not in removed)

    @staticmethod
    def remove_footers(text: str) -> str:
        lines = text.split("\n")
        removed: set[int] = set()
        for index in range(len(lines) - 1, -1, -1):
            line = lines[index].strip()
            if not line or _is_page_number_line(line):
                continue
            if len(line) > _MAX_MARKER_LINE or not _is_footer_line(line):
                break
            removed.add(index)
        if not removed:
            return text
        return "\n".join(l for i, l in enumerate(lines) if i not in removed)

    @staticmethod
    def remove_page_numbers(text: str) -> str:
        for pattern in _PAGE_NUMBER_PATTERNS:
            text = pattern.sub("", text)
        return text

    @staticmethod
    def apply_custom_rules(text: str, rules: list[CleansingRule]) -> str:
        """Apply regex substitutions in order; invalid patterns are logged and skipped."""
        for rule in rules:
            flags = 0
            for letter in rule.flags:
                flags |= _REGEX_FLAGS.get(letter, 0)
            try:
                pattern = re.compile(rule.pattern, flags)
            except re.error as exc:
                logger.warning("invalid_cleansing_rule", pattern=rule.pattern, error=str(exc))
                continue
            text = pattern.sub(rule.replacement, text)
        return text

    @staticmethod
    def normalize_whitespace(text: str) -> str:
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        text = text.replace("\t", "    ")
        text = re.sub(r" +", " ", text)
        text = re.sub(r"\n{3,}", "\n\n", text)
        return text.strip()
