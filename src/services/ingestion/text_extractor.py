"""Plain-text and metadata extraction from uploaded document bytes.

One extractor handles every supported MIME type:

    PDF         -- PyMuPDF (``fitz``), pages joined by blank lines
    Word        -- python-docx paragraphs (and table cells)
    PowerPoint  -- the OOXML zip read directly; ``<a:t>`` runs per slide
    HTML        -- BeautifulSoup with ``<script>``/``<style>`` removed
    CSV         -- one line per row, fields joined by spaces
    JSON        -- re-serialised with two-space indentation
    Text / MD   -- UTF-8 decode

Text extraction errors carry a type-specific code (e.g.
``PDF_EXTRACTION_ERROR``) and always propagate.  Metadata extraction is
best effort: it logs and returns whatever it managed to gather.

Legacy binary formats (``application/msword``, ``application/vnd.ms-powerpoint``)
are accepted as MIME types but go through the OOXML readers, so they fail
with the matching extraction error unless the bytes are actually OOXML.
"""

from __future__ import annotations

import csv
import hashlib
import io
import json
import re
import xml.etree.ElementTree as ET
import zipfile
from typing import Any

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog
from bs4 import BeautifulSoup
from docx import Document

from src.utils.errors import DocumentProcessingError

logger = structlog.get_logger(logger_name=__name__)

# MIME type -> file type tag.  The tag picks the extraction routine.
SUPPORTED_MIME_TYPES: dict[str, str] = {
    "application/pdf": "pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": "pptx",
    "application/vnd.ms-powerpoint": "ppt",
    "text/plain": "txt",
    "text/html": "html",
    "text/markdown": "md",
    "text/csv": "csv",
    "application/json": "json",
}

_DRAWINGML_TEXT = "{http://schemas.openxmlformats.org/drawingml/2006/main}t"
_SLIDE_NAME_RE = re.compile(r"^ppt/slides/slide(\d+)\.xml$")


class TextExtractor:
    """Extracts text, metadata and a content hash from raw document bytes."""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @staticmethod
    def is_supported(mime_type: str) -> bool:
        return mime_type in SUPPORTED_MIME_TYPES

    @staticmethod
    def supported_mime_types() -> list[str]:
        return list(SUPPORTED_MIME_TYPES)

    def extract_text(self, data: bytes, mime_type: str) -> str:
        """Return the plain text of *data*.

        Raises
        ------
        DocumentProcessingError
            ``UNSUPPORTED_MIME_TYPE`` for unknown MIME types, or the
            type-specific ``*_EXTRACTION_ERROR`` when parsing fails.
        """
        file_type = self._file_type(mime_type)
        if file_type == "pdf":
            return self._extract_pdf(data)
        if file_type in ("docx", "doc"):
            return self._extract_word(data)
        if file_type in ("pptx", "ppt"):
            return self._extract_powerpoint(data)
        if file_type == "html":
            return self._extract_html(data)
        if file_type == "csv":
            return self._extract_csv(data)
        if file_type == "json":
            return self._extract_json(data)
        return data.decode("utf-8", errors="replace")

    def extract_metadata(self, data: bytes, mime_type: str) -> dict[str, Any]:
        """Return best-effort metadata for *data*.

        Always contains ``word_count`` and ``language``; format-specific keys
        are added when available.  Only an unsupported MIME type raises.
        """
        file_type = self._file_type(mime_type)
        metadata: dict[str, Any] = {"word_count": 0, "language": "unknown"}
        try:
            if file_type == "pdf":
                metadata.update(self._pdf_metadata(data))
            elif file_type in ("docx", "doc"):
                metadata.update(self._word_metadata(data))
            elif file_type in ("pptx", "ppt"):
                slides = self._read_slides(data)
                metadata["slide_count"] = len(slides)
                metadata["word_count"] = sum(len(s.split()) for s in slides)
            else:
                metadata["word_count"] = len(self.extract_text(data, mime_type).split())
        except Exception as exc:  # best effort by contract
            logger.warning(
                "metadata_extraction_failed",
                mime_type=mime_type,
                error=str(exc),
            )
        return metadata

    @staticmethod
    def calculate_file_hash(data: bytes) -> str:
        """Return the SHA-256 hex digest of *data*."""
        return hashlib.sha256(data).hexdigest()

    # ------------------------------------------------------------------
    # Format readers
    # ------------------------------------------------------------------

    @staticmethod
    def _file_type(mime_type: str) -> str:
        file_type = SUPPORTED_MIME_TYPES.get(mime_type)
        if file_type is None:
            raise DocumentProcessingError(
                message=f"Unsupported MIME type: {mime_type}",
                code="UNSUPPORTED_MIME_TYPE",
            )
        return file_type

    @staticmethod
    def _extract_pdf(data: bytes) -> str:
        try:
            with fitz.open(stream=data, filetype="pdf") as doc:
                pages = [page.get_text() for page in doc]
        except Exception as exc:
            raise DocumentProcessingError(
                message=f"Failed to extract text from PDF: {exc}",
                code="PDF_EXTRACTION_ERROR",
                provider_name="pymupdf",
            ) from exc
        return "\n\n".join(p.strip() for p in pages if p.strip())

    @staticmethod
    def _pdf_metadata(data: bytes) -> dict[str, Any]:
        with fitz.open(stream=data, filetype="pdf") as doc:
            info = doc.metadata or {}
            text = " ".join(page.get_text() for page in doc)
            return {
                "title": info.get("title") or None,
                "author": info.get("author") or None,
                "created_at": info.get("creationDate") or None,
                "modified_at": info.get("modDate") or None,
                "page_count": doc.page_count,
                "word_count": len(text.split()),
            }

    @staticmethod
    def _extract_word(data: bytes) -> str:
        try:
            doc = Document(io.BytesIO(data))
        except Exception as exc:
            raise DocumentProcessingError(
                message=f"Failed to extract text from Word document: {exc}",
                code="WORD_EXTRACTION_ERROR",
                provider_name="python-docx",
            ) from exc

        blocks = [para.text for para in doc.paragraphs if para.text.strip()]
        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    blocks.append(" ".join(cells))
        return "\n\n".join(blocks)

    def _word_metadata(self, data: bytes) -> dict[str, Any]:
        doc = Document(io.BytesIO(data))
        props = doc.core_properties
        text = self._extract_word(data)
        return {
            "title": props.title or None,
            "author": props.author or None,
            "word_count": len(text.split()),
        }

    def _extract_powerpoint(self, data: bytes) -> str:
        return "\n\n".join(s for s in self._read_slides(data) if s)

    @staticmethod
    def _read_slides(data: bytes) -> list[str]:
        """Return one text string per slide, in slide order."""
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                numbered: list[tuple[int, str]] = []
                for name in archive.namelist():
                    match = _SLIDE_NAME_RE.match(name)
                    if match:
                        numbered.append((int(match.group(1)), name))
                slides: list[str] = []
                for _, name in sorted(numbered):
                    root = ET.fromstring(archive.read(name))
                    runs = [el.text for el in root.iter(_DRAWINGML_TEXT) if el.text]
                    slides.append(" ".join(r.strip() for r in runs if r.strip()))
        except (zipfile.BadZipFile, ET.ParseError, KeyError) as exc:
            raise DocumentProcessingError(
                message=f"Failed to extract text from PowerPoint: {exc}",
                code="POWERPOINT_EXTRACTION_ERROR",
            ) from exc
        return slides

    @staticmethod
    def _extract_html(data: bytes) -> str:
        try:
            soup = BeautifulSoup(data, "html.parser")
            for tag in soup(["script", "style"]):
                tag.decompose()
            return soup.get_text(separator="\n", strip=True)
        except Exception as exc:
            raise DocumentProcessingError(
                message=f"Failed to extract text from HTML: {exc}",
                code="HTML_EXTRACTION_ERROR",
                provider_name="beautifulsoup",
            ) from exc

    @staticmethod
    def _extract_csv(data: bytes) -> str:
        try:
            reader = csv.reader(io.StringIO(data.decode("utf-8-sig")))
            lines = [" ".join(row) for row in reader if any(field.strip() for field in row)]
        except (csv.Error, UnicodeDecodeError) as exc:
            raise DocumentProcessingError(
                message=f"Failed to extract text from CSV: {exc}",
                code="CSV_EXTRACTION_ERROR",
            ) from exc
        return "\n".join(lines)

    @staticmethod
    def _extract_json(data: bytes) -> str:
        try:
            parsed = json.loads(data.decode("utf-8-sig"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise DocumentProcessingError(
                message=f"Failed to extract text from JSON: {exc}",
                code="JSON_EXTRACTION_ERROR",
            ) from exc
        return json.dumps(parsed, indent=2, ensure_ascii=False)
