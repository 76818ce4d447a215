"""PDF text extraction.

Uses PyMuPDF (fitz) for fast PDF text extraction.
"""

from __future__ import annotations

import logging
from typing import Iterator

import fitz  # PyMuPDF

from dirseek.errors import ExtractionFailed
from dirseek.utils.text import normalize_whitespace

LOGGER = logging.getLogger(__name__)


def iter_text_parts(data: bytes) -> Iterator[str]:
    """Yield normalised text from an in-memory PDF page by page.

    Pages without text are skipped.
    """
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except Exception as exc:
        raise ExtractionFailed(f"Failed to open PDF: {exc}") from exc

    try:
        for index in range(len(doc)):
            try:
                text = doc[index].get_text() or ""
            except Exception as exc:
                raise ExtractionFailed(f"Failed to read page {index}: {exc}") from exc
            normalized = normalize_whitespace(text.splitlines())
            if normalized:
                yield normalized
    finally:
        doc.close()


def extract_pdf_text(data: bytes) -> str:
    """Return the text of a PDF, one line per non-blank source line."""
    parts = list(iter_text_parts(data))
    LOGGER.debug("Extracted %d text pages from PDF (%d bytes)", len(parts), len(data))
    return "\n".join(parts)
