"""Document source: read files and turn them into chunk records."""

from __future__ import annotations

import logging
from pathlib import Path

from dirseek.errors import DocumentReadError
from dirseek.ingestion.pdf_loader import extract_pdf_text
from dirseek.models import ChunkRecord
from dirseek.utils.files import is_pdf
from dirseek.utils.text import DEFAULT_MAX_CHARS, chunk_text

LOGGER = logging.getLogger(__name__)


def extract_text(path: Path) -> str:
    """Return the text content of ``path``.

    PDF files go through the PDF extractor; every other file is decoded as
    UTF-8.
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise DocumentReadError(f"Cannot read {path}: {exc}") from exc

    if is_pdf(path):
        return extract_pdf_text(data)

    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DocumentReadError(f"{path} is not valid UTF-8: {exc}") from exc


def build_chunks(path: Path, *, max_chars: int = DEFAULT_MAX_CHARS) -> list[ChunkRecord]:
    """Extract and chunk a document."""
    text = extract_text(path)
    chunks = chunk_text(text, max_chars=max_chars)
    LOGGER.debug("Split %s into %d chunks", path, len(chunks))
    return [
        ChunkRecord(document_path=Path(path), index=idx, text=chunk)
        for idx, chunk in enumerate(chunks)
    ]
