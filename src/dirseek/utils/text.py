"""Text helpers including line-aligned chunking."""

from __future__ import annotations

from typing import Iterable, Iterator

DEFAULT_MAX_CHARS = 1000


def iter_lines(text: str) -> Iterator[str]:
    """Yield the lines of ``text``, split on ``\\n`` with a ``\\r`` before it dropped.

    Unlike ``str.splitlines`` this keeps form feeds and other Unicode line
    separators inside the line, so chunk boundaries only depend on newlines.
    """
    parts = text.split("\n")
    last = parts.pop()
    for part in parts:
        yield part[:-1] if part.endswith("\r") else part
    if last:
        yield last


def chunk_text(text: str, *, max_chars: int = DEFAULT_MAX_CHARS) -> list[str]:
    """Split text into chunks made of whole lines.

    Lines are accumulated until adding the next one would push the chunk past
    ``max_chars``. Line terminators are dropped, so joining the chunks gives
    back the concatenation of the lines. A line that is longer than
    ``max_chars`` on its own is never divided and becomes an oversized chunk.
    """
    chunks: list[str] = []
    buffer: list[str] = []
    length = 0

    for line in iter_lines(text):
        if length and length + len(line) > max_chars:
            chunks.append("".join(buffer))
            buffer = []
            length = 0
        buffer.append(line)
        length += len(line)

    if length:
        chunks.append("".join(buffer))
    return chunks


def normalize_whitespace(lines: Iterable[str]) -> str:
    """Collapse whitespace and join lines."""
    return "\n".join(line.strip() for line in lines if line.strip())
