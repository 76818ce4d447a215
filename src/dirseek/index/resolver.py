"""Map global vector positions back to chunk text."""

from __future__ import annotations

import logging
from pathlib import Path

from dirseek.errors import DocumentReadError, ExtractionFailed
from dirseek.index import manifest
from dirseek.ingestion.documents import build_chunks
from dirseek.models import ChunkRecord, ManifestEntry
from dirseek.utils.text import DEFAULT_MAX_CHARS

LOGGER = logging.getLogger(__name__)


class ChunkResolver:
    """Resolves vector ids of one directory by re-chunking the owning file.

    Chunk text is not stored anywhere; it is rebuilt from the source file, so
    files are assumed to be unchanged since they were indexed. The manifest is
    read once per resolver and each file is chunked at most once.

    Files are re-chunked with the budget recorded when the directory was
    indexed; ``max_chars`` only applies to indexes that never recorded one.
    """

    def __init__(self, directory: Path, *, max_chars: int | None = None) -> None:
        self.directory = Path(directory)
        self.entries = manifest.load(self.directory)
        self.max_chars = (
            manifest.load_chunk_budget(self.directory) or max_chars or DEFAULT_MAX_CHARS
        )
        self._chunks: dict[str, list[ChunkRecord] | None] = {}

    @property
    def total_chunks(self) -> int:
        return manifest.total_chunks(self.entries)

    def _chunks_for(self, entry: ManifestEntry) -> list[ChunkRecord] | None:
        if entry.path not in self._chunks:
            path = self.directory / entry.path
            try:
                self._chunks[entry.path] = build_chunks(path, max_chars=self.max_chars)
            except (DocumentReadError, ExtractionFailed) as exc:
                LOGGER.warning("Cannot re-read indexed file %s: %s", path, exc)
                self._chunks[entry.path] = None
        return self._chunks[entry.path]

    def resolve_record(self, global_index: int) -> ChunkRecord | None:
        located = manifest.locate(self.entries, global_index)
        if located is None:
            return None
        entry, offset = located

        chunks = self._chunks_for(entry)
        if chunks is None:
            return None
        if len(chunks) != entry.chunk_count:
            LOGGER.warning(
                "%s now has %d chunks but %d were indexed; results may be stale",
                entry.path,
                len(chunks),
                entry.chunk_count,
            )
        if offset >= len(chunks):
            return None
        return chunks[offset]

    def resolve(self, global_index: int) -> str | None:
        record = self.resolve_record(global_index)
        return record.text if record is not None else None


def resolve(directory: Path, global_index: int, *, max_chars: int | None = None) -> str | None:
    """Return the text of chunk ``global_index`` of ``directory``, if it exists."""
    return ChunkResolver(directory, max_chars=max_chars).resolve(global_index)
