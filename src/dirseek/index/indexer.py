"""Incremental document indexing pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from dirseek.embedding.base import Embedder
from dirseek.errors import (
    ConfigurationError,
    DocumentReadError,
    EmbeddingRequestFailed,
    ExtractionFailed,
)
from dirseek.index import manifest
from dirseek.index.vector_store import FaissVectorIndex, index_path, open_for_directory
from dirseek.ingestion.documents import build_chunks
from dirseek.models import ManifestEntry
from dirseek.utils.files import list_documents
from dirseek.utils.text import DEFAULT_MAX_CHARS

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class IndexStats:
    inserted: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0
    chunks_added: int = 0
    processed_files: list[Path] = field(default_factory=list)
    failures: dict[Path, str] = field(default_factory=dict)

    def increment(self, status: str, path: Path) -> None:
        if status == "inserted":
            self.inserted += 1
        elif status == "unchanged":
            self.unchanged += 1
        elif status == "skipped":
            self.skipped += 1
        else:
            self.failed += 1
        self.processed_files.append(path)


def pending_documents(directory: Path) -> list[Path]:
    """Files in ``directory`` that have no manifest entry yet."""
    indexed = {entry.path for entry in manifest.load(directory)}
    return [path for path in list_documents(directory) if path.name not in indexed]


class Indexer:
    """Brings the vector index of a directory up to date with its files.

    Only files without a manifest entry are embedded. Files are handled one at
    a time: a file's vectors are appended and saved before its manifest entry
    is written, and the next file is not started before that.

    ``max_chars`` left as None means the budget the directory was first
    indexed with, or the default for a new index. Once a directory has
    entries its budget is fixed; asking for another one is an error.
    Concurrent runs on one directory must be serialized by the caller.
    """

    def __init__(
        self,
        embedder: Embedder,
        *,
        max_chars: int | None = None,
        fail_fast: bool = False,
    ) -> None:
        self.embedder = embedder
        self.max_chars = max_chars
        self.fail_fast = fail_fast

    def chunk_budget(self, directory: Path, entries: list[ManifestEntry]) -> int:
        """Budget to chunk new files of ``directory`` with."""
        stored = manifest.load_chunk_budget(directory)
        if stored is not None and entries:
            if self.max_chars is not None and self.max_chars != stored:
                raise ConfigurationError(
                    f"{directory} was indexed with max_chars={stored}; "
                    f"cannot add documents with max_chars={self.max_chars}"
                )
            return stored
        return self.max_chars or stored or DEFAULT_MAX_CHARS

    def index(self, directory: Path) -> IndexStats:
        """Index every file of ``directory`` not yet in its manifest."""
        directory = Path(directory)
        entries = manifest.load(directory)
        max_chars = self.chunk_budget(directory, entries)
        store = open_for_directory(
            directory, self.embedder.dimension, entries=entries, repair=True
        )
        indexed = {entry.path for entry in entries}

        stats = IndexStats()
        documents = list_documents(directory)
        if not documents:
            LOGGER.warning("No documents found in %s", directory)
            return stats

        if any(path.name not in indexed for path in documents):
            if manifest.load_chunk_budget(directory) != max_chars:
                manifest.save_chunk_budget(directory, max_chars)

        for path in documents:
            if path.name in indexed:
                stats.increment("unchanged", path)
                continue
            try:
                status = self._index_single(directory, path, store, stats, max_chars)
            except (DocumentReadError, ExtractionFailed) as exc:
                if self.fail_fast:
                    raise
                LOGGER.warning("Failed to process %s: %s", path, exc)
                stats.failures[path] = str(exc)
                status = "failed"
            stats.increment(status, path)
            if status == "inserted":
                indexed.add(path.name)

        LOGGER.info(
            "Indexed %d new files (%d chunks), %d unchanged, %d skipped, %d failed",
            stats.inserted,
            stats.chunks_added,
            stats.unchanged,
            stats.skipped,
            stats.failed,
        )
        return stats

    def _index_single(
        self,
        directory: Path,
        path: Path,
        store: FaissVectorIndex,
        stats: IndexStats,
        max_chars: int,
    ) -> str:
        if not manifest.is_recordable(path.name):
            raise DocumentReadError(f"File name cannot be stored in the manifest: {path.name!r}")

        chunks = build_chunks(path, max_chars=max_chars)
        if not chunks:
            LOGGER.warning("No text extracted from %s", path)
            return "skipped"

        embeddings = self.embedder.embed_documents([c.text for c in chunks])
        if len(embeddings) != len(chunks):
            raise EmbeddingRequestFailed(
                None, f"Got {len(embeddings)} embeddings for {len(chunks)} chunks of {path}"
            )

        store.add(embeddings)
        store.save(index_path(directory))
        manifest.append(directory, ManifestEntry(path=path.name, chunk_count=len(chunks)))

        stats.chunks_added += len(chunks)
        LOGGER.info("Indexed %s (%d chunks)", path, len(chunks))
        return "inserted"
