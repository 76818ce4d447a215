"""Append-only manifest mapping indexed files to their chunk counts.

The manifest lives at ``<directory>/.vs/faiss_lookup.txt`` and holds one
``"<path> <chunk_count>"`` record per indexed file, in indexing order. The
vectors of entry *i* occupy the ``chunk_count`` positions of the vector index
that follow the vectors of every earlier entry, so records must only ever be
appended, one per file, right after that file's vectors.

Chunk counts only hold for the chunk budget they were computed with, so that
budget is kept beside the manifest in ``.vs/chunking.json``.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Sequence

from dirseek.errors import IOFailure, ManifestCorrupted
from dirseek.models import ManifestEntry
from dirseek.utils.files import state_dir

LOGGER = logging.getLogger(__name__)

MANIFEST_NAME = "faiss_lookup.txt"
# chunking parameters the recorded chunk counts depend on
SETTINGS_NAME = "chunking.json"


def manifest_path(directory: Path) -> Path:
    return state_dir(directory) / MANIFEST_NAME


def settings_path(directory: Path) -> Path:
    return state_dir(directory) / SETTINGS_NAME


def load_chunk_budget(directory: Path) -> int | None:
    """Chunk budget the directory was indexed with, or None if never recorded."""
    path = settings_path(directory)
    if not path.exists():
        return None
    try:
        settings = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise IOFailure(f"Cannot read {path}: {exc}") from exc
    except ValueError as exc:
        raise ManifestCorrupted(f"Invalid chunking settings in {path}: {exc}") from exc

    max_chars = settings.get("max_chars") if isinstance(settings, dict) else None
    if not isinstance(max_chars, int) or isinstance(max_chars, bool) or max_chars <= 0:
        raise ManifestCorrupted(f"Invalid max_chars in {path}: {max_chars!r}")
    return max_chars


def save_chunk_budget(directory: Path, max_chars: int) -> None:
    path = settings_path(directory)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as handle:
            json.dump({"max_chars": max_chars}, handle)
            handle.flush()
            os.fsync(handle.fileno())
    except OSError as exc:
        raise IOFailure(f"Cannot write {path}: {exc}") from exc
    LOGGER.debug("Recorded chunk budget %d in %s", max_chars, path)


def _parse_line(line: str, lineno: int) -> ManifestEntry:
    path, sep, count = line.rpartition(" ")
    if not sep or not path:
        raise ManifestCorrupted(f"Line {lineno}: expected '<path> <chunk_count>', got {line!r}")
    try:
        chunk_count = int(count)
    except ValueError as exc:
        raise ManifestCorrupted(f"Line {lineno}: invalid chunk count {count!r}") from exc
    if chunk_count < 0:
        raise ManifestCorrupted(f"Line {lineno}: negative chunk count {chunk_count}")
    return ManifestEntry(path=path, chunk_count=chunk_count)


def load(directory: Path) -> list[ManifestEntry]:
    """Read all manifest entries in order. A missing manifest is empty."""
    path = manifest_path(directory)
    if not path.exists():
        return []
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise IOFailure(f"Cannot read manifest {path}: {exc}") from exc

    entries = []
    for lineno, line in enumerate(content.split("\n"), start=1):
        line = line.rstrip("\r")
        if not line.strip():
            continue
        entries.append(_parse_line(line, lineno))
    return entries


def is_recordable(path: str) -> bool:
    """True if ``path`` can be written as a single manifest record."""
    return bool(path) and "\n" not in path and "\r" not in path


def append(directory: Path, entry: ManifestEntry) -> None:
    """Durably append one record, creating ``.vs/`` if needed."""
    if not is_recordable(entry.path):
        raise ManifestCorrupted(f"Path cannot be recorded in the manifest: {entry.path!r}")
    if entry.chunk_count < 0:
        raise ManifestCorrupted(f"Negative chunk count for {entry.path}")

    path = manifest_path(directory)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8", newline="\n") as handle:
            handle.write(entry.to_record())
            handle.flush()
            os.fsync(handle.fileno())
    except OSError as exc:
        raise IOFailure(f"Cannot write manifest {path}: {exc}") from exc
    LOGGER.debug("Manifest += %s (%d chunks)", entry.path, entry.chunk_count)


def is_indexed(directory: Path, path: str | Path) -> bool:
    """Return True if ``path`` (relative to ``directory``) has an entry."""
    name = _relative_name(directory, path)
    return any(entry.path == name for entry in load(directory))


def total_chunks(entries: Sequence[ManifestEntry]) -> int:
    return sum(entry.chunk_count for entry in entries)


def locate(entries: Sequence[ManifestEntry], global_index: int) -> tuple[ManifestEntry, int] | None:
    """Map a global vector position to ``(entry, local_offset)``."""
    if global_index < 0:
        return None
    remaining = global_index
    for entry in entries:
        if remaining < entry.chunk_count:
            return entry, remaining
        remaining -= entry.chunk_count
    return None


def _relative_name(directory: Path, path: str | Path) -> str:
    path = Path(path)
    directory = Path(directory)
    for base in (directory, directory.resolve()):
        try:
            return path.relative_to(base).as_posix()
        except ValueError:
            continue
    return path.as_posix()
