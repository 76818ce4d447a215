"""Utility helpers for working with files."""

from __future__ import annotations

from pathlib import Path

from dirseek.errors import DocumentSourceError

STATE_DIR_NAME = ".vs"


def state_dir(directory: Path) -> Path:
    """Directory holding the manifest and the saved vector index."""
    return Path(directory) / STATE_DIR_NAME


def list_documents(directory: Path) -> list[Path]:
    """Return the regular files directly inside ``directory``, sorted by name.

    Subdirectories (including the ``.vs`` state directory) are not descended
    into.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise DocumentSourceError(f"Not a directory: {directory}")
    try:
        children = list(directory.iterdir())
    except OSError as exc:
        raise DocumentSourceError(f"Cannot list {directory}: {exc}") from exc
    return sorted((child for child in children if child.is_file()), key=lambda p: p.name)


def is_pdf(path: Path) -> bool:
    return path.suffix.lower() == ".pdf"
