"""Core dirseek data models."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class ManifestEntry:
    """One indexed file and the number of chunks (vectors) it contributed.

    ``path`` is relative to the indexed directory.
    """

    path: str
    chunk_count: int

    def to_record(self) -> str:
        return f"{self.path} {self.chunk_count}\n"


@dataclass(slots=True)
class ChunkRecord:
    """Chunk of document text paired with its owning file and local offset."""

    document_path: Path
    index: int
    text: str
