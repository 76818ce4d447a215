"""FAISS vector index adapter."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Sequence

import faiss
import numpy as np

from dirseek.errors import DimensionMismatch, IndexConsistencyError, IOFailure
from dirseek.index.manifest import total_chunks
from dirseek.models import ManifestEntry
from dirseek.utils.files import state_dir

LOGGER = logging.getLogger(__name__)

INDEX_NAME = "index.faiss"


def index_path(directory: Path) -> Path:
    return state_dir(directory) / INDEX_NAME


class FaissVectorIndex:
    """Append-only exact nearest-neighbour index over squared L2 distance.

    A vector's id is its 0-based insertion position.
    """

    def __init__(self, dimension: int, *, index: faiss.Index | None = None) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be positive")
        if index is not None and index.d != dimension:
            raise DimensionMismatch(dimension, index.d)
        self.dimension = dimension
        self._index = index if index is not None else faiss.IndexFlatL2(dimension)

    def __len__(self) -> int:
        return self.size()

    def size(self) -> int:
        return int(self._index.ntotal)

    def _as_matrix(self, vectors: np.ndarray | Sequence[Sequence[float]]) -> np.ndarray:
        matrix = np.asarray(vectors, dtype="float32")
        if matrix.ndim == 1:
            matrix = matrix.reshape(1, -1)
        if matrix.ndim != 2:
            raise ValueError(f"Expected a 2-D array of vectors, got {matrix.ndim} dimensions")
        if matrix.shape[0] and matrix.shape[1] != self.dimension:
            raise DimensionMismatch(self.dimension, matrix.shape[1])
        return np.ascontiguousarray(matrix)

    def add(self, vectors: np.ndarray | Sequence[Sequence[float]]) -> None:
        """Append vectors at the end of the index, in order."""
        matrix = self._as_matrix(vectors)
        if matrix.shape[0] == 0:
            return
        self._index.add(matrix)

    def search(self, query: np.ndarray | Sequence[float], k: int) -> tuple[np.ndarray, np.ndarray]:
        """Return ``(distances, ids)`` of the ``k`` nearest vectors, closest first."""
        vector = np.asarray(query, dtype="float32").reshape(-1)
        if vector.shape[0] != self.dimension:
            raise DimensionMismatch(self.dimension, vector.shape[0])

        k = min(k, self.size())
        if k <= 0:
            return np.empty(0, dtype="float32"), np.empty(0, dtype="int64")

        distances, ids = self._index.search(np.ascontiguousarray(vector.reshape(1, -1)), k)
        keep = ids[0] >= 0
        return distances[0][keep], ids[0][keep]

    def truncate(self, size: int) -> int:
        """Drop every vector at position ``size`` or later; return how many went."""
        extra = self.size() - max(size, 0)
        if extra <= 0:
            return 0
        self._index.remove_ids(faiss.IDSelectorRange(max(size, 0), self.size()))
        return extra

    def save(self, path: Path) -> None:
        """Write the index, replacing ``path`` only once the new file is complete."""
        path = Path(path)
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            faiss.write_index(self._index, str(tmp_path))
            os.replace(tmp_path, path)
        except (OSError, RuntimeError) as exc:
            raise IOFailure(f"Failed to save vector index to {path}: {exc}") from exc
        LOGGER.debug("Saved index with %d vectors to %s", self.size(), path)

    @classmethod
    def load(cls, path: Path) -> "FaissVectorIndex":
        path = Path(path)
        try:
            index = faiss.read_index(str(path))
        except (OSError, RuntimeError) as exc:
            raise IOFailure(f"Failed to load vector index from {path}: {exc}") from exc
        LOGGER.debug("Loaded FAISS index with %d vectors from %s", index.ntotal, path)
        return cls(index.d, index=index)


def open_for_directory(
    directory: Path,
    dimension: int,
    *,
    entries: Sequence[ManifestEntry],
    repair: bool = False,
) -> FaissVectorIndex:
    """Load the saved index of ``directory`` and check it against the manifest.

    A directory that has never been indexed gets a fresh, empty index. Vectors
    past the manifest's last chunk were saved by a run that stopped before
    recording their file; they are dropped, and with ``repair`` the trimmed
    index is written back. Fewer vectors than manifest chunks cannot be
    recovered from and raise ``IndexConsistencyError``.
    """
    path = index_path(directory)
    expected = total_chunks(entries)

    if not path.exists():
        if expected:
            raise IndexConsistencyError(
                f"Manifest lists {expected} chunks but no vector index exists at {path}"
            )
        return FaissVectorIndex(dimension)

    store = FaissVectorIndex.load(path)
    if store.dimension != dimension:
        raise DimensionMismatch(dimension, store.dimension)
    if store.size() > expected:
        dropped = store.truncate(expected)
        LOGGER.warning(
            "Dropped %d vectors of %s that have no manifest entry", dropped, path
        )
        if repair:
            store.save(path)
    if store.size() != expected:
        raise IndexConsistencyError(
            f"Vector index at {path} holds {store.size()} vectors "
            f"but the manifest lists {expected} chunks"
        )
    return store
