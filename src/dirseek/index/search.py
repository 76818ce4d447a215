"""Semantic search interface."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

from dirseek.embedding.base import Embedder
from dirseek.index.resolver import ChunkResolver
from dirseek.index.vector_store import open_for_directory

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class SearchResult:
    path: Path
    chunk_index: int
    vector_id: int
    distance: float
    text: str


class Searcher:
    """High-level API to query the vector index of a directory."""

    def __init__(self, embedder: Embedder, *, max_chars: int | None = None) -> None:
        self.embedder = embedder
        self.max_chars = max_chars

    def search(self, query: str, directory: Path, *, top_k: int = 5) -> List[SearchResult]:
        resolver = ChunkResolver(directory, max_chars=self.max_chars)
        store = open_for_directory(directory, self.embedder.dimension, entries=resolver.entries)
        if store.size() == 0:
            return []

        embedding = self.embedder.embed_query(query)
        distances, ids = store.search(embedding, top_k)

        results: List[SearchResult] = []
        for distance, vector_id in zip(distances, ids):
            record = resolver.resolve_record(int(vector_id))
            if record is None:
                LOGGER.debug("Dropping unresolvable vector id %d", vector_id)
                continue
            results.append(
                SearchResult(
                    path=record.document_path,
                    chunk_index=record.index,
                    vector_id=int(vector_id),
                    distance=float(distance),
                    text=record.text,
                )
            )
        return results


def query(text: str, directory: Path, embedder: Embedder, k: int = 5) -> list[str]:
    """Return the texts of the ``k`` chunks nearest to ``text``, closest first."""
    return [result.text for result in Searcher(embedder).search(text, directory, top_k=k)]
