"""Shared fixtures for dirseek tests."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Sequence

import numpy as np
import pytest


class FakeEmbedder:
    """Deterministic embedder: each text maps to a fixed pseudo-random vector."""

    def __init__(self, dimension: int = 8) -> None:
        self.dimension = dimension
        self.document_calls: list[list[str]] = []
        self.query_calls: list[str] = []

    def vector(self, text: str) -> np.ndarray:
        seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest()[:4], "little")
        return np.random.default_rng(seed).random(self.dimension).astype("float32")

    def embed_documents(self, texts: Sequence[str]) -> np.ndarray:
        texts = list(texts)
        self.document_calls.append(texts)
        if not texts:
            return np.empty((0, self.dimension), dtype="float32")
        return np.vstack([self.vector(text) for text in texts])

    def embed_query(self, text: str) -> np.ndarray:
        self.query_calls.append(text)
        return self.vector(text)


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def docs_dir(tmp_path: Path) -> Path:
    """Directory with a.txt (two 800-char lines) and b.txt (one 500-char line)."""
    directory = tmp_path / "docs"
    directory.mkdir()
    (directory / "a.txt").write_text("a" * 800 + "\n" + "b" * 800 + "\n", encoding="utf-8")
    (directory / "b.txt").write_text("c" * 500 + "\n", encoding="utf-8")
    return directory
