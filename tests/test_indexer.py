"""Tests for Indexer."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import numpy as np
import pytest

from dirseek.errors import (
    ConfigurationError,
    DocumentReadError,
    EmbeddingRequestFailed,
    ExtractionFailed,
    IndexConsistencyError,
)
from dirseek.index import manifest
from dirseek.index.indexer import Indexer, IndexStats, pending_documents
from dirseek.index.vector_store import FaissVectorIndex, index_path
from dirseek.models import ManifestEntry


def _vector_count(directory: Path) -> int:
    return FaissVectorIndex.load(index_path(directory)).size()


class TestIndexStats:
    """Test IndexStats tracking."""

    def test_init_defaults(self):
        stats = IndexStats()
        assert stats.inserted == 0
        assert stats.unchanged == 0
        assert stats.skipped == 0
        assert stats.failed == 0
        assert stats.chunks_added == 0
        assert stats.processed_files == []
        assert stats.failures == {}

    def test_increment_statuses(self):
        stats = IndexStats()

        stats.increment("inserted", Path("/tmp/a.txt"))
        stats.increment("unchanged", Path("/tmp/b.txt"))
        stats.increment("skipped", Path("/tmp/c.txt"))
        stats.increment("failed", Path("/tmp/d.txt"))

        assert (stats.inserted, stats.unchanged, stats.skipped, stats.failed) == (1, 1, 1, 1)
        assert len(stats.processed_files) == 4

    def test_increment_unknown_counts_as_failed(self):
        stats = IndexStats()
        stats.increment("unknown_status", Path("/tmp/x.txt"))
        assert stats.failed == 1


class TestIndexer:
    """Test the incremental indexing pipeline."""

    @pytest.fixture
    def indexer(self, fake_embedder):
        return Indexer(fake_embedder)

    def test_init_defaults(self, fake_embedder):
        indexer = Indexer(fake_embedder)

        assert indexer.embedder is fake_embedder
        assert indexer.max_chars is None
        assert indexer.fail_fast is False

    def test_indexes_directory(self, indexer, docs_dir):
        """a.txt (2 chunks) then b.txt (1 chunk)."""
        stats = indexer.index(docs_dir)

        assert stats.inserted == 2
        assert stats.chunks_added == 3
        assert manifest.load(docs_dir) == [ManifestEntry("a.txt", 2), ManifestEntry("b.txt", 1)]
        assert _vector_count(docs_dir) == 3

    def test_one_embedding_call_per_file(self, indexer, fake_embedder, docs_dir):
        indexer.index(docs_dir)

        assert fake_embedder.document_calls == [["a" * 800, "b" * 800], ["c" * 500]]

    def test_vectors_follow_manifest_order(self, indexer, fake_embedder, docs_dir):
        """Vector i is the embedding of global chunk i."""
        indexer.index(docs_dir)
        store = FaissVectorIndex.load(index_path(docs_dir))

        for position, text in enumerate(["a" * 800, "b" * 800, "c" * 500]):
            distances, ids = store.search(fake_embedder.vector(text), 1)
            assert ids.tolist() == [position]
            assert distances[0] == pytest.approx(0.0, abs=1e-5)

    def test_second_run_is_idempotent(self, indexer, fake_embedder, docs_dir):
        """Re-running over an unchanged directory embeds nothing."""
        indexer.index(docs_dir)
        calls = len(fake_embedder.document_calls)

        stats = indexer.index(docs_dir)

        assert len(fake_embedder.document_calls) == calls
        assert stats.inserted == 0
        assert stats.unchanged == 2
        assert len(manifest.load(docs_dir)) == 2
        assert _vector_count(docs_dir) == 3

    def test_new_file_is_appended(self, indexer, fake_embedder, docs_dir):
        """Adding c.txt appends one entry and leaves earlier vectors alone."""
        indexer.index(docs_dir)
        (docs_dir / "c.txt").write_text("new content\n", encoding="utf-8")

        stats = indexer.index(docs_dir)

        assert stats.inserted == 1
        assert fake_embedder.document_calls[-1] == ["new content"]
        assert manifest.load(docs_dir) == [
            ManifestEntry("a.txt", 2),
            ManifestEntry("b.txt", 1),
            ManifestEntry("c.txt", 1),
        ]
        store = FaissVectorIndex.load(index_path(docs_dir))
        assert store.size() == 4
        _, ids = store.search(fake_embedder.vector("b" * 800), 1)
        assert ids.tolist() == [1]

    def test_manifest_total_matches_vectors(self, indexer, docs_dir):
        for n in range(3):
            (docs_dir / f"extra{n}.txt").write_text("\n".join("l" * 300 for _ in range(n + 2)))
        indexer.index(docs_dir)

        assert manifest.total_chunks(manifest.load(docs_dir)) == _vector_count(docs_dir)

    def test_empty_document_is_skipped(self, indexer, fake_embedder, tmp_path):
        """Files without text get no entry and no embedding call."""
        (tmp_path / "empty.txt").write_text("")

        stats = indexer.index(tmp_path)

        assert stats.skipped == 1
        assert fake_embedder.document_calls == []
        assert manifest.load(tmp_path) == []

    def test_empty_directory(self, indexer, tmp_path):
        stats = indexer.index(tmp_path)

        assert stats.processed_files == []
        assert manifest.load(tmp_path) == []

    def test_unreadable_file_is_skipped_with_warning(self, indexer, docs_dir):
        """Decoding errors are counted and the run continues."""
        (docs_dir / "0-binary.dat").write_bytes(b"\xff\xfe\xfd")

        stats = indexer.index(docs_dir)

        assert stats.failed == 1
        assert stats.inserted == 2
        assert docs_dir / "0-binary.dat" in stats.failures
        assert [e.path for e in manifest.load(docs_dir)] == ["a.txt", "b.txt"]
        assert _vector_count(docs_dir) == 3

    @patch("dirseek.index.indexer.build_chunks")
    def test_extraction_failure_is_skipped(self, mock_build_chunks, indexer, docs_dir):
        mock_build_chunks.side_effect = ExtractionFailed("broken pdf")

        stats = indexer.index(docs_dir)

        assert stats.failed == 2
        assert manifest.load(docs_dir) == []

    def test_fail_fast(self, fake_embedder, docs_dir):
        (docs_dir / "0-binary.dat").write_bytes(b"\xff\xfe\xfd")

        with pytest.raises(DocumentReadError):
            Indexer(fake_embedder, fail_fast=True).index(docs_dir)

    def test_embedding_failure_aborts_and_keeps_progress(self, fake_embedder, docs_dir):
        """Files finished before the failure stay indexed; the rest stay pending."""
        original = fake_embedder.embed_documents

        def flaky(texts):
            if texts == ["c" * 500]:
                raise EmbeddingRequestFailed(500, "boom")
            return original(texts)

        fake_embedder.embed_documents = flaky

        with pytest.raises(EmbeddingRequestFailed):
            Indexer(fake_embedder).index(docs_dir)

        assert manifest.load(docs_dir) == [ManifestEntry("a.txt", 2)]
        assert _vector_count(docs_dir) == 2
        assert [p.name for p in pending_documents(docs_dir)] == ["b.txt"]

    def test_wrong_embedding_count(self, fake_embedder, docs_dir):
        fake_embedder.embed_documents = lambda texts: np.zeros((1, fake_embedder.dimension), "float32")

        with pytest.raises(EmbeddingRequestFailed):
            Indexer(fake_embedder).index(docs_dir)
        assert manifest.load(docs_dir) == []

    def test_inconsistent_state_fails_before_embedding(self, indexer, fake_embedder, docs_dir):
        manifest.append(docs_dir, ManifestEntry("a.txt", 2))

        with pytest.raises(IndexConsistencyError):
            indexer.index(docs_dir)
        assert fake_embedder.document_calls == []


class TestPendingDocuments:
    """Test pending_documents helper."""

    def test_all_pending_before_indexing(self, docs_dir):
        assert [p.name for p in pending_documents(docs_dir)] == ["a.txt", "b.txt"]

    def test_none_pending_after_indexing(self, fake_embedder, docs_dir):
        Indexer(fake_embedder).index(docs_dir)
        assert pending_documents(docs_dir) == []


class TestChunkBudget:
    """Test that a directory keeps the chunk budget it was indexed with."""

    @pytest.fixture
    def lines_dir(self, tmp_path: Path) -> Path:
        (tmp_path / "a.txt").write_text("\n".join(c * 300 for c in "wxyz") + "\n")
        return tmp_path

    def test_budget_is_recorded(self, fake_embedder, lines_dir):
        Indexer(fake_embedder, max_chars=300).index(lines_dir)

        assert manifest.load_chunk_budget(lines_dir) == 300
        assert manifest.load(lines_dir) == [ManifestEntry("a.txt", 4)]

    def test_default_budget_is_recorded(self, fake_embedder, lines_dir):
        Indexer(fake_embedder).index(lines_dir)

        assert manifest.load_chunk_budget(lines_dir) == 1000
        assert manifest.load(lines_dir) == [ManifestEntry("a.txt", 2)]

    def test_later_runs_reuse_recorded_budget(self, fake_embedder, lines_dir):
        Indexer(fake_embedder, max_chars=300).index(lines_dir)
        (lines_dir / "b.txt").write_text("\n".join(c * 300 for c in "uv") + "\n")

        Indexer(fake_embedder).index(lines_dir)

        assert manifest.load(lines_dir)[-1] == ManifestEntry("b.txt", 2)

    def test_conflicting_budget_is_rejected(self, fake_embedder, lines_dir):
        Indexer(fake_embedder, max_chars=300).index(lines_dir)
        (lines_dir / "b.txt").write_text("more\n")
        calls = len(fake_embedder.document_calls)

        with pytest.raises(ConfigurationError):
            Indexer(fake_embedder, max_chars=1000).index(lines_dir)
        assert len(fake_embedder.document_calls) == calls
        assert manifest.load_chunk_budget(lines_dir) == 300

    def test_same_budget_is_accepted(self, fake_embedder, lines_dir):
        Indexer(fake_embedder, max_chars=300).index(lines_dir)

        stats = Indexer(fake_embedder, max_chars=300).index(lines_dir)

        assert stats.unchanged == 1

    def test_budget_not_fixed_without_entries(self, fake_embedder, tmp_path):
        """A run that recorded nothing does not pin the budget."""
        (tmp_path / "empty.txt").write_text("")
        Indexer(fake_embedder, max_chars=300).index(tmp_path)
        (tmp_path / "a.txt").write_text("a" * 400 + "\n" + "b" * 400 + "\n")

        Indexer(fake_embedder, max_chars=1000).index(tmp_path)

        assert manifest.load_chunk_budget(tmp_path) == 1000
        assert manifest.load(tmp_path) == [ManifestEntry("a.txt", 1)]


class TestRecovery:
    """Test that the manifest and the vectors stay aligned across bad runs."""

    def test_unrecordable_file_name_is_skipped(self, fake_embedder, docs_dir):
        """A name with a newline is reported as failed before anything is embedded."""
        (docs_dir / "a\nb.txt").write_text("hidden\n")

        stats = Indexer(fake_embedder).index(docs_dir)

        assert stats.failed == 1
        assert docs_dir / "a\nb.txt" in stats.failures
        assert ["hidden"] not in fake_embedder.document_calls
        assert manifest.total_chunks(manifest.load(docs_dir)) == _vector_count(docs_dir) == 3

    def test_unrecordable_file_name_does_not_block_later_runs(self, fake_embedder, docs_dir):
        (docs_dir / "a\nb.txt").write_text("hidden\n")
        Indexer(fake_embedder).index(docs_dir)
        (docs_dir / "z.txt").write_text("later\n")

        stats = Indexer(fake_embedder).index(docs_dir)

        assert stats.inserted == 1
        assert manifest.load(docs_dir)[-1] == ManifestEntry("z.txt", 1)
        assert _vector_count(docs_dir) == 4

    def test_unrecordable_file_name_with_fail_fast(self, fake_embedder, docs_dir):
        (docs_dir / "0\nfirst.txt").write_text("hidden\n")

        with pytest.raises(DocumentReadError):
            Indexer(fake_embedder, fail_fast=True).index(docs_dir)
        assert not index_path(docs_dir).exists()

    def test_resumes_after_interrupted_append(self, fake_embedder, docs_dir):
        """Vectors saved without a manifest record are dropped on the next run."""
        Indexer(fake_embedder).index(docs_dir)
        store = FaissVectorIndex.load(index_path(docs_dir))
        store.add(fake_embedder.vector("orphan")[np.newaxis, :])
        store.save(index_path(docs_dir))
        (docs_dir / "c.txt").write_text("new content\n")

        stats = Indexer(fake_embedder).index(docs_dir)

        assert stats.inserted == 1
        assert _vector_count(docs_dir) == 4
        store = FaissVectorIndex.load(index_path(docs_dir))
        _, ids = store.search(fake_embedder.vector("new content"), 1)
        assert ids.tolist() == [3]
