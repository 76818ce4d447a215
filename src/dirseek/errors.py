"""Exceptions raised by dirseek."""

from __future__ import annotations


class DirseekError(Exception):
    """Base exception for dirseek operations."""


class ConfigurationError(DirseekError):
    """Missing credentials or settings that conflict with the index."""


class IOFailure(DirseekError):
    """A file could not be listed, read or written."""


class DocumentSourceError(IOFailure):
    """The document directory cannot be enumerated."""


class DocumentReadError(IOFailure):
    """A single document could not be read or decoded."""


class ExtractionFailed(DirseekError):
    """Text extraction from a binary document (PDF) failed."""


class EmbeddingRequestFailed(DirseekError):
    """The embedding service returned an error or an unusable payload."""

    def __init__(self, status: int | None, body: str) -> None:
        self.status = status
        self.body = body
        super().__init__(f"Embedding request failed (status={status}): {body}")

    @property
    def retryable(self) -> bool:
        """Transport errors, throttling and server errors are worth retrying."""
        return self.status is None or self.status == 429 or self.status >= 500


class DimensionMismatch(DirseekError, ValueError):
    """A vector does not match the index dimensionality."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected vectors of dimension {expected}, got {actual}")


class ManifestCorrupted(DirseekError):
    """The manifest file contains a record that cannot be parsed or written."""


class IndexConsistencyError(DirseekError):
    """The saved vector index and the manifest disagree."""
