"""Embedding collaborator interface and caller-side retry."""

from __future__ import annotations

import logging
from typing import Protocol, Sequence, runtime_checkable

import numpy as np
from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from dirseek.errors import EmbeddingRequestFailed

logger = logging.getLogger(__name__)


@runtime_checkable
class Embedder(Protocol):
    """Anything that turns texts into fixed-size float32 vectors."""

    dimension: int

    def embed_documents(self, texts: Sequence[str]) -> np.ndarray:
        """Return one vector per text, in input order (shape ``n x dimension``)."""
        ...

    def embed_query(self, text: str) -> np.ndarray:
        """Return a single vector for a search query."""
        ...


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, EmbeddingRequestFailed) and exc.retryable


class RetryingEmbedder:
    """Wraps an embedder so transient request failures are retried with backoff.

    Only the embedding calls are retried; nothing else in the indexing run is.
    """

    def __init__(
        self,
        inner: Embedder,
        *,
        attempts: int = 3,
        initial_wait: float = 1.0,
        max_wait: float = 30.0,
    ) -> None:
        self.inner = inner
        self.attempts = attempts
        self.initial_wait = initial_wait
        self.max_wait = max_wait

    @property
    def dimension(self) -> int:
        return self.inner.dimension

    def _retrying(self, what: str) -> Retrying:
        return Retrying(
            retry=retry_if_exception(_is_retryable),
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential_jitter(
                initial=self.initial_wait, max=self.max_wait, jitter=self.initial_wait
            ),
            before_sleep=lambda retry_state: logger.warning(
                "%s failed, retry %d/%d: %s",
                what,
                retry_state.attempt_number,
                self.attempts,
                retry_state.outcome.exception(),
            ),
            reraise=True,
        )

    def embed_documents(self, texts: Sequence[str]) -> np.ndarray:
        return self._retrying("embed_documents")(self.inner.embed_documents, texts)

    def embed_query(self, text: str) -> np.ndarray:
        return self._retrying("embed_query")(self.inner.embed_query, text)

    def close(self) -> None:
        close_embedder(self.inner)


def with_retry(embedder: Embedder, attempts: int) -> Embedder:
    if attempts <= 1:
        return embedder
    return RetryingEmbedder(embedder, attempts=attempts)


def close_embedder(embedder: Embedder) -> None:
    """Release whatever the embedder holds open (an HTTP pool for remote ones)."""
    close = getattr(embedder, "close", None)
    if callable(close):
        close()
