"""Gemini embedding API client."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Sequence

import httpx
import numpy as np

from dirseek.errors import ConfigurationError, EmbeddingRequestFailed

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
GEMINI_MODEL = "models/gemini-embedding-001"
GEMINI_DIMENSION = 3072
# batchEmbedContents accepts at most this many requests per call
MAX_BATCH = 100


@dataclass(slots=True)
class GeminiConfig:
    api_key: str | None = None
    model: str = GEMINI_MODEL
    dimension: int = GEMINI_DIMENSION
    output_dimensionality: int | None = None
    base_url: str = GEMINI_BASE_URL
    timeout: float = 60.0

    def __post_init__(self) -> None:
        if self.api_key is None:
            self.api_key = os.environ.get("GEMINI_API_KEY")
        if not self.model.startswith("models/"):
            self.model = f"models/{self.model}"
        if self.output_dimensionality is not None:
            self.dimension = self.output_dimensionality


class GeminiEmbeddingClient:
    """Embeds documents and queries with the Gemini embedding endpoints."""

    def __init__(self, config: GeminiConfig | None = None, *, client: httpx.Client | None = None) -> None:
        self.config = config or GeminiConfig()
        if not self.config.api_key:
            raise ConfigurationError("GEMINI_API_KEY not set in environment")
        self.dimension = self.config.dimension
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=self.config.timeout)

    def close(self) -> None:
        """Close the HTTP client, unless it was passed in by the caller."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "GeminiEmbeddingClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _content_request(self, text: str, task_type: str) -> dict[str, Any]:
        request: dict[str, Any] = {
            "model": self.config.model,
            "content": {"parts": [{"text": text}]},
            "taskType": task_type,
        }
        if self.config.output_dimensionality is not None:
            request["outputDimensionality"] = self.config.output_dimensionality
        return request

    def _post(self, method: str, body: dict[str, Any]) -> tuple[httpx.Response, Any]:
        url = f"{self.config.base_url}/{self.config.model}:{method}"
        try:
            response = self._client.post(
                url,
                params={"key": self.config.api_key},
                headers={"Content-Type": "application/json"},
                json=body,
            )
        except httpx.HTTPError as exc:
            raise EmbeddingRequestFailed(None, str(exc)) from exc

        if not response.is_success:
            raise EmbeddingRequestFailed(response.status_code, response.text)
        try:
            return response, response.json()
        except ValueError as exc:
            raise EmbeddingRequestFailed(response.status_code, response.text) from exc

    def _values(self, response: httpx.Response, embedding: Any) -> list[float]:
        values = embedding.get("values") if isinstance(embedding, dict) else None
        if not isinstance(values, list) or not values:
            raise EmbeddingRequestFailed(response.status_code, response.text)
        if len(values) != self.dimension:
            raise EmbeddingRequestFailed(
                response.status_code,
                f"expected {self.dimension} values per embedding, got {len(values)}",
            )
        return values

    def embed_documents(self, texts: Sequence[str]) -> np.ndarray:
        texts = list(texts)
        vectors: list[list[float]] = []
        for start in range(0, len(texts), MAX_BATCH):
            batch = texts[start : start + MAX_BATCH]
            body = {"requests": [self._content_request(t, "RETRIEVAL_DOCUMENT") for t in batch]}
            response, payload = self._post("batchEmbedContents", body)
            embeddings = payload.get("embeddings") if isinstance(payload, dict) else None
            if not isinstance(embeddings, list) or len(embeddings) != len(batch):
                raise EmbeddingRequestFailed(response.status_code, response.text)
            vectors.extend(self._values(response, item) for item in embeddings)
            logger.debug("Embedded %d documents with %s", len(batch), self.config.model)

        if not vectors:
            return np.empty((0, self.dimension), dtype="float32")
        return np.asarray(vectors, dtype="float32")

    def embed_query(self, text: str) -> np.ndarray:
        response, payload = self._post("embedContent", self._content_request(text, "RETRIEVAL_QUERY"))
        embedding = payload.get("embedding") if isinstance(payload, dict) else None
        return np.asarray(self._values(response, embedding), dtype="float32")
