"""Build the configured embedding collaborator."""

from __future__ import annotations

from dirseek.config import AppConfig
from dirseek.embedding.base import Embedder, with_retry
from dirseek.embedding.encoder import EmbeddingConfig, EmbeddingModel
from dirseek.embedding.gemini import GEMINI_MODEL, GeminiConfig, GeminiEmbeddingClient


def create_embedder(config: AppConfig) -> Embedder:
    if config.backend == "gemini":
        embedder: Embedder = GeminiEmbeddingClient(
            GeminiConfig(
                model=config.model_name or GEMINI_MODEL,
                output_dimensionality=config.dimension,
                timeout=config.request_timeout,
            )
        )
    else:
        embedder = EmbeddingModel(
            EmbeddingConfig(model_name=config.resolved_model_name(), device=config.device)
        )
    return with_retry(embedder, config.embed_retries)
