"""Application configuration defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dirseek.embedding.encoder import DEFAULT_MODEL
from dirseek.errors import ConfigurationError

BACKENDS = ("local", "gemini")


def _env_int(name: str, default: int | None) -> int | None:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(slots=True)
class AppConfig:
    directory: Path = field(default_factory=Path.cwd)
    backend: str = "local"
    model_name: str | None = None
    # None: the budget recorded for the directory, or the chunker default
    max_chars: int | None = None
    top_k: int = 5
    embed_retries: int = 3
    device: str | None = None
    request_timeout: float = 60.0
    dimension: int | None = None

    def __post_init__(self) -> None:
        self.directory = Path(self.directory)
        if self.backend not in BACKENDS:
            raise ConfigurationError(
                f"Unknown embedding backend {self.backend!r}; expected one of {', '.join(BACKENDS)}"
            )
        if self.max_chars is not None and self.max_chars <= 0:
            raise ConfigurationError("max_chars must be positive")
        if self.top_k <= 0:
            raise ConfigurationError("top_k must be positive")
        if self.dimension is not None and self.dimension <= 0:
            raise ConfigurationError("dimension must be positive")

    def resolved_model_name(self) -> str | None:
        """Model name, falling back to the local default for the local backend."""
        if self.model_name:
            return self.model_name
        return DEFAULT_MODEL if self.backend == "local" else None

    @classmethod
    def from_env(cls, **overrides) -> "AppConfig":
        """Build a config from ``DIRSEEK_*`` variables; explicit overrides win."""
        values = {
            "backend": os.environ.get("DIRSEEK_EMBEDDING_BACKEND") or "local",
            "model_name": os.environ.get("DIRSEEK_MODEL") or None,
            "max_chars": _env_int("DIRSEEK_MAX_CHARS", None),
            "embed_retries": _env_int("DIRSEEK_EMBED_RETRIES", 3),
            "dimension": _env_int("DIRSEEK_DIMENSION", None),
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)
