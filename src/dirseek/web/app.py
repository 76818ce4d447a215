"""FastAPI application exposing dirseek indexing and search."""

from __future__ import annotations

import asyncio
import logging
import threading
from pathlib import Path
from typing import Any, List

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from dirseek.config import AppConfig
from dirseek.embedding.base import close_embedder
from dirseek.embedding.factory import create_embedder
from dirseek.errors import (
    ConfigurationError,
    DirseekError,
    EmbeddingRequestFailed,
    IndexConsistencyError,
)
from dirseek.index import manifest
from dirseek.index.indexer import Indexer
from dirseek.index.search import Searcher

LOGGER = logging.getLogger(__name__)

# one indexing run at a time per directory
_INDEX_LOCKS: dict[Path, threading.Lock] = {}
_INDEX_LOCKS_GUARD = threading.Lock()

app = FastAPI(title="dirseek", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class SearchPayload(BaseModel):
    query: str
    directory: str
    top_k: int = 5


class SearchHit(BaseModel):
    path: str
    chunk_index: int
    vector_id: int
    distance: float
    text: str


class IndexPayload(BaseModel):
    directory: str
    max_chars: int | None = None


def _resolve_directory(raw: str) -> Path:
    clean = raw.strip().replace("\r", "").replace("\n", "")
    if not clean or "\0" in clean:
        raise HTTPException(status_code=400, detail="Invalid directory")
    directory = Path(clean).expanduser().resolve()
    if not directory.is_dir():
        raise HTTPException(status_code=400, detail=f"Not a directory: {clean}")
    return directory


def _config(directory: Path, **overrides: Any) -> AppConfig:
    try:
        return AppConfig.from_env(directory=directory, **overrides)
    except DirseekError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _to_http_error(exc: DirseekError) -> HTTPException:
    if isinstance(exc, ConfigurationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, IndexConsistencyError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, EmbeddingRequestFailed):
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


def _directory_lock(directory: Path) -> threading.Lock:
    with _INDEX_LOCKS_GUARD:
        return _INDEX_LOCKS.setdefault(directory, threading.Lock())


def _run_search(query: str, directory: Path, config: AppConfig) -> List[SearchHit]:
    embedder = create_embedder(config)
    try:
        searcher = Searcher(embedder, max_chars=config.max_chars)
        results = searcher.search(query, directory, top_k=config.top_k)
    finally:
        close_embedder(embedder)
    return [
        SearchHit(
            path=str(result.path),
            chunk_index=result.chunk_index,
            vector_id=result.vector_id,
            distance=result.distance,
            text=result.text,
        )
        for result in results
    ]


@app.post("/search")
async def search_documents(payload: SearchPayload) -> dict[str, List[SearchHit]]:
    query = payload.query.strip()
    if not query:
        raise HTTPException(status_code=400, detail="Empty query")

    directory = _resolve_directory(payload.directory)
    if not manifest.manifest_path(directory).exists():
        raise HTTPException(status_code=404, detail=f"No index found in {directory}")

    config = _config(directory, top_k=max(1, min(payload.top_k, 50)))
    try:
        results = await asyncio.to_thread(_run_search, query, directory, config)
    except DirseekError as exc:
        LOGGER.error("Search in %s failed: %s", directory, exc)
        raise _to_http_error(exc) from exc
    return {"results": results}


def _run_index_job(directory: Path, config: AppConfig) -> dict[str, Any]:
    with _directory_lock(directory):
        embedder = create_embedder(config)
        try:
            stats = Indexer(embedder, max_chars=config.max_chars).index(directory)
        finally:
            close_embedder(embedder)
    return {
        "inserted": stats.inserted,
        "unchanged": stats.unchanged,
        "skipped": stats.skipped,
        "failed": stats.failed,
        "chunks_added": stats.chunks_added,
        "failures": {path.name: message for path, message in stats.failures.items()},
    }


@app.post("/index")
async def index_documents(payload: IndexPayload) -> dict[str, Any]:
    directory = _resolve_directory(payload.directory)
    config = _config(directory, max_chars=payload.max_chars)

    try:
        stats = await asyncio.to_thread(_run_index_job, directory, config)
    except DirseekError as exc:
        LOGGER.error("Indexing %s failed: %s", directory, exc)
        raise _to_http_error(exc) from exc

    return {"status": "ok", "directory": str(directory), "stats": stats}


@app.get("/documents")
async def list_documents(directory: str) -> dict[str, Any]:
    """List the manifest entries of an indexed directory."""
    resolved = _resolve_directory(directory)
    try:
        entries = manifest.load(resolved)
    except DirseekError as exc:
        raise _to_http_error(exc) from exc

    return {
        "documents": [{"path": e.path, "chunk_count": e.chunk_count} for e in entries],
        "stats": {
            "document_count": len(entries),
            "chunk_count": manifest.total_chunks(entries),
        },
    }
