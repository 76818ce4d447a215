"""Command line interface for dirseek."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from dirseek.config import AppConfig
from dirseek.embedding.base import close_embedder
from dirseek.embedding.factory import create_embedder
from dirseek.errors import DirseekError
from dirseek.index import manifest
from dirseek.index.indexer import Indexer, pending_documents
from dirseek.index.search import Searcher
from dirseek.index.vector_store import FaissVectorIndex, index_path
from dirseek.web.app import app as web_app


console = Console()
app = typer.Typer(help="dirseek - semantic search over a directory of documents")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _build_config(**overrides) -> AppConfig:
    load_dotenv()
    try:
        return AppConfig.from_env(**overrides)
    except DirseekError as exc:
        raise typer.BadParameter(str(exc)) from exc


@app.command()
def index(
    directory: Path = typer.Argument(
        ..., help="Directory with documents to index.", resolve_path=True
    ),
    backend: Optional[str] = typer.Option(None, help="Embedding backend: local or gemini"),
    model: Optional[str] = typer.Option(None, help="Embedding model name"),
    max_chars: Optional[int] = typer.Option(None, help="Chunk size in characters (fixed once the directory has entries)"),
    fail_fast: bool = typer.Option(False, help="Abort on the first unreadable document"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Embed every document of DIRECTORY that is not indexed yet."""
    _setup_logging(verbose)
    if not directory.is_dir():
        raise typer.BadParameter(f"Not a directory: {directory}")
    config = _build_config(directory=directory, backend=backend, model_name=model, max_chars=max_chars)

    console.print(f"Indexing [bold]{directory}[/bold]...")
    try:
        embedder = create_embedder(config)
        try:
            indexer = Indexer(embedder, max_chars=config.max_chars, fail_fast=fail_fast)
            stats = indexer.index(directory)
        finally:
            close_embedder(embedder)
    except DirseekError as exc:
        console.print(f"[red]Indexing aborted:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    console.print(
        f"Indexed: {stats.inserted}, unchanged: {stats.unchanged}, "
        f"skipped: {stats.skipped}, failed: {stats.failed}"
    )
    for path, message in stats.failures.items():
        console.print(f"[yellow]{path.name}:[/yellow] {message}")


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    directory: Path = typer.Option(Path("."), "--dir", help="Indexed directory", resolve_path=True),
    backend: Optional[str] = typer.Option(None, help="Embedding backend: local or gemini"),
    model: Optional[str] = typer.Option(None, help="Embedding model name"),
    top_k: int = typer.Option(5, help="Number of results to display"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Execute a semantic search."""
    _setup_logging(verbose)
    config = _build_config(directory=directory, backend=backend, model_name=model, top_k=top_k)

    if not manifest.manifest_path(directory).exists():
        raise typer.BadParameter(f"No index found in {directory}")

    try:
        embedder = create_embedder(config)
        try:
            searcher = Searcher(embedder, max_chars=config.max_chars)
            results = searcher.search(query, directory, top_k=config.top_k)
        finally:
            close_embedder(embedder)
    except DirseekError as exc:
        console.print(f"[red]Search failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    if not results:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Distance")
    table.add_column("Document")
    table.add_column("Chunk")
    table.add_column("Snippet")

    for result in results:
        snippet = result.text.replace("\n", " ")
        table.add_row(f"{result.distance:.4f}", str(result.path), str(result.chunk_index), snippet[:180])

    console.print(table)


@app.command()
def status(
    directory: Path = typer.Argument(Path("."), help="Indexed directory", resolve_path=True),
) -> None:
    """Show indexed documents, pending documents and index consistency."""
    try:
        entries = manifest.load(directory)
        budget = manifest.load_chunk_budget(directory)
        pending = pending_documents(directory)
        path = index_path(directory)
        vectors = FaissVectorIndex.load(path).size() if path.exists() else 0
    except DirseekError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc

    if entries:
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Document")
        table.add_column("Chunks", justify="right")
        for entry in entries:
            table.add_row(entry.path, str(entry.chunk_count))
        console.print(table)

    expected = manifest.total_chunks(entries)
    console.print(f"Documents: {len(entries)}, chunks: {expected}, vectors: {vectors}")
    if budget is not None:
        console.print(f"Chunk size: {budget} characters")
    if vectors != expected:
        console.print("[red]Vector index and manifest disagree.[/red]")

    if pending:
        console.print(f"Pending: {', '.join(p.name for p in pending)}")
    else:
        console.print("Pending: none")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
) -> None:
    """Start the HTTP API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras with \"python -m pip install '.[web]'\""
        ) from exc

    console.print(f"Starting HTTP API on http://{host}:{port}")
    uvicorn.run(
        web_app,
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )
