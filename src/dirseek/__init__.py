"""Semantic search over a directory of text and PDF documents."""

__version__ = "0.1.0"
