"""Command-line interface for hitclue."""

from .main import cli, main

__all__ = ["cli", "main"]
