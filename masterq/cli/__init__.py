"""Command line interface for masterq."""

from masterq.cli.main import cli, main

__all__ = [
    "cli",
    "main",
]
