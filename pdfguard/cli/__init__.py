"""Command-line entry points for pdfguard."""

from .main import cli, main

__all__ = ["cli", "main"]
