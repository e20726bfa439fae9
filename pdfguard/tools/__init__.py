"""Namespace for pluggable pdfguard tools."""

from __future__ import annotations

from .common.pipeline import registry


def load_builtin_plugins() -> None:
    from .encryptor import encrypt  # noqa: F401  # register encrypt, decrypt and inspect tools


__all__ = ["registry", "load_builtin_plugins"]
