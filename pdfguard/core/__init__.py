"""Container parsing primitives shared by the pdfguard engine."""

from __future__ import annotations

from .document import Document
from .model import ObjectIndex, Trailer, XrefEntry
from .parser import ContainerParser, parse

__all__ = ["Document", "ObjectIndex", "Trailer", "XrefEntry", "ContainerParser", "parse"]
