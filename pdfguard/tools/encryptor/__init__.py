"""Password protection tools exposed through the pdfguard tools namespace."""

from __future__ import annotations

from ...security import describe_pdf, is_pdf_encrypted, protect_pdf, unprotect_pdf

__all__ = [
    "protect_pdf",
    "unprotect_pdf",
    "is_pdf_encrypted",
    "describe_pdf",
]
