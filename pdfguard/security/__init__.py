"""Path based password protection helpers for the :mod:`pdfguard` engine.

These functions are the host side of the engine: they read and write files,
translate filesystem failures into :class:`~pdfguard.exceptions.IOBoundary`
and own the fail-safe policy for inspection of unreadable documents.
"""

from __future__ import annotations

from pathlib import Path

from ..config import DEFAULT_REVISION
from ..core.parser import parse
from ..core.utils import get_logger, resolve_path
from ..crypto.handler import Permissions, Revision
from ..exceptions import IOBoundary, ParseError
from ..inspector import ProtectionInfo, describe, is_protected
from ..rewriter import protect, unprotect

PathLike = str | Path

LOGGER = get_logger("pdfguard.security")


def _read_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except FileNotFoundError as exc:
        raise IOBoundary(f"PDF not found: {path}") from exc
    except OSError as exc:
        raise IOBoundary(f"Unable to read PDF: {path}") from exc


def _write_bytes(path: Path, data: bytes) -> Path:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("wb") as stream:
            stream.write(data)
    except OSError as exc:
        raise IOBoundary(f"Unable to write PDF to {path}") from exc
    return path


def is_pdf_encrypted(path: PathLike, *, assume_protected_on_error: bool = False) -> bool:
    """Return ``True`` when ``path`` points to an encrypted PDF document.

    When ``assume_protected_on_error`` is set, a document that cannot be
    parsed is reported as protected instead of raising.
    """

    pdf_path = resolve_path(path)
    data = _read_bytes(pdf_path)
    try:
        return is_protected(parse(data))
    except ParseError as exc:
        if not assume_protected_on_error:
            raise
        LOGGER.warning("Treating unreadable PDF %s as protected: %s", pdf_path, exc.message)
        return True


def describe_pdf(path: PathLike) -> ProtectionInfo:
    """Return the :class:`ProtectionInfo` summary for ``path``."""

    return describe(parse(_read_bytes(resolve_path(path))))


def protect_pdf(
    input: PathLike,
    output: PathLike,
    password: str,
    *,
    owner_password: str | None = None,
    revision: Revision | int = DEFAULT_REVISION,
    permissions: Permissions = Permissions.NONE,
    encrypt_metadata: bool = True,
) -> Path:
    """Encrypt ``input`` with ``password`` and write the result to ``output``."""

    if not password:
        raise ValueError("A non-empty password is required")

    input_path = resolve_path(input)
    output_path = resolve_path(output)
    protected = protect(
        parse(_read_bytes(input_path)),
        password,
        owner_password=owner_password,
        revision=Revision(revision),
        permissions=permissions,
        encrypt_metadata=encrypt_metadata,
    )
    return _write_bytes(output_path, protected)


def unprotect_pdf(input: PathLike, output: PathLike, password: str) -> Path:
    """Decrypt ``input`` using ``password`` and write the result to ``output``."""

    if not password:
        raise ValueError("A non-empty password is required")

    input_path = resolve_path(input)
    output_path = resolve_path(output)
    decrypted = unprotect(parse(_read_bytes(input_path)), password)
    return _write_bytes(output_path, decrypted)


__all__ = [
    "protect_pdf",
    "unprotect_pdf",
    "is_pdf_encrypted",
    "describe_pdf",
]
