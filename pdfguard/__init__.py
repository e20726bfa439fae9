"""Password based encryption at rest for PDF documents."""

from __future__ import annotations

from .config import DEFAULT_REVISION, ProtectionSettings
from .core import Document, ObjectIndex, Trailer, XrefEntry, parse
from .crypto import (
    DerivedKey,
    EncryptionDictionary,
    ObjectCipher,
    Permissions,
    Revision,
    build_encryption,
    derive_keys,
    transform,
)
from .exceptions import (
    AlreadyProtected,
    BrokenXref,
    IOBoundary,
    MalformedContainer,
    NotProtected,
    ParseError,
    PdfGuardError,
    UnsupportedEncryptionRevision,
    WrongPassword,
)
from .inspector import ProtectionInfo, describe, is_protected
from .rewriter import DocumentRewriter, protect, unprotect
from .security import describe_pdf, is_pdf_encrypted, protect_pdf, unprotect_pdf
from .tools import load_builtin_plugins, registry
from .tools.common.interfaces import ToolContext

__version__ = "1.0.0"

load_builtin_plugins()

__all__ = [
    "__version__",
    "parse",
    "Document",
    "ObjectIndex",
    "Trailer",
    "XrefEntry",
    "protect",
    "unprotect",
    "is_protected",
    "describe",
    "DocumentRewriter",
    "ProtectionInfo",
    "ProtectionSettings",
    "DEFAULT_REVISION",
    "Revision",
    "Permissions",
    "EncryptionDictionary",
    "DerivedKey",
    "ObjectCipher",
    "derive_keys",
    "build_encryption",
    "transform",
    "protect_pdf",
    "unprotect_pdf",
    "is_pdf_encrypted",
    "describe_pdf",
    "registry",
    "ToolContext",
    "PdfGuardError",
    "ParseError",
    "MalformedContainer",
    "BrokenXref",
    "UnsupportedEncryptionRevision",
    "WrongPassword",
    "AlreadyProtected",
    "NotProtected",
    "IOBoundary",
]
