"""Standard security handler used by the pdfguard engine."""

from __future__ import annotations

from .handler import (
    PASSWORD_PADDING,
    DerivedKey,
    EncryptionDictionary,
    ObjectCipher,
    Permissions,
    RandomBytes,
    Revision,
    build_encryption,
    derive_keys,
    normalize_password,
    object_key,
    transform,
)

__all__ = [
    "PASSWORD_PADDING",
    "DerivedKey",
    "EncryptionDictionary",
    "ObjectCipher",
    "Permissions",
    "RandomBytes",
    "Revision",
    "build_encryption",
    "derive_keys",
    "normalize_password",
    "object_key",
    "transform",
]
