"""Protection inspector: trailer-level checks that never derive keys."""

from __future__ import annotations

from dataclasses import dataclass

from pypdf.generic import DictionaryObject, IndirectObject

from .core.document import Document
from .core.parser import parse
from .crypto.handler import EncryptionDictionary, Permissions
from .exceptions import BrokenXref

__all__ = ["ProtectionInfo", "is_protected", "describe", "ensure_document"]


@dataclass(slots=True)
class ProtectionInfo:
    """Summary of a document's encryption envelope."""

    protected: bool
    pdf_version: str
    object_count: int
    revision: int | None = None
    method: str | None = None
    key_length: int | None = None
    permissions: Permissions | None = None
    encrypt_metadata: bool | None = None

    @property
    def key_bits(self) -> int | None:
        return self.key_length * 8 if self.key_length is not None else None


def ensure_document(source: Document | bytes | bytearray) -> Document:
    if isinstance(source, Document):
        return source
    return parse(source)


def _encryption_dictionary(document: Document) -> DictionaryObject | None:
    encrypt = document.trailer.encrypt
    if encrypt is None:
        return None
    if isinstance(encrypt, IndirectObject):
        resolved = document.get_object(encrypt)
        if not isinstance(resolved, DictionaryObject):
            raise BrokenXref(
                f"Trailer /Encrypt {encrypt.idnum} {encrypt.generation} R does not resolve"
            )
        return resolved
    return encrypt


def is_protected(document: Document | bytes) -> bool:
    """Return ``True`` when the trailer carries a resolvable ``/Encrypt`` entry.

    Parse failures propagate as :class:`~pdfguard.exceptions.ParseError`;
    treating them as "protected" is a host decision.
    """

    return _encryption_dictionary(ensure_document(document)) is not None


def describe(document: Document | bytes) -> ProtectionInfo:
    document = ensure_document(document)
    info = ProtectionInfo(
        protected=False,
        pdf_version=document.version,
        object_count=document.object_count,
    )
    raw = _encryption_dictionary(document)
    if raw is None:
        return info

    dictionary = EncryptionDictionary.from_pdf_object(raw)
    info.protected = True
    info.revision = dictionary.revision
    info.method = dictionary.method
    info.key_length = dictionary.key_length
    info.permissions = dictionary.granted
    info.encrypt_metadata = dictionary.encrypt_metadata
    return info
