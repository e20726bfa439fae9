"""Document rewriter: applies or removes the encryption envelope.

The rewriter walks the object graph from the trailer with an explicit stack
and a visited set, transforms every string and stream payload of the
reachable objects and serialises a new container with a classic
cross-reference table.  Object numbers are preserved; cross-reference and
object streams are flattened away, so every written object is a plain
top-level object.  Nothing is returned until the whole container has been
written to memory.
"""

from __future__ import annotations

import secrets
from io import BytesIO
from typing import Any, Callable

from pypdf.generic import (
    ArrayObject,
    ByteStringObject,
    DictionaryObject,
    IndirectObject,
    NameObject,
    NumberObject,
    PdfObject,
    StreamObject,
    TextStringObject,
)

from .config import DEFAULT_REVISION, ProtectionSettings
from .core.document import Document
from .core.utils import get_logger
from .crypto.handler import (
    EncryptionDictionary,
    ObjectCipher,
    Permissions,
    RandomBytes,
    Revision,
    build_encryption,
    derive_keys,
)
from .exceptions import AlreadyProtected, NotProtected
from .inspector import ensure_document, is_protected

__all__ = ["DocumentRewriter", "protect", "unprotect"]

LOGGER = get_logger("pdfguard.rewriter")

PayloadTransform = Callable[[bytes, int, int], bytes]
RewrittenObject = tuple[int, int, PdfObject]

_STRUCTURAL_TYPES = {"/XRef", "/ObjStm"}
_SIGNATURE_TYPES = {"/Sig", "/DocTimeStamp"}


def _string_bytes(value: Any) -> bytes:
    if isinstance(value, ByteStringObject):
        return bytes(value)
    return value.original_bytes


def _version_tuple(version: str) -> tuple[int, ...]:
    return tuple(int(part) for part in version.split(".") if part.isdigit())


def _references_in(value: PdfObject) -> list[IndirectObject]:
    found: list[IndirectObject] = []
    pending: list[Any] = [value]
    while pending:
        current = pending.pop()
        if isinstance(current, IndirectObject):
            found.append(current)
        elif isinstance(current, DictionaryObject):
            pending.extend(current.values())
        elif isinstance(current, ArrayObject):
            pending.extend(current)
    return found


class DocumentRewriter:
    """Rewrite a parsed :class:`Document` with or without encryption."""

    def __init__(self, document: Document, *, random_bytes: RandomBytes = secrets.token_bytes) -> None:
        self.document = document
        self.random_bytes = random_bytes

    # -- Entry points -----------------------------------------------------------

    def protect(self, settings: ProtectionSettings) -> bytes:
        document = self.document
        if is_protected(document):
            raise AlreadyProtected()

        ids = (self.random_bytes(16), self.random_bytes(16))
        dictionary, key = build_encryption(
            settings.user_password,
            settings.effective_owner_password,
            doc_id=ids[0],
            revision=settings.revision,
            permissions=settings.permissions,
            encrypt_metadata=settings.encrypt_metadata,
            random_bytes=self.random_bytes,
        )
        cipher = ObjectCipher(key, self.random_bytes)
        objects = self._rewrite_objects(
            cipher.encrypt,
            encrypt_metadata=dictionary.encrypt_metadata,
            compressed_plain=False,
        )

        encrypt_number = max(
            document.index.max_object_number,
            document.trailer.size - 1,
            max((number for number, _, _ in objects), default=0),
        ) + 1
        objects.append((encrypt_number, 0, dictionary.as_pdf_object()))

        trailer = self._base_trailer(objects, ids)
        trailer[NameObject("/Encrypt")] = IndirectObject(encrypt_number, 0, None)

        version = max(document.version, settings.revision.min_pdf_version, key=_version_tuple)
        output = self._serialize(objects, trailer, version)
        LOGGER.debug(
            "Protected %s objects with revision %s; encryption dictionary is object %s",
            len(objects) - 1,
            int(settings.revision),
            encrypt_number,
        )
        return output

    def unprotect(self, password: str) -> bytes:
        document = self.document
        if not is_protected(document):
            raise NotProtected()

        raw = document.resolve(document.trailer.encrypt)
        dictionary = EncryptionDictionary.from_pdf_object(raw)
        key = derive_keys(password, document.trailer.first_id, dictionary)
        cipher = ObjectCipher(key, self.random_bytes)

        document.container_decryptor = cipher.decrypt
        try:
            objects = self._rewrite_objects(
                cipher.decrypt,
                encrypt_metadata=dictionary.encrypt_metadata,
                compressed_plain=True,
            )
        finally:
            document.container_decryptor = None

        ids = document.trailer.ids or (self.random_bytes(16), self.random_bytes(16))
        trailer = self._base_trailer(objects, ids)
        output = self._serialize(objects, trailer, document.version)
        LOGGER.debug(
            "Removed revision %s protection (%s password) from %s objects",
            key.revision,
            key.role,
            len(objects),
        )
        return output

    # -- Graph walk -------------------------------------------------------------

    def reachable(self) -> list[int]:
        """Object numbers reachable from the trailer's ``/Root`` and ``/Info``."""

        document = self.document
        stack = [ref for ref in (document.trailer.info, document.trailer.root) if ref is not None]
        visited: set[int] = set()
        found: list[int] = []
        while stack:
            reference = stack.pop()
            if reference.idnum in visited:
                continue
            visited.add(reference.idnum)
            value = document.get_object(reference)
            if value is None:
                continue
            found.append(reference.idnum)
            stack.extend(reversed(_references_in(value)))

        unreachable = len(document.index.in_use()) - len(found)
        if unreachable > 0:
            LOGGER.debug("Dropping %s unreachable objects", unreachable)
        return sorted(found)

    def _rewrite_objects(
        self,
        payload: PayloadTransform,
        *,
        encrypt_metadata: bool,
        compressed_plain: bool,
    ) -> list[RewrittenObject]:
        document = self.document
        rewritten: list[RewrittenObject] = []
        for number in self.reachable():
            entry = document.index[number]
            value = document.get_object(number)
            if isinstance(value, StreamObject) and value.get("/Type") in _STRUCTURAL_TYPES:
                continue
            if compressed_plain and entry.compressed:
                # Members of object streams were decrypted with their container.
                rewritten.append((number, entry.generation, value))
                continue
            rewritten.append(
                (
                    number,
                    entry.generation,
                    self._transform(value, number, entry.generation, payload, encrypt_metadata),
                )
            )
        return rewritten

    def _transform(
        self,
        value: Any,
        number: int,
        generation: int,
        payload: PayloadTransform,
        encrypt_metadata: bool,
    ) -> Any:
        if isinstance(value, StreamObject):
            clone = type(value)()
            for key, item in value.items():
                clone[NameObject(key)] = self._transform(item, number, generation, payload, encrypt_metadata)
            data = value._data  # type: ignore[attr-defined]
            if encrypt_metadata or value.get("/Type") != "/Metadata":
                data = payload(data, number, generation)
            clone._data = data  # type: ignore[attr-defined]
            return clone
        if isinstance(value, DictionaryObject):
            clone = DictionaryObject()
            signature = value.get("/Type") in _SIGNATURE_TYPES
            for key, item in value.items():
                if signature and key == "/Contents" and isinstance(item, (ByteStringObject, TextStringObject)):
                    clone[NameObject(key)] = ByteStringObject(_string_bytes(item))
                else:
                    clone[NameObject(key)] = self._transform(
                        item, number, generation, payload, encrypt_metadata
                    )
            return clone
        if isinstance(value, ArrayObject):
            return ArrayObject(
                self._transform(item, number, generation, payload, encrypt_metadata) for item in value
            )
        if isinstance(value, (ByteStringObject, TextStringObject)):
            return ByteStringObject(payload(_string_bytes(value), number, generation))
        return value

    # -- Serialisation ----------------------------------------------------------

    def _base_trailer(self, objects: list[RewrittenObject], ids: tuple[bytes, bytes]) -> DictionaryObject:
        trailer_info = self.document.trailer
        written = {number for number, _, _ in objects}

        trailer = DictionaryObject()
        root = trailer_info.root
        assert root is not None
        trailer[NameObject("/Root")] = IndirectObject(root.idnum, root.generation, None)
        info = trailer_info.info
        if info is not None and info.idnum in written:
            trailer[NameObject("/Info")] = IndirectObject(info.idnum, info.generation, None)
        trailer[NameObject("/ID")] = ArrayObject([ByteStringObject(ids[0]), ByteStringObject(ids[1])])
        return trailer

    @staticmethod
    def _serialize(objects: list[RewrittenObject], trailer: DictionaryObject, version: str) -> bytes:
        buffer = BytesIO()
        buffer.write(f"%PDF-{version}\n".encode("ascii"))
        buffer.write(b"%\xe2\xe3\xcf\xd3\n")

        offsets: dict[int, tuple[int, int]] = {}
        for number, generation, value in sorted(objects, key=lambda item: item[0]):
            offsets[number] = (buffer.tell(), generation)
            buffer.write(f"{number} {generation} obj\n".encode("ascii"))
            value.write_to_stream(buffer)
            buffer.write(b"\nendobj\n")

        size = max(offsets, default=0) + 1
        xref_offset = buffer.tell()
        buffer.write(f"xref\n0 {size}\n".encode("ascii"))
        buffer.write(b"0000000000 65535 f \n")
        for number in range(1, size):
            if number in offsets:
                offset, generation = offsets[number]
                buffer.write(f"{offset:010d} {generation:05d} n \n".encode("ascii"))
            else:
                buffer.write(b"0000000000 00001 f \n")

        trailer[NameObject("/Size")] = NumberObject(size)
        buffer.write(b"trailer\n")
        trailer.write_to_stream(buffer)
        buffer.write(f"\nstartxref\n{xref_offset}\n%%EOF\n".encode("ascii"))
        return buffer.getvalue()


def protect(
    document: Document | bytes,
    password: str,
    *,
    owner_password: str | None = None,
    revision: Revision = DEFAULT_REVISION,
    permissions: Permissions = Permissions.NONE,
    encrypt_metadata: bool = True,
    random_bytes: RandomBytes = secrets.token_bytes,
) -> bytes:
    """Return a new container protected with ``password``.

    By default the owner password equals ``password`` and AES-256
    (revision 6) is used.
    """

    settings = ProtectionSettings(
        user_password=password,
        owner_password=owner_password,
        revision=revision,
        permissions=permissions,
        encrypt_metadata=encrypt_metadata,
    )
    rewriter = DocumentRewriter(ensure_document(document), random_bytes=random_bytes)
    return rewriter.protect(settings)


def unprotect(document: Document | bytes, password: str) -> bytes:
    """Return a decrypted copy of ``document``; the password may be user or owner."""

    return DocumentRewriter(ensure_document(document)).unprotect(password)
