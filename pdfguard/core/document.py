"""In-memory view of a parsed PDF container.

:class:`Document` owns the raw bytes, the :class:`~pdfguard.core.model.ObjectIndex`
and the merged :class:`~pdfguard.core.model.Trailer`.  Objects are only
materialised when requested through :meth:`Document.get_object`, using the
``pypdf.generic`` tokenizer.  The class also satisfies the small part of the
``PdfReader`` protocol that ``pypdf.generic`` needs (``strict`` and
``get_object``) so that indirect ``/Length`` entries and references resolve
against this document instead of a full reader.
"""

from __future__ import annotations

import re
from io import BytesIO
from typing import Any, Callable

from pypdf.errors import PdfReadError
from pypdf.filters import decode_stream_data
from pypdf.generic import (
    DictionaryObject,
    IndirectObject,
    NameObject,
    PdfObject,
    StreamObject,
    read_object,
)

from .model import ObjectIndex, Trailer, XrefEntry
from .utils import get_logger
from ..exceptions import BrokenXref

__all__ = ["Document", "ContainerDecryptor"]

LOGGER = get_logger("pdfguard.document")

_WHITESPACE = b"\x00\t\n\r\f "
_OBJECT_HEADER = re.compile(rb"\s*(\d+)\s+(\d+)\s+obj")

ContainerDecryptor = Callable[[bytes, int, int], bytes]


def _skip_ws(buffer: bytes, index: int) -> int:
    while index < len(buffer) and buffer[index] in _WHITESPACE:
        index += 1
    return index


class Document:
    """Parsed PDF container with a lazily materialised object table."""

    strict = False

    def __init__(self, data: bytes, version: str, startxref: int = 0) -> None:
        self.data = data
        self.version = version
        self.startxref = startxref
        self.index = ObjectIndex()
        self.trailer = Trailer.from_dictionary(DictionaryObject())
        self.container_decryptor: ContainerDecryptor | None = None
        self._cache: dict[int, PdfObject | None] = {}
        self._object_streams: dict[int, tuple[bytes, list[tuple[int, int]], int]] = {}

    # -- pypdf reader protocol ------------------------------------------------

    def get_object(self, reference: int | IndirectObject) -> PdfObject | None:
        """Return the object for ``reference`` or ``None`` when it is free or missing."""

        if isinstance(reference, IndirectObject):
            number, generation = reference.idnum, reference.generation
        else:
            number, generation = int(reference), None

        entry = self.index.get(number)
        if entry is None or not entry.in_use:
            return None
        if generation is not None and entry.generation != generation:
            return None

        if number not in self._cache:
            # Guard against /Length entries that point back at the object being read.
            self._cache[number] = None
            try:
                self._cache[number] = self._materialise(number, entry)
            except Exception:
                del self._cache[number]
                raise
        return self._cache[number]

    # -- Convenience accessors ------------------------------------------------

    def resolve(self, value: Any) -> Any:
        if isinstance(value, IndirectObject):
            return self.get_object(value)
        return value

    @property
    def is_encrypted(self) -> bool:
        return self.trailer.encrypt is not None

    @property
    def object_count(self) -> int:
        return len(self.index.in_use())

    def references(self) -> list[tuple[int, int]]:
        return [(number, self.index[number].generation) for number in self.index.in_use()]

    def is_compressed(self, number: int) -> bool:
        entry = self.index.get(number)
        return entry is not None and entry.compressed

    # -- Raw reading ------------------------------------------------------------

    def read_object_at(self, offset: int) -> tuple[int, int, PdfObject]:
        """Read the ``N G obj`` declaration starting at ``offset``."""

        header = _OBJECT_HEADER.match(self.data, offset)
        if header is None:
            raise BrokenXref(f"No object declaration at byte offset {offset}")
        number, generation = int(header.group(1)), int(header.group(2))
        stream = BytesIO(self.data)
        stream.seek(_skip_ws(self.data, header.end()))
        try:
            value = read_object(stream, self)
        except (PdfReadError, ValueError, TypeError) as exc:
            raise BrokenXref(f"Unable to read object {number} {generation} at offset {offset}") from exc
        return number, generation, value

    def stream_payload(self, stream: StreamObject, number: int, generation: int) -> bytes:
        """Return the decoded data of ``stream``, decrypting it first when needed."""

        if self.container_decryptor is None:
            return stream.get_data()
        clone = type(stream)()
        clone.update(dict(stream.items()))
        clone._data = self.container_decryptor(stream._data, number, generation)  # type: ignore[attr-defined]
        return decode_stream_data(clone)

    def _materialise(self, number: int, entry: XrefEntry) -> PdfObject:
        if entry.compressed:
            return self._read_compressed(number, entry)

        assert entry.offset is not None
        if entry.offset < 0 or entry.offset >= len(self.data):
            raise BrokenXref(f"Offset {entry.offset} of object {number} is outside the file")
        found_number, found_generation, value = self.read_object_at(entry.offset)
        if found_number != number or found_generation != entry.generation:
            raise BrokenXref(
                f"Expected object {number} {entry.generation} at offset {entry.offset}, "
                f"found {found_number} {found_generation}"
            )
        return value

    def _read_compressed(self, number: int, entry: XrefEntry) -> PdfObject:
        assert entry.container is not None
        data, pairs, first = self._load_object_stream(entry.container)

        relative: int | None = None
        if entry.index is not None and entry.index < len(pairs) and pairs[entry.index][0] == number:
            relative = pairs[entry.index][1]
        else:
            for candidate, candidate_offset in pairs:
                if candidate == number:
                    relative = candidate_offset
                    break
        if relative is None:
            raise BrokenXref(f"Object {number} is missing from object stream {entry.container}")

        stream = BytesIO(data)
        stream.seek(_skip_ws(data, first + relative))
        try:
            return read_object(stream, self)
        except (PdfReadError, ValueError, TypeError) as exc:
            raise BrokenXref(f"Unable to read object {number} from object stream {entry.container}") from exc

    def _load_object_stream(self, container: int) -> tuple[bytes, list[tuple[int, int]], int]:
        if container in self._object_streams:
            return self._object_streams[container]

        container_entry = self.index.get(container)
        stream = self.get_object(container)
        if container_entry is None or not isinstance(stream, StreamObject):
            raise BrokenXref(f"Object stream {container} does not resolve")

        data = self.stream_payload(stream, container, container_entry.generation)
        try:
            count = int(self.resolve(stream.get(NameObject("/N"), 0)))
            first = int(self.resolve(stream.get(NameObject("/First"), 0)))
        except (ValueError, TypeError) as exc:
            raise BrokenXref(f"Object stream {container} has an invalid /N or /First entry") from exc
        tokens = data[:first].split()
        if len(tokens) < count * 2:
            raise BrokenXref(f"Object stream {container} has a truncated header")
        try:
            pairs = [(int(tokens[2 * i]), int(tokens[2 * i + 1])) for i in range(count)]
        except ValueError as exc:
            raise BrokenXref(f"Object stream {container} has a malformed header") from exc

        LOGGER.debug("Loaded object stream %s with %s members", container, count)
        self._object_streams[container] = (data, pairs, first)
        return self._object_streams[container]
