"""Container parser for pdfguard.

The parser locates ``startxref``, walks every cross-reference section along
the ``/Prev`` chain (classic tables, cross-reference streams and hybrid
``/XRefStm`` files) and builds the :class:`~pdfguard.core.model.ObjectIndex`
of a :class:`~pdfguard.core.document.Document`.  Sections are visited newest
first, so the first entry recorded for an object number is the authoritative
one.  Object bodies are not read here; the document materialises them on
demand.
"""

from __future__ import annotations

import re
from io import BytesIO
from typing import BinaryIO

from pypdf.errors import PdfReadError
from pypdf.generic import ArrayObject, DictionaryObject, IndirectObject, NameObject, StreamObject

from .document import Document
from .model import ObjectIndex, Trailer, XrefEntry
from .utils import get_logger
from ..exceptions import BrokenXref, MalformedContainer

__all__ = ["ContainerParser", "parse"]

LOGGER = get_logger("pdfguard.parser")

_WHITESPACE = b"\x00\t\n\r\f "
_HEADER_WINDOW = 1024
_STREAM_HEADER = re.compile(rb"\s*(\d+)\s+(\d+)\s+obj")

# Keys that describe a single cross-reference section rather than the document.
_SECTION_KEYS = {
    "/Prev",
    "/XRefStm",
    "/Type",
    "/W",
    "/Index",
    "/Length",
    "/Filter",
    "/DecodeParms",
}

SectionEntries = dict[int, XrefEntry]


def _decode_be_integer(buffer: bytes) -> int:
    """Decode a big-endian integer from ``buffer`` handling empty segments."""

    if not buffer:
        return 0
    value = 0
    for byte in buffer:
        value = (value << 8) | byte
    return value


def _skip_ws(buffer: bytes, index: int) -> int:
    while index < len(buffer) and buffer[index] in _WHITESPACE:
        index += 1
    return index


def _read_int(buffer: bytes, index: int) -> tuple[int, int]:
    index = _skip_ws(buffer, index)
    start = index
    while index < len(buffer) and buffer[index] in b"+-0123456789":
        index += 1
    if start == index:
        raise ValueError("Expected integer in xref table")
    return int(buffer[start:index]), index


class ContainerParser:
    """Build a :class:`Document` from raw PDF bytes."""

    def __init__(self, data: bytes) -> None:
        self.data = data

    def parse(self) -> Document:
        version = self._detect_version(self.data)
        startxref = self._locate_startxref(self.data)
        document = Document(self.data, version, startxref)

        entries, trailers = self._parse_cross_reference(document, startxref)
        if not trailers:
            raise MalformedContainer("No trailer dictionary could be located")

        document.index = ObjectIndex(entries)
        document.trailer = Trailer.from_dictionary(self._merge_trailers(trailers))
        self._validate_trailer(document)

        LOGGER.debug(
            "Parsed PDF %s: %s sections, %s objects in use",
            version,
            len(trailers),
            document.object_count,
        )
        return document

    # -- Header and startxref ---------------------------------------------------

    @staticmethod
    def _detect_version(data: bytes) -> str:
        position = data.find(b"%PDF-", 0, _HEADER_WINDOW)
        if position == -1:
            raise MalformedContainer("Missing %PDF- header")
        header_line = data[position:].splitlines()[0].decode("latin-1", "ignore")
        match = re.match(r"%PDF-(\d+\.\d+)", header_line)
        return match.group(1) if match else "1.0"

    @staticmethod
    def _locate_startxref(data: bytes) -> int:
        marker = b"startxref"
        index = data.rfind(marker)
        if index == -1:
            raise MalformedContainer("Unable to locate startxref marker")
        remainder = data[index + len(marker) :]
        for line in remainder.splitlines():
            stripped = line.strip()
            if not stripped:
                continue
            digit_match = re.match(rb"([0-9]+)", stripped)
            if digit_match:
                return int(digit_match.group(1))
            break
        raise MalformedContainer("startxref offset not found")

    # -- Cross-reference walking ------------------------------------------------

    def _parse_cross_reference(
        self,
        document: Document,
        startxref: int,
    ) -> tuple[SectionEntries, list[DictionaryObject]]:
        entries: SectionEntries = {}
        trailers: list[DictionaryObject] = []
        visited: set[int] = set()
        next_offset: int | None = startxref

        while next_offset is not None and next_offset not in visited:
            visited.add(next_offset)
            if next_offset < 0 or next_offset >= len(self.data):
                raise BrokenXref(f"Cross-reference offset {next_offset} is outside the file")

            view = self.data[next_offset : next_offset + 4]
            if view == b"xref":
                section, trailer = self._parse_xref_table_section(document, next_offset)
                hybrid = trailer.get(NameObject("/XRefStm"))
                if isinstance(hybrid, (int, float)):
                    stream_section, _ = self._parse_xref_stream_section(document, int(hybrid))
                    for number, entry in stream_section.items():
                        current = section.get(number)
                        if current is None or not current.in_use:
                            section[number] = entry
                kind = "table"
            elif _STREAM_HEADER.match(self.data, next_offset):
                section, trailer = self._parse_xref_stream_section(document, next_offset)
                kind = "stream"
            elif b"trailer" not in self.data:
                raise MalformedContainer(
                    f"No trailer keyword and no cross-reference data at offset {next_offset}"
                )
            else:
                raise BrokenXref(f"No cross-reference data at offset {next_offset}")

            LOGGER.debug(
                "Read xref %s at offset %s with %s entries", kind, next_offset, len(section)
            )
            for number, entry in section.items():
                # Later revisions override earlier ones; only record the first
                # occurrence we encounter while walking ``startxref`` backwards.
                entries.setdefault(number, entry)
            trailers.append(trailer)

            prev = trailer.get(NameObject("/Prev"))
            next_offset = int(prev) if isinstance(prev, (int, float)) else None

        return entries, trailers

    def _parse_xref_table_section(
        self, document: Document, start: int
    ) -> tuple[SectionEntries, DictionaryObject]:
        data = self.data
        section: SectionEntries = {}
        length = len(data)
        if data.find(b"trailer", start) == -1:
            raise MalformedContainer(f"Cross-reference table at offset {start} has no trailer")
        index = _skip_ws(data, start + len(b"xref"))

        while index < length:
            if data[index : index + 7] == b"trailer":
                index = _skip_ws(data, index + 7)
                return section, self._decode_trailer_dictionary(document, index)
            try:
                start_obj, index = _read_int(data, index)
                count, index = _read_int(data, index)
            except ValueError as exc:
                raise BrokenXref(f"Malformed xref subsection header near offset {index}") from exc
            index = _skip_ws(data, index)
            for i in range(count):
                record = data[index : index + 18]
                try:
                    offset = int(record[0:10])
                    generation = int(record[11:16])
                except ValueError as exc:
                    raise BrokenXref(f"Malformed xref record near offset {index}") from exc
                in_use = record[17:18] == b"n"
                section[start_obj + i] = XrefEntry(
                    generation=generation,
                    offset=offset if in_use else None,
                    in_use=in_use,
                )
                index = _skip_ws(data, index + 18)

        raise MalformedContainer(f"Cross-reference table at offset {start} has no trailer")

    def _parse_xref_stream_section(
        self,
        document: Document,
        start: int,
    ) -> tuple[SectionEntries, DictionaryObject]:
        section: SectionEntries = {}
        _, _, stream_obj = document.read_object_at(start)
        if not isinstance(stream_obj, StreamObject):
            raise BrokenXref(f"Object at offset {start} is not a cross-reference stream")

        try:
            decoded = stream_obj.get_data()
        except (PdfReadError, ValueError) as exc:
            raise BrokenXref(f"Unable to decode cross-reference stream at offset {start}") from exc

        widths_obj = stream_obj.get(NameObject("/W"))
        if not isinstance(widths_obj, ArrayObject) or len(widths_obj) != 3:
            raise BrokenXref(f"Cross-reference stream at offset {start} has an invalid /W entry")
        try:
            widths = [int(w) for w in widths_obj]
        except (ValueError, TypeError) as exc:
            raise BrokenXref(f"Cross-reference stream at offset {start} has an invalid /W entry") from exc
        entry_width = sum(widths)
        if entry_width <= 0 or min(widths) < 0:
            raise BrokenXref(f"Cross-reference stream at offset {start} has empty records")

        size_obj = stream_obj.get(NameObject("/Size"))
        size = int(size_obj) if isinstance(size_obj, (int, float)) else 0

        index_obj = stream_obj.get(NameObject("/Index"))
        if isinstance(index_obj, ArrayObject) and len(index_obj) % 2 == 0:
            try:
                subsections = [
                    (int(index_obj[i]), int(index_obj[i + 1]))
                    for i in range(0, len(index_obj), 2)
                ]
            except (ValueError, TypeError) as exc:
                raise BrokenXref(f"Cross-reference stream at offset {start} has an invalid /Index entry") from exc
        else:
            subsections = [(0, size)] if size else []

        position = 0
        for start_obj, count in subsections:
            for i in range(count):
                end = position + entry_width
                if end > len(decoded):
                    break
                type_field = decoded[position : position + widths[0]]
                field1 = _decode_be_integer(type_field) if widths[0] else 1
                field2 = _decode_be_integer(
                    decoded[position + widths[0] : position + widths[0] + widths[1]]
                )
                field3 = _decode_be_integer(decoded[position + widths[0] + widths[1] : end])
                position = end

                number = start_obj + i
                if field1 == 0:
                    section[number] = XrefEntry(generation=field3, in_use=False)
                elif field1 == 1:
                    section[number] = XrefEntry(generation=field3, offset=field2)
                elif field1 == 2:
                    section[number] = XrefEntry(generation=0, container=field2, index=field3)

        return section, stream_obj

    def _decode_trailer_dictionary(self, document: Document, start: int) -> DictionaryObject:
        stream = BytesIO(self.data)
        stream.seek(start)
        try:
            dictionary = DictionaryObject.read_from_stream(stream, document)
        except (PdfReadError, ValueError) as exc:
            raise MalformedContainer(f"Unreadable trailer dictionary at offset {start}") from exc
        return dictionary

    # -- Trailer handling -------------------------------------------------------

    @staticmethod
    def _merge_trailers(trailers: list[DictionaryObject]) -> DictionaryObject:
        merged = DictionaryObject()
        for trailer in trailers:
            for key, value in trailer.items():
                if key in _SECTION_KEYS or key in merged:
                    continue
                merged[NameObject(key)] = value
        return merged

    @staticmethod
    def _validate_trailer(document: Document) -> None:
        root = document.trailer.entries.get(NameObject("/Root"))
        if root is None:
            raise MalformedContainer("Trailer has no /Root entry")
        if not isinstance(root, IndirectObject):
            raise BrokenXref("Trailer /Root is not an indirect reference")
        if not document.index.resolves(root.idnum, root.generation):
            raise BrokenXref(f"Trailer /Root {root.idnum} {root.generation} R does not resolve")


def parse(data: bytes | bytearray | BinaryIO) -> Document:
    """Parse ``data`` (bytes or a readable binary stream) into a :class:`Document`."""

    if hasattr(data, "read"):
        data = data.read()  # type: ignore[union-attr]
    return ContainerParser(bytes(data)).parse()
