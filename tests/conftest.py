from __future__ import annotations

from pathlib import Path
from random import Random
from typing import Callable
import struct
import sys

import pytest
from pypdf import PdfWriter
from pypdf.generic import DecodedStreamObject, DictionaryObject, NameObject

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


class RawPdf:
    """Hand-assembled PDF container with exact control over xref sections."""

    def __init__(self, version: str = "1.4") -> None:
        self.buffer = bytearray(f"%PDF-{version}\n".encode("ascii") + b"%\xe2\xe3\xcf\xd3\n")
        self.pending: dict[int, tuple[int, int, bool]] = {}
        self.last_xref: int | None = None

    def add(self, number: int, body: bytes, generation: int = 0) -> int:
        offset = len(self.buffer)
        self.buffer += f"{number} {generation} obj\n".encode("ascii") + body + b"\nendobj\n"
        self.pending[number] = (offset, generation, True)
        return offset

    def add_stream(self, number: int, dictionary: bytes, data: bytes) -> int:
        body = b"<< " + dictionary + f" /Length {len(data)} >>\nstream\n".encode("ascii")
        return self.add(number, body + data + b"\nendstream")

    def free(self, number: int, generation: int = 1) -> None:
        self.pending[number] = (0, generation, False)

    def xref_table(self, trailer: bytes, *, startxref: int | None = None) -> int:
        """Write a classic section for every object added since the last one."""

        entries = dict(self.pending)
        if self.last_xref is None:
            entries.setdefault(0, (0, 65535, False))
        start = len(self.buffer)
        chunk = bytearray(b"xref\n")
        for first, run in _runs(sorted(entries)):
            chunk += f"{first} {len(run)}\n".encode("ascii")
            for number in run:
                offset, generation, in_use = entries[number]
                flag = "n" if in_use else "f"
                chunk += f"{offset:010d} {generation:05d} {flag} \n".encode("ascii")
        if self.last_xref is not None:
            trailer += f" /Prev {self.last_xref}".encode("ascii")
        chunk += b"trailer\n<< " + trailer + b" >>\n"
        chunk += f"startxref\n{start if startxref is None else startxref}\n%%EOF\n".encode("ascii")
        self.buffer += chunk
        self.pending = {}
        self.last_xref = start
        return start

    def xref_stream(self, number: int, trailer: bytes, compressed: dict[int, tuple[int, int]]) -> int:
        """Write an uncompressed ``/W [1 4 2]`` cross-reference stream.

        ``compressed`` maps object numbers to ``(container, index)`` pairs.
        """

        start = len(self.buffer)
        entries: dict[int, tuple[int, int, int]] = {0: (0, 0, 65535)}
        for obj, (offset, generation, in_use) in self.pending.items():
            entries[obj] = (1, offset, generation) if in_use else (0, 0, generation)
        for obj, (container, index) in compressed.items():
            entries[obj] = (2, container, index)
        entries[number] = (1, start, 0)
        size = max(entries) + 1
        records = b"".join(
            struct.pack(">BIH", *entries.get(obj, (0, 0, 0))) for obj in range(size)
        )
        dictionary = b"/Type /XRef /Size %d /W [1 4 2] " % size + trailer
        self.add_stream(number, dictionary, records)
        self.buffer += f"startxref\n{start}\n%%EOF\n".encode("ascii")
        self.pending = {}
        self.last_xref = start
        return start

    def hybrid_stream(self, number: int, compressed: dict[int, tuple[int, int]]) -> int:
        """Write an xref stream for a hybrid file, to be named by a table's ``/XRefStm``.

        Only the objects in ``compressed`` are listed, through ``/Index``.
        """

        start = len(self.buffer)
        numbers = sorted(compressed)
        index = b" ".join(b"%d 1" % obj for obj in numbers)
        records = b"".join(struct.pack(">BIH", 2, *compressed[obj]) for obj in numbers)
        dictionary = b"/Type /XRef /Size %d /W [1 4 2] /Index [%s]" % (max(numbers) + 1, index)
        self.add_stream(number, dictionary, records)
        return start

    def bytes(self) -> bytes:
        return bytes(self.buffer)


def _runs(numbers: list[int]) -> list[tuple[int, list[int]]]:
    runs: list[tuple[int, list[int]]] = []
    for number in numbers:
        if runs and runs[-1][1][-1] == number - 1:
            runs[-1][1].append(number)
        else:
            runs.append((number, [number]))
    return runs


def object_stream(members: dict[int, bytes]) -> tuple[bytes, bytes]:
    """Return ``(dictionary, data)`` for an uncompressed object stream."""

    header = b""
    body = b""
    for number, value in members.items():
        header += b"%d %d " % (number, len(body))
        body += value + b"\n"
    dictionary = b"/Type /ObjStm /N %d /First %d" % (len(members), len(header))
    return dictionary, header + body


@pytest.fixture()
def raw_pdf() -> Callable[..., RawPdf]:
    return RawPdf


@pytest.fixture()
def three_object_pdf() -> bytes:
    """Catalog, page tree and a content stream, all carrying payloads."""

    pdf = RawPdf()
    pdf.add(1, b"<< /Type /Catalog /Pages 2 0 R /Lang (en-GB) >>")
    pdf.add(2, b"<< /Type /Pages /Kids [] /Count 0 /Label (Chapter One) /Contents 3 0 R >>")
    pdf.add_stream(3, b"/Note (inline)", b"BT /F1 12 Tf (Hello world) Tj ET")
    pdf.xref_table(b"/Size 4 /Root 1 0 R")
    return pdf.bytes()


@pytest.fixture()
def incremental_pdf() -> bytes:
    """Two revisions; the update replaces object 3 and frees object 4."""

    pdf = RawPdf()
    pdf.add(1, b"<< /Type /Catalog /Pages 2 0 R /Extra 3 0 R /Old 4 0 R >>")
    pdf.add(2, b"<< /Type /Pages /Kids [] /Count 0 >>")
    pdf.add(3, b"(first revision)")
    pdf.add(4, b"(deleted later)")
    pdf.xref_table(b"/Size 5 /Root 1 0 R")
    pdf.add(3, b"(second revision)")
    pdf.free(4)
    pdf.xref_table(b"/Size 5 /Root 1 0 R")
    return pdf.bytes()


@pytest.fixture()
def xref_stream_pdf() -> bytes:
    """Catalog and page tree stored in object stream 3, indexed by xref stream 4."""

    members = {
        1: b"<< /Type /Catalog /Pages 2 0 R /Title (Packed) >>",
        2: b"<< /Type /Pages /Kids [] /Count 0 >>",
    }
    dictionary, data = object_stream(members)
    pdf = RawPdf("1.5")
    pdf.add_stream(3, dictionary, data)
    pdf.xref_stream(4, b"/Root 1 0 R", {1: (3, 0), 2: (3, 1)})
    return pdf.bytes()


@pytest.fixture()
def seeded_random() -> Callable[[int], bytes]:
    return Random(1234).randbytes


@pytest.fixture()
def sample_pdf(tmp_path: Path) -> Path:
    pdf_path = tmp_path / "sample.pdf"
    writer = PdfWriter()
    for index in range(3):
        page = writer.add_blank_page(width=200, height=200)
        content = DecodedStreamObject()
        content.set_data(f"BT /F1 12 Tf 20 100 Td (Page {index + 1}) Tj ET".encode("ascii"))
        page[NameObject("/Contents")] = writer._add_object(content)
        page[NameObject("/Resources")] = DictionaryObject()
    writer.add_metadata({"/Producer": "pdfguard-tests", "/Title": "Sample"})
    with pdf_path.open("wb") as stream:
        writer.write(stream)
    return pdf_path


@pytest.fixture()
def sample_bytes(sample_pdf: Path) -> bytes:
    return sample_pdf.read_bytes()


@pytest.fixture()
def pdf_factory(tmp_path: Path) -> Callable[[str, str | None], Path]:
    def _create(filename: str, title: str | None = None) -> Path:
        path = tmp_path / filename
        writer = PdfWriter()
        writer.add_blank_page(width=72, height=72)
        if title is not None:
            writer.add_metadata({"/Title": title})
        with path.open("wb") as handle:
            writer.write(handle)
        return path

    return _create


@pytest.fixture()
def hybrid_pdf() -> bytes:
    """Classic table whose ``/XRefStm`` adds object 5 and tries to replace object 2."""

    members = {
        5: b"(packed value)",
        2: b"<< /Type /Pages /Kids [] /Count 99 >>",
    }
    dictionary, data = object_stream(members)
    pdf = RawPdf("1.5")
    pdf.add(1, b"<< /Type /Catalog /Pages 2 0 R /Extra 5 0 R >>")
    pdf.add(2, b"<< /Type /Pages /Kids [] /Count 0 >>")
    pdf.add_stream(3, dictionary, data)
    hybrid = pdf.hybrid_stream(4, {5: (3, 0), 2: (3, 1)})
    pdf.xref_table(f"/Size 6 /Root 1 0 R /XRefStm {hybrid}".encode("ascii"))
    return pdf.bytes()
