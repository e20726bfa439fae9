from __future__ import annotations

from io import BytesIO
from pathlib import Path

import pytest
from pypdf.generic import IndirectObject

from pdfguard.core.parser import ContainerParser, parse
from pdfguard.exceptions import BrokenXref, MalformedContainer, ParseError


def test_parse_writer_output(sample_pdf: Path) -> None:
    document = parse(sample_pdf.read_bytes())

    assert document.version.startswith("1.")
    assert document.startxref > 0
    assert document.is_encrypted is False
    catalog = document.resolve(document.trailer.root)
    assert catalog["/Type"] == "/Catalog"
    assert catalog["/Pages"]["/Count"] == 3
    info = document.resolve(document.trailer.info)
    assert info["/Title"] == "Sample"


def test_parse_accepts_binary_stream(three_object_pdf: bytes) -> None:
    document = parse(BytesIO(three_object_pdf))

    assert document.object_count == 3
    assert document.references() == [(1, 0), (2, 0), (3, 0)]
    content = document.get_object(3)
    assert content.get_data() == b"BT /F1 12 Tf (Hello world) Tj ET"


def test_generation_mismatch_does_not_resolve(three_object_pdf: bytes) -> None:
    document = parse(three_object_pdf)

    assert document.get_object(IndirectObject(2, 0, document)) is not None
    assert document.get_object(IndirectObject(2, 5, document)) is None
    assert document.get_object(42) is None


def test_incremental_update_newest_object_wins(incremental_pdf: bytes) -> None:
    document = parse(incremental_pdf)

    assert document.get_object(3) == "second revision"
    assert document.get_object(4) is None
    assert document.index[4].in_use is False
    assert document.object_count == 3


def test_xref_stream_with_object_stream(xref_stream_pdf: bytes) -> None:
    document = parse(xref_stream_pdf)

    assert document.version == "1.5"
    assert document.is_compressed(1)
    assert document.is_compressed(2)
    assert not document.is_compressed(3)
    catalog = document.get_object(1)
    assert catalog["/Title"] == "Packed"
    assert document.get_object(2)["/Type"] == "/Pages"
    assert document.trailer.root.idnum == 1


def test_hybrid_xref_stream_fills_gaps(hybrid_pdf: bytes) -> None:
    document = parse(hybrid_pdf)

    assert document.is_compressed(5)
    assert document.get_object(5) == "packed value"
    assert not document.is_compressed(2)
    assert document.get_object(2)["/Count"] == 0
    assert "/XRefStm" not in document.trailer.entries


def test_missing_header_is_malformed() -> None:
    with pytest.raises(MalformedContainer):
        parse(b"this is not a pdf at all")


def test_missing_trailer_keyword_is_malformed() -> None:
    data = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\n"
    with pytest.raises(MalformedContainer):
        parse(data)


def test_xref_table_without_trailer_is_malformed(raw_pdf) -> None:
    pdf = raw_pdf()
    pdf.add(1, b"<< /Type /Catalog >>")
    start = len(pdf.buffer)
    pdf.buffer += b"xref\n0 2\n0000000000 65535 f \n0000000015 00000 n \n"
    pdf.buffer += f"startxref\n{start}\n%%EOF\n".encode("ascii")

    with pytest.raises(MalformedContainer):
        parse(pdf.bytes())


def test_startxref_without_any_trailer_is_malformed() -> None:
    with pytest.raises(MalformedContainer):
        parse(b"%PDF-1.4\nstartxref\n0\n%%EOF\n")


def test_startxref_outside_file_is_broken(raw_pdf) -> None:
    pdf = raw_pdf()
    pdf.add(1, b"<< /Type /Catalog >>")
    pdf.xref_table(b"/Size 2 /Root 1 0 R", startxref=999999)

    with pytest.raises(BrokenXref):
        parse(pdf.bytes())


def test_startxref_pointing_at_garbage_is_broken(raw_pdf) -> None:
    pdf = raw_pdf()
    pdf.add(1, b"<< /Type /Catalog >>")
    pdf.xref_table(b"/Size 2 /Root 1 0 R", startxref=3)

    with pytest.raises(BrokenXref):
        parse(pdf.bytes())


def test_dangling_root_is_broken(raw_pdf) -> None:
    pdf = raw_pdf()
    pdf.add(1, b"<< /Type /Catalog >>")
    pdf.xref_table(b"/Size 2 /Root 7 0 R")

    with pytest.raises(BrokenXref):
        parse(pdf.bytes())


def test_missing_root_is_malformed(raw_pdf) -> None:
    pdf = raw_pdf()
    pdf.add(1, b"<< /Type /Catalog >>")
    pdf.xref_table(b"/Size 2")

    with pytest.raises(MalformedContainer):
        parse(pdf.bytes())


def test_non_integer_xref_stream_widths_are_broken(raw_pdf) -> None:
    pdf = raw_pdf("1.5")
    pdf.add(1, b"<< /Type /Catalog >>")
    start = len(pdf.buffer)
    pdf.add_stream(2, b"/Type /XRef /Size 3 /W [/a /b /c] /Root 1 0 R", bytes(21))
    pdf.buffer += f"startxref\n{start}\n%%EOF\n".encode("ascii")

    with pytest.raises(BrokenXref):
        parse(pdf.bytes())


def test_non_numeric_object_stream_header_is_broken(raw_pdf) -> None:
    pdf = raw_pdf("1.5")
    pdf.add_stream(3, b"/Type /ObjStm /N 2 /First 8", b"a b c d <<>> <<>>")
    pdf.xref_stream(4, b"/Root 1 0 R", {1: (3, 0), 2: (3, 1)})

    with pytest.raises(BrokenXref):
        document = parse(pdf.bytes())
        document.get_object(1)


def test_wrong_offset_fails_when_materialised(raw_pdf) -> None:
    pdf = raw_pdf()
    pdf.add(1, b"<< /Type /Catalog /Pages 2 0 R >>")
    pdf.add(2, b"<< /Type /Pages /Kids [] /Count 0 >>")
    pdf.pending[2] = (pdf.pending[1][0], 0, True)
    pdf.xref_table(b"/Size 3 /Root 1 0 R")

    document = parse(pdf.bytes())
    with pytest.raises(BrokenXref):
        document.get_object(2)


def test_prev_cycle_terminates(raw_pdf) -> None:
    pdf = raw_pdf()
    pdf.add(1, b"<< /Type /Catalog >>")
    start = len(pdf.buffer)
    pdf.xref_table(f"/Size 2 /Root 1 0 R /Prev {start}".encode("ascii"))

    document = parse(pdf.bytes())
    assert document.object_count == 1


def test_parse_errors_share_a_base_class() -> None:
    assert issubclass(MalformedContainer, ParseError)
    assert issubclass(BrokenXref, ParseError)
    with pytest.raises(ParseError):
        ContainerParser(b"").parse()
