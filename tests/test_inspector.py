from __future__ import annotations

import pytest

from pdfguard.core.parser import parse
from pdfguard.crypto.handler import Permissions, Revision
from pdfguard.exceptions import BrokenXref, MalformedContainer, UnsupportedEncryptionRevision
from pdfguard.inspector import describe, is_protected
from pdfguard.rewriter import protect


def test_plain_document_is_not_protected(three_object_pdf: bytes) -> None:
    assert is_protected(three_object_pdf) is False
    assert is_protected(parse(three_object_pdf)) is False


def test_protected_document_is_detected(three_object_pdf: bytes) -> None:
    assert is_protected(protect(three_object_pdf, "secret")) is True


def test_inspection_does_not_need_a_password(sample_bytes: bytes) -> None:
    output = protect(sample_bytes, "secret", revision=Revision.RC4_128)

    info = describe(output)
    assert info.protected is True
    assert info.revision == 3
    assert info.method == "/V2"
    assert info.key_bits == 128
    assert info.permissions == Permissions.NONE
    assert info.encrypt_metadata is True


def test_describe_plain_document(three_object_pdf: bytes) -> None:
    info = describe(three_object_pdf)

    assert info.protected is False
    assert info.pdf_version == "1.4"
    assert info.object_count == 3
    assert info.revision is None
    assert info.key_bits is None


def test_describe_default_protection(three_object_pdf: bytes) -> None:
    info = describe(protect(three_object_pdf, "secret"))

    assert info.revision == 6
    assert info.method == "/AESV3"
    assert info.key_bits == 256
    assert info.pdf_version == "1.7"
    assert info.object_count == 4


def test_corrupt_input_raises_parse_error() -> None:
    with pytest.raises(MalformedContainer):
        is_protected(b"%PDF-1.7\nnothing else here\n")


def test_dangling_encrypt_reference_is_broken(raw_pdf) -> None:
    pdf = raw_pdf()
    pdf.add(1, b"<< /Type /Catalog >>")
    pdf.xref_table(b"/Size 2 /Root 1 0 R /Encrypt 9 0 R")

    with pytest.raises(BrokenXref):
        is_protected(pdf.bytes())


def test_unknown_handler_is_reported(raw_pdf) -> None:
    pdf = raw_pdf()
    pdf.add(1, b"<< /Type /Catalog >>")
    pdf.add(2, b"<< /Filter /Adobe.PubSec /V 4 /R 4 >>")
    pdf.xref_table(b"/Size 3 /Root 1 0 R /Encrypt 2 0 R")
    data = pdf.bytes()

    assert is_protected(data) is True
    with pytest.raises(UnsupportedEncryptionRevision):
        describe(data)
