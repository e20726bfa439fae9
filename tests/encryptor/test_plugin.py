from __future__ import annotations

from pathlib import Path

import pytest

from pdfguard.crypto.handler import Permissions, Revision
from pdfguard.inspector import ProtectionInfo
from pdfguard.tools import load_builtin_plugins
from pdfguard.tools.common.interfaces import ToolContext
from pdfguard.tools.common.pipeline import registry


def setup_module(module):
    load_builtin_plugins()


def test_builtin_tools_are_registered() -> None:
    assert {"encrypt", "decrypt", "inspect"} <= set(registry.names())
    assert "encrypt" in registry


def test_encrypt_and_decrypt(sample_pdf: Path, tmp_path: Path) -> None:
    encrypted = tmp_path / "encrypted.pdf"
    decrypted = tmp_path / "decrypted.pdf"

    encrypt_context = ToolContext(
        input_path=sample_pdf,
        output_path=encrypted,
        config={"password": "secret"},
    )
    encrypt_tool = registry.create("encrypt", encrypt_context)
    encrypt_tool.run()
    assert encrypted.exists()

    inspect_context = ToolContext(input_path=encrypted)
    assert registry.run("inspect", inspect_context) is True
    assert inspect_context.resources["result"] is True

    decrypt_context = ToolContext(
        input_path=encrypted,
        output_path=decrypted,
        config={"password": "secret"},
    )
    decrypt_tool = registry.create("decrypt", decrypt_context)
    decrypt_tool.run()
    assert decrypted.exists()
    assert registry.run("inspect", ToolContext(input_path=decrypted)) is False


def test_encrypt_honours_config(sample_pdf: Path, tmp_path: Path) -> None:
    encrypted = tmp_path / "encrypted.pdf"
    context = ToolContext(
        input_path=sample_pdf,
        output_path=encrypted,
        config={
            "password": "secret",
            "owner_password": "owner",
            "revision": 4,
            "permissions": Permissions.PRINT | Permissions.COPY,
        },
    )
    registry.run("encrypt", context)

    info = registry.run("inspect", ToolContext(input_path=encrypted, config={"detailed": True}))
    assert isinstance(info, ProtectionInfo)
    assert info.revision == int(Revision.AES_128)
    assert info.permissions == Permissions.PRINT | Permissions.COPY


def test_encrypt_requires_password(sample_pdf: Path, tmp_path: Path) -> None:
    context = ToolContext(input_path=sample_pdf, output_path=tmp_path / "out.pdf")

    with pytest.raises(ValueError):
        registry.run("encrypt", context)


def test_encrypt_requires_output_path(sample_pdf: Path) -> None:
    context = ToolContext(input_path=sample_pdf, config={"password": "secret"})

    with pytest.raises(ValueError):
        registry.run("encrypt", context)


def test_unknown_tool() -> None:
    with pytest.raises(KeyError):
        registry.create("shred", ToolContext())
