"""Plugins exposing PDF protection, removal and inspection."""

from __future__ import annotations

from pathlib import Path

from ...config import DEFAULT_REVISION
from ...core.utils import get_logger
from ...crypto.handler import Permissions, Revision
from ...inspector import ProtectionInfo
from ...security import describe_pdf, is_pdf_encrypted, protect_pdf, unprotect_pdf
from ..common.interfaces import BaseTool
from ..common.pipeline import register_tool

LOGGER = get_logger("pdfguard.tools.encrypt")


def _require_password(config: dict, action: str) -> str:
    password = config.get("password")
    if not password:
        raise ValueError(f"A password is required for {action}")
    return password


@register_tool("encrypt")
class EncryptTool(BaseTool):
    def run(self) -> Path:
        context = self.context
        input_path, output_path = context.require_paths()
        config = context.config
        password = _require_password(config, "encryption")
        owner_password = config.get("owner_password")
        revision = Revision(config.get("revision") or DEFAULT_REVISION)

        LOGGER.debug(
            "Encrypting %s to %s with revision %s and owner password %s",
            input_path,
            output_path,
            int(revision),
            "<provided>" if owner_password else "<default>",
        )
        return protect_pdf(
            input_path,
            output_path,
            password,
            owner_password=owner_password,
            revision=revision,
            permissions=Permissions(config.get("permissions") or Permissions.NONE),
            encrypt_metadata=config.get("encrypt_metadata", True),
        )


@register_tool("decrypt")
class DecryptTool(BaseTool):
    def run(self) -> Path:
        context = self.context
        input_path, output_path = context.require_paths()
        password = _require_password(context.config, "decryption")

        LOGGER.debug("Decrypting %s to %s", input_path, output_path)
        return unprotect_pdf(input_path, output_path, password)


@register_tool("inspect")
class InspectTool(BaseTool):
    """Report protection state; ``config["detailed"]`` returns a full summary."""

    def run(self) -> bool | ProtectionInfo:
        input_path, _ = self.context.require_paths(output=False)
        config = self.context.config
        if config.get("detailed"):
            return describe_pdf(input_path)
        return is_pdf_encrypted(
            input_path,
            assume_protected_on_error=bool(config.get("assume_protected_on_error", False)),
        )
