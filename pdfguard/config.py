"""Configuration objects for protection runs."""

from __future__ import annotations

from dataclasses import dataclass, field

from .crypto.handler import Permissions, Revision

__all__ = ["ProtectionSettings", "DEFAULT_REVISION"]

DEFAULT_REVISION = Revision.AES_256


@dataclass(slots=True)
class ProtectionSettings:
    """Options for :func:`pdfguard.rewriter.protect`.

    The defaults reproduce single-password protection: the owner password
    equals the user password, AES-256 (revision 6) is used and no optional
    permissions are granted.
    """

    user_password: str
    owner_password: str | None = None
    revision: Revision = DEFAULT_REVISION
    permissions: Permissions = field(default=Permissions.NONE)
    encrypt_metadata: bool = True

    def __post_init__(self) -> None:
        self.revision = Revision(self.revision)
        self.permissions = Permissions(self.permissions)
        if self.revision < Revision.AES_128 and not self.encrypt_metadata:
            raise ValueError("Unencrypted metadata requires revision 4 or later")

    @property
    def effective_owner_password(self) -> str:
        return self.owner_password or self.user_password
