"""
Custom exceptions for pdfguard.

Every failure surfaced by the engine is a subclass of :class:`PdfGuardError`
and carries a stable ``kind`` string that hosts can map onto their own
transport (an error code plus message pair, an exit status, ...).
"""


class PdfGuardError(Exception):
    """Base exception for all pdfguard errors."""

    kind = "PdfGuardError"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    @property
    def default_message(self) -> str:
        return "An unknown pdfguard error occurred."


class ParseError(PdfGuardError):
    """Raised when the container structure cannot be read."""

    kind = "ParseError"

    @property
    def default_message(self) -> str:
        return "Unable to parse PDF container."


class MalformedContainer(ParseError):
    """Raised when no header or trailer can be located."""

    kind = "MalformedContainer"

    @property
    def default_message(self) -> str:
        return "Input is not a PDF container: no trailer could be located."


class BrokenXref(ParseError):
    """Raised when cross-reference offsets do not resolve to objects."""

    kind = "BrokenXref"

    @property
    def default_message(self) -> str:
        return "Cross-reference data does not resolve to valid objects."


class UnsupportedEncryptionRevision(PdfGuardError):
    """Raised for security handlers or revisions the engine does not implement."""

    kind = "UnsupportedEncryptionRevision"

    @property
    def default_message(self) -> str:
        return "Unsupported encryption handler or revision."


class WrongPassword(PdfGuardError):
    """Raised when a password matches neither the owner nor the user hash."""

    kind = "WrongPassword"

    @property
    def default_message(self) -> str:
        return "Incorrect password for encrypted PDF."


class AlreadyProtected(PdfGuardError):
    """Raised when protection is applied to an already encrypted document."""

    kind = "AlreadyProtected"

    @property
    def default_message(self) -> str:
        return "Input PDF is already encrypted."


class NotProtected(PdfGuardError):
    """Raised when protection removal is requested on a plain document."""

    kind = "NotProtected"

    @property
    def default_message(self) -> str:
        return "Input PDF is not encrypted."


class IOBoundary(PdfGuardError):
    """Raised by the host layer when reading or writing files fails."""

    kind = "IOBoundary"

    @property
    def default_message(self) -> str:
        return "Unable to read or write the PDF file."


__all__ = [
    "PdfGuardError",
    "ParseError",
    "MalformedContainer",
    "BrokenXref",
    "UnsupportedEncryptionRevision",
    "WrongPassword",
    "AlreadyProtected",
    "NotProtected",
    "IOBoundary",
]
