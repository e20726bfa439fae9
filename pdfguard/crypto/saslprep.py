"""SASLprep (RFC 4013) profile of stringprep, used for revision 6 passwords."""

from __future__ import annotations

import stringprep
import unicodedata

__all__ = ["saslprep"]

_PROHIBITED = (
    stringprep.in_table_c12,
    stringprep.in_table_c21_c22,
    stringprep.in_table_c3,
    stringprep.in_table_c4,
    stringprep.in_table_c5,
    stringprep.in_table_c6,
    stringprep.in_table_c7,
    stringprep.in_table_c8,
    stringprep.in_table_c9,
)


def saslprep(data: str) -> str:
    """Prepare ``data`` for use as a password.

    Raises :class:`ValueError` when the string contains prohibited code points
    or fails the bidirectional check.
    """

    if not data:
        return data

    # Map non-ASCII spaces to SPACE and drop "commonly mapped to nothing".
    mapped = "".join(
        " " if stringprep.in_table_c12(char) else char
        for char in data
        if not stringprep.in_table_b1(char)
    )
    normalized = unicodedata.ucd_3_2_0.normalize("NFKC", mapped)
    if not normalized:
        return normalized

    if stringprep.in_table_d1(normalized[0]):
        if not stringprep.in_table_d1(normalized[-1]):
            raise ValueError("SASLprep: failed bidirectional check")
        prohibited = _PROHIBITED + (stringprep.in_table_d2,)
    else:
        prohibited = _PROHIBITED + (stringprep.in_table_d1,)

    for char in normalized:
        if any(check(char) for check in prohibited):
            raise ValueError("SASLprep: prohibited character in password")
    return normalized
