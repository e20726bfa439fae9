"""Structural models produced by the container parser."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, Mapping

from pypdf.generic import (
    ArrayObject,
    ByteStringObject,
    DictionaryObject,
    IndirectObject,
    NameObject,
    TextStringObject,
)

__all__ = ["XrefEntry", "ObjectIndex", "Trailer"]


@dataclass(frozen=True, slots=True)
class XrefEntry:
    """Location of one object as recorded by the cross-reference data."""

    generation: int
    offset: int | None = None
    container: int | None = None
    index: int | None = None
    in_use: bool = True

    @property
    def compressed(self) -> bool:
        return self.container is not None


class ObjectIndex(Mapping[int, XrefEntry]):
    """Read-only mapping of object number to :class:`XrefEntry`.

    Free entries are kept so that an object deleted by a newer incremental
    update keeps shadowing the version stored in an older section.
    """

    __slots__ = ("_entries",)

    def __init__(self, entries: Mapping[int, XrefEntry] | None = None) -> None:
        self._entries: dict[int, XrefEntry] = dict(entries or {})

    def __getitem__(self, number: int) -> XrefEntry:
        return self._entries[number]

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def in_use(self) -> list[int]:
        return [number for number in self if self._entries[number].in_use]

    def resolves(self, number: int, generation: int | None = None) -> bool:
        entry = self._entries.get(number)
        if entry is None or not entry.in_use:
            return False
        return generation is None or entry.generation == generation

    @property
    def max_object_number(self) -> int:
        return max(self._entries, default=0)


def _string_bytes(value: Any) -> bytes | None:
    if isinstance(value, ByteStringObject):
        return bytes(value)
    if isinstance(value, TextStringObject):
        return value.original_bytes
    return None


@dataclass(slots=True)
class Trailer:
    """Merged trailer dictionary; entries of the newest section win."""

    entries: DictionaryObject
    root: IndirectObject | None
    info: IndirectObject | None
    encrypt: IndirectObject | DictionaryObject | None
    ids: tuple[bytes, bytes] | None
    size: int

    @classmethod
    def from_dictionary(cls, entries: DictionaryObject) -> "Trailer":
        root = entries.get(NameObject("/Root"))
        info = entries.get(NameObject("/Info"))
        encrypt = entries.get(NameObject("/Encrypt"))
        size = entries.get(NameObject("/Size"))

        ids: tuple[bytes, bytes] | None = None
        id_array = entries.get(NameObject("/ID"))
        if isinstance(id_array, ArrayObject) and len(id_array) == 2:
            first, second = (_string_bytes(item) for item in id_array)
            if first is not None and second is not None:
                ids = (first, second)

        return cls(
            entries=entries,
            root=root if isinstance(root, IndirectObject) else None,
            info=info if isinstance(info, IndirectObject) else None,
            encrypt=encrypt if isinstance(encrypt, (IndirectObject, DictionaryObject)) else None,
            ids=ids,
            size=int(size) if isinstance(size, (int, float)) else 0,
        )

    @property
    def first_id(self) -> bytes:
        return self.ids[0] if self.ids else b""
