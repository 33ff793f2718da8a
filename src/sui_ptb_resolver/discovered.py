"""Append-only table of data discovered during a resolution session."""

from __future__ import annotations

from collections.abc import Iterator

from sui_ptb_resolver.codec import decode_discovered_entries, encode_discovered_entries
from sui_ptb_resolver.errors import ValidationError


class DiscoveredData:
    """
    Ordered ``(semantic key, value)`` pairs.

    Inserting never overwrites: a duplicate key is stored, but lookups always
    return the first value written for it. There is no deletion.
    """

    def __init__(self, entries: list[tuple[str, bytes]] | None = None):
        self._entries: list[tuple[str, bytes]] = []
        for key, value in entries or []:
            self.insert(key, value)

    def insert(self, key: str, value: bytes | bytearray) -> None:
        if not isinstance(key, str):
            raise ValidationError("semantic_key", f"must be a string, got {type(key).__name__}")
        self._entries.append((key, bytes(value)))

    def lookup(self, key: str) -> bytes | None:
        for k, v in self._entries:
            if k == key:
                return v
        return None

    def keys(self) -> list[str]:
        return [k for k, _ in self._entries]

    def entries(self) -> list[tuple[str, bytes]]:
        return list(self._entries)

    def as_dict(self) -> dict[str, bytes]:
        out: dict[str, bytes] = {}
        for k, v in self._entries:
            out.setdefault(k, v)
        return out

    def copy(self) -> DiscoveredData:
        return DiscoveredData(self._entries)

    def encode(self) -> bytes:
        return encode_discovered_entries(self._entries)

    @classmethod
    def decode(cls, data: bytes) -> DiscoveredData:
        return cls(decode_discovered_entries(data))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return any(k == key for k, _ in self._entries)

    def __iter__(self) -> Iterator[tuple[str, bytes]]:
        return iter(list(self._entries))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DiscoveredData):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"DiscoveredData({self.keys()!r})"
