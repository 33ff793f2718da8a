"""
Flattening of lookup descriptors into the needs-data event's ``lookup_key``.

Key layouts (``0xFF`` never occurs in valid UTF-8, so it is a safe separator
after a string prefix):

    ByTypeSuffix        type_suffix ++ 0xFF ++ field
    KeyedTableEntry     table_path ++ 0xFF ++ key_bytes               (raw key)
                        table_path ++ 0xFF ++ structured_key          (structured key)
    RawField            key
    RawObjectRefField   key
    NestedPath          dot_path

    structured_key = field_count:u8 ++ { name_len:u8 ++ name ++ value_len:u16 BE ++ value }*

The event carries the kind explicitly (``lookup_kind: u8``), so decoding never
has to guess the descriptor variant from the key bytes.
"""

from __future__ import annotations

import struct
from collections.abc import Sequence
from enum import IntEnum

from sui_ptb_resolver.constants import (
    LOOKUP_KEY_SEPARATOR,
    MAX_FIELD_NAME_LENGTH,
    MAX_FIELD_VALUE_LENGTH,
    MAX_STRUCTURED_FIELDS,
)
from sui_ptb_resolver.errors import MalformedEncoding, ValidationError
from sui_ptb_resolver.models import (
    ByTypeSuffixLookup,
    KeyedTableEntryLookup,
    LookupDescriptor,
    NestedPathLookup,
    RawFieldLookup,
    RawObjectRefFieldLookup,
    StructField,
)

_SEP = bytes([LOOKUP_KEY_SEPARATOR])


class LookupKind(IntEnum):
    BY_TYPE_SUFFIX = 0
    KEYED_TABLE_ENTRY_RAW = 1
    KEYED_TABLE_ENTRY_STRUCTURED = 2
    RAW_FIELD = 3
    RAW_OBJECT_REF_FIELD = 4
    NESTED_PATH = 5


def encode_structured_key(fields: Sequence[StructField]) -> bytes:
    if len(fields) > MAX_STRUCTURED_FIELDS:
        raise ValidationError("key_structured", f"{len(fields)} fields exceeds the limit of {MAX_STRUCTURED_FIELDS}")
    out = bytearray([len(fields)])
    for f in fields:
        name = bytes(f.name)
        value = bytes(f.value)
        if len(name) > MAX_FIELD_NAME_LENGTH:
            raise ValidationError("key_structured", f"field name of {len(name)} bytes exceeds {MAX_FIELD_NAME_LENGTH}")
        if len(value) > MAX_FIELD_VALUE_LENGTH:
            raise ValidationError(
                "key_structured", f"value of field {name!r} is {len(value)} bytes, limit {MAX_FIELD_VALUE_LENGTH}"
            )
        out.append(len(name))
        out += name
        out += struct.pack(">H", len(value))
        out += value
    return bytes(out)


def decode_structured_key(data: bytes) -> tuple[StructField, ...]:
    if not data:
        raise MalformedEncoding("structured key", "empty buffer")
    count = data[0]
    pos = 1
    fields: list[StructField] = []
    for i in range(count):
        if pos >= len(data):
            raise MalformedEncoding("structured key", f"missing field {i} of {count}", offset=pos)
        name_len = data[pos]
        pos += 1
        if pos + name_len + 2 > len(data):
            raise MalformedEncoding("structured key", f"field {i} name truncated", offset=pos)
        name = data[pos : pos + name_len]
        pos += name_len
        (value_len,) = struct.unpack_from(">H", data, pos)
        pos += 2
        if pos + value_len > len(data):
            raise MalformedEncoding("structured key", f"field {i} value truncated", offset=pos)
        value = data[pos : pos + value_len]
        pos += value_len
        fields.append(StructField(name=bytes(name), value=bytes(value)))
    if pos != len(data):
        raise MalformedEncoding("structured key", f"{len(data) - pos} trailing bytes", offset=pos)
    return tuple(fields)


def encode_lookup_key(lookup: LookupDescriptor) -> tuple[LookupKind, bytes, str]:
    """Return ``(kind, lookup_key, key_type)`` for a needs-data event."""
    if isinstance(lookup, ByTypeSuffixLookup):
        key = lookup.type_suffix.encode("utf-8") + _SEP + lookup.field.encode("utf-8")
        return LookupKind.BY_TYPE_SUFFIX, key, ""
    if isinstance(lookup, KeyedTableEntryLookup):
        path = lookup.path.encode("utf-8")
        if lookup.key_raw is not None:
            return LookupKind.KEYED_TABLE_ENTRY_RAW, path + _SEP + bytes(lookup.key_raw), lookup.key_type
        if lookup.key_structured is None:
            raise ValidationError("key", "keyed table entry needs key_raw or key_structured")
        encoded = encode_structured_key(lookup.key_structured)
        return LookupKind.KEYED_TABLE_ENTRY_STRUCTURED, path + _SEP + encoded, lookup.key_type
    if isinstance(lookup, RawFieldLookup):
        return LookupKind.RAW_FIELD, bytes(lookup.key), ""
    if isinstance(lookup, RawObjectRefFieldLookup):
        return LookupKind.RAW_OBJECT_REF_FIELD, bytes(lookup.key), ""
    if isinstance(lookup, NestedPathLookup):
        return LookupKind.NESTED_PATH, lookup.dot_path.encode("utf-8"), ""
    raise TypeError(f"unknown lookup variant: {type(lookup).__name__}")


def _split_first(key: bytes, what: str) -> tuple[str, bytes]:
    idx = key.find(_SEP)
    if idx < 0:
        raise MalformedEncoding(what, "lookup key has no 0xFF separator")
    try:
        head = key[:idx].decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedEncoding(what, f"prefix is not UTF-8: {e}") from e
    return head, key[idx + 1 :]


def _utf8(data: bytes, what: str) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedEncoding(what, f"not UTF-8: {e}") from e


def decode_lookup(kind: int, parent: bytes, key: bytes, key_type: str, semantic_key: str) -> LookupDescriptor:
    """Rebuild a descriptor from the fields of a needs-data event."""
    try:
        k = LookupKind(kind)
    except ValueError as e:
        raise MalformedEncoding("needs-data event", f"unknown lookup_kind {kind}") from e

    key = bytes(key)
    if k is LookupKind.BY_TYPE_SUFFIX:
        suffix, rest = _split_first(key, "ByTypeSuffix key")
        return ByTypeSuffixLookup(
            parent=parent, type_suffix=suffix, field=_utf8(rest, "ByTypeSuffix field"), semantic_key=semantic_key
        )
    if k is LookupKind.KEYED_TABLE_ENTRY_RAW:
        path, rest = _split_first(key, "KeyedTableEntry key")
        return KeyedTableEntryLookup(parent=parent, path=path, key_type=key_type, semantic_key=semantic_key, key_raw=rest)
    if k is LookupKind.KEYED_TABLE_ENTRY_STRUCTURED:
        path, rest = _split_first(key, "KeyedTableEntry key")
        return KeyedTableEntryLookup(
            parent=parent,
            path=path,
            key_type=key_type,
            semantic_key=semantic_key,
            key_structured=decode_structured_key(rest),
        )
    if k is LookupKind.RAW_FIELD:
        return RawFieldLookup(parent=parent, key=key, semantic_key=semantic_key)
    if k is LookupKind.RAW_OBJECT_REF_FIELD:
        return RawObjectRefFieldLookup(parent=parent, key=key, semantic_key=semantic_key)
    return NestedPathLookup(parent=parent, dot_path=_utf8(key, "NestedPath key"), semantic_key=semantic_key)
