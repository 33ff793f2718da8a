"""
KeyedTableEntry lookups.

1. Walk the dot path through the parent's fields to the table and read its id
2. Build the table key (raw bytes, or a struct decoded field by field)
3. Fetch the entry and return its ``value``
"""

from __future__ import annotations

from typing import Any

from sui_ptb_resolver.client import LedgerClient
from sui_ptb_resolver.converters import bytes_to_address
from sui_ptb_resolver.errors import MissingField, TypeMismatch
from sui_ptb_resolver.lookups.base import LookupHandler, unwrap_fields
from sui_ptb_resolver.models import KeyedTableEntryLookup, StructField


def decode_key_field(name: str, value: bytes) -> Any:
    """
    Decode one structured-key field into its JSON-RPC form, guessing by name.

    - names containing "chain" are u16/u32 numbers, or a u64 decimal string
    - names containing "addr" are byte arrays
    - names containing "amount" or "value" are u64, then u256, as decimal strings
    - anything else stays a byte array
    """
    lower = name.lower()
    if "chain" in lower:
        if len(value) in (2, 4):
            return int.from_bytes(value, "little")
        if len(value) == 8:
            return str(int.from_bytes(value, "little"))
    if "addr" in lower:
        return list(value)
    if "amount" in lower or "value" in lower:
        if len(value) == 8 or len(value) == 32:
            return str(int.from_bytes(value, "little"))
    return list(value)


def build_structured_key(fields: tuple[StructField, ...]) -> dict[str, Any]:
    key: dict[str, Any] = {}
    for f in fields:
        name = f.name.decode("utf-8", errors="replace")
        key[name] = decode_key_field(name, f.value)
    return key


class KeyedTableEntryHandler(LookupHandler[KeyedTableEntryLookup]):
    def fetch(self, lookup: KeyedTableEntryLookup, client: LedgerClient) -> bytes:
        table_id = self.table_id(lookup, client)

        if lookup.key_structured is not None:
            key: Any = build_structured_key(lookup.key_structured)
        else:
            key = list(lookup.key_raw or b"")

        entry = self.move_object(
            client.get_dynamic_field_object(table_id, lookup.key_type, key), lookup, f"table entry in {table_id}"
        )
        value = entry.fields.get("value")
        if value is None:
            raise self.error(MissingField, lookup, "table entry has no value field", availableFields=sorted(entry.fields))
        if isinstance(value, str):
            return value.encode("utf-8")
        if isinstance(value, (bytes, bytearray)):
            return bytes(value)
        if isinstance(value, list):
            try:
                return bytes(value)
            except (TypeError, ValueError) as e:
                raise self.error(TypeMismatch, lookup, "table value is not a byte vector", value=value) from e
        raise self.error(TypeMismatch, lookup, f"unexpected value type: {type(value).__name__}", value=value)

    def table_id(self, lookup: KeyedTableEntryLookup, client: LedgerClient) -> str:
        parent = self.move_object(client.get_object(bytes_to_address(lookup.parent)), lookup, "parent object")
        parts = [p for p in lookup.path.split(".") if p]
        if not parts:
            raise self.error(MissingField, lookup, "empty table path")

        current: dict[str, Any] = parent.fields
        for i, part in enumerate(parts):
            value = current.get(part)
            if value is None:
                raise self.error(
                    MissingField, lookup, f"path component '{part}' not found", step=i, availableFields=sorted(current)
                )
            value = unwrap_fields(value)
            if not isinstance(value, dict):
                raise self.error(TypeMismatch, lookup, f"path component '{part}' is not an object", step=i)
            current = value

        uid = current.get("id")
        table_id = uid.get("id") if isinstance(uid, dict) else None
        table_id = table_id or current.get("name") or current.get("table_id")
        if not isinstance(table_id, str):
            raise self.error(TypeMismatch, lookup, f"could not extract table id from '{parts[-1]}'")
        return table_id
