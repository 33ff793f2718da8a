from __future__ import annotations

import logging
import re
import struct
from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from sui_ptb_resolver.client import LedgerClient, LedgerObject
from sui_ptb_resolver.converters import address_to_bytes, bytes_to_address, bytes_to_hex
from sui_ptb_resolver.errors import LookupResolutionError, MissingField, RPCFailure, TypeMismatch, ValidationError
from sui_ptb_resolver.models import (
    ByTypeSuffixLookup,
    KeyedTableEntryLookup,
    LookupDescriptor,
    NestedPathLookup,
    RawFieldLookup,
    RawObjectRefFieldLookup,
    lookup_kind_name,
)

logger = logging.getLogger(__name__)

L = TypeVar("L", bound=LookupDescriptor)

_U64_MAX = (1 << 64) - 1
_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{1,64}$")


def describe_key(lookup: LookupDescriptor) -> str:
    """Human-readable key of a descriptor, for error reports."""
    if isinstance(lookup, ByTypeSuffixLookup):
        return f"{lookup.type_suffix}.{lookup.field}"
    if isinstance(lookup, KeyedTableEntryLookup):
        if lookup.key_raw is not None:
            return f"{lookup.path}[{bytes_to_hex(lookup.key_raw)}]"
        names = ",".join(f.name.decode("utf-8", errors="replace") for f in lookup.key_structured or ())
        return f"{lookup.path}[{names}]"
    if isinstance(lookup, (RawFieldLookup, RawObjectRefFieldLookup)):
        return bytes_to_hex(lookup.key)
    if isinstance(lookup, NestedPathLookup):
        return lookup.dot_path
    raise TypeError(f"unknown lookup variant: {type(lookup).__name__}")


def unwrap_fields(value: Any) -> Any:
    """Strip a ``{"type": ..., "fields": {...}}`` wrapper as rendered by Sui JSON-RPC."""
    if isinstance(value, dict) and isinstance(value.get("fields"), dict):
        return value["fields"]
    return value


class LookupHandler(ABC, Generic[L]):
    """Resolves one kind of lookup descriptor to raw bytes."""

    def resolve(self, lookup: L, client: LedgerClient) -> bytes:
        try:
            value = self.fetch(lookup, client)
        except LookupResolutionError:
            raise
        except RPCFailure as e:
            raise self.error(LookupResolutionError, lookup, "RPC call failed", error=e.message) from e
        logger.debug(f"Resolved {lookup_kind_name(lookup)} {lookup.semantic_key!r}: {len(value)} bytes")
        return value

    @abstractmethod
    def fetch(self, lookup: L, client: LedgerClient) -> bytes:
        raise NotImplementedError

    def error(
        self, cls: type[LookupResolutionError], lookup: LookupDescriptor, reason: str, **details: Any
    ) -> LookupResolutionError:
        return cls(
            lookup_kind_name(lookup),
            reason,
            parent=bytes_to_address(lookup.parent),
            key=describe_key(lookup),
            semantic_key=lookup.semantic_key,
            details=details,
        )

    def move_object(self, obj: LedgerObject | None, lookup: LookupDescriptor, what: str) -> LedgerObject:
        if obj is None:
            raise self.error(MissingField, lookup, f"{what} not found")
        if not obj.is_move_object:
            raise self.error(TypeMismatch, lookup, f"{what} is not a Move object", objectId=obj.object_id)
        return obj

    def address_bytes(self, value: str, lookup: LookupDescriptor) -> bytes:
        try:
            return address_to_bytes(value)
        except ValidationError as e:
            raise self.error(TypeMismatch, lookup, f"expected an address, got {value!r}") from e

    def value_to_bytes(self, value: Any, lookup: LookupDescriptor) -> bytes:
        """
        Convert a JSON-RPC field value to bytes.

        ``0x`` hex addresses become 32 bytes, other strings (coin types) UTF-8, integers
        u64 little-endian, booleans one byte, arrays raw bytes.
        """
        if isinstance(value, str):
            if _ADDRESS_RE.match(value):
                return self.address_bytes(value, lookup)
            return value.encode("utf-8")
        if isinstance(value, bool):
            return bytes([1 if value else 0])
        if isinstance(value, int):
            if not 0 <= value <= _U64_MAX:
                raise self.error(TypeMismatch, lookup, f"integer {value} does not fit in u64")
            return struct.pack("<Q", value)
        if isinstance(value, (bytes, bytearray)):
            return bytes(value)
        if isinstance(value, list):
            try:
                return bytes(value)
            except (TypeError, ValueError) as e:
                raise self.error(TypeMismatch, lookup, "array is not a byte vector", value=value) from e
        raise self.error(TypeMismatch, lookup, f"cannot convert {type(value).__name__} to bytes", value=value)
