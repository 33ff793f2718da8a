from __future__ import annotations

from typing import Any

from sui_ptb_resolver.client import LedgerClient
from sui_ptb_resolver.converters import bytes_to_address
from sui_ptb_resolver.errors import MissingField, TypeMismatch
from sui_ptb_resolver.lookups.base import LookupHandler
from sui_ptb_resolver.models import NestedPathLookup


class NestedPathHandler(LookupHandler[NestedPathLookup]):
    """Fetch the parent object and walk ``dot_path`` through its fields."""

    def fetch(self, lookup: NestedPathLookup, client: LedgerClient) -> bytes:
        obj = self.move_object(client.get_object(bytes_to_address(lookup.parent)), lookup, "parent object")

        current: Any = obj.fields
        for i, part in enumerate(p for p in lookup.dot_path.split(".") if p):
            if isinstance(current, dict) and part not in current and isinstance(current.get("fields"), dict):
                current = current["fields"]
            if not isinstance(current, dict):
                raise self.error(TypeMismatch, lookup, f"cannot navigate path: '{part}' is not inside an object", step=i)
            if part not in current:
                raise self.error(
                    MissingField, lookup, f"path component '{part}' not found", step=i, availableFields=sorted(current)
                )
            current = current[part]

        return self.value_to_bytes(current, lookup)
