"""
ByTypeSuffix lookups.

1. Enumerate the dynamic fields of the parent (all pages)
2. Pick the first whose object type (or name type) ends with the suffix
3. Fetch it and read the requested field as an address

Some state objects keep their package id in their own type rather than in a
dynamic field, so a ``package`` field (or a ``CurrentPackage`` suffix) falls
back to the parent's type label when nothing matches.
"""

from __future__ import annotations

from sui_ptb_resolver.client import LedgerClient
from sui_ptb_resolver.constants import CURRENT_PACKAGE_SUFFIX, PACKAGE_FIELD
from sui_ptb_resolver.converters import address_to_bytes, bytes_to_address, package_from_type
from sui_ptb_resolver.errors import MissingField, TypeMismatch, ValidationError
from sui_ptb_resolver.lookups.base import LookupHandler, unwrap_fields
from sui_ptb_resolver.models import ByTypeSuffixLookup


class ByTypeSuffixHandler(LookupHandler[ByTypeSuffixLookup]):
    def fetch(self, lookup: ByTypeSuffixLookup, client: LedgerClient) -> bytes:
        parent = bytes_to_address(lookup.parent)
        fields = client.get_dynamic_fields(parent)
        match = next(
            (f for f in fields if (f.object_type or f.name_type or "").endswith(lookup.type_suffix)),
            None,
        )

        if match is None:
            if lookup.field == PACKAGE_FIELD or lookup.type_suffix == CURRENT_PACKAGE_SUFFIX:
                parent_obj = client.get_object(parent)
                if parent_obj is not None and parent_obj.type:
                    try:
                        return address_to_bytes(package_from_type(parent_obj.type))
                    except ValidationError as e:
                        raise self.error(TypeMismatch, lookup, f"unparseable parent type {parent_obj.type!r}") from e
            raise self.error(
                MissingField,
                lookup,
                f"no dynamic field found with type suffix: {lookup.type_suffix}",
                candidates=[f.object_type or f.name_type for f in fields],
            )

        obj = self.move_object(client.get_object(match.object_id), lookup, f"field object {match.object_id}")
        value = obj.fields.get(lookup.field)
        if value is None:
            # Field<K, V> wrappers keep the payload under "value"
            value = unwrap_fields(obj.fields.get("value"))
            value = value.get(lookup.field) if isinstance(value, dict) else None
        if value is None:
            raise self.error(
                MissingField, lookup, f"field '{lookup.field}' not found in object", availableFields=sorted(obj.fields)
            )
        if isinstance(value, str):
            return self.address_bytes(value, lookup)
        raise self.error(TypeMismatch, lookup, f"expected address string, got {type(value).__name__}", value=value)
