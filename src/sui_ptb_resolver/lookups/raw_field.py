from __future__ import annotations

from sui_ptb_resolver.client import LedgerClient
from sui_ptb_resolver.converters import bytes_to_address
from sui_ptb_resolver.errors import MissingField
from sui_ptb_resolver.lookups.base import LookupHandler
from sui_ptb_resolver.models import RawFieldLookup

RAW_KEY_TYPE = "vector<u8>"


class RawFieldHandler(LookupHandler[RawFieldLookup]):
    """Dynamic field named by ``vector<u8>`` key bytes; returns its ``value``."""

    def fetch(self, lookup: RawFieldLookup, client: LedgerClient) -> bytes:
        obj = self.move_object(
            client.get_dynamic_field_object(bytes_to_address(lookup.parent), RAW_KEY_TYPE, list(lookup.key)),
            lookup,
            "dynamic field",
        )
        value = obj.fields.get("value")
        if value is None:
            raise self.error(MissingField, lookup, "dynamic field has no value", availableFields=sorted(obj.fields))
        return self.value_to_bytes(value, lookup)
