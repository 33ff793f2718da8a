"""Dispatches lookup descriptors to their handlers."""

from __future__ import annotations

from sui_ptb_resolver.client import LedgerClient
from sui_ptb_resolver.lookups.by_type_suffix import ByTypeSuffixHandler
from sui_ptb_resolver.lookups.keyed_table_entry import KeyedTableEntryHandler
from sui_ptb_resolver.lookups.nested_path import NestedPathHandler
from sui_ptb_resolver.lookups.raw_field import RawFieldHandler
from sui_ptb_resolver.lookups.raw_object_ref_field import RawObjectRefFieldHandler
from sui_ptb_resolver.models import (
    ByTypeSuffixLookup,
    KeyedTableEntryLookup,
    LookupDescriptor,
    NestedPathLookup,
    RawFieldLookup,
    RawObjectRefFieldLookup,
)


class LookupDispatcher:
    def __init__(self, client: LedgerClient):
        self.client = client
        self.by_type_suffix = ByTypeSuffixHandler()
        self.keyed_table_entry = KeyedTableEntryHandler()
        self.raw_field = RawFieldHandler()
        self.raw_object_ref_field = RawObjectRefFieldHandler()
        self.nested_path = NestedPathHandler()

    def resolve(self, lookup: LookupDescriptor) -> bytes:
        """
        Resolve a descriptor to bytes.

        Raises:
            LookupResolutionError: (or a subclass) if the datum cannot be produced.
            TypeError: for an unknown descriptor variant.
        """
        if isinstance(lookup, ByTypeSuffixLookup):
            return self.by_type_suffix.resolve(lookup, self.client)
        if isinstance(lookup, KeyedTableEntryLookup):
            return self.keyed_table_entry.resolve(lookup, self.client)
        if isinstance(lookup, RawFieldLookup):
            return self.raw_field.resolve(lookup, self.client)
        if isinstance(lookup, RawObjectRefFieldLookup):
            return self.raw_object_ref_field.resolve(lookup, self.client)
        if isinstance(lookup, NestedPathLookup):
            return self.nested_path.resolve(lookup, self.client)
        raise TypeError(f"unknown lookup variant: {type(lookup).__name__}")
