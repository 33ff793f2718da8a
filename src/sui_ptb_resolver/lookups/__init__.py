from sui_ptb_resolver.lookups.base import LookupHandler
from sui_ptb_resolver.lookups.by_type_suffix import ByTypeSuffixHandler
from sui_ptb_resolver.lookups.keyed_table_entry import KeyedTableEntryHandler
from sui_ptb_resolver.lookups.nested_path import NestedPathHandler
from sui_ptb_resolver.lookups.raw_field import RawFieldHandler
from sui_ptb_resolver.lookups.raw_object_ref_field import RawObjectRefFieldHandler
from sui_ptb_resolver.lookups.resolver import LookupDispatcher

__all__ = [
    "ByTypeSuffixHandler",
    "KeyedTableEntryHandler",
    "LookupDispatcher",
    "LookupHandler",
    "NestedPathHandler",
    "RawFieldHandler",
    "RawObjectRefFieldHandler",
]
