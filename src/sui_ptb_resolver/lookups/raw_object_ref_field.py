from __future__ import annotations

from sui_ptb_resolver.client import LedgerClient
from sui_ptb_resolver.converters import bytes_to_address, digest_to_bytes, pack_object_ref
from sui_ptb_resolver.errors import MissingField, TypeMismatch, ValidationError
from sui_ptb_resolver.lookups.base import LookupHandler
from sui_ptb_resolver.lookups.raw_field import RAW_KEY_TYPE
from sui_ptb_resolver.models import ObjectRef, RawObjectRefFieldLookup


class RawObjectRefFieldHandler(LookupHandler[RawObjectRefFieldLookup]):
    """Dynamic object field; resolves to ``id(32) ++ version(u64 LE) ++ digest``."""

    def fetch(self, lookup: RawObjectRefFieldLookup, client: LedgerClient) -> bytes:
        obj = client.get_dynamic_field_object(bytes_to_address(lookup.parent), RAW_KEY_TYPE, list(lookup.key))
        if obj is None:
            raise self.error(MissingField, lookup, "dynamic object field not found")
        if not obj.object_id or not obj.digest:
            raise self.error(
                MissingField, lookup, "missing ObjectRef components", objectId=obj.object_id, digest=obj.digest
            )
        try:
            digest = digest_to_bytes(obj.digest)
        except ValidationError as e:
            raise self.error(TypeMismatch, lookup, f"digest is not base58: {obj.digest!r}") from e
        ref = ObjectRef(object_id=self.address_bytes(obj.object_id, lookup), version=obj.version, digest=digest)
        return pack_object_ref(ref)
