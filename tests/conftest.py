"""
Shared pytest fixtures for resolver tests.

This module provides:
- FakeLedger, an in-memory LedgerClient
- A reference resolver flow (three lookups, three commands) and the ledger it runs against
"""

from __future__ import annotations

import json
import struct
from collections.abc import Sequence
from typing import Any

import pytest

from sui_ptb_resolver.builder import CallSequenceBuilder
from sui_ptb_resolver.client import DynamicFieldInfo, LedgerObject, TrialResult
from sui_ptb_resolver.constants import ZERO_ADDRESS
from sui_ptb_resolver.converters import bytes_to_digest, normalize_address
from sui_ptb_resolver.errors import RPCFailure

# ---------------------------------------------------------------------------
# Fixed identities
# ---------------------------------------------------------------------------

STATE_ID = normalize_address("0x5ba7e")
PACKAGE_ID = normalize_address("0xbeef")
REGISTRY_ID = normalize_address("0x4e6")
RECIPIENT = normalize_address("0xa11ce")
COIN_TYPE = "0000000000000000000000000000000000000000000000000000000000000002::sui::SUI"
DIGEST = bytes_to_digest(bytes([7] * 32))


def addr(n: int) -> str:
    return "0x" + format(n, "064x")


# ---------------------------------------------------------------------------
# In-memory ledger
# ---------------------------------------------------------------------------


def _name_key(parent: str, name_type: str, name_value: Any) -> tuple[str, str, str]:
    return normalize_address(parent), name_type, json.dumps(name_value, sort_keys=True)


class FakeLedger:
    """LedgerClient backed by dicts. Every call is recorded in ``calls``."""

    def __init__(self) -> None:
        self.objects: dict[str, LedgerObject] = {}
        self.dynamic_fields: dict[str, list[DynamicFieldInfo]] = {}
        self.field_objects: dict[tuple[str, str, str], LedgerObject] = {}
        self.trial_results: list[TrialResult] = []
        self.inspected: list[tuple[bytes, str]] = []
        self.calls: list[str] = []
        self.fail_methods: set[str] = set()

    def _record(self, method: str) -> None:
        self.calls.append(method)
        if method in self.fail_methods:
            raise RPCFailure(method, "injected failure")

    # -- setup -----------------------------------------------------------

    def add_object(
        self,
        object_id: str,
        *,
        type: str | None = None,
        fields: dict[str, Any] | None = None,
        version: int = 1,
        digest: str = DIGEST,
        owner: Any = None,
        is_move_object: bool = True,
    ) -> LedgerObject:
        obj = LedgerObject(
            object_id=normalize_address(object_id),
            version=version,
            digest=digest,
            type=type,
            fields=fields or {},
            owner=owner,
            is_move_object=is_move_object,
        )
        self.objects[obj.object_id] = obj
        return obj

    def add_dynamic_field(
        self, parent: str, field_id: str, *, object_type: str, fields: dict[str, Any], name_type: str = "0x1::string::String"
    ) -> None:
        obj = self.add_object(field_id, type=object_type, fields=fields)
        info = DynamicFieldInfo(name_type=name_type, name_value="n", object_id=obj.object_id, object_type=object_type)
        self.dynamic_fields.setdefault(normalize_address(parent), []).append(info)

    def add_field_object(self, parent: str, name_type: str, name_value: Any, obj: LedgerObject) -> None:
        self.field_objects[_name_key(parent, name_type, name_value)] = obj

    # -- LedgerClient ------------------------------------------------------

    def dev_inspect(self, tx_kind: bytes, sender: str = ZERO_ADDRESS) -> TrialResult:
        self._record("dev_inspect")
        self.inspected.append((tx_kind, sender))
        return self.trial_results.pop(0)

    def get_object(self, object_id: str) -> LedgerObject | None:
        self._record("get_object")
        return self.objects.get(normalize_address(object_id))

    def get_dynamic_fields(self, parent_id: str) -> list[DynamicFieldInfo]:
        self._record("get_dynamic_fields")
        return list(self.dynamic_fields.get(normalize_address(parent_id), []))

    def get_dynamic_field_object(self, parent_id: str, name_type: str, name_value: Any) -> LedgerObject | None:
        self._record("get_dynamic_field_object")
        return self.field_objects.get(_name_key(parent_id, name_type, name_value))

    def multi_get_objects(self, object_ids: Sequence[str]) -> list[LedgerObject]:
        self._record("multi_get_objects")
        out = []
        for oid in object_ids:
            obj = self.objects.get(normalize_address(oid))
            if obj is None:
                raise RPCFailure("sui_multiGetObjects", f"object {oid} not found")
            out.append(obj)
        return out


# ---------------------------------------------------------------------------
# Reference flow
# ---------------------------------------------------------------------------

REFERENCE_INPUTS = 3
REFERENCE_COMMANDS = 3


def reference_flow(builder: CallSequenceBuilder, payload: bytes) -> None:
    """
    Deposit ``amount`` (u64 LE payload) of the registry's coin into the pool.

    Round 1 asks for the package and the registry (both by type suffix), the
    next round for the registry's coin type, and only then builds:

        split_coins(gas, [amount]) -> pkg::pool::deposit<coin>(state, split[0]) -> transfer(result, recipient)
    """
    package = builder.request_address_by_type_suffix(STATE_ID, "PackageInfo", "package", "package")
    registry = builder.request_address_by_type_suffix(STATE_ID, "RegistryInfo", "registry", "registry")
    if package is None or registry is None:
        return
    coin_type = builder.request_coin_type(registry, b"coin", "coin_type")
    if coin_type is None:
        return

    (amount,) = struct.unpack("<Q", payload)
    state = builder.add_shared_object(STATE_ID, 3, mutable=True)
    amount_in = builder.add_pure_u64(amount)
    recipient = builder.add_pure_address(RECIPIENT)

    split = builder.split_coins(builder.gas(), [amount_in])
    deposit = builder.add_call(
        f"{package}::pool::deposit", [coin_type], [state, builder.nested_result(split, 0)], arity=1
    )
    builder.transfer_objects([deposit], recipient)
    builder.require_type(coin_type)


REFERENCE_PAYLOAD = struct.pack("<Q", 1_000)


def seed_reference_ledger(ledger: FakeLedger) -> FakeLedger:
    ledger.add_object(STATE_ID, type=f"{PACKAGE_ID}::state::State", fields={}, owner={"Shared": {"initial_shared_version": 3}})
    ledger.add_dynamic_field(
        STATE_ID, addr(0x100), object_type=f"{PACKAGE_ID}::state::PackageInfo", fields={"package": PACKAGE_ID}
    )
    ledger.add_dynamic_field(
        STATE_ID,
        addr(0x101),
        object_type=f"{PACKAGE_ID}::state::RegistryInfo",
        fields={"value": {"type": "RegistryInfo", "fields": {"registry": REGISTRY_ID}}},
    )
    coin_field = LedgerObject(object_id=addr(0x102), version=4, digest=DIGEST, fields={"value": COIN_TYPE})
    ledger.add_field_object(REGISTRY_ID, "vector<u8>", list(b"coin"), coin_field)
    return ledger


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def reference_ledger() -> FakeLedger:
    return seed_reference_ledger(FakeLedger())
