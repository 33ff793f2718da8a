from __future__ import annotations

import struct

import pytest

from sui_ptb_resolver.builder import CallSequenceBuilder, decode_discovered_value
from sui_ptb_resolver.converters import address_to_bytes, pack_object_ref
from sui_ptb_resolver.discovered import DiscoveredData
from sui_ptb_resolver.errors import MalformedEncoding, ValidationError
from sui_ptb_resolver.events import EventParser
from sui_ptb_resolver.models import (
    ByTypeSuffixLookup,
    CommandResult,
    GasCoin,
    InputArg,
    InputHandle,
    LookupValueType,
    MoveCall,
    NeedsData,
    NestedCommandResult,
    NestedResultArg,
    ObjectRef,
    OwnedObjectInput,
    PureInput,
    RawFieldLookup,
    Resolved,
    ResultArg,
    SharedObjectInput,
    SplitCoins,
    StructField,
    TransferObjects,
)

PKG = "0x" + "ab" * 32
STATE = "0x" + "5a" * 32


def test_pure_inputs_are_bcs_encoded() -> None:
    b = CallSequenceBuilder()
    b.add_pure_u64(1000)
    b.add_pure_bool(True)
    b.add_pure_string("hi")
    b.add_pure_bytes(b"\x01\x02")
    inputs = b.finalize().inputs
    assert inputs[0] == PureInput(struct.pack("<Q", 1000), "u64")
    assert inputs[1] == PureInput(b"\x01", "bool")
    assert inputs[2] == PureInput(b"\x02hi", "0x1::string::String")
    assert inputs[3] == PureInput(b"\x02\x01\x02", "vector<u8>")


def test_handles_are_positional() -> None:
    b = CallSequenceBuilder()
    assert b.add_pure_u8(1) == InputHandle(0)
    assert b.add_pure_u8(2) == InputHandle(1)
    split = b.split_coins(b.gas(), [InputHandle(0), InputHandle(1)])
    assert split == CommandResult(0, 2)
    assert b.arities() == [2]


def test_object_inputs_are_required() -> None:
    b = CallSequenceBuilder()
    ref = ObjectRef(address_to_bytes(PKG), 3, b"\x09" * 32)
    b.add_owned_object(ref)
    b.add_shared_object(STATE, 7)
    b.add_shared_object(STATE, 7, mutable=False)
    group = b.finalize()
    assert group.inputs[0] == OwnedObjectInput(ref)
    assert isinstance(group.inputs[1], SharedObjectInput)
    assert group.inputs[2].shared_ref.mutable is False
    # deduplicated, first-seen order
    assert group.required_objects == (address_to_bytes(PKG), address_to_bytes(STATE))


def test_call_chain() -> None:
    b = CallSequenceBuilder()
    amount = b.add_pure_u64(5)
    recipient = b.add_pure_address(STATE)
    split = b.split_coins(b.gas(), [amount])
    call = b.add_call(f"{PKG}::pool::deposit", ["0x2::sui::SUI"], [b.nested_result(split, 0)])
    b.transfer_objects([call], recipient)
    group = b.finalize()

    assert group.commands[0] == SplitCoins(GasCoin(), (InputArg(0),))
    move = group.commands[1]
    assert isinstance(move, MoveCall)
    assert move.module == "pool" and move.function == "deposit"
    assert move.type_arguments == ("0x" + "0" * 63 + "2::sui::SUI",)
    assert move.arguments == (NestedResultArg(0, 0),)
    assert group.commands[2] == TransferObjects((ResultArg(1),), InputArg(1))


def test_nested_result_beyond_arity() -> None:
    b = CallSequenceBuilder()
    amount = b.add_pure_u64(5)
    split = b.split_coins(b.gas(), [amount])
    with pytest.raises(ValidationError):
        b.nested_result(split, 1)
    with pytest.raises(ValidationError):
        b.to_argument(NestedCommandResult(0, 3))


def test_forward_handles_rejected() -> None:
    b = CallSequenceBuilder()
    with pytest.raises(ValidationError):
        b.to_argument(InputHandle(0))
    with pytest.raises(ValidationError):
        b.to_argument(CommandResult(0))
    with pytest.raises(TypeError):
        b.to_argument("gas")  # type: ignore[arg-type]


def test_bad_target() -> None:
    with pytest.raises(ValidationError, match="target"):
        CallSequenceBuilder().add_call("0x2::coin")


class TestRequests:
    def test_missing_datum_is_recorded_pending(self) -> None:
        b = CallSequenceBuilder()
        assert b.request_address_by_type_suffix(STATE, "PackageInfo", "package", "package") is None
        assert b.request_coin_type(STATE, b"coin", "coin_type") is None
        assert b.has_pending()
        pending = b.pending_for_resolution()
        assert [p.semantic_key for p in pending] == ["package", "coin_type"]
        outcome = b.outcome()
        assert isinstance(outcome, NeedsData)
        assert outcome.lookups == tuple(pending)

    def test_discovered_datum_is_decoded(self) -> None:
        ref = ObjectRef(address_to_bytes(PKG), 11, b"\x01" * 32)
        d = DiscoveredData(
            [
                ("package", address_to_bytes(PKG)),
                ("coin_type", b"0x2::sui::SUI"),
                ("vault", pack_object_ref(ref)),
                ("fee", b"\x05"),
            ]
        )
        b = CallSequenceBuilder(d)
        assert b.request_address_by_type_suffix(STATE, "PackageInfo", "package", "package") == PKG
        assert b.request_coin_type(STATE, b"coin", "coin_type") == "0x2::sui::SUI"
        assert b.request_object_ref(STATE, b"vault", "vault") == ref
        assert b.request_nested_path(STATE, "config.fee", "fee") == b"\x05"
        assert not b.has_pending()
        assert isinstance(b.outcome(), Resolved)

    def test_table_entry_request(self) -> None:
        b = CallSequenceBuilder()
        b.request_table_entry(
            STATE, "registry", "0x1::k::K", "wrapped", key_structured=[StructField(b"chain", b"\x02\x00")]
        )
        (lookup,) = b.pending_for_resolution()
        assert lookup.key_structured == (StructField(b"chain", b"\x02\x00"),)
        assert lookup.key_raw is None

    def test_table_entry_needs_one_key(self) -> None:
        with pytest.raises(ValueError):
            CallSequenceBuilder().request_table_entry(STATE, "t", "u8", "k")

    def test_clear_pending_keeps_history(self) -> None:
        b = CallSequenceBuilder()
        b.request_raw_field(STATE, b"a", "a")
        b.clear_pending()
        assert not b.has_pending()
        assert len(b.requested_lookups()) == 1

    def test_emit_transmits_first_lookup_only(self) -> None:
        b = CallSequenceBuilder()
        b.request_raw_field(STATE, b"a", "a")
        b.request_raw_field(STATE, b"b", "b")
        outcome = EventParser().parse(b.emit())
        assert outcome == NeedsData((RawFieldLookup(address_to_bytes(STATE), b"a", "a"),))

    def test_emit_resolved(self) -> None:
        b = CallSequenceBuilder.from_encoded(DiscoveredData([("p", address_to_bytes(PKG))]).encode())
        b.request(ByTypeSuffixLookup(address_to_bytes(STATE), "S", "f", "p"), LookupValueType.ADDRESS)
        b.add_pure_u8(1)
        outcome = EventParser().parse(b.emit())
        assert isinstance(outcome, Resolved)
        assert len(outcome.group.inputs) == 1


class TestDecodeDiscoveredValue:
    def test_address_length_checked(self) -> None:
        with pytest.raises(MalformedEncoding):
            decode_discovered_value(b"\x01" * 31, LookupValueType.ADDRESS)

    def test_coin_type_must_be_utf8(self) -> None:
        with pytest.raises(MalformedEncoding):
            decode_discovered_value(b"\xff", LookupValueType.COIN_TYPE)

    def test_object_ref_too_short(self) -> None:
        with pytest.raises(MalformedEncoding):
            decode_discovered_value(b"\x00" * 39, LookupValueType.OBJECT_REF)

    def test_raw_passthrough(self) -> None:
        assert decode_discovered_value(b"\x00\xff", LookupValueType.RAW) == b"\x00\xff"
