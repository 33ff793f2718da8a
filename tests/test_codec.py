from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from sui_ptb_resolver.codec import (
    BcsReader,
    BcsWriter,
    decode_command_result,
    decode_commands,
    decode_discovered_entries,
    decode_input_handle,
    decode_inputs,
    decode_instruction_group,
    decode_instruction_groups,
    decode_lookup,
    decode_outcome,
    encode_command_result,
    encode_commands,
    encode_discovered_entries,
    encode_input_handle,
    encode_inputs,
    encode_instruction_group,
    encode_instruction_groups,
    encode_lookup,
    encode_outcome,
)
from sui_ptb_resolver.errors import MalformedEncoding, ValidationError
from sui_ptb_resolver.models import (
    ByTypeSuffixLookup,
    CommandResult,
    ErrorOutcome,
    GasCoin,
    InputArg,
    InputHandle,
    InstructionGroup,
    KeyedTableEntryLookup,
    MakeMoveVec,
    MergeCoins,
    MoveCall,
    NeedsData,
    NestedPathLookup,
    NestedResultArg,
    ObjectRef,
    OwnedObjectInput,
    PureInput,
    RawFieldLookup,
    RawObjectRefFieldLookup,
    ReceivingObjectInput,
    Resolved,
    ResultArg,
    SharedObjectInput,
    SharedObjectRef,
    SplitCoins,
    StructField,
    TransferObjects,
)

A = bytes([0xAA] * 32)
B = bytes([0xBB] * 32)


def _group() -> InstructionGroup:
    return InstructionGroup(
        inputs=(
            PureInput(b"\x01\x00\x00\x00\x00\x00\x00\x00", "u64"),
            OwnedObjectInput(ObjectRef(A, 5, b"\x07" * 32)),
            SharedObjectInput(SharedObjectRef(B, 9, False)),
            ReceivingObjectInput(ObjectRef(B, 1, b"")),
        ),
        commands=(
            SplitCoins(GasCoin(), (InputArg(0),)),
            MoveCall(A, "pool", "deposit", ("0x2::sui::SUI",), (InputArg(2), NestedResultArg(0, 0))),
            MakeMoveVec(None, (ResultArg(1),)),
            MergeCoins(InputArg(1), (NestedResultArg(0, 0),)),
            TransferObjects((ResultArg(1),), InputArg(3)),
        ),
        required_objects=(A, B),
        required_types=("0x2::sui::SUI",),
    )


class TestPrimitives:
    def test_integers_are_little_endian(self) -> None:
        w = BcsWriter().u8(1).u16(0x0203).u32(0x04050607).u64(1)
        assert w.finish() == bytes([1, 3, 2, 7, 6, 5, 4, 1, 0, 0, 0, 0, 0, 0, 0])

    @pytest.mark.parametrize(
        "value,encoded",
        [(0, b"\x00"), (127, b"\x7f"), (128, b"\x80\x01"), (300, b"\xac\x02"), (2**32 - 1, b"\xff\xff\xff\xff\x0f")],
    )
    def test_uleb128(self, value: int, encoded: bytes) -> None:
        assert BcsWriter().uleb128(value).finish() == encoded
        r = BcsReader(encoded)
        assert r.uleb128() == value
        r.finish()

    def test_non_canonical_uleb128_rejected(self) -> None:
        with pytest.raises(MalformedEncoding):
            BcsReader(b"\x80\x00").uleb128()

    def test_out_of_range_integer_is_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            BcsWriter().u8(256)
        with pytest.raises(ValidationError):
            BcsWriter().u64(-1)

    def test_string_and_option(self) -> None:
        data = BcsWriter().string("héllo").option(None, BcsWriter.u8).option(5, BcsWriter.u8).finish()
        r = BcsReader(data)
        assert r.string() == "héllo"
        assert r.option(BcsReader.u8) is None
        assert r.option(BcsReader.u8) == 5
        r.finish()

    def test_invalid_bool_rejected(self) -> None:
        with pytest.raises(MalformedEncoding):
            BcsReader(b"\x02").bool()

    def test_trailing_bytes_rejected(self) -> None:
        r = BcsReader(b"\x01\x02", "thing")
        r.u8()
        with pytest.raises(MalformedEncoding, match="thing"):
            r.finish()


class TestInstructionGroup:
    def test_round_trip(self) -> None:
        group = _group()
        assert decode_instruction_group(encode_instruction_group(group)) == group

    def test_inputs_and_commands_round_trip(self) -> None:
        group = _group()
        assert decode_inputs(encode_inputs(group.inputs)) == list(group.inputs)
        assert decode_commands(encode_commands(group.commands)) == list(group.commands)

    def test_groups_vector(self) -> None:
        groups = [_group(), InstructionGroup()]
        assert decode_instruction_groups(encode_instruction_groups(groups)) == groups

    def test_argument_layout(self) -> None:
        # SplitCoins(GasCoin, [Input(0)]) -> variant 2, GasCoin tag 0, one amount: Input tag 1 + u64 0
        data = encode_commands([SplitCoins(GasCoin(), (InputArg(0),))])
        assert data == bytes([1, 2, 0, 1, 1]) + b"\x00" * 8

    def test_truncated_group_raises(self) -> None:
        data = encode_instruction_group(_group())
        for cut in (1, len(data) // 2, len(data) - 1):
            with pytest.raises(MalformedEncoding):
                decode_instruction_group(data[:cut])

    def test_trailing_bytes_raise(self) -> None:
        with pytest.raises(MalformedEncoding):
            decode_instruction_group(encode_instruction_group(_group()) + b"\x00")

    def test_unknown_command_variant(self) -> None:
        with pytest.raises(MalformedEncoding):
            decode_commands(bytes([1, 9]))


class TestLookups:
    @pytest.mark.parametrize(
        "lookup",
        [
            ByTypeSuffixLookup(A, "PackageInfo", "package", "package"),
            KeyedTableEntryLookup(A, "tables.assets", "vector<u8>", "asset", key_raw=b"\x00\xff\x01"),
            KeyedTableEntryLookup(
                A,
                "registry",
                "0x1::wrapped::Key",
                "wrapped",
                key_structured=(StructField(b"chain", b"\x02\x00"), StructField(b"addr", bytes(32))),
            ),
            RawFieldLookup(B, b"coin", "coin_type"),
            RawObjectRefFieldLookup(B, b"\x01\x02", "vault"),
            NestedPathLookup(B, "config.fee.bps", "fee"),
        ],
    )
    def test_round_trip(self, lookup) -> None:
        assert decode_lookup(encode_lookup(lookup)) == lookup

    def test_variant_order(self) -> None:
        assert encode_lookup(RawFieldLookup(A, b"", "k"))[0] == 0
        assert encode_lookup(ByTypeSuffixLookup(A, "S", "f", "k"))[0] == 1
        assert encode_lookup(NestedPathLookup(A, "p", "k"))[0] == 4

    def test_keyed_entry_with_both_keys_rejected(self) -> None:
        w = BcsWriter().variant(3).address(A).string("p")
        w.option(b"\x01", BcsWriter.bytes).option([StructField(b"a", b"")], lambda ww, fs: ww.vector(fs, _field))
        w.string("kt").string("sk")
        with pytest.raises(MalformedEncoding):
            decode_lookup(w.finish())


def _field(w: BcsWriter, f: StructField) -> None:
    w.bytes(f.name).bytes(f.value)


class TestOutcome:
    def test_resolved_round_trip(self) -> None:
        outcome = Resolved(_group())
        assert decode_outcome(encode_outcome(outcome)) == outcome

    def test_needs_data_keeps_all_lookups(self) -> None:
        outcome = NeedsData((RawFieldLookup(A, b"a", "a"), NestedPathLookup(B, "x.y", "b")))
        assert decode_outcome(encode_outcome(outcome)) == outcome

    def test_error_round_trip(self) -> None:
        assert decode_outcome(encode_outcome(ErrorOutcome("pool paused"))) == ErrorOutcome("pool paused")

    def test_resolved_requires_exactly_one_group(self) -> None:
        data = BcsWriter().variant(0).vector([], lambda w, g: None).finish()
        with pytest.raises(MalformedEncoding, match="exactly one"):
            decode_outcome(data)


class TestDiscoveredEntries:
    def test_empty_table_is_empty_buffer(self) -> None:
        assert encode_discovered_entries([]) == b""
        assert decode_discovered_entries(b"") == []

    def test_layout(self) -> None:
        assert encode_discovered_entries([("k", b"\x01\x02")]) == bytes([1, 1, ord("k"), 2, 1, 2])

    def test_declared_count_beyond_buffer(self) -> None:
        # claims 200 entries, carries one
        data = bytes([200, 1]) + b"k" + bytes([1, 9])
        with pytest.raises(MalformedEncoding):
            decode_discovered_entries(data)

    @given(st.lists(st.tuples(st.text(max_size=20), st.binary(max_size=40)), max_size=8))
    def test_round_trip(self, entries: list[tuple[str, bytes]]) -> None:
        assert decode_discovered_entries(encode_discovered_entries(entries)) == entries


class TestHandles:
    def test_input_handle(self) -> None:
        assert decode_input_handle(encode_input_handle(InputHandle(7))) == InputHandle(7)

    def test_command_result(self) -> None:
        assert decode_command_result(encode_command_result(CommandResult(2, 3))) == CommandResult(2, 3)

    def test_short_handle_raises(self) -> None:
        with pytest.raises(MalformedEncoding):
            decode_input_handle(b"\x01\x00")
