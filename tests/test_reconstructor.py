from __future__ import annotations

import pytest

from sui_ptb_resolver.codec import encode_instruction_group
from sui_ptb_resolver.converters import address_to_bytes
from sui_ptb_resolver.errors import ValidationError
from sui_ptb_resolver.models import (
    GasCoin,
    InputArg,
    InstructionGroup,
    MakeMoveVec,
    MergeCoins,
    MoveCall,
    NestedResultArg,
    ObjectRef,
    OwnedObjectInput,
    PureInput,
    ReceivingObjectInput,
    ResultArg,
    SharedObjectInput,
    SharedObjectRef,
    SplitCoins,
    TransferObjects,
)
from sui_ptb_resolver.reconstructor import TransactionReconstructor
from sui_ptb_resolver.transaction import PureCallArg, UnresolvedObject

PKG = address_to_bytes("0xabc")
OBJ = address_to_bytes("0x10")
SHARED = address_to_bytes("0x11")
RECV = address_to_bytes("0x12")


def _inputs():
    return (
        PureInput(b"\x0a\x00\x00\x00\x00\x00\x00\x00", "u64"),
        OwnedObjectInput(ObjectRef(OBJ, 1, b"\x00" * 32)),
        SharedObjectInput(SharedObjectRef(SHARED, 4, False)),
        ReceivingObjectInput(ObjectRef(RECV, 2, b"\x00" * 32)),
    )


def test_replays_inputs() -> None:
    tx = TransactionReconstructor().build(InstructionGroup(inputs=_inputs()))
    assert tx.inputs == [
        PureCallArg(b"\x0a\x00\x00\x00\x00\x00\x00\x00", "u64"),
        UnresolvedObject(OBJ, True, False),
        UnresolvedObject(SHARED, False, False),
        UnresolvedObject(RECV, True, True),
    ]


def test_replays_command_chain() -> None:
    group = InstructionGroup(
        inputs=_inputs(),
        commands=(
            SplitCoins(GasCoin(), (InputArg(0), InputArg(0))),
            MoveCall(PKG, "pool", "deposit", ("0x2::sui::SUI",), (InputArg(2), NestedResultArg(0, 1))),
            MakeMoveVec(None, (ResultArg(1),)),
            MergeCoins(GasCoin(), (NestedResultArg(0, 0),)),
            TransferObjects((ResultArg(2), InputArg(1)), InputArg(3)),
        ),
    )
    tx = TransactionReconstructor().build(group)
    assert tx.commands == list(group.commands)


def test_from_bcs() -> None:
    group = InstructionGroup(inputs=_inputs()[:1], commands=(SplitCoins(GasCoin(), (InputArg(0),)),))
    tx = TransactionReconstructor.from_bcs(encode_instruction_group(group))
    assert tx.commands == list(group.commands)


@pytest.mark.parametrize(
    "commands,match",
    [
        ((SplitCoins(GasCoin(), (InputArg(9),)),), "input handle not found"),
        ((MoveCall(PKG, "m", "f", (), (ResultArg(0),)),), "forward reference"),
        ((MoveCall(PKG, "m", "f", (), (NestedResultArg(1, 0),)),), "forward reference"),
        (
            (SplitCoins(GasCoin(), (InputArg(0),)), MoveCall(PKG, "m", "f", (), (NestedResultArg(0, 1),))),
            "has 1 results",
        ),
        (
            (MergeCoins(GasCoin(), (GasCoin(),)), MoveCall(PKG, "m", "f", (), (ResultArg(0),))),
            "has no results",
        ),
    ],
)
def test_invalid_references(commands, match: str) -> None:
    with pytest.raises(ValidationError, match=match):
        TransactionReconstructor().build(InstructionGroup(inputs=_inputs(), commands=commands))


def test_move_call_nested_results_accepted() -> None:
    group = InstructionGroup(
        commands=(MoveCall(PKG, "m", "two", ()), MoveCall(PKG, "m", "use", (), (NestedResultArg(0, 1),)))
    )
    tx = TransactionReconstructor().build(group)
    assert len(tx.commands) == 2


def test_rebuild_starts_from_a_fresh_transaction() -> None:
    reconstructor = TransactionReconstructor()
    first = InstructionGroup(inputs=_inputs()[:1], commands=(SplitCoins(GasCoin(), (InputArg(0),)),))
    second = InstructionGroup(inputs=_inputs()[1:2], commands=(TransferObjects((InputArg(0),), InputArg(0)),))

    tx1 = reconstructor.build(first)
    tx2 = reconstructor.build(second)

    assert tx2 is not tx1
    assert tx2.inputs == [UnresolvedObject(OBJ, True, False)]
    assert tx2.commands == list(second.commands)
    assert len(tx1.commands) == 1
