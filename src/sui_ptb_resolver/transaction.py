"""
Live programmable transaction builder.

``ProgrammableTransaction`` is the target the reconstructor replays an
instruction group into. It can be exported two ways:

- ``to_ptb_spec()``: a JSON plan (``inputs`` + ``calls``) for inspection and
  logging.
- ``transaction_kind_bytes()``: the BCS ``TransactionKind`` accepted by
  ``sui_devInspectTransactionBlock``. Object inputs added by address must be
  resolved to refs first (``resolve_object_inputs``).
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

from sui_ptb_resolver.codec import BcsWriter
from sui_ptb_resolver.converters import address_to_bytes, bytes_to_address, bytes_to_hex, digest_to_bytes
from sui_ptb_resolver.errors import ValidationError
from sui_ptb_resolver.models import (
    Argument,
    Command,
    GasCoin,
    InputArg,
    MakeMoveVec,
    MergeCoins,
    MoveCall,
    NestedResultArg,
    ObjectRef,
    OwnedObjectInput,
    ReceivingObjectInput,
    ResultArg,
    SharedObjectInput,
    SharedObjectRef,
    SplitCoins,
    TransferObjects,
    command_arguments,
)

if TYPE_CHECKING:
    from sui_ptb_resolver.client import LedgerClient

logger = logging.getLogger(__name__)

_U16_MAX = 0xFFFF

# ---------------------------------------------------------------------------
# Type tags
# ---------------------------------------------------------------------------

_PRIMITIVE_TAGS = {
    "bool": 0,
    "u8": 1,
    "u64": 2,
    "u128": 3,
    "address": 4,
    "signer": 5,
    "u16": 8,
    "u32": 9,
    "u256": 10,
}
_VECTOR_TAG = 6
_STRUCT_TAG = 7

_TYPE_TOKEN_RE = re.compile(r"<|>|,|[^<>,\s]+")


@dataclass(frozen=True)
class VectorTag:
    element: TypeTag


@dataclass(frozen=True)
class StructTag:
    address: bytes
    module: str
    name: str
    type_params: tuple[TypeTag, ...] = ()


# Primitive tags are their Move keyword ("u64", "address", ...)
TypeTag = Union[str, VectorTag, StructTag]


def parse_type_tag(text: str) -> TypeTag:
    """Parse a Move type string such as ``0x2::coin::Coin<0x2::sui::SUI>``."""
    tokens = _TYPE_TOKEN_RE.findall(text)
    if not tokens:
        raise ValidationError("type_tag", f"empty type string {text!r}")
    tag, pos = _parse_type(tokens, 0, text)
    if pos != len(tokens):
        raise ValidationError("type_tag", f"unexpected {tokens[pos]!r} in {text!r}")
    return tag


def _expect(tokens: list[str], pos: int, tok: str, text: str) -> int:
    if pos >= len(tokens) or tokens[pos] != tok:
        raise ValidationError("type_tag", f"expected {tok!r} in {text!r}")
    return pos + 1


def _parse_type(tokens: list[str], pos: int, text: str) -> tuple[TypeTag, int]:
    if pos >= len(tokens):
        raise ValidationError("type_tag", f"truncated type string {text!r}")
    tok = tokens[pos]
    if tok in _PRIMITIVE_TAGS:
        return tok, pos + 1
    if tok == "vector":
        pos = _expect(tokens, pos + 1, "<", text)
        inner, pos = _parse_type(tokens, pos, text)
        return VectorTag(inner), _expect(tokens, pos, ">", text)

    parts = tok.split("::")
    if len(parts) != 3 or not all(parts):
        raise ValidationError("type_tag", f"{tok!r} is not a primitive, vector or struct type in {text!r}")
    address, module, name = parts
    params: list[TypeTag] = []
    pos += 1
    if pos < len(tokens) and tokens[pos] == "<":
        pos += 1
        while True:
            param, pos = _parse_type(tokens, pos, text)
            params.append(param)
            if pos < len(tokens) and tokens[pos] == ",":
                pos += 1
                continue
            pos = _expect(tokens, pos, ">", text)
            break
    return StructTag(address_to_bytes(address), module, name, tuple(params)), pos


def write_type_tag(w: BcsWriter, tag: TypeTag) -> None:
    if isinstance(tag, str):
        w.variant(_PRIMITIVE_TAGS[tag])
    elif isinstance(tag, VectorTag):
        w.variant(_VECTOR_TAG)
        write_type_tag(w, tag.element)
    elif isinstance(tag, StructTag):
        w.variant(_STRUCT_TAG).address(tag.address).string(tag.module).string(tag.name)
        w.vector(tag.type_params, write_type_tag)
    else:
        raise TypeError(f"unknown type tag: {tag!r}")


# ---------------------------------------------------------------------------
# Transaction inputs and arguments
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PureCallArg:
    """Already BCS-encoded pure value."""

    data: bytes
    type_name: str = ""


@dataclass(frozen=True)
class UnresolvedObject:
    """Object input known only by id; version/digest come from the ledger."""

    object_id: bytes
    mutable: bool = True
    receiving: bool = False


TransactionInput = Union[PureCallArg, UnresolvedObject, OwnedObjectInput, SharedObjectInput, ReceivingObjectInput]


@dataclass(frozen=True)
class TxResult:
    """Result of a command. ``count`` is None when the result count is not known locally (Move calls)."""

    index: int
    count: int | None = None

    def __getitem__(self, nested_index: int) -> NestedResultArg:
        if nested_index < 0 or (self.count is not None and nested_index >= self.count):
            raise ValidationError(
                "nested_index", f"{nested_index} out of range for command {self.index} with {self.count} results"
            )
        return NestedResultArg(self.index, nested_index)


TransactionArgument = Union[GasCoin, InputArg, ResultArg, NestedResultArg, TxResult]


def _object_input_id(inp: TransactionInput) -> bytes | None:
    if isinstance(inp, PureCallArg):
        return None
    if isinstance(inp, UnresolvedObject):
        return inp.object_id
    if isinstance(inp, (OwnedObjectInput, ReceivingObjectInput)):
        return inp.object_ref.object_id
    if isinstance(inp, SharedObjectInput):
        return inp.shared_ref.object_id
    raise TypeError(f"unknown transaction input: {type(inp).__name__}")


class ProgrammableTransaction:
    """Mutable PTB under construction."""

    def __init__(self) -> None:
        self._inputs: list[TransactionInput] = []
        self._commands: list[Command] = []
        self._result_counts: list[int | None] = []

    @property
    def inputs(self) -> list[TransactionInput]:
        return list(self._inputs)

    @property
    def commands(self) -> list[Command]:
        return list(self._commands)

    @property
    def gas(self) -> GasCoin:
        return GasCoin()

    # -- inputs --------------------------------------------------------

    def _add_input(self, inp: TransactionInput) -> InputArg:
        self._inputs.append(inp)
        return InputArg(len(self._inputs) - 1)

    def pure(self, data: bytes, type_name: str = "") -> InputArg:
        return self._add_input(PureCallArg(bytes(data), type_name))

    def pure_bytes(self, data: bytes) -> InputArg:
        """Add ``data`` as a ``vector<u8>`` pure argument."""
        return self.pure(BcsWriter().bytes(bytes(data)).finish(), "vector<u8>")

    def object(self, object_id: str | bytes, *, mutable: bool = True, receiving: bool = False) -> InputArg:
        """Add an object by id. Adding the same object twice returns the first input."""
        oid = bytes(object_id) if isinstance(object_id, (bytes, bytearray)) else address_to_bytes(object_id)
        for i, existing in enumerate(self._inputs):
            if _object_input_id(existing) == oid:
                if isinstance(existing, UnresolvedObject) and mutable and not existing.mutable:
                    self._inputs[i] = UnresolvedObject(oid, True, existing.receiving)
                return InputArg(i)
        return self._add_input(UnresolvedObject(oid, mutable, receiving))

    def object_ref(self, inp: OwnedObjectInput | SharedObjectInput | ReceivingObjectInput) -> InputArg:
        oid = _object_input_id(inp)
        for i, existing in enumerate(self._inputs):
            if _object_input_id(existing) == oid:
                return InputArg(i)
        return self._add_input(inp)

    # -- commands ------------------------------------------------------

    def _arg(self, value: TransactionArgument) -> Argument:
        if isinstance(value, GasCoin):
            return value
        if isinstance(value, InputArg):
            if not 0 <= value.index < len(self._inputs):
                raise ValidationError("argument", f"input {value.index} does not exist ({len(self._inputs)} inputs)")
            return value
        if isinstance(value, TxResult):
            value = ResultArg(value.index)
        if isinstance(value, (ResultArg, NestedResultArg)):
            if not 0 <= value.index < len(self._commands):
                raise ValidationError(
                    "argument", f"result {value.index} refers to a command not yet added ({len(self._commands)} commands)"
                )
            if isinstance(value, NestedResultArg):
                count = self._result_counts[value.index]
                if count is not None and value.nested_index >= count:
                    raise ValidationError(
                        "argument", f"nested result {value.index}.{value.nested_index} but command has {count} results"
                    )
            return value
        raise TypeError(f"not a transaction argument: {type(value).__name__}")

    def _add_command(self, cmd: Command, count: int | None) -> TxResult:
        self._commands.append(cmd)
        self._result_counts.append(count)
        return TxResult(len(self._commands) - 1, count)

    def move_call(
        self,
        target: str,
        arguments: Sequence[TransactionArgument] = (),
        type_arguments: Sequence[str] = (),
        result_count: int | None = None,
    ) -> TxResult:
        parts = target.split("::")
        if len(parts) != 3 or not all(parts):
            raise ValidationError("target", f"expected package::module::function, got {target!r}")
        for t in type_arguments:
            parse_type_tag(t)
        cmd = MoveCall(
            package=address_to_bytes(parts[0]),
            module=parts[1],
            function=parts[2],
            type_arguments=tuple(type_arguments),
            arguments=tuple(self._arg(a) for a in arguments),
        )
        return self._add_command(cmd, result_count)

    def transfer_objects(self, objects: Sequence[TransactionArgument], recipient: TransactionArgument) -> TxResult:
        return self._add_command(TransferObjects(tuple(self._arg(o) for o in objects), self._arg(recipient)), 0)

    def split_coins(self, coin: TransactionArgument, amounts: Sequence[TransactionArgument]) -> TxResult:
        return self._add_command(SplitCoins(self._arg(coin), tuple(self._arg(a) for a in amounts)), len(amounts))

    def merge_coins(self, destination: TransactionArgument, sources: Sequence[TransactionArgument]) -> TxResult:
        return self._add_command(MergeCoins(self._arg(destination), tuple(self._arg(s) for s in sources)), 0)

    def make_move_vec(self, type_tag: str | None, elements: Sequence[TransactionArgument]) -> TxResult:
        if type_tag is not None:
            parse_type_tag(type_tag)
        return self._add_command(MakeMoveVec(type_tag, tuple(self._arg(e) for e in elements)), 1)

    # -- object resolution ---------------------------------------------

    def unresolved_objects(self) -> list[bytes]:
        return [inp.object_id for inp in self._inputs if isinstance(inp, UnresolvedObject)]

    def resolve_object_inputs(self, client: LedgerClient) -> None:
        """Replace object inputs added by id with owned/shared/receiving refs from the ledger."""
        pending = [(i, inp) for i, inp in enumerate(self._inputs) if isinstance(inp, UnresolvedObject)]
        if not pending:
            return
        objects = client.multi_get_objects([bytes_to_address(inp.object_id) for _, inp in pending])
        for (i, inp), obj in zip(pending, objects):
            shared_version = obj.initial_shared_version
            if inp.receiving:
                self._inputs[i] = ReceivingObjectInput(ObjectRef(inp.object_id, obj.version, digest_to_bytes(obj.digest)))
            elif shared_version is not None:
                self._inputs[i] = SharedObjectInput(SharedObjectRef(inp.object_id, shared_version, inp.mutable))
            else:
                self._inputs[i] = OwnedObjectInput(ObjectRef(inp.object_id, obj.version, digest_to_bytes(obj.digest)))
        logger.debug(f"Resolved {len(pending)} object inputs")

    # -- export --------------------------------------------------------

    def transaction_kind_bytes(self) -> bytes:
        """BCS ``TransactionKind::ProgrammableTransaction`` for this PTB."""
        unresolved = self.unresolved_objects()
        if unresolved:
            ids = ", ".join(bytes_to_address(o) for o in unresolved)
            raise ValidationError("inputs", f"object inputs not resolved: {ids}")
        w = BcsWriter().variant(0)
        w.vector(self._inputs, _write_call_arg)
        w.vector(self._commands, _write_native_command)
        return w.finish()

    def to_ptb_spec(self) -> dict[str, Any]:
        return {
            "inputs": [_input_spec(inp) for inp in self._inputs],
            "calls": [_command_spec(cmd) for cmd in self._commands],
        }


# ---------------------------------------------------------------------------
# Native BCS (sui_types::transaction)
# ---------------------------------------------------------------------------


def _write_native_object_ref(w: BcsWriter, ref: ObjectRef) -> None:
    w.address(ref.object_id).u64(ref.version).bytes(ref.digest)


def _write_call_arg(w: BcsWriter, inp: TransactionInput) -> None:
    if isinstance(inp, PureCallArg):
        w.variant(0).bytes(inp.data)
    elif isinstance(inp, OwnedObjectInput):
        w.variant(1).variant(0)
        _write_native_object_ref(w, inp.object_ref)
    elif isinstance(inp, SharedObjectInput):
        ref = inp.shared_ref
        w.variant(1).variant(1).address(ref.object_id).u64(ref.initial_shared_version).bool(ref.mutable)
    elif isinstance(inp, ReceivingObjectInput):
        w.variant(1).variant(2)
        _write_native_object_ref(w, inp.object_ref)
    elif isinstance(inp, UnresolvedObject):
        raise ValidationError("inputs", f"object {bytes_to_address(inp.object_id)} not resolved")
    else:
        raise TypeError(f"unknown transaction input: {type(inp).__name__}")


def _u16(value: int, what: str) -> int:
    if value > _U16_MAX:
        raise ValidationError(what, f"{value} exceeds the u16 index range")
    return value


def _write_native_argument(w: BcsWriter, arg: Argument) -> None:
    if isinstance(arg, GasCoin):
        w.variant(0)
    elif isinstance(arg, InputArg):
        w.variant(1).u16(_u16(arg.index, "input index"))
    elif isinstance(arg, ResultArg):
        w.variant(2).u16(_u16(arg.index, "result index"))
    elif isinstance(arg, NestedResultArg):
        w.variant(3).u16(_u16(arg.index, "result index")).u16(_u16(arg.nested_index, "nested index"))
    else:
        raise TypeError(f"unknown argument variant: {type(arg).__name__}")


def _write_native_command(w: BcsWriter, cmd: Command) -> None:
    if isinstance(cmd, MoveCall):
        w.variant(0).address(cmd.package).string(cmd.module).string(cmd.function)
        w.vector([parse_type_tag(t) for t in cmd.type_arguments], write_type_tag)
        w.vector(cmd.arguments, _write_native_argument)
    elif isinstance(cmd, TransferObjects):
        w.variant(1).vector(cmd.objects, _write_native_argument)
        _write_native_argument(w, cmd.recipient)
    elif isinstance(cmd, SplitCoins):
        w.variant(2)
        _write_native_argument(w, cmd.coin)
        w.vector(cmd.amounts, _write_native_argument)
    elif isinstance(cmd, MergeCoins):
        w.variant(3)
        _write_native_argument(w, cmd.destination)
        w.vector(cmd.sources, _write_native_argument)
    elif isinstance(cmd, MakeMoveVec):
        w.variant(5)
        w.option(parse_type_tag(cmd.type_tag) if cmd.type_tag is not None else None, write_type_tag)
        w.vector(cmd.elements, _write_native_argument)
    else:
        raise TypeError(f"unknown command variant: {type(cmd).__name__}")


# ---------------------------------------------------------------------------
# JSON plan
# ---------------------------------------------------------------------------


def _arg_spec(arg: Argument) -> dict[str, Any]:
    if isinstance(arg, GasCoin):
        return {"gas_coin": True}
    if isinstance(arg, InputArg):
        return {"input": arg.index}
    if isinstance(arg, ResultArg):
        return {"result": arg.index}
    if isinstance(arg, NestedResultArg):
        return {"nested_result": [arg.index, arg.nested_index]}
    raise TypeError(f"unknown argument variant: {type(arg).__name__}")


def _input_spec(inp: TransactionInput) -> dict[str, Any]:
    if isinstance(inp, PureCallArg):
        out: dict[str, Any] = {"pure": bytes_to_hex(inp.data)}
        if inp.type_name:
            out["type"] = inp.type_name
        return out
    if isinstance(inp, UnresolvedObject):
        return {"object": bytes_to_address(inp.object_id), "mutable": inp.mutable, "receiving": inp.receiving}
    if isinstance(inp, OwnedObjectInput):
        return {"imm_or_owned_object": bytes_to_address(inp.object_ref.object_id), "version": inp.object_ref.version}
    if isinstance(inp, SharedObjectInput):
        ref = inp.shared_ref
        return {
            "shared_object": {
                "id": bytes_to_address(ref.object_id),
                "initial_shared_version": ref.initial_shared_version,
                "mutable": ref.mutable,
            }
        }
    if isinstance(inp, ReceivingObjectInput):
        return {"receiving_object": bytes_to_address(inp.object_ref.object_id), "version": inp.object_ref.version}
    raise TypeError(f"unknown transaction input: {type(inp).__name__}")


def _command_spec(cmd: Command) -> dict[str, Any]:
    args = [_arg_spec(a) for a in command_arguments(cmd)]
    if isinstance(cmd, MoveCall):
        return {
            "target": f"{bytes_to_address(cmd.package)}::{cmd.module}::{cmd.function}",
            "type_args": list(cmd.type_arguments),
            "args": args,
        }
    if isinstance(cmd, MakeMoveVec):
        return {"command": "MakeMoveVec", "type": cmd.type_tag, "args": args}
    return {"command": type(cmd).__name__, "args": args}
