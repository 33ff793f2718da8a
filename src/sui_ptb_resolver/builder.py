"""
Call-sequence builder used by resolver flows.

A flow runs once per round against a fresh ``CallSequenceBuilder`` seeded with
the data discovered so far. It adds inputs and commands, and asks for any datum
it does not have yet via ``request*``. At the end of the round ``outcome()``
reports either the pending lookups or the finished instruction group.

Handles returned by the builder are plain indices (``InputHandle``,
``CommandResult``) into the builder's own input and command lists.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Union

from sui_ptb_resolver.codec import BcsWriter
from sui_ptb_resolver.converters import address_to_bytes, bytes_to_address, normalize_type_string, unpack_object_ref
from sui_ptb_resolver.discovered import DiscoveredData
from sui_ptb_resolver.errors import MalformedEncoding, ValidationError
from sui_ptb_resolver.events import LedgerEvent, outcome_to_event, to_ledger_event
from sui_ptb_resolver.models import (
    Argument,
    ByTypeSuffixLookup,
    Command,
    CommandResult,
    GasCoin,
    Input,
    InputArg,
    InputHandle,
    InstructionGroup,
    KeyedTableEntryLookup,
    LookupDescriptor,
    LookupValueType,
    MakeMoveVec,
    MergeCoins,
    MoveCall,
    NeedsData,
    NestedCommandResult,
    NestedPathLookup,
    NestedResultArg,
    ObjectRef,
    OwnedObjectInput,
    PureInput,
    RawFieldLookup,
    RawObjectRefFieldLookup,
    ReceivingObjectInput,
    ResolutionOutcome,
    Resolved,
    ResultArg,
    SharedObjectInput,
    SharedObjectRef,
    SplitCoins,
    StructField,
    TransferObjects,
)

logger = logging.getLogger(__name__)

ArgumentLike = Union[Argument, InputHandle, CommandResult, NestedCommandResult]
AddressLike = Union[str, bytes]
DiscoveredValue = Union[str, bytes, ObjectRef]


def _address(value: AddressLike) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 32:
            raise ValidationError("address", f"expected 32 bytes, got {len(value)}")
        return bytes(value)
    return address_to_bytes(value)


def decode_discovered_value(raw: bytes, expected: LookupValueType) -> DiscoveredValue:
    """Decode a discovered value into the shape the caller asked for."""
    if expected is LookupValueType.ADDRESS:
        if len(raw) != 32:
            raise MalformedEncoding("discovered address", f"expected 32 bytes, got {len(raw)}")
        return bytes_to_address(raw)
    if expected is LookupValueType.COIN_TYPE:
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedEncoding("discovered coin type", str(e)) from e
    if expected is LookupValueType.OBJECT_REF:
        return unpack_object_ref(raw)
    if expected is LookupValueType.RAW:
        return raw
    raise TypeError(f"unknown value type: {expected!r}")


class CallSequenceBuilder:
    """Accumulates one round's inputs, commands and data requests."""

    def __init__(self, discovered: DiscoveredData | None = None):
        self.discovered = discovered if discovered is not None else DiscoveredData()
        self._inputs: list[Input] = []
        self._commands: list[Command] = []
        self._arities: list[int] = []
        self._required_objects: list[bytes] = []
        self._required_types: list[str] = []
        self._pending: list[LookupDescriptor] = []
        self._requested: list[LookupDescriptor] = []

    @classmethod
    def from_encoded(cls, discovered: bytes) -> CallSequenceBuilder:
        return cls(DiscoveredData.decode(discovered))

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def add_input(self, inp: Input) -> InputHandle:
        if isinstance(inp, (OwnedObjectInput, ReceivingObjectInput)):
            self.require_object(inp.object_ref.object_id)
        elif isinstance(inp, SharedObjectInput):
            self.require_object(inp.shared_ref.object_id)
        elif not isinstance(inp, PureInput):
            raise TypeError(f"unknown input variant: {type(inp).__name__}")
        self._inputs.append(inp)
        return InputHandle(len(self._inputs) - 1)

    def add_pure(self, data: bytes, type_name: str) -> InputHandle:
        return self.add_input(PureInput(bytes(data), type_name))

    def add_pure_u8(self, value: int) -> InputHandle:
        return self.add_pure(BcsWriter().u8(value).finish(), "u8")

    def add_pure_u64(self, value: int) -> InputHandle:
        return self.add_pure(BcsWriter().u64(value).finish(), "u64")

    def add_pure_bool(self, value: bool) -> InputHandle:
        return self.add_pure(BcsWriter().bool(value).finish(), "bool")

    def add_pure_address(self, address: AddressLike) -> InputHandle:
        return self.add_pure(_address(address), "address")

    def add_pure_bytes(self, data: bytes) -> InputHandle:
        return self.add_pure(BcsWriter().bytes(bytes(data)).finish(), "vector<u8>")

    def add_pure_string(self, text: str) -> InputHandle:
        return self.add_pure(BcsWriter().string(text).finish(), "0x1::string::String")

    def add_owned_object(self, ref: ObjectRef) -> InputHandle:
        return self.add_input(OwnedObjectInput(ref))

    def add_shared_object(self, object_id: AddressLike, initial_shared_version: int, mutable: bool = True) -> InputHandle:
        return self.add_input(SharedObjectInput(SharedObjectRef(_address(object_id), initial_shared_version, mutable)))

    def add_receiving_object(self, ref: ObjectRef) -> InputHandle:
        return self.add_input(ReceivingObjectInput(ref))

    # ------------------------------------------------------------------
    # Arguments
    # ------------------------------------------------------------------

    @staticmethod
    def gas() -> GasCoin:
        return GasCoin()

    def input_arg(self, handle: InputHandle) -> InputArg:
        if not 0 <= handle.index < len(self._inputs):
            raise ValidationError("input", f"no input at index {handle.index} ({len(self._inputs)} inputs)")
        return InputArg(handle.index)

    def result_arg(self, result: CommandResult) -> ResultArg:
        if not 0 <= result.index < len(self._commands):
            raise ValidationError("result", f"no command at index {result.index} ({len(self._commands)} commands)")
        return ResultArg(result.index)

    def nested_result(self, result: CommandResult, nested_index: int) -> NestedCommandResult:
        if not 0 <= nested_index < result.arity:
            raise ValidationError(
                "nested_index", f"{nested_index} out of range for command {result.index} with arity {result.arity}"
            )
        return NestedCommandResult(result.index, nested_index)

    def to_argument(self, value: ArgumentLike) -> Argument:
        """Map a handle (or an argument) to a positional Argument, checking it points backwards."""
        if isinstance(value, GasCoin):
            return value
        if isinstance(value, InputHandle):
            return self.input_arg(value)
        if isinstance(value, InputArg):
            return self.input_arg(InputHandle(value.index))
        if isinstance(value, CommandResult):
            return self.result_arg(value)
        if isinstance(value, ResultArg):
            return self.result_arg(CommandResult(value.index))
        if isinstance(value, (NestedCommandResult, NestedResultArg)):
            if not 0 <= value.index < len(self._commands):
                raise ValidationError("result", f"no command at index {value.index} ({len(self._commands)} commands)")
            arity = self._arities[value.index]
            if not 0 <= value.nested_index < arity:
                raise ValidationError(
                    "nested_index", f"{value.nested_index} out of range for command {value.index} with arity {arity}"
                )
            return NestedResultArg(value.index, value.nested_index)
        raise TypeError(f"not an argument or handle: {type(value).__name__}")

    def _arguments(self, values: Iterable[ArgumentLike]) -> tuple[Argument, ...]:
        return tuple(self.to_argument(v) for v in values)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def add_command(self, cmd: Command, arity: int = 1) -> CommandResult:
        if arity < 0:
            raise ValidationError("arity", f"must be non-negative, got {arity}")
        self._commands.append(cmd)
        self._arities.append(arity)
        return CommandResult(len(self._commands) - 1, arity)

    def add_call(
        self,
        target: str,
        type_args: Sequence[str] = (),
        args: Sequence[ArgumentLike] = (),
        arity: int = 1,
    ) -> CommandResult:
        """Append a Move call. ``target`` is ``package::module::function``."""
        parts = target.split("::")
        if len(parts) != 3 or not all(parts):
            raise ValidationError("target", f"expected package::module::function, got {target!r}")
        package, module, function = parts
        cmd = MoveCall(
            package=_address(package),
            module=module,
            function=function,
            type_arguments=tuple(normalize_type_string(t) for t in type_args),
            arguments=self._arguments(args),
        )
        return self.add_command(cmd, arity)

    def transfer_objects(self, objects: Sequence[ArgumentLike], recipient: ArgumentLike) -> CommandResult:
        return self.add_command(TransferObjects(self._arguments(objects), self.to_argument(recipient)), 0)

    def split_coins(self, coin: ArgumentLike, amounts: Sequence[ArgumentLike]) -> CommandResult:
        return self.add_command(SplitCoins(self.to_argument(coin), self._arguments(amounts)), len(amounts))

    def merge_coins(self, destination: ArgumentLike, sources: Sequence[ArgumentLike]) -> CommandResult:
        return self.add_command(MergeCoins(self.to_argument(destination), self._arguments(sources)), 0)

    def make_move_vec(self, type_tag: str | None, elements: Sequence[ArgumentLike]) -> CommandResult:
        tag = normalize_type_string(type_tag) if type_tag is not None else None
        return self.add_command(MakeMoveVec(tag, self._arguments(elements)), 1)

    def arities(self) -> list[int]:
        return list(self._arities)

    # ------------------------------------------------------------------
    # Requirements
    # ------------------------------------------------------------------

    def require_object(self, object_id: AddressLike) -> None:
        self._required_objects.append(_address(object_id))

    def require_type(self, type_str: str) -> None:
        self._required_types.append(normalize_type_string(type_str))

    # ------------------------------------------------------------------
    # Data requests
    # ------------------------------------------------------------------

    def request(
        self, lookup: LookupDescriptor, expected: LookupValueType = LookupValueType.RAW
    ) -> DiscoveredValue | None:
        """
        Return the discovered value for ``lookup.semantic_key``, decoded as ``expected``.

        If nothing has been discovered under that key yet, the descriptor is
        recorded as pending and None is returned.
        """
        raw = self.discovered.lookup(lookup.semantic_key)
        if raw is not None:
            return decode_discovered_value(raw, expected)
        logger.debug(f"Requesting {lookup.semantic_key!r} ({type(lookup).__name__})")
        self._pending.append(lookup)
        self._requested.append(lookup)
        return None

    def request_address_by_type_suffix(
        self, parent: AddressLike, type_suffix: str, field: str, semantic_key: str
    ) -> str | None:
        lookup = ByTypeSuffixLookup(_address(parent), type_suffix, field, semantic_key)
        return self.request(lookup, LookupValueType.ADDRESS)  # type: ignore[return-value]

    def request_table_entry(
        self,
        parent: AddressLike,
        path: str,
        key_type: str,
        semantic_key: str,
        *,
        key_raw: bytes | None = None,
        key_structured: Sequence[StructField] | None = None,
        expected: LookupValueType = LookupValueType.RAW,
    ) -> DiscoveredValue | None:
        lookup = KeyedTableEntryLookup(
            parent=_address(parent),
            path=path,
            key_type=key_type,
            semantic_key=semantic_key,
            key_raw=bytes(key_raw) if key_raw is not None else None,
            key_structured=tuple(key_structured) if key_structured is not None else None,
        )
        return self.request(lookup, expected)

    def request_raw_field(
        self, parent: AddressLike, key: bytes, semantic_key: str, expected: LookupValueType = LookupValueType.RAW
    ) -> DiscoveredValue | None:
        return self.request(RawFieldLookup(_address(parent), bytes(key), semantic_key), expected)

    def request_coin_type(self, parent: AddressLike, key: bytes, semantic_key: str) -> str | None:
        return self.request_raw_field(parent, key, semantic_key, LookupValueType.COIN_TYPE)  # type: ignore[return-value]

    def request_object_ref(self, parent: AddressLike, key: bytes, semantic_key: str) -> ObjectRef | None:
        lookup = RawObjectRefFieldLookup(_address(parent), bytes(key), semantic_key)
        return self.request(lookup, LookupValueType.OBJECT_REF)  # type: ignore[return-value]

    def request_nested_path(
        self, parent: AddressLike, dot_path: str, semantic_key: str, expected: LookupValueType = LookupValueType.RAW
    ) -> DiscoveredValue | None:
        return self.request(NestedPathLookup(_address(parent), dot_path, semantic_key), expected)

    def has_pending(self) -> bool:
        return bool(self._pending)

    def pending_for_resolution(self) -> list[LookupDescriptor]:
        return list(self._pending)

    def clear_pending(self) -> None:
        self._pending.clear()

    def requested_lookups(self) -> list[LookupDescriptor]:
        return list(self._requested)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def finalize(self) -> InstructionGroup:
        return InstructionGroup(
            inputs=tuple(self._inputs),
            commands=tuple(self._commands),
            required_objects=tuple(dict.fromkeys(self._required_objects)),
            required_types=tuple(dict.fromkeys(self._required_types)),
        )

    def outcome(self) -> ResolutionOutcome:
        if self._pending:
            return NeedsData(tuple(self._pending))
        return Resolved(self.finalize())

    def emit(self) -> list[LedgerEvent]:
        """Wire events for this round (a needs-data event carries only the first pending lookup)."""
        return [to_ledger_event(outcome_to_event(self.outcome()))]
