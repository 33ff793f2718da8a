"""
Canonical BCS codec for every structure that crosses the resolver boundary.

Layout rules (Binary Canonical Serialization, as used by Sui):
- fixed-width integers are little-endian
- vectors, byte strings and UTF-8 strings are prefixed with a ULEB128 length
- enums are prefixed with a ULEB128 variant index
- option<T> is a 0/1 tag followed by the value when present
- structs are the concatenation of their fields

Every decoder consumes the whole buffer. Truncation, bad lengths, non-canonical
ULEB128, invalid UTF-8 or trailing bytes raise MalformedEncoding.

The schemas mirror ptb_types.move; variant order is part of the wire contract.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from typing import TypeVar

from sui_ptb_resolver.constants import ADDRESS_LENGTH
from sui_ptb_resolver.errors import MalformedEncoding, ValidationError
from sui_ptb_resolver.models import (
    Argument,
    ByTypeSuffixLookup,
    Command,
    CommandResult,
    ErrorOutcome,
    GasCoin,
    Input,
    InputArg,
    InputHandle,
    InstructionGroup,
    KeyedTableEntryLookup,
    LookupDescriptor,
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

T = TypeVar("T")

_U64_MAX = (1 << 64) - 1
_ULEB_MAX = (1 << 32) - 1


class BcsWriter:
    """Append-only BCS encoder."""

    def __init__(self) -> None:
        self._buf = bytearray()

    def _uint(self, value: int, width: int, name: str) -> BcsWriter:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0 or value >= 1 << (8 * width):
            raise ValidationError(name, f"{value!r} does not fit in {8 * width} unsigned bits")
        self._buf += value.to_bytes(width, "little")
        return self

    def u8(self, value: int) -> BcsWriter:
        return self._uint(value, 1, "u8")

    def u16(self, value: int) -> BcsWriter:
        return self._uint(value, 2, "u16")

    def u32(self, value: int) -> BcsWriter:
        return self._uint(value, 4, "u32")

    def u64(self, value: int) -> BcsWriter:
        return self._uint(value, 8, "u64")

    def u128(self, value: int) -> BcsWriter:
        return self._uint(value, 16, "u128")

    def u256(self, value: int) -> BcsWriter:
        return self._uint(value, 32, "u256")

    def bool(self, value: bool) -> BcsWriter:
        self._buf.append(1 if value else 0)
        return self

    def uleb128(self, value: int) -> BcsWriter:
        if value < 0 or value > _ULEB_MAX:
            raise ValidationError("uleb128", f"{value} out of range")
        while True:
            byte = value & 0x7F
            value >>= 7
            if value:
                self._buf.append(byte | 0x80)
            else:
                self._buf.append(byte)
                return self

    def raw(self, data: bytes) -> BcsWriter:
        self._buf += data
        return self

    def fixed_bytes(self, data: bytes, length: int) -> BcsWriter:
        if len(data) != length:
            raise ValidationError("fixed_bytes", f"expected {length} bytes, got {len(data)}")
        self._buf += data
        return self

    def address(self, data: bytes) -> BcsWriter:
        return self.fixed_bytes(data, ADDRESS_LENGTH)

    def bytes(self, data: bytes) -> BcsWriter:
        self.uleb128(len(data))
        self._buf += data
        return self

    def string(self, text: str) -> BcsWriter:
        return self.bytes(text.encode("utf-8"))

    def variant(self, index: int) -> BcsWriter:
        return self.uleb128(index)

    def option(self, value: T | None, write: Callable[[BcsWriter, T], object]) -> BcsWriter:
        if value is None:
            self._buf.append(0)
        else:
            self._buf.append(1)
            write(self, value)
        return self

    def vector(self, items: Sequence[T], write: Callable[[BcsWriter, T], object]) -> BcsWriter:
        self.uleb128(len(items))
        for item in items:
            write(self, item)
        return self

    def finish(self) -> bytes:
        return bytes(self._buf)


class BcsReader:
    """Cursor over a BCS buffer; ``what`` names the structure for error messages."""

    def __init__(self, data: bytes, what: str = "BCS value") -> None:
        self._data = bytes(data)
        self._pos = 0
        self.what = what

    @property
    def offset(self) -> int:
        return self._pos

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def fail(self, reason: str) -> MalformedEncoding:
        return MalformedEncoding(self.what, reason, offset=self._pos)

    def take(self, n: int) -> bytes:
        if n > self.remaining:
            raise self.fail(f"truncated: need {n} bytes, {self.remaining} left")
        out = self._data[self._pos : self._pos + n]
        self._pos += n
        return out

    def u8(self) -> int:
        return self.take(1)[0]

    def u16(self) -> int:
        return int.from_bytes(self.take(2), "little")

    def u32(self) -> int:
        return int.from_bytes(self.take(4), "little")

    def u64(self) -> int:
        return int.from_bytes(self.take(8), "little")

    def u128(self) -> int:
        return int.from_bytes(self.take(16), "little")

    def u256(self) -> int:
        return int.from_bytes(self.take(32), "little")

    def bool(self) -> bool:
        b = self.u8()
        if b > 1:
            raise self.fail(f"invalid bool byte {b:#04x}")
        return b == 1

    def uleb128(self) -> int:
        value = 0
        shift = 0
        while True:
            byte = self.u8()
            value |= (byte & 0x7F) << shift
            if not byte & 0x80:
                if byte == 0 and shift > 0:
                    raise self.fail("non-canonical uleb128")
                break
            shift += 7
            if shift > 28:
                raise self.fail("uleb128 overflows u32")
        if value > _ULEB_MAX:
            raise self.fail("uleb128 overflows u32")
        return value

    def length(self) -> int:
        n = self.uleb128()
        # every element of every vector in this protocol is at least one byte
        if n > self.remaining:
            raise self.fail(f"declared length {n} exceeds the {self.remaining} bytes left")
        return n

    def fixed_bytes(self, length: int) -> bytes:
        return self.take(length)

    def address(self) -> bytes:
        return self.take(ADDRESS_LENGTH)

    def bytes(self) -> bytes:
        return self.take(self.length())

    def string(self) -> str:
        raw = self.bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise self.fail(f"invalid UTF-8 string: {e}") from e

    def variant(self, count: int, enum_name: str) -> int:
        idx = self.uleb128()
        if idx >= count:
            raise self.fail(f"unknown {enum_name} variant {idx}")
        return idx

    def option(self, read: Callable[[BcsReader], T]) -> T | None:
        tag = self.u8()
        if tag == 0:
            return None
        if tag == 1:
            return read(self)
        raise self.fail(f"invalid option tag {tag}")

    def vector(self, read: Callable[[BcsReader], T]) -> list[T]:
        return [read(self) for _ in range(self.length())]

    def finish(self) -> None:
        if self.remaining:
            raise self.fail(f"{self.remaining} trailing bytes")


def decode_all(data: bytes, what: str, read: Callable[[BcsReader], T]) -> T:
    """Decode one value and require that the whole buffer was consumed."""
    r = BcsReader(data, what)
    value = read(r)
    r.finish()
    return value


# ---------------------------------------------------------------------------
# Arguments
# ---------------------------------------------------------------------------


def write_argument(w: BcsWriter, arg: Argument) -> None:
    if isinstance(arg, GasCoin):
        w.variant(0)
    elif isinstance(arg, InputArg):
        w.variant(1).u64(arg.index)
    elif isinstance(arg, ResultArg):
        w.variant(2).u64(arg.index)
    elif isinstance(arg, NestedResultArg):
        w.variant(3).u64(arg.index).u64(arg.nested_index)
    else:
        raise TypeError(f"unknown argument variant: {type(arg).__name__}")


def read_argument(r: BcsReader) -> Argument:
    idx = r.variant(4, "Argument")
    if idx == 0:
        return GasCoin()
    if idx == 1:
        return InputArg(r.u64())
    if idx == 2:
        return ResultArg(r.u64())
    return NestedResultArg(r.u64(), r.u64())


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


def write_object_ref(w: BcsWriter, ref: ObjectRef) -> None:
    w.address(ref.object_id).u64(ref.version).bytes(ref.digest)


def read_object_ref(r: BcsReader) -> ObjectRef:
    return ObjectRef(object_id=r.address(), version=r.u64(), digest=r.bytes())


def write_shared_object_ref(w: BcsWriter, ref: SharedObjectRef) -> None:
    w.address(ref.object_id).u64(ref.initial_shared_version).bool(ref.mutable)


def read_shared_object_ref(r: BcsReader) -> SharedObjectRef:
    return SharedObjectRef(object_id=r.address(), initial_shared_version=r.u64(), mutable=r.bool())


def write_input(w: BcsWriter, inp: Input) -> None:
    if isinstance(inp, PureInput):
        w.variant(0).bytes(inp.data).string(inp.type_name)
    elif isinstance(inp, OwnedObjectInput):
        w.variant(1)
        write_object_ref(w, inp.object_ref)
    elif isinstance(inp, SharedObjectInput):
        w.variant(2)
        write_shared_object_ref(w, inp.shared_ref)
    elif isinstance(inp, ReceivingObjectInput):
        w.variant(3)
        write_object_ref(w, inp.object_ref)
    else:
        raise TypeError(f"unknown input variant: {type(inp).__name__}")


def read_input(r: BcsReader) -> Input:
    idx = r.variant(4, "Input")
    if idx == 0:
        return PureInput(data=r.bytes(), type_name=r.string())
    if idx == 1:
        return OwnedObjectInput(read_object_ref(r))
    if idx == 2:
        return SharedObjectInput(read_shared_object_ref(r))
    return ReceivingObjectInput(read_object_ref(r))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _write_type_tag(w: BcsWriter, tag: str) -> None:
    # TypeTag { type_tag: vector<u8> } carries the type string's UTF-8 bytes
    w.string(tag)


def _read_type_tag(r: BcsReader) -> str:
    return r.string()


def write_command(w: BcsWriter, cmd: Command) -> None:
    if isinstance(cmd, MoveCall):
        w.variant(0).address(cmd.package).string(cmd.module).string(cmd.function)
        w.vector(cmd.type_arguments, _write_type_tag)
        w.vector(cmd.arguments, write_argument)
    elif isinstance(cmd, TransferObjects):
        w.variant(1).vector(cmd.objects, write_argument)
        write_argument(w, cmd.recipient)
    elif isinstance(cmd, SplitCoins):
        w.variant(2)
        write_argument(w, cmd.coin)
        w.vector(cmd.amounts, write_argument)
    elif isinstance(cmd, MergeCoins):
        w.variant(3)
        write_argument(w, cmd.destination)
        w.vector(cmd.sources, write_argument)
    elif isinstance(cmd, MakeMoveVec):
        w.variant(4).option(cmd.type_tag, _write_type_tag)
        w.vector(cmd.elements, write_argument)
    else:
        raise TypeError(f"unknown command variant: {type(cmd).__name__}")


def read_command(r: BcsReader) -> Command:
    idx = r.variant(5, "Command")
    if idx == 0:
        return MoveCall(
            package=r.address(),
            module=r.string(),
            function=r.string(),
            type_arguments=tuple(r.vector(_read_type_tag)),
            arguments=tuple(r.vector(read_argument)),
        )
    if idx == 1:
        objects = tuple(r.vector(read_argument))
        return TransferObjects(objects=objects, recipient=read_argument(r))
    if idx == 2:
        coin = read_argument(r)
        return SplitCoins(coin=coin, amounts=tuple(r.vector(read_argument)))
    if idx == 3:
        destination = read_argument(r)
        return MergeCoins(destination=destination, sources=tuple(r.vector(read_argument)))
    type_tag = r.option(_read_type_tag)
    return MakeMoveVec(type_tag=type_tag, elements=tuple(r.vector(read_argument)))


def encode_inputs(inputs: Sequence[Input]) -> bytes:
    return BcsWriter().vector(inputs, write_input).finish()


def decode_inputs(data: bytes) -> list[Input]:
    return decode_all(data, "Input list", lambda r: r.vector(read_input))


def encode_commands(commands: Sequence[Command]) -> bytes:
    return BcsWriter().vector(commands, write_command).finish()


def decode_commands(data: bytes) -> list[Command]:
    return decode_all(data, "Command list", lambda r: r.vector(read_command))


# ---------------------------------------------------------------------------
# Instruction groups
# ---------------------------------------------------------------------------


def write_instruction_group(w: BcsWriter, group: InstructionGroup) -> None:
    # InstructionGroup { instructions: PTBInstruction { inputs, commands }, required_objects, required_types }
    w.vector(group.inputs, write_input)
    w.vector(group.commands, write_command)
    w.vector(group.required_objects, lambda ww, a: ww.address(a))
    w.vector(group.required_types, lambda ww, s: ww.string(s))


def read_instruction_group(r: BcsReader) -> InstructionGroup:
    return InstructionGroup(
        inputs=tuple(r.vector(read_input)),
        commands=tuple(r.vector(read_command)),
        required_objects=tuple(r.vector(lambda rr: rr.address())),
        required_types=tuple(r.vector(lambda rr: rr.string())),
    )


def encode_instruction_group(group: InstructionGroup) -> bytes:
    w = BcsWriter()
    write_instruction_group(w, group)
    return w.finish()


def decode_instruction_group(data: bytes) -> InstructionGroup:
    return decode_all(data, "InstructionGroup", read_instruction_group)


def encode_instruction_groups(groups: Sequence[InstructionGroup]) -> bytes:
    return BcsWriter().vector(groups, write_instruction_group).finish()


def decode_instruction_groups(data: bytes) -> list[InstructionGroup]:
    return decode_all(data, "InstructionGroups", lambda r: r.vector(read_instruction_group))


# ---------------------------------------------------------------------------
# Lookup descriptors (OffchainLookup enum)
# ---------------------------------------------------------------------------


def _write_struct_field(w: BcsWriter, f: StructField) -> None:
    w.bytes(f.name).bytes(f.value)


def _read_struct_field(r: BcsReader) -> StructField:
    return StructField(name=r.bytes(), value=r.bytes())


def write_lookup(w: BcsWriter, lookup: LookupDescriptor) -> None:
    if isinstance(lookup, RawFieldLookup):
        w.variant(0).address(lookup.parent).bytes(lookup.key).string(lookup.semantic_key)
    elif isinstance(lookup, ByTypeSuffixLookup):
        w.variant(1).address(lookup.parent).string(lookup.type_suffix).string(lookup.field)
        w.string(lookup.semantic_key)
    elif isinstance(lookup, RawObjectRefFieldLookup):
        w.variant(2).address(lookup.parent).bytes(lookup.key).string(lookup.semantic_key)
    elif isinstance(lookup, KeyedTableEntryLookup):
        w.variant(3).address(lookup.parent).string(lookup.path)
        w.option(lookup.key_raw, lambda ww, v: ww.bytes(v))
        w.option(lookup.key_structured, lambda ww, v: ww.vector(v, _write_struct_field))
        w.string(lookup.key_type).string(lookup.semantic_key)
    elif isinstance(lookup, NestedPathLookup):
        w.variant(4).address(lookup.parent).string(lookup.dot_path).string(lookup.semantic_key)
    else:
        raise TypeError(f"unknown lookup variant: {type(lookup).__name__}")


def read_lookup(r: BcsReader) -> LookupDescriptor:
    idx = r.variant(5, "OffchainLookup")
    if idx == 0:
        return RawFieldLookup(parent=r.address(), key=r.bytes(), semantic_key=r.string())
    if idx == 1:
        return ByTypeSuffixLookup(parent=r.address(), type_suffix=r.string(), field=r.string(), semantic_key=r.string())
    if idx == 2:
        return RawObjectRefFieldLookup(parent=r.address(), key=r.bytes(), semantic_key=r.string())
    if idx == 3:
        parent = r.address()
        path = r.string()
        key_raw = r.option(lambda rr: rr.bytes())
        key_structured = r.option(lambda rr: tuple(rr.vector(_read_struct_field)))
        key_type = r.string()
        semantic_key = r.string()
        try:
            return KeyedTableEntryLookup(
                parent=parent,
                path=path,
                key_type=key_type,
                semantic_key=semantic_key,
                key_raw=key_raw,
                key_structured=key_structured,
            )
        except ValueError as e:
            raise r.fail(str(e)) from e
    return NestedPathLookup(parent=r.address(), dot_path=r.string(), semantic_key=r.string())


def encode_lookup(lookup: LookupDescriptor) -> bytes:
    w = BcsWriter()
    write_lookup(w, lookup)
    return w.finish()


def decode_lookup(data: bytes) -> LookupDescriptor:
    return decode_all(data, "OffchainLookup", read_lookup)


# ---------------------------------------------------------------------------
# Resolution outcome (ResolverResult enum)
# ---------------------------------------------------------------------------


def encode_outcome(outcome: ResolutionOutcome) -> bytes:
    w = BcsWriter()
    if isinstance(outcome, Resolved):
        w.variant(0).vector([outcome.group], write_instruction_group)
    elif isinstance(outcome, NeedsData):
        w.variant(1).vector(outcome.lookups, write_lookup)
    elif isinstance(outcome, ErrorOutcome):
        w.variant(2).string(outcome.message)
    else:
        raise TypeError(f"unknown outcome variant: {type(outcome).__name__}")
    return w.finish()


def _read_outcome(r: BcsReader) -> ResolutionOutcome:
    idx = r.variant(3, "ResolverResult")
    if idx == 0:
        groups = r.vector(read_instruction_group)
        if len(groups) != 1:
            raise r.fail(f"expected exactly one instruction group, got {len(groups)}")
        return Resolved(groups[0])
    if idx == 1:
        return NeedsData(tuple(r.vector(read_lookup)))
    return ErrorOutcome(r.string())


def decode_outcome(data: bytes) -> ResolutionOutcome:
    return decode_all(data, "ResolverResult", _read_outcome)


# ---------------------------------------------------------------------------
# Discovered data
# ---------------------------------------------------------------------------


def encode_discovered_entries(entries: Iterable[tuple[str, bytes]]) -> bytes:
    """DiscoveredData { entries: vector<KeyValue { key: String, value: vector<u8> }> }.

    An empty table encodes to an empty buffer.
    """
    items = list(entries)
    if not items:
        return b""
    return BcsWriter().vector(items, lambda w, kv: w.string(kv[0]).bytes(kv[1])).finish()


def decode_discovered_entries(data: bytes) -> list[tuple[str, bytes]]:
    if not data:
        return []
    return decode_all(data, "DiscoveredData", lambda r: r.vector(lambda rr: (rr.string(), rr.bytes())))


# ---------------------------------------------------------------------------
# Positional handles
# ---------------------------------------------------------------------------


def encode_input_handle(handle: InputHandle) -> bytes:
    return BcsWriter().u64(handle.index).finish()


def decode_input_handle(data: bytes) -> InputHandle:
    return decode_all(data, "InputHandle", lambda r: InputHandle(r.u64()))


def encode_command_result(result: CommandResult) -> bytes:
    return BcsWriter().u64(result.index).u64(result.arity).finish()


def decode_command_result(data: bytes) -> CommandResult:
    return decode_all(data, "CommandResult", lambda r: CommandResult(r.u64(), r.u64()))


def encode_nested_command_result(result: NestedCommandResult) -> bytes:
    return BcsWriter().u64(result.index).u64(result.nested_index).finish()


def decode_nested_command_result(data: bytes) -> NestedCommandResult:
    return decode_all(data, "NestedCommandResult", lambda r: NestedCommandResult(r.u64(), r.u64()))


__all__ = [
    "BcsReader",
    "BcsWriter",
    "decode_all",
    "decode_commands",
    "decode_discovered_entries",
    "decode_inputs",
    "decode_instruction_group",
    "decode_instruction_groups",
    "decode_lookup",
    "decode_outcome",
    "encode_commands",
    "encode_discovered_entries",
    "encode_inputs",
    "encode_instruction_group",
    "encode_instruction_groups",
    "encode_lookup",
    "encode_outcome",
    "read_argument",
    "read_command",
    "read_input",
    "read_instruction_group",
    "read_lookup",
    "write_argument",
    "write_command",
    "write_input",
    "write_instruction_group",
    "write_lookup",
]
