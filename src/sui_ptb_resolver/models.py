"""Data model for resolver sessions.

Mirrors the BCS types shared with on-chain resolvers (ptb_types.move): PTB
inputs, commands and arguments, instruction groups, offchain lookup descriptors
and resolution outcomes. Every tagged union is a closed ``Union`` of frozen
dataclasses; consumers dispatch with an ``isinstance`` chain that ends in a
``TypeError`` so a new variant surfaces everywhere it is not handled.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

# ---------------------------------------------------------------------------
# Arguments
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GasCoin:
    pass


@dataclass(frozen=True)
class InputArg:
    index: int


@dataclass(frozen=True)
class ResultArg:
    index: int


@dataclass(frozen=True)
class NestedResultArg:
    index: int
    nested_index: int


Argument = Union[GasCoin, InputArg, ResultArg, NestedResultArg]

# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ObjectRef:
    object_id: bytes  # 32 bytes
    version: int
    digest: bytes


@dataclass(frozen=True)
class SharedObjectRef:
    object_id: bytes  # 32 bytes
    initial_shared_version: int
    mutable: bool


@dataclass(frozen=True)
class PureInput:
    """Already BCS-encoded value plus the Move type name it was encoded from."""

    data: bytes
    type_name: str


@dataclass(frozen=True)
class OwnedObjectInput:
    object_ref: ObjectRef


@dataclass(frozen=True)
class SharedObjectInput:
    shared_ref: SharedObjectRef


@dataclass(frozen=True)
class ReceivingObjectInput:
    object_ref: ObjectRef


Input = Union[PureInput, OwnedObjectInput, SharedObjectInput, ReceivingObjectInput]


def input_object_id(inp: Input) -> bytes | None:
    """Return the object id referenced by an object-kind input, None for pure inputs."""
    if isinstance(inp, PureInput):
        return None
    if isinstance(inp, (OwnedObjectInput, ReceivingObjectInput)):
        return inp.object_ref.object_id
    if isinstance(inp, SharedObjectInput):
        return inp.shared_ref.object_id
    raise TypeError(f"unknown input variant: {type(inp).__name__}")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MoveCall:
    package: bytes  # 32 bytes
    module: str
    function: str
    type_arguments: tuple[str, ...] = ()
    arguments: tuple[Argument, ...] = ()


@dataclass(frozen=True)
class TransferObjects:
    objects: tuple[Argument, ...]
    recipient: Argument


@dataclass(frozen=True)
class SplitCoins:
    coin: Argument
    amounts: tuple[Argument, ...]


@dataclass(frozen=True)
class MergeCoins:
    destination: Argument
    sources: tuple[Argument, ...]


@dataclass(frozen=True)
class MakeMoveVec:
    type_tag: str | None
    elements: tuple[Argument, ...]


Command = Union[MoveCall, TransferObjects, SplitCoins, MergeCoins, MakeMoveVec]


def command_arguments(cmd: Command) -> tuple[Argument, ...]:
    """All arguments a command consumes, in wire order."""
    if isinstance(cmd, MoveCall):
        return cmd.arguments
    if isinstance(cmd, TransferObjects):
        return (*cmd.objects, cmd.recipient)
    if isinstance(cmd, SplitCoins):
        return (cmd.coin, *cmd.amounts)
    if isinstance(cmd, MergeCoins):
        return (cmd.destination, *cmd.sources)
    if isinstance(cmd, MakeMoveVec):
        return cmd.elements
    raise TypeError(f"unknown command variant: {type(cmd).__name__}")


# ---------------------------------------------------------------------------
# Instruction groups
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InstructionGroup:
    inputs: tuple[Input, ...] = ()
    commands: tuple[Command, ...] = ()
    required_objects: tuple[bytes, ...] = ()
    required_types: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Positional handles
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InputHandle:
    index: int


@dataclass(frozen=True)
class CommandResult:
    index: int
    arity: int = 1


@dataclass(frozen=True)
class NestedCommandResult:
    index: int
    nested_index: int


# ---------------------------------------------------------------------------
# Offchain lookups
# ---------------------------------------------------------------------------


class LookupValueType(str, Enum):
    """Shape a discovered value is decoded into when a builder reads it back."""

    ADDRESS = "address"
    COIN_TYPE = "coin_type"
    OBJECT_REF = "object_ref"
    RAW = "raw"


@dataclass(frozen=True)
class StructField:
    name: bytes
    value: bytes  # BCS-encoded field value


@dataclass(frozen=True)
class ByTypeSuffixLookup:
    """Dynamic field of ``parent`` whose type ends with ``type_suffix``; extract ``field``."""

    parent: bytes
    type_suffix: str
    field: str
    semantic_key: str


@dataclass(frozen=True)
class KeyedTableEntryLookup:
    """Entry of the Table found at ``path`` inside ``parent``.

    Exactly one of ``key_raw`` / ``key_structured`` is set.
    """

    parent: bytes
    path: str
    key_type: str
    semantic_key: str
    key_raw: bytes | None = None
    key_structured: tuple[StructField, ...] | None = None

    def __post_init__(self) -> None:
        if (self.key_raw is None) == (self.key_structured is None):
            raise ValueError("KeyedTableEntryLookup needs exactly one of key_raw or key_structured")


@dataclass(frozen=True)
class RawFieldLookup:
    """Dynamic field of ``parent`` named by the opaque ``key`` bytes."""

    parent: bytes
    key: bytes
    semantic_key: str


@dataclass(frozen=True)
class RawObjectRefFieldLookup:
    """Dynamic object field of ``parent``; resolves to an object reference, not a scalar."""

    parent: bytes
    key: bytes
    semantic_key: str


@dataclass(frozen=True)
class NestedPathLookup:
    """Field of ``parent`` reached by walking ``dot_path``."""

    parent: bytes
    dot_path: str
    semantic_key: str


LookupDescriptor = Union[
    ByTypeSuffixLookup,
    KeyedTableEntryLookup,
    RawFieldLookup,
    RawObjectRefFieldLookup,
    NestedPathLookup,
]


def lookup_kind_name(lookup: LookupDescriptor) -> str:
    if isinstance(lookup, ByTypeSuffixLookup):
        return "ByTypeSuffix"
    if isinstance(lookup, KeyedTableEntryLookup):
        return "KeyedTableEntry"
    if isinstance(lookup, RawFieldLookup):
        return "RawField"
    if isinstance(lookup, RawObjectRefFieldLookup):
        return "RawObjectRefField"
    if isinstance(lookup, NestedPathLookup):
        return "NestedPath"
    raise TypeError(f"unknown lookup variant: {type(lookup).__name__}")


# ---------------------------------------------------------------------------
# Resolution outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Resolved:
    group: InstructionGroup


@dataclass(frozen=True)
class NeedsData:
    lookups: tuple[LookupDescriptor, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ErrorOutcome:
    message: str


ResolutionOutcome = Union[Resolved, NeedsData, ErrorOutcome]
