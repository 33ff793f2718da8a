"""
Resolver wire events and their parser.

A resolver entry point emits exactly one of:

    ResolverNeedsDataEvent     { parent_object: address, lookup_key: vector<u8>, key_type: String,
                                 semantic_key: String, lookup_kind: u8 }
    ResolverInstructionsEvent  { inputs, commands, required_objects: vector<address>,
                                 required_types: vector<String> }
    ResolverErrorEvent         { message: String }

All payloads are BCS. Over JSON-RPC the payload arrives in the event's ``bcs``
field (base64, or base58 on older fullnodes).
"""

from __future__ import annotations

import base64
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Union

import base58

from sui_ptb_resolver.codec import (
    BcsReader,
    BcsWriter,
    decode_all,
    encode_instruction_group,
    read_instruction_group,
)
from sui_ptb_resolver.constants import ERROR_EVENT, INSTRUCTIONS_EVENT, NEEDS_DATA_EVENT
from sui_ptb_resolver.errors import MalformedEncoding
from sui_ptb_resolver.lookup_keys import LookupKind, decode_lookup, encode_lookup_key
from sui_ptb_resolver.models import (
    ErrorOutcome,
    InstructionGroup,
    LookupDescriptor,
    NeedsData,
    ResolutionOutcome,
    Resolved,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerEvent:
    """An emitted event: fully-qualified Move type plus its BCS payload."""

    type: str
    bcs: bytes
    parsed_json: dict[str, Any] | None = field(default=None, compare=False)

    @classmethod
    def from_rpc(cls, raw: dict[str, Any]) -> LedgerEvent:
        encoded = raw.get("bcs") or ""
        encoding = raw.get("bcsEncoding", "base64")
        try:
            if encoding == "base58":
                payload = base58.b58decode(encoded)
            else:
                payload = base64.b64decode(encoded, validate=True)
        except ValueError as e:
            raise MalformedEncoding("event payload", f"bad {encoding} in event {raw.get('type')!r}: {e}") from e
        return cls(type=str(raw.get("type", "")), bcs=payload, parsed_json=raw.get("parsedJson"))


# ---------------------------------------------------------------------------
# Event payloads
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NeedsDataEvent:
    parent_object: bytes
    lookup_key: bytes
    key_type: str
    semantic_key: str
    lookup_kind: int

    @classmethod
    def from_lookup(cls, lookup: LookupDescriptor) -> NeedsDataEvent:
        kind, key, key_type = encode_lookup_key(lookup)
        return cls(
            parent_object=lookup.parent,
            lookup_key=key,
            key_type=key_type,
            semantic_key=lookup.semantic_key,
            lookup_kind=int(kind),
        )

    def to_lookup(self) -> LookupDescriptor:
        return decode_lookup(self.lookup_kind, self.parent_object, self.lookup_key, self.key_type, self.semantic_key)

    def encode(self) -> bytes:
        w = BcsWriter()
        w.address(self.parent_object).bytes(self.lookup_key).string(self.key_type).string(self.semantic_key)
        w.u8(self.lookup_kind)
        return w.finish()

    @classmethod
    def decode(cls, data: bytes) -> NeedsDataEvent:
        def read(r: BcsReader) -> NeedsDataEvent:
            return cls(
                parent_object=r.address(),
                lookup_key=r.bytes(),
                key_type=r.string(),
                semantic_key=r.string(),
                lookup_kind=r.u8(),
            )

        return decode_all(data, NEEDS_DATA_EVENT, read)


@dataclass(frozen=True)
class InstructionsEvent:
    group: InstructionGroup

    def encode(self) -> bytes:
        return encode_instruction_group(self.group)

    @classmethod
    def decode(cls, data: bytes) -> InstructionsEvent:
        return cls(decode_all(data, INSTRUCTIONS_EVENT, read_instruction_group))


@dataclass(frozen=True)
class ErrorEvent:
    message: str

    def encode(self) -> bytes:
        return BcsWriter().string(self.message).finish()

    @classmethod
    def decode(cls, data: bytes) -> ErrorEvent:
        return cls(decode_all(data, ERROR_EVENT, lambda r: r.string()))


WireEvent = Union[NeedsDataEvent, InstructionsEvent, ErrorEvent]


def event_name(event: WireEvent) -> str:
    if isinstance(event, NeedsDataEvent):
        return NEEDS_DATA_EVENT
    if isinstance(event, InstructionsEvent):
        return INSTRUCTIONS_EVENT
    if isinstance(event, ErrorEvent):
        return ERROR_EVENT
    raise TypeError(f"unknown wire event: {type(event).__name__}")


def to_ledger_event(event: WireEvent, module_prefix: str = "0x0::ptb_types") -> LedgerEvent:
    return LedgerEvent(type=f"{module_prefix}::{event_name(event)}", bcs=event.encode())


def outcome_to_event(outcome: ResolutionOutcome) -> WireEvent:
    """Wire form of an outcome. Only the first pending descriptor is transmitted."""
    if isinstance(outcome, Resolved):
        return InstructionsEvent(outcome.group)
    if isinstance(outcome, NeedsData):
        if not outcome.lookups:
            raise ValueError("NeedsData outcome without lookups has no wire form")
        return NeedsDataEvent.from_lookup(outcome.lookups[0])
    if isinstance(outcome, ErrorOutcome):
        return ErrorEvent(outcome.message)
    raise TypeError(f"unknown outcome variant: {type(outcome).__name__}")


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _resolver_event_kind(event_type: str) -> str | None:
    for name in (NEEDS_DATA_EVENT, INSTRUCTIONS_EVENT, ERROR_EVENT):
        if event_type == name or event_type.endswith("::" + name):
            return name
    return None


class EventParser:
    """Turns the events captured by a trial pass into a ResolutionOutcome."""

    def parse(self, events: Iterable[LedgerEvent]) -> ResolutionOutcome:
        found: list[tuple[str, LedgerEvent]] = []
        for ev in events:
            kind = _resolver_event_kind(ev.type)
            if kind is not None:
                found.append((kind, ev))
            else:
                logger.debug(f"Ignoring non-resolver event {ev.type}")

        if not found:
            raise MalformedEncoding("resolver events", "no resolver event found in trial result")
        if len(found) > 1:
            kinds = ", ".join(k for k, _ in found)
            raise MalformedEncoding("resolver events", f"expected exactly one resolver event, got {len(found)} ({kinds})")

        kind, ev = found[0]
        if kind == NEEDS_DATA_EVENT:
            lookup = NeedsDataEvent.decode(ev.bcs).to_lookup()
            return NeedsData((lookup,))
        if kind == INSTRUCTIONS_EVENT:
            return Resolved(InstructionsEvent.decode(ev.bcs).group)
        return ErrorOutcome(ErrorEvent.decode(ev.bcs).message)


__all__ = [
    "ErrorEvent",
    "EventParser",
    "InstructionsEvent",
    "LedgerEvent",
    "LookupKind",
    "NeedsDataEvent",
    "WireEvent",
    "event_name",
    "outcome_to_event",
    "to_ledger_event",
]
