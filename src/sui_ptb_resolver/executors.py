"""
Trial executors: run one resolver round against the current discovered data.

- ``EntryPointExecutor`` calls a Python entry point in-process.
- ``FlowExecutor`` runs a builder flow in-process.
- ``MoveCallExecutor`` devInspects ``target(state, vector<u8> payload, vector<u8> discovered)``
  on a fullnode.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Protocol

from sui_ptb_resolver.builder import CallSequenceBuilder
from sui_ptb_resolver.client import LedgerClient, TrialResult
from sui_ptb_resolver.constants import ZERO_ADDRESS
from sui_ptb_resolver.converters import normalize_address
from sui_ptb_resolver.events import LedgerEvent
from sui_ptb_resolver.transaction import ProgrammableTransaction

logger = logging.getLogger(__name__)

EntryPoint = Callable[[bytes, bytes], Sequence[LedgerEvent]]
ResolverFlow = Callable[[CallSequenceBuilder, bytes], None]


class TrialExecutor(Protocol):
    def simulate(self, discovered: bytes) -> TrialResult: ...


def builder_entry_point(flow: ResolverFlow) -> EntryPoint:
    """
    Wrap a flow written against CallSequenceBuilder as an entry point.

    Each call decodes the discovered table into a fresh builder, runs the flow
    with the payload and returns the builder's wire events.
    """

    def entry(payload: bytes, discovered: bytes) -> list[LedgerEvent]:
        builder = CallSequenceBuilder.from_encoded(discovered)
        flow(builder, payload)
        return builder.emit()

    return entry


class EntryPointExecutor:
    def __init__(self, entry_point: EntryPoint, payload: bytes = b""):
        self.entry_point = entry_point
        self.payload = bytes(payload)

    @classmethod
    def from_flow(cls, flow: ResolverFlow, payload: bytes = b"") -> EntryPointExecutor:
        return cls(builder_entry_point(flow), payload)

    def simulate(self, discovered: bytes) -> TrialResult:
        events = list(self.entry_point(self.payload, discovered))
        return TrialResult(ok=True, events=events)


class FlowExecutor:
    """Runs a builder flow in-process and reports its full outcome alongside the wire events."""

    def __init__(self, flow: ResolverFlow, payload: bytes = b""):
        self.flow = flow
        self.payload = bytes(payload)

    def simulate(self, discovered: bytes) -> TrialResult:
        builder = CallSequenceBuilder.from_encoded(discovered)
        self.flow(builder, self.payload)
        return TrialResult(ok=True, events=builder.emit(), outcome=builder.outcome())


class MoveCallExecutor:
    def __init__(
        self,
        client: LedgerClient,
        target: str,
        state_id: str,
        payload: bytes,
        *,
        sender: str = ZERO_ADDRESS,
    ):
        self.client = client
        self.target = target
        self.state_id = normalize_address(state_id)
        self.payload = bytes(payload)
        self.sender = normalize_address(sender)

    def build(self, discovered: bytes) -> ProgrammableTransaction:
        tx = ProgrammableTransaction()
        tx.move_call(
            self.target,
            [tx.object(self.state_id), tx.pure_bytes(self.payload), tx.pure_bytes(discovered)],
        )
        tx.resolve_object_inputs(self.client)
        return tx

    def simulate(self, discovered: bytes) -> TrialResult:
        tx = self.build(discovered)
        logger.debug(f"devInspect {self.target} with {len(discovered)} bytes of discovered data")
        return self.client.dev_inspect(tx.transaction_kind_bytes(), self.sender)
