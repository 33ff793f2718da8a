"""
Resolution orchestrator.

    Init -> Simulate -> ParseEvent -> Resolved:  reconstruct, done
                                   -> NeedsData: fetch, Simulate again
                                   -> Error:     fail

The iteration budget is checked before every Simulate. Only the discovered
data table survives between rounds; the resolver rebuilds everything else
from it each time.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from sui_ptb_resolver.client import LedgerClient, SuiRpcClient
from sui_ptb_resolver.config import ResolverConfig
from sui_ptb_resolver.constants import MAX_ITERATIONS, MIN_ITERATIONS
from sui_ptb_resolver.converters import bytes_to_address
from sui_ptb_resolver.discovered import DiscoveredData
from sui_ptb_resolver.errors import (
    ContractError,
    IterationBudgetExceeded,
    MalformedEncoding,
    ResolutionCancelled,
    ResolverError,
)
from sui_ptb_resolver.events import EventParser
from sui_ptb_resolver.executors import MoveCallExecutor, TrialExecutor
from sui_ptb_resolver.logging import ResolutionTrace
from sui_ptb_resolver.lookups import LookupDispatcher
from sui_ptb_resolver.models import (
    ErrorOutcome,
    InstructionGroup,
    LookupDescriptor,
    NeedsData,
    Resolved,
    lookup_kind_name,
)
from sui_ptb_resolver.reconstructor import TransactionReconstructor
from sui_ptb_resolver.transaction import ProgrammableTransaction
from sui_ptb_resolver.utils import validate_range

logger = logging.getLogger(__name__)


@dataclass
class ResolverOutput:
    transaction: ProgrammableTransaction
    instruction_group: InstructionGroup
    iterations: int
    discovered: dict[str, bytes]
    required_objects: list[str]
    required_types: list[str]


class SuiPTBResolver:
    """Drives resolution sessions against a ledger client."""

    def __init__(
        self,
        config: ResolverConfig | None = None,
        client: LedgerClient | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or ResolverConfig()
        if client is None:
            client = SuiRpcClient(
                self.config.network.rpc_url,
                timeout=self.config.rpc_timeout_s,
                max_attempts=self.config.rpc_max_attempts,
                retry_base_delay=self.config.rpc_retry_base_delay_s,
            )
        self.client = client
        self.dispatcher = LookupDispatcher(client)
        self.parser = EventParser()
        self._clock = clock
        self._cancel_reason: str | None = None

    def cancel(self, reason: str = "cancelled by caller") -> None:
        """Stop the running session before its next trial pass or lookup."""
        self._cancel_reason = reason

    def resolve_move_call(self, target: str, state_id: str, payload: bytes) -> ResolverOutput:
        """Resolve via devInspect of ``target(state, payload, discovered)``."""
        executor = MoveCallExecutor(self.client, target, state_id, payload, sender=self.config.sender)
        return self.resolve(executor)

    def resolve(self, executor: TrialExecutor) -> ResolverOutput:
        """
        Run one resolution session.

        Raises:
            ValidationError: If the iteration budget is outside 1-100.
            IterationBudgetExceeded: If the budget is used up before the group resolves.
            ContractError: If the resolver reports an error or the trial pass fails.
            LookupResolutionError: If a requested datum cannot be fetched.
            MalformedEncoding: If an event payload cannot be decoded.
            ResolutionCancelled: On cancel() or when the session deadline passes.
        """
        max_iterations = validate_range(self.config.max_iterations, MIN_ITERATIONS, MAX_ITERATIONS, "max_iterations")
        self._cancel_reason = None
        deadline = self._clock() + self.config.session_timeout_s if self.config.session_timeout_s else None
        trace = ResolutionTrace(base_dir=self.config.trace_dir) if self.config.trace_dir else None
        discovered = DiscoveredData()

        if trace is not None:
            trace.write_run_metadata(
                {
                    "run_id": trace.run_id,
                    "network": self.config.network.name,
                    "rpc_url": self.config.network.rpc_url,
                    "max_iterations": max_iterations,
                    "fetch_all_pending": self.config.fetch_all_pending,
                    "started_at_unix": int(time.time()),
                }
            )
            trace.event("session_started", max_iterations=max_iterations)

        logger.debug(f"Starting resolution (max {max_iterations} iterations)")
        iteration = 0
        try:
            while True:
                if iteration >= max_iterations:
                    raise IterationBudgetExceeded(max_iterations, discovered.keys())
                self._check_live(iteration, deadline)
                iteration += 1
                logger.debug(f"Iteration {iteration}/{max_iterations}")
                if trace is not None:
                    trace.event("round_started", iteration=iteration, discovered=len(discovered))

                result = executor.simulate(discovered.encode())
                if not result.ok:
                    raise ContractError(result.error or "unknown execution failure", source="trial_status")

                if self.config.fetch_all_pending and result.outcome is not None:
                    outcome = result.outcome
                else:
                    outcome = self.parser.parse(result.events)
                if isinstance(outcome, Resolved):
                    output = self._finish(outcome.group, iteration, discovered)
                    logger.debug(f"Resolution complete after {iteration} iteration(s)")
                    if trace is not None:
                        trace.event(
                            "resolved",
                            iteration=iteration,
                            inputs=len(outcome.group.inputs),
                            commands=len(outcome.group.commands),
                        )
                    return output
                if isinstance(outcome, NeedsData):
                    if not outcome.lookups:
                        raise MalformedEncoding("resolver events", "needs-data outcome carries no lookup")
                    lookups = _unique_by_key(outcome.lookups) if self.config.fetch_all_pending else outcome.lookups[:1]
                    for lookup in lookups:
                        self._check_live(iteration, deadline)
                        self._fetch(lookup, discovered, trace, iteration)
                    continue
                if isinstance(outcome, ErrorOutcome):
                    raise ContractError(outcome.message)
                raise TypeError(f"unknown outcome variant: {type(outcome).__name__}")
        except ResolverError as e:
            logger.debug(f"Resolution failed at iteration {iteration}: {e}")
            if trace is not None:
                trace.event("failed", iteration=iteration, error=e.to_dict())
            raise

    def _fetch(
        self, lookup: LookupDescriptor, discovered: DiscoveredData, trace: ResolutionTrace | None, iteration: int
    ) -> None:
        key = lookup.semantic_key
        kind = lookup_kind_name(lookup)
        if key in discovered:
            logger.warning(f"Resolver requested {key!r} again although it is already discovered")
        logger.debug(f"Fetching offchain data: {key} ({kind})")
        if trace is not None:
            trace.event(
                "lookup_requested", iteration=iteration, kind=kind, semantic_key=key, parent=bytes_to_address(lookup.parent)
            )
        value = self.dispatcher.resolve(lookup)
        discovered.insert(key, value)
        logger.debug(f"Discovered: {key} ({len(value)} bytes)")
        if trace is not None:
            trace.event("lookup_resolved", iteration=iteration, semantic_key=key, value=value)

    def _check_live(self, iteration: int, deadline: float | None) -> None:
        if self._cancel_reason is not None:
            raise ResolutionCancelled(self._cancel_reason, iteration)
        if deadline is not None and self._clock() >= deadline:
            raise ResolutionCancelled(f"session timeout of {self.config.session_timeout_s}s exceeded", iteration)

    def _finish(self, group: InstructionGroup, iterations: int, discovered: DiscoveredData) -> ResolverOutput:
        tx = TransactionReconstructor().build(group)
        return ResolverOutput(
            transaction=tx,
            instruction_group=group,
            iterations=iterations,
            discovered=discovered.as_dict(),
            required_objects=[bytes_to_address(o) for o in group.required_objects],
            required_types=list(group.required_types),
        )


def _unique_by_key(lookups: tuple[LookupDescriptor, ...]) -> list[LookupDescriptor]:
    seen: set[str] = set()
    out = []
    for lookup in lookups:
        if lookup.semantic_key not in seen:
            seen.add(lookup.semantic_key)
            out.append(lookup)
    return out
