"""Offchain PTB resolution for Sui: trial-execute a resolver, fetch the data it asks for, replay its instructions."""

from sui_ptb_resolver.builder import CallSequenceBuilder
from sui_ptb_resolver.client import LedgerClient, SuiRpcClient
from sui_ptb_resolver.config import ResolverConfig, load_resolver_config
from sui_ptb_resolver.discovered import DiscoveredData
from sui_ptb_resolver.errors import (
    ContractError,
    IterationBudgetExceeded,
    LookupResolutionError,
    MalformedEncoding,
    MissingField,
    ResolutionCancelled,
    ResolverError,
    RPCFailure,
    TypeMismatch,
    ValidationError,
)
from sui_ptb_resolver.executors import EntryPointExecutor, FlowExecutor, MoveCallExecutor
from sui_ptb_resolver.orchestrator import ResolverOutput, SuiPTBResolver
from sui_ptb_resolver.reconstructor import TransactionReconstructor
from sui_ptb_resolver.transaction import ProgrammableTransaction

__version__ = "0.1.0"

__all__ = [
    "CallSequenceBuilder",
    "ContractError",
    "DiscoveredData",
    "EntryPointExecutor",
    "FlowExecutor",
    "IterationBudgetExceeded",
    "LedgerClient",
    "LookupResolutionError",
    "MalformedEncoding",
    "MissingField",
    "MoveCallExecutor",
    "ProgrammableTransaction",
    "RPCFailure",
    "ResolutionCancelled",
    "ResolverConfig",
    "ResolverError",
    "ResolverOutput",
    "SuiPTBResolver",
    "SuiRpcClient",
    "TransactionReconstructor",
    "TypeMismatch",
    "ValidationError",
    "load_resolver_config",
]
