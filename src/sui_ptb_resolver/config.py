"""
Resolver configuration.

Environment variables (all optional):
- SUI_PTB_NETWORK: mainnet | testnet | devnet | localnet (default mainnet)
- SUI_PTB_RPC_URL: override the network's fullnode URL
- SUI_PTB_MAX_ITERATIONS: iteration budget per session, clamped to 1-100
- SUI_PTB_RPC_TIMEOUT_SECONDS: per-request timeout
- SUI_PTB_RPC_MAX_ATTEMPTS: attempts per RPC call (transient failures only)
- SUI_PTB_SESSION_TIMEOUT_SECONDS: wall-clock deadline for a whole session
- SUI_PTB_FETCH_ALL_PENDING: resolve every pending lookup per round
- SUI_PTB_DEBUG: debug logging
- SUI_PTB_TRACE_DIR: write a JSONL trace of every session under this directory
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path

from sui_ptb_resolver.constants import (
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_RPC_MAX_ATTEMPTS,
    DEFAULT_RPC_RETRY_BASE_DELAY,
    DEFAULT_RPC_URL,
    MAX_ITERATIONS,
    MIN_ITERATIONS,
    RPC_REQUEST_TIMEOUT_SECONDS,
    ZERO_ADDRESS,
)
from sui_ptb_resolver.converters import normalize_address
from sui_ptb_resolver.errors import ValidationError
from sui_ptb_resolver.utils import safe_bool, safe_parse_float, safe_parse_int, validate_range


@dataclass(frozen=True)
class NetworkConfig:
    name: str
    rpc_url: str


NETWORKS: dict[str, NetworkConfig] = {
    "mainnet": NetworkConfig("mainnet", DEFAULT_RPC_URL),
    "testnet": NetworkConfig("testnet", "https://fullnode.testnet.sui.io:443"),
    "devnet": NetworkConfig("devnet", "https://fullnode.devnet.sui.io:443"),
    "localnet": NetworkConfig("localnet", "http://127.0.0.1:9000"),
}


def get_network_config(network: str) -> NetworkConfig:
    config = NETWORKS.get(network)
    if config is None:
        raise ValidationError("network", f"unknown network {network!r}. Available networks: {', '.join(NETWORKS)}")
    return config


def is_valid_network(network: str) -> bool:
    return network in NETWORKS


@dataclass(frozen=True)
class ResolverConfig:
    network: NetworkConfig = field(default_factory=lambda: NETWORKS["mainnet"])
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    debug: bool = False
    rpc_timeout_s: float = RPC_REQUEST_TIMEOUT_SECONDS
    rpc_max_attempts: int = DEFAULT_RPC_MAX_ATTEMPTS
    rpc_retry_base_delay_s: float = DEFAULT_RPC_RETRY_BASE_DELAY
    session_timeout_s: float | None = None
    fetch_all_pending: bool = False
    sender: str = ZERO_ADDRESS
    trace_dir: Path | None = None

    def validate(self) -> ResolverConfig:
        """
        Raises:
            ValidationError: If any field is out of range.
        """
        validate_range(self.max_iterations, MIN_ITERATIONS, MAX_ITERATIONS, "max_iterations")
        validate_range(self.rpc_max_attempts, 1, 10, "rpc_max_attempts")
        if self.rpc_timeout_s <= 0:
            raise ValidationError("rpc_timeout_s", f"must be positive, got {self.rpc_timeout_s}")
        if self.session_timeout_s is not None and self.session_timeout_s <= 0:
            raise ValidationError("session_timeout_s", f"must be positive, got {self.session_timeout_s}")
        normalize_address(self.sender)
        return self

    def with_overrides(self, **changes: object) -> ResolverConfig:
        return replace(self, **changes)  # type: ignore[arg-type]


def _env_get(key: str) -> str | None:
    v = os.environ.get(key)
    if v is None:
        return None
    v = v.strip()
    return v or None


def load_resolver_config(env_overrides: dict[str, str] | None = None) -> ResolverConfig:
    """Build a ResolverConfig from the environment; ``env_overrides`` win over process env."""
    env_overrides = env_overrides or {}

    def get(k: str) -> str | None:
        v = env_overrides.get(k)
        if v is not None and v.strip():
            return v.strip()
        return _env_get(k)

    network = get_network_config(get("SUI_PTB_NETWORK") or "mainnet")
    rpc_url = get("SUI_PTB_RPC_URL")
    if rpc_url:
        network = NetworkConfig(network.name, rpc_url)

    session_timeout_raw = get("SUI_PTB_SESSION_TIMEOUT_SECONDS")
    session_timeout = (
        safe_parse_float(session_timeout_raw, 0.0, min_val=0.0, name="SUI_PTB_SESSION_TIMEOUT_SECONDS")
        if session_timeout_raw
        else 0.0
    )
    trace_dir = get("SUI_PTB_TRACE_DIR")

    return ResolverConfig(
        network=network,
        max_iterations=safe_parse_int(
            get("SUI_PTB_MAX_ITERATIONS"),
            DEFAULT_MAX_ITERATIONS,
            min_val=MIN_ITERATIONS,
            max_val=MAX_ITERATIONS,
            name="SUI_PTB_MAX_ITERATIONS",
        ),
        debug=safe_bool(get("SUI_PTB_DEBUG"), False),
        rpc_timeout_s=safe_parse_float(
            get("SUI_PTB_RPC_TIMEOUT_SECONDS"),
            RPC_REQUEST_TIMEOUT_SECONDS,
            min_val=1.0,
            max_val=600.0,
            name="SUI_PTB_RPC_TIMEOUT_SECONDS",
        ),
        rpc_max_attempts=safe_parse_int(
            get("SUI_PTB_RPC_MAX_ATTEMPTS"), DEFAULT_RPC_MAX_ATTEMPTS, min_val=1, max_val=10, name="SUI_PTB_RPC_MAX_ATTEMPTS"
        ),
        session_timeout_s=session_timeout or None,
        fetch_all_pending=safe_bool(get("SUI_PTB_FETCH_ALL_PENDING"), False),
        trace_dir=Path(trace_dir) if trace_dir else None,
    ).validate()
