from __future__ import annotations

from pathlib import Path

import pytest
from sui_ptb_resolver.config import (
    NETWORKS,
    ResolverConfig,
    get_network_config,
    is_valid_network,
    load_resolver_config,
)
from sui_ptb_resolver.constants import DEFAULT_MAX_ITERATIONS
from sui_ptb_resolver.errors import ValidationError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in (
        "SUI_PTB_NETWORK",
        "SUI_PTB_RPC_URL",
        "SUI_PTB_MAX_ITERATIONS",
        "SUI_PTB_RPC_TIMEOUT_SECONDS",
        "SUI_PTB_RPC_MAX_ATTEMPTS",
        "SUI_PTB_SESSION_TIMEOUT_SECONDS",
        "SUI_PTB_FETCH_ALL_PENDING",
        "SUI_PTB_DEBUG",
        "SUI_PTB_TRACE_DIR",
    ):
        monkeypatch.delenv(key, raising=False)


def test_defaults() -> None:
    cfg = load_resolver_config()
    assert cfg.network == NETWORKS["mainnet"]
    assert cfg.max_iterations == DEFAULT_MAX_ITERATIONS
    assert cfg.fetch_all_pending is False
    assert cfg.session_timeout_s is None
    assert cfg.trace_dir is None


def test_networks() -> None:
    assert get_network_config("localnet").rpc_url == "http://127.0.0.1:9000"
    assert is_valid_network("testnet")
    assert not is_valid_network("moonnet")
    with pytest.raises(ValidationError, match="moonnet"):
        get_network_config("moonnet")


def test_env_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SUI_PTB_NETWORK", "devnet")
    monkeypatch.setenv("SUI_PTB_MAX_ITERATIONS", "25")
    cfg = load_resolver_config(
        {
            "SUI_PTB_NETWORK": "testnet",
            "SUI_PTB_RPC_URL": "http://localhost:1234",
            "SUI_PTB_FETCH_ALL_PENDING": "yes",
            "SUI_PTB_SESSION_TIMEOUT_SECONDS": "90",
            "SUI_PTB_TRACE_DIR": str(tmp_path),
            "SUI_PTB_DEBUG": "1",
        }
    )
    assert cfg.network.name == "testnet"
    assert cfg.network.rpc_url == "http://localhost:1234"
    assert cfg.max_iterations == 25
    assert cfg.fetch_all_pending is True
    assert cfg.session_timeout_s == 90.0
    assert cfg.trace_dir == tmp_path
    assert cfg.debug is True


def test_blank_override_falls_back_to_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SUI_PTB_NETWORK", "devnet")
    assert load_resolver_config({"SUI_PTB_NETWORK": "  "}).network.name == "devnet"


@pytest.mark.parametrize("raw,expected", [("0", 1), ("500", 100), ("abc", DEFAULT_MAX_ITERATIONS), ("7", 7)])
def test_env_budget_is_clamped(raw: str, expected: int) -> None:
    assert load_resolver_config({"SUI_PTB_MAX_ITERATIONS": raw}).max_iterations == expected


@pytest.mark.parametrize("budget", [-1, 0, 1, 50, 100, 101, 1000])
def test_validate_budget_is_strict(budget: int) -> None:
    cfg = ResolverConfig(max_iterations=budget)
    if 1 <= budget <= 100:
        assert cfg.validate() is cfg
    else:
        with pytest.raises(ValidationError):
            cfg.validate()


def test_validate_rejects_bad_values() -> None:
    with pytest.raises(ValidationError):
        ResolverConfig(rpc_timeout_s=0).validate()
    with pytest.raises(ValidationError):
        ResolverConfig(session_timeout_s=-1).validate()
    with pytest.raises(ValidationError):
        ResolverConfig(sender="not-an-address").validate()


def test_with_overrides_is_a_copy() -> None:
    base = ResolverConfig()
    changed = base.with_overrides(max_iterations=3)
    assert changed.max_iterations == 3
    assert base.max_iterations == DEFAULT_MAX_ITERATIONS
