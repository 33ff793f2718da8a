"""
Ledger access for resolver sessions.

``LedgerClient`` is the interface the orchestrator and the lookup handlers
depend on. ``SuiRpcClient`` implements it over Sui JSON-RPC with httpx;
tests substitute an in-memory ledger.
"""

from __future__ import annotations

import base64
import itertools
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from sui_ptb_resolver.constants import (
    DEFAULT_RPC_MAX_ATTEMPTS,
    DEFAULT_RPC_RETRY_BASE_DELAY,
    DEFAULT_RPC_RETRY_MAX_DELAY,
    DEFAULT_RPC_URL,
    DYNAMIC_FIELDS_PAGE_SIZE,
    MULTI_GET_OBJECTS_BATCH_SIZE,
    RETRYABLE_HTTP_STATUS,
    RPC_REQUEST_TIMEOUT_SECONDS,
    ZERO_ADDRESS,
)
from sui_ptb_resolver.errors import RPCFailure
from sui_ptb_resolver.events import LedgerEvent
from sui_ptb_resolver.models import ResolutionOutcome
from sui_ptb_resolver.utils import retry_with_backoff

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerObject:
    object_id: str
    version: int
    digest: str
    type: str | None = None
    fields: dict[str, Any] = field(default_factory=dict)
    owner: Any = None
    is_move_object: bool = True

    @property
    def initial_shared_version(self) -> int | None:
        if isinstance(self.owner, dict):
            shared = self.owner.get("Shared")
            if isinstance(shared, dict) and "initial_shared_version" in shared:
                return int(shared["initial_shared_version"])
        return None

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> LedgerObject:
        content = data.get("content") or {}
        is_move = content.get("dataType", "moveObject") == "moveObject"
        return cls(
            object_id=data["objectId"],
            version=int(data["version"]),
            digest=data["digest"],
            type=data.get("type") or content.get("type"),
            fields=dict(content.get("fields") or {}) if is_move else {},
            owner=data.get("owner"),
            is_move_object=is_move,
        )


@dataclass(frozen=True)
class DynamicFieldInfo:
    name_type: str
    name_value: Any
    object_id: str
    object_type: str | None = None
    version: int | None = None
    digest: str | None = None

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> DynamicFieldInfo:
        name = data.get("name") or {}
        version = data.get("version")
        return cls(
            name_type=name.get("type", ""),
            name_value=name.get("value"),
            object_id=data["objectId"],
            object_type=data.get("objectType"),
            version=int(version) if version is not None else None,
            digest=data.get("digest"),
        )


@dataclass(frozen=True)
class TrialResult:
    """Outcome of a zero-cost trial execution.

    In-process executors may also attach the resolver's full outcome, which can
    carry more pending lookups than the single one a needs-data event transmits.
    """

    ok: bool
    error: str | None = None
    events: list[LedgerEvent] = field(default_factory=list)
    outcome: ResolutionOutcome | None = None

    @classmethod
    def from_rpc(cls, result: dict[str, Any]) -> TrialResult:
        status = (result.get("effects") or {}).get("status") or {}
        ok = status.get("status") == "success"
        error = status.get("error") or result.get("error")
        events = [LedgerEvent.from_rpc(e) for e in result.get("events") or []]
        return cls(ok=ok, error=None if ok else str(error or "unknown execution failure"), events=events)


class LedgerClient(Protocol):
    def dev_inspect(self, tx_kind: bytes, sender: str = ZERO_ADDRESS) -> TrialResult: ...

    def get_object(self, object_id: str) -> LedgerObject | None: ...

    def get_dynamic_fields(self, parent_id: str) -> list[DynamicFieldInfo]: ...

    def get_dynamic_field_object(self, parent_id: str, name_type: str, name_value: Any) -> LedgerObject | None: ...

    def multi_get_objects(self, object_ids: Sequence[str]) -> list[LedgerObject]: ...


class _RetryableStatus(Exception):
    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}")


class SuiRpcClient:
    """Sui JSON-RPC client. Transport errors, timeouts and HTTP 429/5xx are retried."""

    def __init__(
        self,
        rpc_url: str = DEFAULT_RPC_URL,
        *,
        client: httpx.Client | None = None,
        timeout: float = RPC_REQUEST_TIMEOUT_SECONDS,
        max_attempts: int = DEFAULT_RPC_MAX_ATTEMPTS,
        retry_base_delay: float = DEFAULT_RPC_RETRY_BASE_DELAY,
        retry_max_delay: float = DEFAULT_RPC_RETRY_MAX_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = retry_max_delay
        self._sleep = sleep
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)
        self._ids = itertools.count(1)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> SuiRpcClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def call(self, method: str, params: list[Any]) -> Any:
        """Issue one JSON-RPC call and return its ``result``."""
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}

        def _post() -> Any:
            resp = self._client.post(self.rpc_url, json=payload, timeout=self.timeout)
            if resp.status_code in RETRYABLE_HTTP_STATUS:
                raise _RetryableStatus(resp.status_code)
            if resp.status_code != 200:
                logger.error(f"RPC request failed: status={resp.status_code}, url={self.rpc_url}, method={method}")
                raise RPCFailure(method, f"HTTP {resp.status_code}", {"status": resp.status_code})
            try:
                res = resp.json()
            except ValueError as e:
                raise RPCFailure(method, f"invalid JSON response: {e}") from e
            if not isinstance(res, dict):
                raise RPCFailure(method, f"expected a JSON object, got {type(res).__name__}")
            if "error" in res:
                err = res.get("error") or {}
                msg = err.get("message", err) if isinstance(err, dict) else err
                logger.error(f"RPC error response: {msg}, url={self.rpc_url}, method={method}")
                code = err.get("code") if isinstance(err, dict) else None
                raise RPCFailure(method, str(msg), {"rpcCode": code})
            return res.get("result")

        try:
            return retry_with_backoff(
                _post,
                max_attempts=self.max_attempts,
                base_delay=self.retry_base_delay,
                max_delay=self.retry_max_delay,
                retryable_exceptions=(_RetryableStatus, httpx.TransportError),
                sleep=self._sleep,
            )
        except _RetryableStatus as e:
            raise RPCFailure(method, f"HTTP {e.status_code} after {self.max_attempts} attempts", {"status": e.status_code}) from e
        except httpx.TimeoutException as e:
            logger.error(f"RPC timeout: url={self.rpc_url}, method={method}, error={e}")
            raise RPCFailure(method, f"timeout after {self.timeout}s") from e
        except httpx.TransportError as e:
            logger.error(f"RPC request error: url={self.rpc_url}, method={method}, error={e}")
            raise RPCFailure(method, f"failed to connect to {self.rpc_url}: {e}") from e

    # ------------------------------------------------------------------
    # LedgerClient
    # ------------------------------------------------------------------

    def dev_inspect(self, tx_kind: bytes, sender: str = ZERO_ADDRESS) -> TrialResult:
        result = self.call("sui_devInspectTransactionBlock", [sender, base64.b64encode(tx_kind).decode("ascii")])
        if not isinstance(result, dict):
            raise RPCFailure("sui_devInspectTransactionBlock", "empty result")
        return TrialResult.from_rpc(result)

    def get_object(self, object_id: str) -> LedgerObject | None:
        result = self.call("sui_getObject", [object_id, {"showContent": True, "showType": True, "showOwner": True}])
        data = (result or {}).get("data")
        if not data:
            logger.debug(f"Object {object_id} not found: {(result or {}).get('error')}")
            return None
        return LedgerObject.from_rpc(data)

    def get_dynamic_fields(self, parent_id: str) -> list[DynamicFieldInfo]:
        out: list[DynamicFieldInfo] = []
        cursor = None
        while True:
            page = self.call("suix_getDynamicFields", [parent_id, cursor, DYNAMIC_FIELDS_PAGE_SIZE]) or {}
            out.extend(DynamicFieldInfo.from_rpc(item) for item in page.get("data") or [])
            if not page.get("hasNextPage"):
                break
            cursor = page.get("nextCursor")
        logger.debug(f"Fetched {len(out)} dynamic fields of {parent_id}")
        return out

    def get_dynamic_field_object(self, parent_id: str, name_type: str, name_value: Any) -> LedgerObject | None:
        result = self.call("suix_getDynamicFieldObject", [parent_id, {"type": name_type, "value": name_value}])
        data = (result or {}).get("data")
        if not data:
            return None
        return LedgerObject.from_rpc(data)

    def multi_get_objects(self, object_ids: Sequence[str]) -> list[LedgerObject]:
        ids = list(object_ids)
        objects: list[LedgerObject] = []
        for start in range(0, len(ids), MULTI_GET_OBJECTS_BATCH_SIZE):
            batch = ids[start : start + MULTI_GET_OBJECTS_BATCH_SIZE]
            result = self.call("sui_multiGetObjects", [batch, {"showType": True, "showOwner": True}]) or []
            for oid, item in zip(batch, result):
                data = (item or {}).get("data")
                if not data:
                    raise RPCFailure("sui_multiGetObjects", f"object {oid} not found", {"objectId": oid})
                objects.append(LedgerObject.from_rpc(data))
        if len(objects) != len(object_ids):
            raise RPCFailure("sui_multiGetObjects", f"expected {len(object_ids)} objects, got {len(objects)}")
        return objects
