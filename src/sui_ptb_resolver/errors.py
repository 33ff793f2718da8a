"""Resolver error type definitions.

Every failure raised by the resolver derives from ResolverError, which carries a
stable numeric code, a human-readable message and a structured data payload so
callers can report failures consistently (e.g. as JSON).
"""

from __future__ import annotations

from typing import Any


class ResolverError(Exception):
    """Base class for resolver errors."""

    code = -32000

    def __init__(self, message: str, data: dict[str, Any] | None = None, *, code: int | None = None):
        self.message = message
        self.data = data or {}
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to a JSON-serializable dictionary."""
        return {
            "code": self.code,
            "type": type(self).__name__,
            "message": self.message,
            "data": self.data,
        }


class RPCFailure(ResolverError):
    """Transport-level or JSON-RPC failure talking to the ledger."""

    code = -32010

    def __init__(self, method: str, reason: str, data: dict[str, Any] | None = None):
        self.method = method
        self.reason = reason
        super().__init__(f"RPC {method} failed: {reason}", {"method": method, "reason": reason, **(data or {})})


class MalformedEncoding(ResolverError, ValueError):
    """A BCS buffer was truncated, length-inconsistent or had trailing bytes."""

    code = -32020

    def __init__(self, what: str, reason: str, *, offset: int | None = None):
        self.what = what
        self.reason = reason
        self.offset = offset
        data: dict[str, Any] = {"what": what, "reason": reason}
        if offset is not None:
            data["offset"] = offset
        super().__init__(f"Malformed {what}: {reason}", data)


class ValidationError(ResolverError, ValueError):
    """Invalid configuration or an invariant violated by caller-supplied data."""

    code = -32602

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}", {"field": field, "reason": reason})


class IterationBudgetExceeded(ResolverError):
    """The session used up its iteration budget without resolving."""

    code = -32030

    def __init__(self, max_iterations: int, discovered: list[str] | None = None):
        self.max_iterations = max_iterations
        self.discovered = discovered or []
        super().__init__(
            f"Max iterations ({max_iterations}) reached without resolution",
            {"maxIterations": max_iterations, "discovered": self.discovered},
        )


class ContractError(ResolverError):
    """The trial pass reported an explicit error or failed to execute."""

    code = -32040

    def __init__(self, message: str, *, source: str = "error_event"):
        self.source = source
        super().__init__(f"Resolver error: {message}", {"source": source, "ledgerMessage": message})


class ResolutionCancelled(ResolverError):
    """The session was cancelled or ran past its deadline."""

    code = -32050

    def __init__(self, reason: str, iteration: int):
        self.reason = reason
        self.iteration = iteration
        super().__init__(f"Resolution cancelled at iteration {iteration}: {reason}", {"reason": reason, "iteration": iteration})


class LookupResolutionError(ResolverError):
    """A lookup handler could not produce a value for its descriptor."""

    code = -32060

    def __init__(
        self,
        lookup_kind: str,
        reason: str,
        *,
        parent: str | None = None,
        key: str | None = None,
        semantic_key: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.lookup_kind = lookup_kind
        self.reason = reason
        self.parent = parent
        self.key = key
        self.semantic_key = semantic_key
        self.details = details or {}
        data: dict[str, Any] = {
            "lookupKind": lookup_kind,
            "reason": reason,
            "parent": parent,
            "key": key,
            "semanticKey": semantic_key,
        }
        if self.details:
            data["details"] = self.details
        super().__init__(f"{lookup_kind} lookup failed: {reason}", data)


class MissingField(LookupResolutionError):
    """An expected field, path component or entry is absent on the ledger."""

    code = -32061


class TypeMismatch(LookupResolutionError):
    """A ledger value had a shape the handler cannot convert."""

    code = -32062
