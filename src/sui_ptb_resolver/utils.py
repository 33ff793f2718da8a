"""Shared helpers for retries and defensive value parsing."""

from __future__ import annotations

import logging
import random
import sys
import time
from collections.abc import Callable
from typing import Any, TypeVar

from sui_ptb_resolver.errors import ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_with_backoff(
    fn: Callable[[], T],
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retryable_exceptions: tuple[type[Exception], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Retry a synchronous function with exponential backoff and jitter.

    Args:
        fn: The function to retry.
        max_attempts: Maximum number of attempts. Values below 1 run fn once.
        base_delay: Initial delay in seconds.
        max_delay: Maximum delay in seconds.
        retryable_exceptions: Tuple of exception types that trigger a retry.
        sleep: Sleep function (injected by tests).

    Returns:
        The return value of fn.

    Raises:
        The last exception encountered if all attempts fail.
    """
    if max_attempts < 1:
        return fn()

    last_exc: Exception | None = None
    for attempt in range(max_attempts):
        try:
            return fn()
        except retryable_exceptions as e:
            last_exc = e
            if attempt == max_attempts - 1:
                break

            delay = min(max_delay, base_delay * (2**attempt) + random.uniform(0, base_delay))
            logger.warning(f"Retry {attempt + 1}/{max_attempts} after {delay:.1f}s (reason: {type(e).__name__}: {e})")
            sleep(delay)

    assert last_exc is not None
    raise last_exc


def safe_parse_float(
    val: Any, default: float, min_val: float = -float("inf"), max_val: float = float("inf"), name: str = "value"
) -> float:
    """
    Safe float parsing with range clamping.
    """
    try:
        f = float(val)
    except (ValueError, TypeError):
        logger.warning(f"Invalid {name}={val!r}, using default {default}")
        return default

    if f < min_val or f > max_val:
        logger.warning(f"{name}={f} out of range [{min_val}, {max_val}], clamping")
        return max(min_val, min(max_val, f))
    return f


def safe_parse_int(
    val: Any, default: int, min_val: int = -sys.maxsize, max_val: int = sys.maxsize, name: str = "value"
) -> int:
    """
    Safe integer parsing with range clamping.
    """
    try:
        i = int(val)
    except (ValueError, TypeError):
        logger.warning(f"Invalid {name}={val!r}, using default {default}")
        return default

    if i < min_val or i > max_val:
        logger.warning(f"{name}={i} out of range [{min_val}, {max_val}], clamping")
        return max(min_val, min(max_val, i))
    return i


def safe_bool(val: Any, default: bool) -> bool:
    """
    Parse a boolean value with common string aliases (true, 1, yes).
    """
    if val is None:
        return default
    if isinstance(val, bool):
        return val
    s = str(val).strip().lower()
    if s in ("1", "true", "t", "yes", "y", "on"):
        return True
    if s in ("0", "false", "f", "no", "n", "off"):
        return False
    return default


def validate_range(value: int, min_val: int, max_val: int, name: str = "value") -> int:
    """
    Strictly validate that an integer is within [min_val, max_val].

    Raises:
        ValidationError: If value is not an integer or is out of range.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(name, f"must be an integer, got {value!r}")
    if value < min_val or value > max_val:
        raise ValidationError(name, f"out of range: {value} (expected {min_val}-{max_val})")
    return value
