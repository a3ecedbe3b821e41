"""Failure classification for presigned-URL transfers.

Transfers retry every failure the same way -- immediately, with no backoff
and no status-code branching.  The only distinction that matters is whether
an attempt *timed out*, because that decides whether the caller's
``on_timeout_error`` hook fires.  This module provides the pure helpers the
transport uses to make those decisions.
"""

from __future__ import annotations

import asyncio
from enum import Enum

import httpx


class FailureKind(str, Enum):
    """Classification of one failed transfer attempt."""

    TIMEOUT = "timeout"
    NETWORK = "network"
    STATUS = "status"


# Exceptions that end an attempt without a response.
TRANSFER_EXCEPTIONS: tuple[type[Exception], ...] = (
    httpx.TransportError,
    asyncio.TimeoutError,
)


def classify_exception(exc: Exception) -> FailureKind:
    """Map an attempt-ending exception to a :class:`FailureKind`."""
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError)):
        return FailureKind.TIMEOUT
    return FailureKind.NETWORK


def is_success(status_code: int) -> bool:
    """``True`` for a ``2xx`` status."""
    return 200 <= status_code < 300


def attempt_budget(max_retries: int) -> int:
    """Total attempts allowed for *max_retries* retries.

    ``max_retries <= 0`` still allows the initial attempt.

    Examples
    --------
    >>> attempt_budget(3)
    4
    >>> attempt_budget(0)
    1
    >>> attempt_budget(-2)
    1
    """
    return max(max_retries, 0) + 1


def timeout_seconds(timeout_ms: int | None) -> float | None:
    """Convert a millisecond timeout to seconds, keeping ``None``."""
    if timeout_ms is None:
        return None
    return timeout_ms / 1000
