"""Metrics hook protocol and no-op default implementation.

chunkput emits counters, timings, and gauges around transfers, the
concurrency gate, and the complete/abort protocol.  By default a
:class:`NoopMetricsHook` is used.  Supply any object satisfying
:class:`MetricsHook` to route them to StatsD, Prometheus, Datadog, etc.

Emitted metric names:

* ``chunkput.transfer_attempts_total``   -- counter
* ``chunkput.transfer_retries_total``    -- counter
* ``chunkput.transfer_timeouts_total``   -- counter
* ``chunkput.transfer_failures_total``   -- counter
* ``chunkput.transfer_duration_ms``      -- timing
* ``chunkput.chunks_dispatched_total``   -- counter
* ``chunkput.gate_in_flight``            -- gauge
* ``chunkput.uploads_completed_total``   -- counter
* ``chunkput.uploads_aborted_total``     -- counter
* ``chunkput.batch_files_total``         -- counter
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class MetricsHook(Protocol):
    """Protocol that any metrics backend must satisfy.

    All methods accept an optional *tags* dict of string keys and values.
    """

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Increment a counter metric."""
        ...

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Record a duration in milliseconds."""
        ...

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Set a gauge metric to an absolute value."""
        ...


class NoopMetricsHook:
    """Metrics implementation that silently discards all data points."""

    __slots__ = ()

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass
