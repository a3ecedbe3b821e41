"""Bounded concurrency for in-flight transfers.

A :class:`ConcurrencyGate` is created per upload call.  It holds ``limit``
permits: :meth:`ConcurrencyGate.submit` acquires one before it starts a
transfer task, and the task's done-callback releases it on every exit path
(success, ``None`` result, exception, or cancellation).  Submitting while
all permits are held suspends the caller until any in-flight transfer
settles, in whatever order they finish.

Done-callbacks run on the event loop one at a time, so the in-flight set is
never mutated concurrently.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any, Generic, TypeVar

from chunkput.cancel import CancelToken
from chunkput.observability import NoopMetricsHook

T = TypeVar("T")


class ConcurrencyGate(Generic[T]):
    """Semaphore-backed gate limiting simultaneous transfers.

    Parameters
    ----------
    limit:
        Maximum number of transfers in flight.
    cancel:
        Optional token; a pending :meth:`submit` raises
        :class:`~chunkput.errors.UploadCancelledError` when it fires.
    metrics:
        Receives the ``chunkput.gate_in_flight`` gauge.
    """

    def __init__(
        self,
        limit: int,
        *,
        cancel: CancelToken | None = None,
        metrics: Any | None = None,
    ) -> None:
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        self.limit: int = limit
        self.peak: int = 0
        self._cancel = cancel
        self._metrics = metrics if metrics is not None else NoopMetricsHook()
        self._semaphore = asyncio.Semaphore(limit)
        self._in_flight: set[asyncio.Task[T]] = set()
        self._submitted: list[asyncio.Task[T]] = []

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    @property
    def saturated(self) -> bool:
        return len(self._in_flight) >= self.limit

    async def submit(self, coro: Coroutine[Any, Any, T]) -> asyncio.Task[T]:
        """Start *coro* as a task once a permit is free.

        Returns the task; its result is collected by :meth:`drain`.
        """
        try:
            await self._acquire()
        except BaseException:
            coro.close()
            raise

        task = asyncio.ensure_future(coro)
        self._in_flight.add(task)
        self._submitted.append(task)
        self.peak = max(self.peak, len(self._in_flight))
        self._metrics.gauge("chunkput.gate_in_flight", len(self._in_flight))
        task.add_done_callback(self._settle)
        return task

    async def drain(self) -> list[T]:
        """Wait for every submitted task; results in submission order."""
        if not self._submitted:
            return []
        return list(await asyncio.gather(*self._submitted))

    async def cancel_all(self) -> None:
        """Cancel outstanding tasks and wait until they have settled."""
        pending = [task for task in self._in_flight if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.wait(pending)
        # Outcomes are discarded; mark exceptions as retrieved.
        for task in self._submitted:
            if task.done() and not task.cancelled():
                task.exception()

    # -- internals ---------------------------------------------------------

    async def _acquire(self) -> None:
        if self._cancel is None:
            await self._semaphore.acquire()
            return

        self._cancel.raise_if_cancelled("gate_wait")
        if not self._semaphore.locked():
            await self._semaphore.acquire()
            return

        acquire = asyncio.ensure_future(self._semaphore.acquire())
        waiter = asyncio.ensure_future(self._cancel.wait())
        try:
            await asyncio.wait({acquire, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            waiter.cancel()
            acquire.cancel()
            await asyncio.wait({acquire})
            if not acquire.cancelled():
                # Permit granted while the caller was being cancelled.
                self._semaphore.release()
            raise
        waiter.cancel()
        if not acquire.done():
            acquire.cancel()
            await asyncio.wait({acquire})

        if acquire.cancelled():
            self._cancel.raise_if_cancelled("gate_wait")
            raise asyncio.CancelledError()
        if self._cancel.cancelled:
            # Won the permit and lost the race; hand it back.
            self._semaphore.release()
            self._cancel.raise_if_cancelled("gate_wait")

    def _settle(self, task: asyncio.Task[T]) -> None:
        self._in_flight.discard(task)
        self._semaphore.release()
        self._metrics.gauge("chunkput.gate_in_flight", len(self._in_flight))
