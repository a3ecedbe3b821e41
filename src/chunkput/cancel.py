"""Caller-controlled cancellation for long-running uploads.

A :class:`CancelToken` is created by the caller and threaded through every
suspension point of an upload: stream reads, waits for a free transfer slot
and the transfers themselves.  Calling :meth:`CancelToken.cancel` makes each
of those points raise :class:`~chunkput.errors.UploadCancelledError`, so an
upload stalled on a slot that never frees can still be stopped.

Usage::

    token = CancelToken()
    task = asyncio.create_task(uploader.multipart_upload(..., cancel=token))
    ...
    token.cancel()
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable
from typing import TypeVar

from chunkput.errors import UploadCancelledError

T = TypeVar("T")


class CancelToken:
    """One-shot cancellation flag that can be awaited."""

    __slots__ = ("_event", "_reason")

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled by caller") -> None:
        """Fire the token.  Later calls are no-ops."""
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    def _error(self, stage: str) -> UploadCancelledError:
        return UploadCancelledError(
            message=f"Upload cancelled during {stage}: {self._reason}",
            context={"stage": stage},
        )

    def raise_if_cancelled(self, stage: str) -> None:
        if self._event.is_set():
            raise self._error(stage)

    async def wait(self) -> None:
        await self._event.wait()

    async def guard(self, aw: Awaitable[T], stage: str) -> T:
        """Await *aw* unless the token fires first.

        When the token wins, *aw* is cancelled and
        :class:`UploadCancelledError` is raised.
        """
        if self._event.is_set():
            if inspect.iscoroutine(aw):
                aw.close()
            raise self._error(stage)
        task = asyncio.ensure_future(aw)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            task.cancel()
            await asyncio.wait({task})
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        await asyncio.wait({task})
        raise self._error(stage)


async def guarded(aw: Awaitable[T], cancel: CancelToken | None, stage: str) -> T:
    """Await *aw*, racing it against *cancel* when one is given."""
    if cancel is None:
        return await aw
    return await cancel.guard(aw, stage)
