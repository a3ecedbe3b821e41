"""Pull-based readers over upload sources.

An upload source may be:

* a path (``str`` or :class:`os.PathLike`),
* a binary file object with a ``read(n)`` method (sync or async),
* a bytes-like object,
* an async iterable of bytes-like blocks.

:class:`SourceReader` turns any of these into a lazy, finite,
non-restartable async sequence of ``bytes`` blocks and counts the raw bytes
it has handed out, which is what read progress is measured against.
Blocking file I/O runs in the default executor so the event loop keeps
servicing in-flight transfers.
"""

from __future__ import annotations

import asyncio
import inspect
import os
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

from chunkput.cancel import CancelToken, guarded
from chunkput.errors import UnsupportedPayloadError

BYTES_LIKE = (bytes, bytearray, memoryview)

_END = object()


async def _next_unit(iterator: AsyncIterator[Any]) -> Any:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return _END


def as_bytes(unit: Any) -> bytes:
    """Return *unit* as ``bytes`` or raise :class:`UnsupportedPayloadError`."""
    if isinstance(unit, bytes):
        return unit
    if isinstance(unit, (bytearray, memoryview)):
        return bytes(unit)
    raise UnsupportedPayloadError(
        message="Unknown data type",
        context={"type": type(unit).__name__},
    )


def _is_path(source: Any) -> bool:
    return isinstance(source, (str, os.PathLike))


def source_name(source: Any) -> str | None:
    """Best-effort file name of *source* (path or named file object)."""
    if _is_path(source):
        return Path(source).name
    name = getattr(source, "name", None)
    if isinstance(name, str) and name:
        return Path(name).name
    return None


def source_size(source: Any, file_size: int | None = None) -> int:
    """Return the size in bytes of *source*.

    An explicit *file_size* always wins.  Paths are ``stat``-ed, bytes-like
    objects measured, and seekable file objects measured from their current
    position to the end.

    Raises
    ------
    UnsupportedPayloadError
        If the size cannot be determined (e.g. an async iterator without an
        explicit *file_size*).
    """
    if file_size is not None:
        if file_size < 0:
            raise ValueError(f"file_size must be >= 0, got {file_size}")
        return file_size
    if isinstance(source, BYTES_LIKE):
        return memoryview(source).nbytes
    if _is_path(source):
        return os.stat(source).st_size
    seekable = getattr(source, "seekable", None)
    if callable(seekable) and not inspect.iscoroutinefunction(seekable) and seekable():
        position = source.tell()
        end = source.seek(0, os.SEEK_END)
        source.seek(position)
        return end - position
    raise UnsupportedPayloadError(
        message="Cannot determine the size of the upload source; pass file_size",
        context={"type": type(source).__name__},
    )


class SourceReader:
    """Async block reader with a running byte count.

    Parameters
    ----------
    source:
        Any supported upload source.
    block_size:
        Bytes requested per read from paths and file objects.
    cancel:
        Optional token checked before every read.
    """

    def __init__(
        self,
        source: Any,
        block_size: int = 64 * 1024,
        cancel: CancelToken | None = None,
    ) -> None:
        if block_size < 1:
            raise ValueError(f"block_size must be >= 1, got {block_size}")
        if not (
            isinstance(source, BYTES_LIKE)
            or _is_path(source)
            or hasattr(source, "read")
            or hasattr(source, "__aiter__")
        ):
            raise UnsupportedPayloadError(
                message="Unsupported upload source",
                context={"type": type(source).__name__},
            )
        self._source = source
        self._block_size = block_size
        self._cancel = cancel
        self._started = False
        self.bytes_read: int = 0

    def __aiter__(self) -> AsyncIterator[bytes]:
        if self._started:
            raise RuntimeError("SourceReader can only be iterated once")
        self._started = True
        return self._blocks()

    async def _blocks(self) -> AsyncIterator[bytes]:
        raw = self._raw()
        try:
            while True:
                unit = await guarded(_next_unit(raw), self._cancel, "stream_read")
                if unit is _END:
                    break
                block = as_bytes(unit)
                if not block:
                    continue
                self.bytes_read += len(block)
                yield block
        finally:
            await raw.aclose()

    async def _raw(self) -> AsyncIterator[Any]:
        source = self._source
        size = self._block_size
        if isinstance(source, BYTES_LIKE):
            view = memoryview(source).cast("B")
            for offset in range(0, len(view), size):
                yield view[offset : offset + size]
        elif _is_path(source):
            loop = asyncio.get_running_loop()
            fh = await loop.run_in_executor(None, open, os.fspath(source), "rb")
            try:
                while True:
                    block = await loop.run_in_executor(None, fh.read, size)
                    if not block:
                        break
                    yield block
            finally:
                fh.close()
        elif hasattr(source, "read"):
            if inspect.iscoroutinefunction(source.read):
                while True:
                    block = await source.read(size)
                    if not block:
                        break
                    yield block
            else:
                loop = asyncio.get_running_loop()
                while True:
                    block = await loop.run_in_executor(None, source.read, size)
                    if not block:
                        break
                    yield block
        else:
            async for block in source:
                yield block


async def read_all(
    source: Any,
    block_size: int = 64 * 1024,
    cancel: CancelToken | None = None,
) -> bytes:
    """Buffer the whole of *source* into memory."""
    if isinstance(source, bytes):
        return source
    buffer = bytearray()
    async for block in SourceReader(source, block_size, cancel):
        buffer += block
    return bytes(buffer)
