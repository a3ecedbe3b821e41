"""Concurrent buffered uploads of many small files.

Each file is read fully into memory, optionally compressed, and sent in a
single ``PUT`` to its own presigned URL.  Files are dispatched one at a
time in input order, but the loop only ever waits for a free slot in the
gate, never for an individual transfer to finish.
"""

from __future__ import annotations

import mimetypes
from collections import deque
from collections.abc import Iterable
from typing import Any

import httpx

from chunkput.cancel import CancelToken
from chunkput.config import ChunkputConfig
from chunkput.errors import InvalidPresignedUrlError
from chunkput.models import (
    BatchResult,
    BufferedFile,
    ProgressCallback,
    ProgressEvent,
    ProgressPhase,
)
from chunkput.observability import NoopMetricsHook, get_logger
from chunkput.stream import compress_bytes, read_all, source_name
from chunkput.transfer import ChunkTransport, ConcurrencyGate

log = get_logger("chunkput.batch")

# Distinguishes "use the configured format" from an explicit ``None``.
USE_CONFIG: Any = object()


def item_name(item: BufferedFile, index: int) -> str:
    return item.name or source_name(item.source) or f"file-{index + 1}"


def item_content_type(item: BufferedFile, name: str) -> str | None:
    if item.content_type:
        return item.content_type
    guessed, _ = mimetypes.guess_type(name)
    return guessed


class BatchUploader:
    """Upload independent files concurrently through a shared gate.

    Parameters
    ----------
    config:
        Default concurrency, retries, buffered timeout and compression.
    transport:
        The :class:`ChunkTransport` performing the transfers.
    """

    def __init__(self, config: ChunkputConfig, transport: ChunkTransport) -> None:
        self._config = config
        self._transport = transport
        self._metrics = config.metrics if config.metrics is not None else NoopMetricsHook()

    async def run(
        self,
        items: Iterable[BufferedFile],
        *,
        timeout_ms: int | None = USE_CONFIG,
        compression_format: str | None = USE_CONFIG,
        concurrency: int | None = None,
        on_progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> list[BatchResult]:
        """Upload every item; results follow input order.

        Parameters
        ----------
        items:
            Files and their presigned URLs.
        timeout_ms:
            Per-attempt timeout.  Defaults to ``config.buffered_timeout_ms``.
        compression_format:
            Overrides ``config.compression_format``; ``None`` disables
            compression for this batch.
        concurrency:
            Overrides ``config.concurrency``.
        on_progress:
            Receives one event per file with ``value=0`` up front and one
            ``done`` event with ``value=100`` per successful file.
        cancel:
            Token that aborts reads, gate waits and transfers.

        Raises
        ------
        InvalidPresignedUrlError
            If any item has an empty URL (checked before any upload).
        ValueError
            If *concurrency* is below 1.
        """
        queue = deque(items)
        if not queue:
            return []

        names = [item_name(item, index) for index, item in enumerate(queue)]
        for item, name in zip(queue, names):
            if not item.url:
                raise InvalidPresignedUrlError(
                    message="Invalid presigned url.",
                    context={"file_name": name},
                )

        if timeout_ms is USE_CONFIG:
            timeout_ms = self._config.buffered_timeout_ms
        fmt = (
            self._config.compression_format
            if compression_format is USE_CONFIG
            else compression_format
        )

        gate: ConcurrencyGate[httpx.Response | None] = ConcurrencyGate(
            concurrency if concurrency is not None else self._config.concurrency,
            cancel=cancel,
            metrics=self._metrics,
        )

        if on_progress is not None:
            for name in names:
                on_progress(
                    ProgressEvent(
                        phase=ProgressPhase.UPLOADING, value=0, total=0, file_name=name,
                    )
                )

        urls: list[str] = []
        index = 0
        try:
            while queue:
                item = queue.popleft()
                name = names[index]
                index += 1
                body = await read_all(item.source, self._config.read_block_size, cancel)
                if fmt is not None:
                    body = compress_bytes(body, fmt)
                urls.append(item.url)
                await gate.submit(
                    self._send_file(
                        item.url,
                        body,
                        name,
                        item_content_type(item, name),
                        fmt,
                        timeout_ms,
                        on_progress,
                        cancel,
                    )
                )
            responses = await gate.drain()
        except BaseException:
            await gate.cancel_all()
            raise

        results = [
            BatchResult(file_name=name, url=url, response=response)
            for name, url, response in zip(names, urls, responses)
        ]
        failed = [result.file_name for result in results if not result.ok]
        log.info(
            "Batch upload finished",
            extra={
                "extra_fields": {
                    "op": "batch_upload",
                    "files": len(results),
                    "failed": failed,
                    "peak_in_flight": gate.peak,
                }
            },
        )
        return results

    async def _send_file(
        self,
        url: str,
        body: bytes,
        name: str,
        content_type: str | None,
        fmt: str | None,
        timeout_ms: int | None,
        on_progress: ProgressCallback | None,
        cancel: CancelToken | None,
    ) -> httpx.Response | None:
        response = await self._transport.put_buffer(
            url,
            body,
            content_type=content_type,
            content_encoding=fmt,
            access_control_allow_origin=self._config.access_control_allow_origin,
            timeout_ms=timeout_ms,
            max_retries=self._config.max_retries,
            cancel=cancel,
        )
        if response is None:
            self._metrics.increment("chunkput.batch_files_total", tags={"status": "failed"})
            log.warning(
                "Buffered file upload failed",
                extra={"extra_fields": {"op": "batch_upload", "file_name": name}},
            )
            return None

        self._metrics.increment("chunkput.batch_files_total", tags={"status": "ok"})
        if on_progress is not None:
            on_progress(
                ProgressEvent(
                    phase=ProgressPhase.DONE, value=100, total=100, file_name=name,
                )
            )
        return response
