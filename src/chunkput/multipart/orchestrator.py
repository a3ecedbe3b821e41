"""Streaming multipart upload orchestrator.

:class:`MultipartOrchestrator` reads a source as a stream of blocks,
optionally compresses it, cuts it into fixed-size parts and uploads each
part to its presigned URL through a per-call :class:`ConcurrencyGate`.

The loop, tracked by :class:`MultipartStateMachine`::

    READING --(chunk_size bytes buffered)--> CHUNK_READY --> DISPATCHING
       ^                                                        |
       +--------------------------------------------------------+
    READING --(end of stream)--> FLUSHING_TAIL --> DONE | FAILED

Part numbers are assigned in stream order starting at 1.  Parts may finish
in any order; the returned tokens are sorted by part number.  A part that
exhausts its retries stops further dispatching and fails the whole upload;
partial token sets are never returned.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Sequence
from typing import Any

from chunkput.cancel import CancelToken
from chunkput.config import ChunkputConfig
from chunkput.errors import (
    InsufficientPresignedUrlsError,
    InvalidPresignedUrlError,
    UploadCancelledError,
)
from chunkput.models import (
    CompletionToken,
    MultipartState,
    ProgressCallback,
    ProgressPhase,
    UploadTarget,
)
from chunkput.observability import NoopMetricsHook, get_logger
from chunkput.stream import ChunkAccumulator, SourceReader, compress_blocks, source_size
from chunkput.transfer import ChunkTransport, ConcurrencyGate
from chunkput.utils.chunk import estimate_part_count

from .progress import ProgressTracker
from .state import MultipartStateMachine

log = get_logger("chunkput.multipart")


def check_presigned_urls(urls: Sequence[str], file_size: int, chunk_size: int) -> None:
    """Validate the URL list for a multipart upload.

    There must be strictly more URLs than ``ceil(file_size / chunk_size)``
    so a compressed stream that grew past the source size still has a
    spare part, and none of them may be empty.

    Raises
    ------
    InsufficientPresignedUrlsError
        If ``len(urls) <= ceil(file_size / chunk_size)``.
    InvalidPresignedUrlError
        If any URL is empty.
    """
    estimated = estimate_part_count(file_size, chunk_size)
    if len(urls) <= estimated:
        raise InsufficientPresignedUrlsError(
            message="Invalid presigned urls.",
            context={
                "url_count": len(urls),
                "estimated_parts": estimated,
                "file_size": file_size,
                "chunk_size": chunk_size,
            },
        )
    for index, url in enumerate(urls):
        if not url:
            raise InvalidPresignedUrlError(
                message="Invalid presigned url.",
                context={"part_no": index + 1},
            )


class _Run:
    """Mutable state shared by one :meth:`MultipartOrchestrator.run` call."""

    def __init__(
        self,
        urls: Sequence[str],
        tracker: ProgressTracker,
        on_dispatch: Callable[[int], None] | None = None,
    ) -> None:
        self.urls = urls
        self.tracker = tracker
        self.failed_parts: list[int] = []
        self.part_no = 0
        self.reported_bytes = 0
        self.on_dispatch = on_dispatch

    @property
    def failed(self) -> bool:
        return bool(self.failed_parts)


class MultipartOrchestrator:
    """Chunk, compress and upload one source through presigned URLs.

    Parameters
    ----------
    config:
        Chunk size, concurrency, retry, timeout and compression settings.
    transport:
        The :class:`ChunkTransport` performing the part transfers.
    """

    def __init__(self, config: ChunkputConfig, transport: ChunkTransport) -> None:
        self._config = config
        self._transport = transport
        self._metrics = config.metrics if config.metrics is not None else NoopMetricsHook()

    async def run(
        self,
        source: Any,
        urls: Sequence[str],
        *,
        file_size: int | None = None,
        on_progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
        upload_id: str = "",
        on_dispatch: Callable[[int], None] | None = None,
    ) -> list[CompletionToken] | None:
        """Upload *source* as parts ``1..N`` to ``urls[0..N-1]``.

        Parameters
        ----------
        source:
            Path, binary file object, bytes, or async iterable of bytes.
        urls:
            Presigned part URLs; ``urls[i]`` accepts part ``i + 1``.
        file_size:
            Source size in bytes.  Required for async iterables and
            non-seekable file objects.
        on_progress:
            Receives ``reading`` and ``uploading`` events.
        cancel:
            Token that aborts reads, gate waits and transfers.
        upload_id:
            Used for logging only.
        on_dispatch:
            Called with the part number each time a part is handed to the
            gate, before its transfer starts.

        Returns
        -------
        list[CompletionToken] | None
            Tokens ordered by part number, or ``None`` if any part failed.

        Raises
        ------
        InsufficientPresignedUrlsError, InvalidPresignedUrlError
            Before any byte is read.
        UnsupportedPayloadError
            If the source (or a block it yields) is not bytes-like.
        UploadCancelledError
            If *cancel* fires.
        """
        chunk_size = self._config.chunk_size
        size = source_size(source, file_size)
        check_presigned_urls(urls, size, chunk_size)

        machine = MultipartStateMachine(upload_id)
        gate: ConcurrencyGate[CompletionToken | None] = ConcurrencyGate(
            self._config.concurrency, cancel=cancel, metrics=self._metrics,
        )
        run = _Run(urls, ProgressTracker(size, on_progress), on_dispatch)
        reader = SourceReader(source, self._config.read_block_size, cancel)
        fmt = self._config.compression_format
        stream: AsyncIterator[bytes] = (
            compress_blocks(reader, fmt) if fmt is not None else reader.__aiter__()
        )
        acc = ChunkAccumulator(chunk_size)

        log.info(
            "Multipart upload started",
            extra={
                "extra_fields": {
                    "op": "multipart_upload",
                    "upload_id": upload_id,
                    "file_size": size,
                    "chunk_size": chunk_size,
                    "url_count": len(urls),
                    "compression": fmt,
                }
            },
        )
        run.tracker.start()

        try:
            async for block in stream:
                if run.failed:
                    break
                acc.add(block)
                while acc.ready and not run.failed:
                    machine.transition(MultipartState.CHUNK_READY)
                    machine.transition(MultipartState.DISPATCHING)
                    await self._dispatch(gate, run, reader, acc.take(), cancel)
                if machine.state is MultipartState.DISPATCHING:
                    machine.transition(MultipartState.READING)

            if run.failed:
                machine.fail()
                await gate.cancel_all()
                self._log_failure(upload_id, run)
                return None

            machine.transition(MultipartState.FLUSHING_TAIL)
            tail = acc.take_tail()
            if tail:
                await self._dispatch(gate, run, reader, tail, cancel)
            else:
                run.tracker.advance(
                    ProgressPhase.READING, reader.bytes_read - run.reported_bytes,
                )

            results = await gate.drain()
        except UploadCancelledError:
            machine.fail()
            await gate.cancel_all()
            log.warning(
                "Multipart upload cancelled",
                extra={
                    "extra_fields": {
                        "op": "multipart_upload",
                        "upload_id": upload_id,
                        "dispatched": run.part_no,
                    }
                },
            )
            raise
        except BaseException:
            machine.fail()
            await gate.cancel_all()
            raise
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

        if run.failed or any(token is None for token in results):
            machine.fail()
            self._log_failure(upload_id, run)
            return None

        machine.transition(MultipartState.DONE)
        tokens = sorted(
            (token for token in results if token is not None),
            key=lambda token: token.part_no,
        )
        log.info(
            "Multipart parts uploaded",
            extra={
                "extra_fields": {
                    "op": "multipart_upload",
                    "upload_id": upload_id,
                    "parts": len(tokens),
                    "peak_in_flight": gate.peak,
                }
            },
        )
        return tokens

    # -- internals ---------------------------------------------------------

    async def _dispatch(
        self,
        gate: ConcurrencyGate[CompletionToken | None],
        run: _Run,
        reader: SourceReader,
        chunk: bytes,
        cancel: CancelToken | None,
    ) -> None:
        run.part_no += 1
        read_delta = reader.bytes_read - run.reported_bytes
        run.reported_bytes = reader.bytes_read
        run.tracker.advance(ProgressPhase.READING, read_delta)
        self._metrics.increment("chunkput.chunks_dispatched_total")
        if run.on_dispatch is not None:
            run.on_dispatch(run.part_no)
        await gate.submit(
            self._send_part(run, run.part_no, chunk, read_delta, cancel),
        )

    async def _send_part(
        self,
        run: _Run,
        part_no: int,
        chunk: bytes,
        read_delta: int,
        cancel: CancelToken | None,
    ) -> CompletionToken | None:
        if part_no > len(run.urls):
            log.error(
                "No presigned URL left for part",
                extra={
                    "extra_fields": {
                        "op": "multipart_upload",
                        "part_no": part_no,
                        "url_count": len(run.urls),
                    }
                },
            )
            run.failed_parts.append(part_no)
            return None

        token = await self._transport.put_chunk(
            UploadTarget(url=run.urls[part_no - 1], part_no=part_no),
            chunk,
            access_control_allow_origin=self._config.access_control_allow_origin,
            timeout_ms=self._config.timeout_ms,
            max_retries=self._config.max_retries,
            cancel=cancel,
        )
        if token is None:
            run.failed_parts.append(part_no)
            return None

        run.tracker.advance(ProgressPhase.UPLOADING, read_delta)
        return token

    def _log_failure(self, upload_id: str, run: _Run) -> None:
        log.error(
            "Upload failed: one or more chunks could not be uploaded",
            extra={
                "extra_fields": {
                    "op": "multipart_upload",
                    "upload_id": upload_id,
                    "failed_parts": sorted(run.failed_parts),
                    "dispatched": run.part_no,
                }
            },
        )
