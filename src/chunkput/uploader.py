"""Asynchronous presigned-URL uploader.

:class:`PresignedUploader` is the public entry point.  It owns one
``httpx.AsyncClient`` (through :class:`ChunkTransport`) and wires the
transport, the backend API, the multipart orchestrator and driver, and the
batch uploader together.  Each upload call creates its own concurrency gate,
so one uploader can run several uploads at the same time.

Usage::

    import asyncio
    from chunkput import PresignedUploader, UploadSession

    async def main():
        async with PresignedUploader(concurrency=8) as uploader:
            result = await uploader.multipart_upload(
                "video.mp4",
                presigned_urls,
                UploadSession(
                    upload_id="<upload id>",
                    completion_url="https://api.example.com/complete",
                    abort_url="https://api.example.com/abort",
                    file_path="videos/video.mp4",
                ),
                on_progress=print,
            )
            print(result.is_aborted)

    asyncio.run(main())
"""

from __future__ import annotations

import dataclasses
import mimetypes
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Any, Union

import httpx

from chunkput.cancel import CancelToken
from chunkput.config import ChunkputConfig
from chunkput.errors import InvalidPresignedUrlError, UploadCancelledError
from chunkput.models import (
    BatchResult,
    BufferedFile,
    PresignedUrls,
    ProgressCallback,
    UploadResult,
    UploadSession,
)
from chunkput.multipart import BatchUploader, MultipartDriver, MultipartOrchestrator
from chunkput.multipart.batch import USE_CONFIG
from chunkput.observability import get_logger
from chunkput.stream import compress_bytes, read_all, source_name
from chunkput.transfer import BackendAPI, ChunkTransport
from chunkput.transfer.transport import Hook

log = get_logger("chunkput.uploader")

UrlSource = Union[
    Sequence[str],
    PresignedUrls,
    Callable[[], Awaitable[Union[Sequence[str], PresignedUrls]]],
]


async def resolve_urls(presigned_urls: UrlSource) -> list[str]:
    """Turn a URL list, a :class:`PresignedUrls` or a lazy provider into a list."""
    if callable(presigned_urls):
        presigned_urls = await presigned_urls()
    if isinstance(presigned_urls, PresignedUrls):
        return list(presigned_urls.urls)
    return list(presigned_urls)


class PresignedUploader:
    """Upload files to object storage through presigned URLs.

    Parameters
    ----------
    config:
        A ready-made :class:`ChunkputConfig`.  Keyword *overrides* are
        applied on top of it.
    client:
        An ``httpx.AsyncClient`` to share.  The uploader only closes
        clients it created.
    **overrides:
        Any :class:`ChunkputConfig` field.
    """

    def __init__(
        self,
        config: ChunkputConfig | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        **overrides: Any,
    ) -> None:
        if config is None:
            config = ChunkputConfig(**overrides)
        elif overrides:
            config = dataclasses.replace(config, **overrides)
        self._config = config
        self._transport = ChunkTransport(config, client)
        self._backend = BackendAPI(config, self._transport.client)
        self._orchestrator = MultipartOrchestrator(config, self._transport)
        self._driver = MultipartDriver(config, self._backend)
        self._batch = BatchUploader(config, self._transport)

    @property
    def config(self) -> ChunkputConfig:
        return self._config

    @property
    def concurrency(self) -> int:
        return self._config.concurrency

    # ------------------------------------------------------------------
    # Single-request uploads
    # ------------------------------------------------------------------

    async def upload_with_presigned_url(
        self,
        source: Any,
        url: str,
        *,
        content_type: str | None = None,
        on_before_retry: Hook | None = None,
        on_timeout_error: Hook | None = None,
        cancel: CancelToken | None = None,
    ) -> httpx.Response | None:
        """Upload *source* uncompressed in a single ``PUT``.

        Returns
        -------
        httpx.Response | None
            The storage response, or ``None`` once every attempt failed.

        Raises
        ------
        InvalidPresignedUrlError
            If *url* is empty.
        """
        if not url:
            raise InvalidPresignedUrlError()
        body = await read_all(source, self._config.read_block_size, cancel)
        return await self._put_buffer(
            url,
            body,
            content_type=content_type or _guess_type(source),
            content_encoding=None,
            on_before_retry=on_before_retry,
            on_timeout_error=on_timeout_error,
            cancel=cancel,
        )

    async def upload_buffered_file(
        self,
        source: Any,
        url: str,
        *,
        content_type: str | None = None,
        on_before_retry: Hook | None = None,
        on_timeout_error: Hook | None = None,
        cancel: CancelToken | None = None,
    ) -> httpx.Response | None:
        """Upload *source* in a single ``PUT``, compressed if configured."""
        if not url:
            raise InvalidPresignedUrlError()
        body = await read_all(source, self._config.read_block_size, cancel)
        fmt = self._config.compression_format
        if fmt is not None:
            body = compress_bytes(body, fmt)
        return await self._put_buffer(
            url,
            body,
            content_type=content_type or _guess_type(source),
            content_encoding=fmt,
            on_before_retry=on_before_retry,
            on_timeout_error=on_timeout_error,
            cancel=cancel,
        )

    # ------------------------------------------------------------------
    # Multipart
    # ------------------------------------------------------------------

    async def multipart_upload(
        self,
        source: Any,
        presigned_urls: UrlSource,
        session: UploadSession,
        *,
        file_size: int | None = None,
        on_progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> UploadResult:
        """Stream *source* as a multipart upload and finalise it.

        Parameters
        ----------
        source:
            Path, binary file object, bytes, or async iterable of bytes.
        presigned_urls:
            Part URLs in part order: a list, a :class:`PresignedUrls`, or
            an async callable returning either.
        session:
            Identifiers used for the complete/abort calls.
        file_size:
            Required for sources whose size cannot be measured.
        on_progress:
            Receives ``reading``, ``uploading``, ``confirming`` and
            ``done`` events.
        cancel:
            Token that stops the upload.  The backend upload is aborted
            before :class:`UploadCancelledError` propagates.

        Returns
        -------
        UploadResult
            The completion response, or the abort response with
            ``is_aborted=True`` if any part failed.

        Raises
        ------
        InsufficientPresignedUrlsError, InvalidPresignedUrlError
            Before any byte is read or sent.
        UploadCancelledError
            If *cancel* fires.
        UnsupportedPayloadError, OSError
            If the source fails mid-stream.  The backend upload is
            aborted first when any part was already dispatched.
        BackendRequestError
            If the complete call got no response.
        """
        urls = await resolve_urls(presigned_urls)
        dispatched: list[int] = []
        try:
            tokens = await self._orchestrator.run(
                source,
                urls,
                file_size=file_size,
                on_progress=on_progress,
                cancel=cancel,
                upload_id=session.upload_id,
                on_dispatch=dispatched.append,
            )
        except UploadCancelledError:
            await self._driver.abort(session, reason="cancelled")
            raise
        except Exception:
            # Precondition failures happen before any part is dispatched.
            if dispatched:
                await self._driver.abort(session, reason="error")
            raise
        return await self._driver.finalize(session, tokens, on_progress=on_progress)

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def upload_buffered_files(
        self,
        items: Iterable[BufferedFile],
        *,
        timeout_ms: int | None = USE_CONFIG,
        compression_format: str | None = USE_CONFIG,
        concurrency: int | None = None,
        on_progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> list[BatchResult]:
        """Upload many small files concurrently, one ``PUT`` each.

        See :meth:`BatchUploader.run`.
        """
        return await self._batch.run(
            items,
            timeout_ms=timeout_ms,
            compression_format=compression_format,
            concurrency=concurrency,
            on_progress=on_progress,
            cancel=cancel,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client if the uploader created it."""
        await self._transport.close()

    async def __aenter__(self) -> PresignedUploader:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _put_buffer(
        self,
        url: str,
        body: bytes,
        *,
        content_type: str | None,
        content_encoding: str | None,
        on_before_retry: Hook | None,
        on_timeout_error: Hook | None,
        cancel: CancelToken | None,
    ) -> httpx.Response | None:
        response = await self._transport.put_buffer(
            url,
            body,
            content_type=content_type,
            content_encoding=content_encoding,
            access_control_allow_origin=self._config.access_control_allow_origin,
            timeout_ms=self._config.buffered_timeout_ms,
            max_retries=self._config.max_retries,
            on_before_retry=on_before_retry,
            on_timeout_error=on_timeout_error,
            cancel=cancel,
        )
        if response is None:
            log.warning(
                "Buffered upload failed",
                extra={"extra_fields": {"op": "buffered_upload", "bytes": len(body)}},
            )
        return response


def _guess_type(source: Any) -> str | None:
    name = source_name(source)
    if name is None:
        return None
    guessed, _ = mimetypes.guess_type(name)
    return guessed
