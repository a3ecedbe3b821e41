"""HTTP PUT transfers to presigned URLs.

:class:`ChunkTransport` owns the ``httpx.AsyncClient`` used for every
storage-facing request and implements the two transfer primitives:

* :meth:`ChunkTransport.put_chunk` -- one multipart part, returning a
  :class:`~chunkput.models.CompletionToken`.
* :meth:`ChunkTransport.put_buffer` -- a whole file in one request,
  returning the ``httpx.Response``.

Both follow the same attempt lifecycle:

1. Send one ``PUT`` with only the headers that are defined.
2. If a timeout is configured, abandon the attempt after that many
   milliseconds and classify it as a timeout.
3. On ``2xx`` -- return the result.
4. On transport error, timeout, or non-``2xx`` -- fire the caller's hooks
   (``on_timeout_error`` for timeouts, then ``on_before_retry``) and retry
   immediately, up to ``max_retries`` times.
5. When the attempts are exhausted -- return ``None``.  Transfer failures are
   never raised; the orchestrators treat ``None`` as a permanent failure.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any

import httpx

from chunkput.cancel import CancelToken, guarded
from chunkput.config import ChunkputConfig
from chunkput.errors import InvalidPresignedUrlError
from chunkput.models import CompletionToken, UploadTarget
from chunkput.observability import NoopMetricsHook, get_logger
from chunkput.utils.redact import redact_url

from .retries import (
    TRANSFER_EXCEPTIONS,
    FailureKind,
    attempt_budget,
    classify_exception,
    is_success,
    timeout_seconds,
)

log = get_logger("chunkput.transfer")

Hook = Callable[[], None]


def defined_headers(**headers: str | None) -> dict[str, str]:
    """Build a header dict, dropping ``None`` values.

    Keyword names use underscores for dashes.

    >>> defined_headers(content_type="text/plain", content_encoding=None)
    {'content-type': 'text/plain'}
    """
    return {
        name.replace("_", "-"): value
        for name, value in headers.items()
        if value is not None
    }


class ChunkTransport:
    """Retrying PUT transport for presigned URLs.

    Parameters
    ----------
    config:
        A :class:`ChunkputConfig` controlling proxy and metrics.
    client:
        An existing ``httpx.AsyncClient`` to use.  When omitted the
        transport creates (and later closes) its own.
    """

    def __init__(
        self,
        config: ChunkputConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._metrics = config.metrics if config.metrics is not None else NoopMetricsHook()
        self._owns_client = client is None
        if client is None:
            # Per-attempt deadlines are enforced with asyncio.wait_for.
            client = httpx.AsyncClient(
                timeout=httpx.Timeout(None),
                proxy=config.http_proxy,
            )
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    # -- public API --------------------------------------------------------

    async def put_chunk(
        self,
        target: UploadTarget,
        body: bytes,
        *,
        content_type: str | None = None,
        content_encoding: str | None = None,
        access_control_allow_origin: str | None = None,
        timeout_ms: int | None = None,
        max_retries: int = 3,
        on_before_retry: Hook | None = None,
        on_timeout_error: Hook | None = None,
        cancel: CancelToken | None = None,
    ) -> CompletionToken | None:
        """Upload one part to its presigned URL.

        Returns
        -------
        CompletionToken | None
            ``etag`` is the response's ``ETag`` header (``""`` if absent).
            ``None`` once every attempt has failed.

        Raises
        ------
        InvalidPresignedUrlError
            If ``target.url`` is empty.
        UploadCancelledError
            If *cancel* fires during an attempt.
        """
        headers = defined_headers(
            content_type=content_type,
            content_encoding=content_encoding,
            access_control_allow_origin=access_control_allow_origin,
        )
        response = await self._put(
            target.url,
            body,
            headers,
            op="put_chunk",
            part_no=target.part_no,
            timeout_ms=timeout_ms,
            max_retries=max_retries,
            on_before_retry=on_before_retry,
            on_timeout_error=on_timeout_error,
            cancel=cancel,
        )
        if response is None:
            return None
        return CompletionToken(
            etag=response.headers.get("etag", ""),
            part_no=target.part_no,
        )

    async def put_buffer(
        self,
        url: str,
        body: bytes,
        *,
        content_type: str | None = None,
        content_encoding: str | None = None,
        access_control_allow_origin: str | None = None,
        timeout_ms: int | None = None,
        max_retries: int = 3,
        on_before_retry: Hook | None = None,
        on_timeout_error: Hook | None = None,
        cancel: CancelToken | None = None,
    ) -> httpx.Response | None:
        """Upload a whole buffer to one presigned URL.

        See :meth:`put_chunk` for the parameters; returns the raw response
        instead of a completion token.
        """
        headers = defined_headers(
            content_type=content_type,
            content_encoding=content_encoding,
            access_control_allow_origin=access_control_allow_origin,
        )
        return await self._put(
            url,
            body,
            headers,
            op="put_buffer",
            part_no=None,
            timeout_ms=timeout_ms,
            max_retries=max_retries,
            on_before_retry=on_before_retry,
            on_timeout_error=on_timeout_error,
            cancel=cancel,
        )

    async def close(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> ChunkTransport:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # -- internals ---------------------------------------------------------

    async def _send(
        self,
        url: str,
        body: bytes,
        headers: dict[str, str],
        timeout_ms: int | None,
    ) -> httpx.Response:
        request = self._client.put(url, content=body, headers=headers)
        seconds = timeout_seconds(timeout_ms)
        if seconds is None:
            return await request
        return await asyncio.wait_for(request, seconds)

    async def _put(
        self,
        url: str,
        body: bytes,
        headers: dict[str, str],
        *,
        op: str,
        part_no: int | None,
        timeout_ms: int | None,
        max_retries: int,
        on_before_retry: Hook | None,
        on_timeout_error: Hook | None,
        cancel: CancelToken | None,
    ) -> httpx.Response | None:
        if not url:
            raise InvalidPresignedUrlError(
                message="Invalid presigned url.",
                context={"part_no": part_no} if part_no is not None else None,
            )

        safe_url = redact_url(url)
        attempts = attempt_budget(max_retries)
        tags = {"op": op}

        for attempt in range(attempts):
            self._metrics.increment("chunkput.transfer_attempts_total", tags=tags)
            t0 = time.monotonic()
            try:
                response = await guarded(
                    self._send(url, body, headers, timeout_ms), cancel, op,
                )
            except TRANSFER_EXCEPTIONS as exc:
                kind = classify_exception(exc)
                detail: dict[str, Any] = {"error": str(exc) or type(exc).__name__}
            else:
                elapsed_ms = (time.monotonic() - t0) * 1000
                self._metrics.timing(
                    "chunkput.transfer_duration_ms",
                    elapsed_ms,
                    tags={**tags, "status": str(response.status_code)},
                )
                if is_success(response.status_code):
                    log.debug(
                        "Transfer succeeded",
                        extra={
                            "extra_fields": {
                                "op": op,
                                "url": safe_url,
                                "part_no": part_no,
                                "bytes": len(body),
                                "attempt": attempt + 1,
                                "elapsed_ms": round(elapsed_ms, 1),
                            }
                        },
                    )
                    return response
                kind = FailureKind.STATUS
                detail = {"status_code": response.status_code}

            if kind is FailureKind.TIMEOUT:
                self._metrics.increment("chunkput.transfer_timeouts_total", tags=tags)
            log.warning(
                "Transfer attempt failed",
                extra={
                    "extra_fields": {
                        "op": op,
                        "url": safe_url,
                        "part_no": part_no,
                        "attempt": attempt + 1,
                        "max_attempts": attempts,
                        "kind": kind.value,
                        **detail,
                    }
                },
            )

            if attempt + 1 >= attempts:
                break

            if kind is FailureKind.TIMEOUT and on_timeout_error is not None:
                on_timeout_error()
            if on_before_retry is not None:
                on_before_retry()
            self._metrics.increment(
                "chunkput.transfer_retries_total",
                tags={**tags, "reason": kind.value},
            )

        self._metrics.increment("chunkput.transfer_failures_total", tags=tags)
        log.error(
            "Transfer failed permanently",
            extra={
                "extra_fields": {
                    "op": op,
                    "url": safe_url,
                    "part_no": part_no,
                    "attempts": attempts,
                }
            },
        )
        return None
