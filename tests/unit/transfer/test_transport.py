"""Unit tests for chunkput/transfer/transport.py.

Covers:
- defined_headers
- ChunkTransport.put_chunk (success, ETag handling, retry budget, hooks)
- ChunkTransport.put_buffer (timeout + retry, status failures)
- Cancellation of an in-flight attempt
- Client ownership / close
"""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import httpx
import pytest
from conftest import mock_client

from chunkput.cancel import CancelToken
from chunkput.config import ChunkputConfig
from chunkput.errors import InvalidPresignedUrlError, UploadCancelledError
from chunkput.models import CompletionToken, UploadTarget
from chunkput.transfer.transport import ChunkTransport, defined_headers

URL = "https://storage.test/bucket/key?X-Amz-Signature=abc"


class Scripted:
    """Handler that plays back a list of outcomes, one per request.

    Each outcome is an ``httpx.Response``, an exception instance to raise,
    or a float meaning "sleep this long then answer 200".
    """

    def __init__(self, *outcomes) -> None:
        self.outcomes = list(outcomes)
        self.requests: list[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if self.outcomes else httpx.Response(200)
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, float):
            await asyncio.sleep(outcome)
            return httpx.Response(200, headers={"ETag": '"late"'})
        return outcome


def make_transport(handler, **overrides) -> ChunkTransport:
    return ChunkTransport(ChunkputConfig(**overrides), mock_client(handler))


# ---------------------------------------------------------------------------
# defined_headers
# ---------------------------------------------------------------------------


class TestDefinedHeaders:
    def test_drops_none(self):
        assert defined_headers(content_type="text/plain", content_encoding=None) == {
            "content-type": "text/plain",
        }

    def test_underscores_become_dashes(self):
        headers = defined_headers(access_control_allow_origin="*")
        assert headers == {"access-control-allow-origin": "*"}

    def test_empty(self):
        assert defined_headers() == {}


# ---------------------------------------------------------------------------
# put_chunk
# ---------------------------------------------------------------------------


class TestPutChunk:
    @pytest.mark.asyncio
    async def test_success_returns_token_with_etag(self):
        handler = Scripted(httpx.Response(200, headers={"ETag": '"abc123"'}))
        transport = make_transport(handler)
        token = await transport.put_chunk(UploadTarget(URL, 3), b"data")
        assert token == CompletionToken(etag='"abc123"', part_no=3)
        assert len(handler.requests) == 1
        assert handler.requests[0].method == "PUT"
        assert handler.requests[0].content == b"data"

    @pytest.mark.asyncio
    async def test_missing_etag_defaults_to_empty(self):
        transport = make_transport(Scripted(httpx.Response(200)))
        token = await transport.put_chunk(UploadTarget(URL, 1), b"x")
        assert token is not None
        assert token.etag == ""

    @pytest.mark.asyncio
    async def test_only_defined_headers_sent(self):
        handler = Scripted(httpx.Response(200))
        transport = make_transport(handler)
        await transport.put_chunk(
            UploadTarget(URL, 1),
            b"x",
            content_encoding="gzip",
            access_control_allow_origin="*",
        )
        headers = handler.requests[0].headers
        assert headers["content-encoding"] == "gzip"
        assert headers["access-control-allow-origin"] == "*"
        assert "content-type" not in headers

    @pytest.mark.asyncio
    async def test_empty_url_raises_before_network(self):
        handler = Scripted()
        transport = make_transport(handler)
        with pytest.raises(InvalidPresignedUrlError) as exc_info:
            await transport.put_chunk(UploadTarget("", 2), b"x")
        assert exc_info.value.context == {"part_no": 2}
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_retries_network_error_then_succeeds(self):
        handler = Scripted(httpx.ConnectError("boom"), httpx.Response(200))
        transport = make_transport(handler)
        before_retry = MagicMock()
        on_timeout = MagicMock()
        token = await transport.put_chunk(
            UploadTarget(URL, 1),
            b"x",
            max_retries=3,
            on_before_retry=before_retry,
            on_timeout_error=on_timeout,
        )
        assert token is not None
        assert len(handler.requests) == 2
        before_retry.assert_called_once_with()
        on_timeout.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_2xx_is_retried(self):
        handler = Scripted(httpx.Response(503), httpx.Response(403), httpx.Response(200))
        transport = make_transport(handler)
        token = await transport.put_chunk(UploadTarget(URL, 1), b"x", max_retries=3)
        assert token is not None
        assert len(handler.requests) == 3

    @pytest.mark.parametrize(("max_retries", "attempts"), [(0, 1), (-1, 1), (1, 2), (3, 4)])
    @pytest.mark.asyncio
    async def test_attempt_budget(self, max_retries, attempts):
        handler = Scripted(*[httpx.Response(500)] * 10)
        transport = make_transport(handler)
        before_retry = MagicMock()
        token = await transport.put_chunk(
            UploadTarget(URL, 1),
            b"x",
            max_retries=max_retries,
            on_before_retry=before_retry,
        )
        assert token is None
        assert len(handler.requests) == attempts
        # Hooks fire only when another attempt follows.
        assert before_retry.call_count == attempts - 1


# ---------------------------------------------------------------------------
# put_buffer
# ---------------------------------------------------------------------------


class TestPutBuffer:
    @pytest.mark.asyncio
    async def test_returns_response(self):
        handler = Scripted(httpx.Response(201, json={"ok": True}))
        transport = make_transport(handler)
        response = await transport.put_buffer(URL, b"whole file", content_type="image/png")
        assert response is not None
        assert response.status_code == 201
        assert handler.requests[0].headers["content-type"] == "image/png"

    @pytest.mark.asyncio
    async def test_timeout_then_success_fires_each_hook_once(self):
        handler = Scripted(0.5, httpx.Response(200))
        transport = make_transport(handler)
        calls: list[str] = []
        response = await transport.put_buffer(
            URL,
            b"x",
            timeout_ms=20,
            max_retries=3,
            on_timeout_error=lambda: calls.append("timeout"),
            on_before_retry=lambda: calls.append("retry"),
        )
        assert response is not None
        assert response.status_code == 200
        assert len(handler.requests) == 2
        assert calls == ["timeout", "retry"]

    @pytest.mark.asyncio
    async def test_httpx_timeout_counts_as_timeout(self):
        handler = Scripted(httpx.ReadTimeout("slow"), httpx.Response(200))
        transport = make_transport(handler)
        on_timeout = MagicMock()
        response = await transport.put_buffer(
            URL, b"x", max_retries=1, on_timeout_error=on_timeout,
        )
        assert response is not None
        on_timeout.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_exhausted_returns_none(self):
        handler = Scripted(*[httpx.ConnectError("down")] * 5)
        transport = make_transport(handler)
        assert await transport.put_buffer(URL, b"x", max_retries=2) is None
        assert len(handler.requests) == 3

    @pytest.mark.asyncio
    async def test_empty_url_raises(self):
        transport = make_transport(Scripted())
        with pytest.raises(InvalidPresignedUrlError):
            await transport.put_buffer("", b"x")


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_during_attempt_raises(self):
        handler = Scripted(5.0)
        transport = make_transport(handler)
        token = CancelToken()
        task = asyncio.ensure_future(
            transport.put_chunk(UploadTarget(URL, 1), b"x", cancel=token),
        )
        await asyncio.sleep(0.02)
        token.cancel("stop")
        with pytest.raises(UploadCancelledError) as exc_info:
            await task
        assert exc_info.value.status_code == 499
        assert exc_info.value.context == {"stage": "put_chunk"}

    @pytest.mark.asyncio
    async def test_already_cancelled_sends_nothing(self):
        handler = Scripted()
        transport = make_transport(handler)
        token = CancelToken()
        token.cancel()
        with pytest.raises(UploadCancelledError):
            await transport.put_buffer(URL, b"x", cancel=token)
        assert handler.requests == []


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_does_not_close_borrowed_client(self):
        client = mock_client(Scripted())
        async with ChunkTransport(ChunkputConfig(), client) as transport:
            assert transport.client is client
        assert not client.is_closed
        await client.aclose()

    @pytest.mark.asyncio
    async def test_closes_own_client(self):
        transport = ChunkTransport(ChunkputConfig())
        await transport.close()
        assert transport.client.is_closed
