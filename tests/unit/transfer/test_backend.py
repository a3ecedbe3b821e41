"""Tests for chunkput/transfer/backend.py and chunkput/transfer/retries.py."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest
from conftest import mock_client

from chunkput.config import ChunkputConfig
from chunkput.models import CompletionToken, UploadSession
from chunkput.transfer.backend import (
    BackendAPI,
    abort_payload,
    complete_payload,
    parse_body,
)
from chunkput.transfer.retries import (
    FailureKind,
    attempt_budget,
    classify_exception,
    is_success,
    timeout_seconds,
)

SESSION = UploadSession(
    upload_id="u-1",
    completion_url="https://api.test/complete",
    abort_url="https://api.test/abort",
    file_path="a/b.bin",
)


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


class TestPayloads:
    def test_complete_payload_sorted_by_part(self):
        parts = [CompletionToken("e3", 3), CompletionToken("e1", 1), CompletionToken("e2", 2)]
        assert complete_payload(SESSION, parts) == {
            "asset_path": "a/b.bin",
            "upload_id": "u-1",
            "multipart_upload_info": [
                {"e_tag": "e1", "part_no": 1},
                {"e_tag": "e2", "part_no": 2},
                {"e_tag": "e3", "part_no": 3},
            ],
        }

    def test_abort_payload(self):
        assert abort_payload(SESSION) == {"asset_title": "a/b.bin", "upload_id": "u-1"}


class TestParseBody:
    def test_json_object(self):
        assert parse_body(httpx.Response(200, json={"a": 1})) == {"a": 1}

    def test_json_list_wrapped(self):
        assert parse_body(httpx.Response(200, json=[1, 2])) == {"data": [1, 2]}

    def test_empty(self):
        assert parse_body(httpx.Response(204)) == {}

    def test_not_json(self):
        assert parse_body(httpx.Response(200, content=b"<xml/>")) == {}


# ---------------------------------------------------------------------------
# BackendAPI
# ---------------------------------------------------------------------------


class TestBackendAPI:
    @pytest.mark.asyncio
    async def test_complete_request_shape(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"done": True})

        api = BackendAPI(ChunkputConfig(access_control_allow_origin="https://app.test"),
                         mock_client(handler))
        response = await api.complete_upload(SESSION, [CompletionToken("e1", 1)])

        assert response.status_code == 200
        request = seen[0]
        assert request.method == "PUT"
        assert str(request.url) == "https://api.test/complete"
        assert request.headers["content-type"] == "application/json"
        assert request.headers["access-control-allow-origin"] == "https://app.test"
        assert json.loads(request.content)["multipart_upload_info"] == [
            {"e_tag": "e1", "part_no": 1},
        ]

    @pytest.mark.asyncio
    async def test_abort_request_shape(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        api = BackendAPI(ChunkputConfig(), mock_client(handler))
        await api.abort_upload(SESSION)
        assert str(seen[0].url) == "https://api.test/abort"
        assert json.loads(seen[0].content) == {"asset_title": "a/b.bin", "upload_id": "u-1"}

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused")

        api = BackendAPI(ChunkputConfig(), mock_client(handler))
        with pytest.raises(httpx.ConnectError):
            await api.complete_upload(SESSION, [])

    @pytest.mark.asyncio
    async def test_backend_timeout_enforced(self):
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(3600)
            return httpx.Response(200)

        api = BackendAPI(ChunkputConfig(backend_timeout_ms=20), mock_client(handler))
        loop = asyncio.get_running_loop()
        started = loop.time()
        with pytest.raises(asyncio.TimeoutError):
            await api.abort_upload(SESSION)
        assert loop.time() - started < 1

    @pytest.mark.asyncio
    async def test_debug_dump_is_redacted(self, capsys):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"ok": True})

        session = UploadSession(
            upload_id="u-2",
            completion_url="https://api.test/complete?X-Amz-Signature=topsecret",
            abort_url="https://api.test/abort",
            file_path="f",
        )
        api = BackendAPI(ChunkputConfig(debug_dump_payload=True), mock_client(handler))
        await api.complete_upload(session, [])
        err = capsys.readouterr().err
        dump = json.loads(err)
        assert dump["method"] == "PUT"
        assert dump["response_status"] == 200
        assert "topsecret" not in err


# ---------------------------------------------------------------------------
# Retry helpers
# ---------------------------------------------------------------------------


class TestRetryHelpers:
    @pytest.mark.parametrize(
        ("exc", "kind"),
        [
            (asyncio.TimeoutError(), FailureKind.TIMEOUT),
            (httpx.ReadTimeout("t"), FailureKind.TIMEOUT),
            (httpx.ConnectTimeout("t"), FailureKind.TIMEOUT),
            (httpx.ConnectError("c"), FailureKind.NETWORK),
            (httpx.RemoteProtocolError("p"), FailureKind.NETWORK),
        ],
    )
    def test_classify(self, exc, kind):
        assert classify_exception(exc) is kind

    @pytest.mark.parametrize(
        ("status", "ok"), [(200, True), (204, True), (299, True), (301, False), (500, False)],
    )
    def test_is_success(self, status, ok):
        assert is_success(status) is ok

    def test_attempt_budget(self):
        assert attempt_budget(0) == 1
        assert attempt_budget(-5) == 1
        assert attempt_budget(3) == 4

    def test_timeout_seconds(self):
        assert timeout_seconds(None) is None
        assert timeout_seconds(1500) == 1.5
