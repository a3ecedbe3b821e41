"""Shared test fixtures for the chunkput test suite."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterable
from typing import Any

import httpx
import pytest

from chunkput.config import ChunkputConfig
from chunkput.models import UploadSession

STORAGE = "https://storage.test"
API = "https://api.test"


def part_urls(count: int) -> list[str]:
    """Presigned-looking part URLs ``.../part/1`` .. ``.../part/count``."""
    return [
        f"{STORAGE}/bucket/object/part/{n}?X-Amz-Signature=sig{n}"
        for n in range(1, count + 1)
    ]


def part_number(request: httpx.Request) -> int:
    return int(request.url.path.rsplit("/", 1)[1])


class FakeStorage:
    """``httpx.MockTransport`` handler playing storage and backend.

    Part URLs answer ``200`` with an ``ETag`` of ``"etag-<n>"`` unless the
    part number is in *fail_parts* (``500`` every time).  The backend's
    ``/complete`` and ``/abort`` endpoints answer ``200`` with a small JSON
    body, after *backend_delay* seconds.  Every request is recorded;
    ``max_active`` is the peak number of storage requests being handled
    at once.
    """

    def __init__(
        self,
        *,
        fail_parts: Iterable[int] = (),
        delay: float = 0.005,
        backend_status: int = 200,
        backend_delay: float = 0.0,
    ) -> None:
        self.fail_parts = set(fail_parts)
        self.delay = delay
        self.backend_status = backend_status
        self.backend_delay = backend_delay
        self.requests: list[httpx.Request] = []
        self.active = 0
        self.max_active = 0

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "api.test":
            if self.backend_delay:
                await asyncio.sleep(self.backend_delay)
            body = json.loads(request.content)
            return httpx.Response(
                self.backend_status,
                json={"endpoint": request.url.path, "upload_id": body["upload_id"]},
            )

        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.active -= 1

        if "/part/" in request.url.path:
            n = part_number(request)
            if n in self.fail_parts:
                return httpx.Response(500)
            return httpx.Response(200, headers={"ETag": f'"etag-{n}"'})
        return httpx.Response(200)

    # -- views ---------------------------------------------------------------

    @property
    def part_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if "/part/" in r.url.path]

    def backend_calls(self, endpoint: str) -> list[dict[str, Any]]:
        return [
            json.loads(r.content)
            for r in self.requests
            if r.url.host == "api.test" and r.url.path == endpoint
        ]


def mock_client(handler: Any) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def config() -> ChunkputConfig:
    """Small chunks, no compression, no timeouts."""
    return ChunkputConfig(
        chunk_size=1024,
        read_block_size=256,
        concurrency=4,
        max_retries=2,
        timeout_ms=None,
        buffered_timeout_ms=None,
        compression_format=None,
    )


@pytest.fixture
def session() -> UploadSession:
    return UploadSession(
        upload_id="upload-1",
        completion_url=f"{API}/complete",
        abort_url=f"{API}/abort",
        file_path="videos/clip.mp4",
    )


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()
