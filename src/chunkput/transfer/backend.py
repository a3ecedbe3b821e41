"""Coordinating-backend calls that finalise a multipart upload.

:class:`BackendAPI` wraps the two endpoints of the commit protocol:

1. **Complete** -- ``PUT completion_url`` with the ordered part list.
2. **Abort** -- ``PUT abort_url`` to discard the uploaded parts.

Both send a JSON body with ``content-type: application/json`` and the
configured ``access-control-allow-origin`` header.  Neither call is retried.
"""

from __future__ import annotations

import asyncio
import json as _json
import sys
from typing import Any

import httpx

from chunkput.config import ChunkputConfig
from chunkput.models import CompletionToken, UploadSession
from chunkput.transfer.retries import timeout_seconds
from chunkput.utils.redact import redact


def parse_body(response: httpx.Response) -> dict[str, Any]:
    """Return the JSON object in *response*, or ``{}``."""
    if not response.content:
        return {}
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {"data": data}


def complete_payload(
    session: UploadSession,
    parts: list[CompletionToken],
) -> dict[str, Any]:
    """Body of the complete call; *parts* are sorted by part number."""
    ordered = sorted(parts, key=lambda token: token.part_no)
    return {
        "asset_path": session.file_path,
        "upload_id": session.upload_id,
        "multipart_upload_info": [token.to_payload() for token in ordered],
    }


def abort_payload(session: UploadSession) -> dict[str, Any]:
    """Body of the abort call."""
    return {
        "asset_title": session.file_path,
        "upload_id": session.upload_id,
    }


class BackendAPI:
    """Async wrapper for the complete and abort endpoints.

    Parameters
    ----------
    config:
        Supplies the allowed-origin header and debug switches.
    client:
        The ``httpx.AsyncClient`` to send requests with (usually the one
        owned by :class:`~chunkput.transfer.transport.ChunkTransport`).
    """

    def __init__(self, config: ChunkputConfig, client: httpx.AsyncClient) -> None:
        self._config = config
        self._client = client

    @property
    def headers(self) -> dict[str, str]:
        return {
            "content-type": "application/json",
            "access-control-allow-origin": self._config.access_control_allow_origin,
        }

    async def complete_upload(
        self,
        session: UploadSession,
        parts: list[CompletionToken],
    ) -> httpx.Response:
        """Ask the backend to assemble the uploaded parts.

        Raises
        ------
        httpx.TransportError, asyncio.TimeoutError
            When no response arrived within ``backend_timeout_ms``; the
            caller decides how to surface it.
        """
        body = complete_payload(session, parts)
        return await self._put_json(session.completion_url, body)

    async def abort_upload(self, session: UploadSession) -> httpx.Response:
        """Ask the backend to discard a multipart upload."""
        body = abort_payload(session)
        return await self._put_json(session.abort_url, body)

    async def _put_json(self, url: str, body: dict[str, Any]) -> httpx.Response:
        request = self._client.put(
            url,
            content=_json.dumps(body).encode("utf-8"),
            headers=self.headers,
        )
        seconds = timeout_seconds(self._config.backend_timeout_ms)
        if seconds is None:
            response = await request
        else:
            response = await asyncio.wait_for(request, seconds)
        if self._config.debug_dump_payload:
            _dump_payload("PUT", url, body, response)
        return response


def _dump_payload(
    method: str,
    url: str,
    payload: dict[str, Any],
    response: httpx.Response,
) -> None:
    """Write a redacted debug dump of the request/response to stderr."""
    dump = redact({
        "method": method,
        "url": url,
        "request_body": payload,
        "response_status": response.status_code,
        "response_body": parse_body(response),
    })
    print(_json.dumps(dump, indent=2, default=str), file=sys.stderr)
