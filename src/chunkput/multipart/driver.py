"""Two-phase commit of a multipart upload against the coordinating backend.

Given the orchestrator's outcome, :class:`MultipartDriver` either

* **completes** the upload -- ``confirming`` progress, complete call with
  the tokens ordered by part number, ``done`` progress; or
* **aborts** it -- best-effort abort call whose failures are logged, never
  raised.

The driver never retries either call.
"""

from __future__ import annotations

from chunkput.config import ChunkputConfig
from chunkput.errors import BackendRequestError
from chunkput.models import (
    CompletionToken,
    ProgressCallback,
    ProgressPhase,
    UploadResult,
    UploadSession,
)
from chunkput.observability import NoopMetricsHook, get_logger
from chunkput.transfer.backend import BackendAPI, parse_body
from chunkput.transfer.retries import TRANSFER_EXCEPTIONS, is_success
from chunkput.utils.redact import redact_url

from .progress import ProgressTracker

log = get_logger("chunkput.multipart")


class MultipartDriver:
    """Finalise multipart uploads via the backend's complete/abort endpoints.

    Parameters
    ----------
    config:
        Supplies the metrics hook.
    backend:
        The :class:`BackendAPI` issuing the HTTP calls.
    """

    def __init__(self, config: ChunkputConfig, backend: BackendAPI) -> None:
        self._config = config
        self._backend = backend
        self._metrics = config.metrics if config.metrics is not None else NoopMetricsHook()

    async def finalize(
        self,
        session: UploadSession,
        tokens: list[CompletionToken] | None,
        *,
        on_progress: ProgressCallback | None = None,
        reason: str | None = None,
    ) -> UploadResult:
        """Complete the upload if *tokens* is a list, abort it if ``None``.

        Raises
        ------
        BackendRequestError
            If the complete call fails without a response.
        """
        if tokens is None:
            return await self.abort(session, reason=reason or "chunk_failed")
        return await self.complete(session, tokens, on_progress=on_progress)

    async def complete(
        self,
        session: UploadSession,
        tokens: list[CompletionToken],
        *,
        on_progress: ProgressCallback | None = None,
    ) -> UploadResult:
        parts = sorted(tokens, key=lambda token: token.part_no)
        tracker = ProgressTracker(0, on_progress)
        tracker.mark(ProgressPhase.CONFIRMING)

        try:
            response = await self._backend.complete_upload(session, parts)
        except TRANSFER_EXCEPTIONS as exc:
            log.error(
                "Complete multipart upload request failed",
                extra={
                    "extra_fields": {
                        "op": "complete_upload",
                        "upload_id": session.upload_id,
                        "url": redact_url(session.completion_url),
                        "error": str(exc) or type(exc).__name__,
                    }
                },
            )
            raise BackendRequestError(
                message=(
                    f"Complete call failed for upload {session.upload_id}: "
                    f"{str(exc) or type(exc).__name__}"
                ),
                context={
                    "url": redact_url(session.completion_url),
                    "upload_id": session.upload_id,
                    "operation": "complete",
                },
                cause=exc,
            ) from exc

        tracker.mark(ProgressPhase.DONE)
        self._metrics.increment(
            "chunkput.uploads_completed_total",
            tags={"status": str(response.status_code)},
        )
        level_log = log.info if is_success(response.status_code) else log.warning
        level_log(
            "Multipart upload completion acknowledged",
            extra={
                "extra_fields": {
                    "op": "complete_upload",
                    "upload_id": session.upload_id,
                    "status_code": response.status_code,
                    "parts": len(parts),
                }
            },
        )
        return UploadResult(
            is_aborted=False,
            status_code=response.status_code,
            body=parse_body(response),
            parts=parts,
        )

    async def abort(self, session: UploadSession, *, reason: str = "chunk_failed") -> UploadResult:
        """Best-effort abort; always returns an ``is_aborted`` result."""
        self._metrics.increment("chunkput.uploads_aborted_total", tags={"reason": reason})
        try:
            response = await self._backend.abort_upload(session)
        except TRANSFER_EXCEPTIONS as exc:
            log.error(
                "Abort multipart upload request failed",
                extra={
                    "extra_fields": {
                        "op": "abort_upload",
                        "upload_id": session.upload_id,
                        "url": redact_url(session.abort_url),
                        "reason": reason,
                        "error": str(exc) or type(exc).__name__,
                    }
                },
            )
            return UploadResult(is_aborted=True, reason=reason)

        if not is_success(response.status_code):
            log.warning(
                "Abort multipart upload rejected",
                extra={
                    "extra_fields": {
                        "op": "abort_upload",
                        "upload_id": session.upload_id,
                        "status_code": response.status_code,
                        "reason": reason,
                    }
                },
            )
        else:
            log.info(
                "Multipart upload aborted",
                extra={
                    "extra_fields": {
                        "op": "abort_upload",
                        "upload_id": session.upload_id,
                        "reason": reason,
                    }
                },
            )
        return UploadResult(
            is_aborted=True,
            status_code=response.status_code,
            body=parse_body(response),
            reason=reason,
        )
