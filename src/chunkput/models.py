"""Public data models for chunkput.

Every type here is a plain dataclass or str enum.  Identity-like values
(targets, tokens, sessions, progress events) are frozen; result types are
mutable so callers can annotate them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ProgressPhase(str, Enum):
    """Which part of an upload a :class:`ProgressEvent` describes."""

    READING = "reading"
    """Bytes consumed from the source."""

    UPLOADING = "uploading"
    """Bytes whose transfer has been acknowledged by storage."""

    CONFIRMING = "confirming"
    """The complete call to the coordinating backend is in flight."""

    DONE = "done"
    """The upload (or one file of a batch) has finished."""


class MultipartState(str, Enum):
    """States of the multipart orchestrator's read/dispatch loop."""

    READING = "reading"
    CHUNK_READY = "chunk_ready"
    DISPATCHING = "dispatching"
    FLUSHING_TAIL = "flushing_tail"
    DONE = "done"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Transfer models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class UploadTarget:
    """One presigned destination and the 1-based part number it accepts."""

    url: str
    part_no: int


@dataclass(frozen=True)
class CompletionToken:
    """Proof of receipt for one transferred part."""

    etag: str
    part_no: int

    def to_payload(self) -> dict[str, Any]:
        """Wire shape used in the backend's complete call."""
        return {"e_tag": self.etag, "part_no": self.part_no}


@dataclass(frozen=True)
class UploadSession:
    """Identifiers of one multipart upload, consumed once by the driver."""

    upload_id: str
    completion_url: str
    abort_url: str
    file_path: str


@dataclass
class PresignedUrls:
    """Result of a URL-provider call.

    ``urls[i]`` accepts part ``i + 1``.  ``upload_id`` is ``None`` for a
    non-multipart upload, which carries exactly one URL.
    """

    urls: list[str] = field(default_factory=list)
    upload_id: str | None = None

    @property
    def is_multipart(self) -> bool:
        return self.upload_id is not None

    def targets(self) -> list[UploadTarget]:
        return [UploadTarget(url=url, part_no=i + 1) for i, url in enumerate(self.urls)]

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> PresignedUrls:
        """Parse a provider response (``p_urls`` or ``urls`` + ``upload_id``)."""
        urls = data.get("p_urls")
        if urls is None:
            urls = data.get("urls", [])
        return cls(urls=list(urls), upload_id=data.get("upload_id"))


@dataclass
class BufferedFile:
    """One item of a batch buffered upload.

    Attributes
    ----------
    source:
        A path, binary file object, or bytes-like object.
    url:
        The presigned PUT URL for this file.
    name:
        Key used in progress events.  Defaults to the file name of a path
        source.
    content_type:
        MIME type sent as ``content-type``.  Guessed from *name* if omitted.
    """

    source: Any
    url: str
    name: str | None = None
    content_type: str | None = None


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProgressEvent:
    """A single progress notification.

    ``value`` is the increment in percent since the previous event of the
    same phase; ``total`` is the running sum of increments, clamped to
    ``100``.  Consumers may use either one.  For batch uploads the event is
    keyed by ``file_name`` and ``value == total`` (``0`` or ``100``).
    """

    phase: ProgressPhase
    value: int
    total: int
    file_name: str | None = None


ProgressCallback = Callable[[ProgressEvent], None]


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class UploadResult:
    """Final outcome of a multipart upload.

    Attributes
    ----------
    is_aborted:
        ``True`` when the abort path ran.
    status_code:
        Status of the complete/abort response, ``None`` if no response was
        received (best-effort abort that failed at transport level).
    body:
        Parsed JSON body of the response (``{}`` when empty or not JSON).
    parts:
        Completion tokens submitted to the complete call (empty on abort).
    reason:
        Why the upload was aborted (``"chunk_failed"``, ``"cancelled"``).
    """

    is_aborted: bool
    status_code: int | None = None
    body: dict[str, Any] = field(default_factory=dict)
    parts: list[CompletionToken] = field(default_factory=list)
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return (
            not self.is_aborted
            and self.status_code is not None
            and 200 <= self.status_code < 300
        )

    def as_dict(self) -> dict[str, Any]:
        """Response body merged with the ``isAborted`` tag."""
        return {**self.body, "isAborted": self.is_aborted}


@dataclass
class BatchResult:
    """Outcome of one file in a batch buffered upload."""

    file_name: str
    url: str
    response: Any | None = None

    @property
    def ok(self) -> bool:
        return self.response is not None
