"""Error hierarchy for the chunkput upload engine.

Every public error class inherits from :class:`ChunkputError`.  Each carries
a machine-readable ``code`` (from :class:`ErrorCode`), a human-readable
``message``, an optional structured ``context`` dict, and an optional
``cause`` (chained exception).

Transient transfer failures are *not* represented here: chunk and buffered
transfers retry and finally return ``None``.  Exceptions are reserved for
precondition violations raised before any network activity, caller
cancellation, and backend calls that failed at the transport level.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Error code enum
# ---------------------------------------------------------------------------

class ErrorCode(str, Enum):
    """Machine-readable error codes for every error the engine can raise."""

    UPLOAD_ERROR = "UPLOAD_ERROR"
    INVALID_URL = "INVALID_URL"
    INSUFFICIENT_URLS = "INSUFFICIENT_URLS"
    UNSUPPORTED_PAYLOAD = "UNSUPPORTED_PAYLOAD"
    UNSUPPORTED_COMPRESSION = "UNSUPPORTED_COMPRESSION"
    UPLOAD_CANCELLED = "UPLOAD_CANCELLED"
    BACKEND_ERROR = "BACKEND_ERROR"
    PRESIGN_ERROR = "PRESIGN_ERROR"


BAD_REQUEST = 400
CLIENT_CLOSED_REQUEST = 499


# ---------------------------------------------------------------------------
# Base error
# ---------------------------------------------------------------------------

class ChunkputError(Exception):
    """Base exception for all chunkput errors.

    Parameters
    ----------
    code:
        A value from :class:`ErrorCode` (or any string) identifying the
        error category.
    message:
        A developer-friendly description of what went wrong.
    context:
        Arbitrary structured data providing extra diagnostic detail.
        Keys and expected types are documented per subclass.
    cause:
        The underlying exception, if this error wraps another.
    """

    def __init__(
        self,
        code: str,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.code: str = code
        self.message: str = message
        self.context: dict[str, Any] = context or {}
        self.cause: Exception | None = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        ctx = f", context={self.context!r}" if self.context else ""
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}{ctx})"


# ---------------------------------------------------------------------------
# Upload errors
# ---------------------------------------------------------------------------

class ChunkputUploadError(ChunkputError):
    """Base class for upload errors.

    Adds ``status_code``, an HTTP-style status describing the failure to
    callers that surface it over their own API (``400`` for preconditions).
    """

    def __init__(
        self,
        code: str = ErrorCode.UPLOAD_ERROR,
        message: str = "Upload error",
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
        status_code: int = BAD_REQUEST,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            context=context,
            cause=cause,
        )
        self.status_code: int = status_code


class InvalidPresignedUrlError(ChunkputUploadError):
    """A presigned URL was empty or missing.

    Context keys: ``part_no`` (multipart only).
    """

    def __init__(
        self,
        message: str = "Invalid presigned url.",
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.INVALID_URL,
            message=message,
            context=context,
            cause=cause,
        )


class InsufficientPresignedUrlsError(ChunkputUploadError):
    """Fewer presigned URLs than the upload may need.

    The URL count must be strictly greater than ``ceil(file_size /
    chunk_size)`` so that compression growth always has a spare part.

    Context keys: ``url_count``, ``estimated_parts``, ``file_size``,
    ``chunk_size``.
    """

    def __init__(
        self,
        message: str = "Invalid presigned urls.",
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.INSUFFICIENT_URLS,
            message=message,
            context=context,
            cause=cause,
        )


class UnsupportedPayloadError(ChunkputUploadError):
    """The source (or a unit it produced) is not bytes-like.

    Context keys: ``type``.
    """

    def __init__(
        self,
        message: str = "Unknown data type",
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.UNSUPPORTED_PAYLOAD,
            message=message,
            context=context,
            cause=cause,
        )


class UnsupportedCompressionError(ChunkputUploadError):
    """The configured compression format is not known.

    Context keys: ``format``, ``supported``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.UNSUPPORTED_COMPRESSION,
            message=message,
            context=context,
            cause=cause,
        )


class UploadCancelledError(ChunkputUploadError):
    """The caller's cancel token fired while the upload was in progress.

    Context keys: ``stage``.
    """

    def __init__(
        self,
        message: str = "Upload cancelled",
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.UPLOAD_CANCELLED,
            message=message,
            context=context,
            cause=cause,
            status_code=CLIENT_CLOSED_REQUEST,
        )


# ---------------------------------------------------------------------------
# Backend / provider errors
# ---------------------------------------------------------------------------

class BackendRequestError(ChunkputError):
    """The coordinating backend's complete call failed at transport level.

    The outcome of the upload is uncertain and must be reconciled out of
    band.

    Context keys: ``url``, ``upload_id``, ``operation``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.BACKEND_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class PresignRequestError(ChunkputError):
    """A URL-provider request could not be built.

    Context keys: ``part_count``, ``max_parts``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.PRESIGN_ERROR,
            message=message,
            context=context,
            cause=cause,
        )
