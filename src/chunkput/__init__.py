"""chunkput -- Async chunked uploads through presigned URLs.

Public re-exports
-----------------

* **Uploader:** :class:`PresignedUploader`
* **Configuration:** :class:`ChunkputConfig`
* **Cancellation:** :class:`CancelToken`
* **URL provider contract:** :class:`PresignRequest`, :class:`UrlProvider`
* **Errors:** Every :class:`ChunkputError` subclass and :class:`ErrorCode`
* **Models:** All result dataclasses, enums, and supporting types

Usage::

    from chunkput import PresignedUploader

    async with PresignedUploader(compression_format=None) as uploader:
        response = await uploader.upload_with_presigned_url("a.png", url)
"""

from __future__ import annotations

# ── Cancellation ────────────────────────────────────────────────────────
from chunkput.cancel import CancelToken

# ── Configuration ───────────────────────────────────────────────────────
from chunkput.config import (
    DEFAULT_PROVIDER_CHUNK_SIZE,
    DEFAULT_STREAM_CHUNK_SIZE,
    MAX_PARTS,
    SUPPORTED_COMPRESSION_FORMATS,
    ChunkputConfig,
)

# ── Errors ──────────────────────────────────────────────────────────────
from chunkput.errors import (
    BackendRequestError,
    ChunkputError,
    ChunkputUploadError,
    ErrorCode,
    InsufficientPresignedUrlsError,
    InvalidPresignedUrlError,
    PresignRequestError,
    UnsupportedCompressionError,
    UnsupportedPayloadError,
    UploadCancelledError,
)

# ── Models ──────────────────────────────────────────────────────────────
from chunkput.models import (
    BatchResult,
    BufferedFile,
    CompletionToken,
    MultipartState,
    PresignedUrls,
    ProgressCallback,
    ProgressEvent,
    ProgressPhase,
    UploadResult,
    UploadSession,
    UploadTarget,
)

# ── URL provider ────────────────────────────────────────────────────────
from chunkput.provider import PresignRequest, UrlProvider

# ── Uploader ────────────────────────────────────────────────────────────
from chunkput.uploader import PresignedUploader

__all__ = [
    # Uploader
    "PresignedUploader",
    # Cancellation
    "CancelToken",
    # Configuration
    "ChunkputConfig",
    "DEFAULT_PROVIDER_CHUNK_SIZE",
    "DEFAULT_STREAM_CHUNK_SIZE",
    "MAX_PARTS",
    "SUPPORTED_COMPRESSION_FORMATS",
    # URL provider
    "PresignRequest",
    "UrlProvider",
    # Errors
    "BackendRequestError",
    "ChunkputError",
    "ChunkputUploadError",
    "ErrorCode",
    "InsufficientPresignedUrlsError",
    "InvalidPresignedUrlError",
    "PresignRequestError",
    "UnsupportedCompressionError",
    "UnsupportedPayloadError",
    "UploadCancelledError",
    # Models
    "BatchResult",
    "BufferedFile",
    "CompletionToken",
    "MultipartState",
    "PresignedUrls",
    "ProgressCallback",
    "ProgressEvent",
    "ProgressPhase",
    "UploadResult",
    "UploadSession",
    "UploadTarget",
]

__version__ = "0.1.0"
