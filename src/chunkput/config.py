"""Uploader configuration for chunkput.

:class:`ChunkputConfig` is a dataclass that captures every tuneable knob of
the upload engine.  One instance is passed to :class:`PresignedUploader`
and shared by every upload it runs.

Module-level constants:

* :data:`DEFAULT_STREAM_CHUNK_SIZE` — part size used when streaming a file.
* :data:`DEFAULT_PROVIDER_CHUNK_SIZE` — part size a URL provider assumes
  when it is not told otherwise.
* :data:`MAX_PARTS` — storage-service ceiling on parts per upload.
* :data:`SUPPORTED_COMPRESSION_FORMATS` — accepted ``compression_format``
  values.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any

DEFAULT_STREAM_CHUNK_SIZE: int = 2 * 1024 * 1024
"""Multipart part size used by the streaming path (2 MiB)."""

DEFAULT_PROVIDER_CHUNK_SIZE: int = 16 * 1024 * 1024
"""Part size assumed by :meth:`PresignRequest.for_file` (16 MiB)."""

DEFAULT_URL_EXPIRY_SECONDS: int = 100

MAX_PARTS: int = 10_000

SUPPORTED_COMPRESSION_FORMATS: tuple[str, ...] = ("gzip", "deflate", "deflate-raw")


@dataclass
class ChunkputConfig:
    """Complete configuration for a presigned uploader.

    Every parameter has a default, so ``ChunkputConfig()`` is a usable
    configuration.

    Parameters
    ----------
    chunk_size:
        Bytes per multipart part.  Every part except the last is exactly
        this size.
    read_block_size:
        Bytes requested per read from the source stream.
    concurrency:
        Maximum number of transfers in flight per upload call.
    max_retries:
        Retries per transfer after the first attempt.  ``0`` means a single
        attempt.
    timeout_ms:
        Per-attempt timeout for multipart chunk transfers, in milliseconds.
        ``None`` disables the timeout.
    buffered_timeout_ms:
        Per-attempt timeout for buffered (single request) transfers.
    backend_timeout_ms:
        Timeout for the complete and abort calls to the coordinating
        backend.  ``None`` disables the timeout.
    compression_format:
        Compression applied to uploaded bytes.

        * ``"gzip"`` (default), ``"deflate"``, ``"deflate-raw"``.
        * ``None`` — no compression.
    access_control_allow_origin:
        Value of the ``access-control-allow-origin`` header sent with chunk
        transfers and backend calls.
    http_proxy:
        Optional HTTP/HTTPS proxy URL.
    metrics:
        A :class:`MetricsHook` implementation.  ``None`` uses the no-op hook.
    debug_dump_payload:
        Write redacted complete/abort payloads to *stderr*.
    """

    # ── Chunking ────────────────────────────────────────────────────────
    chunk_size: int = DEFAULT_STREAM_CHUNK_SIZE

    read_block_size: int = 64 * 1024

    # ── Concurrency & retry ─────────────────────────────────────────────
    concurrency: int = 4

    max_retries: int = 3

    timeout_ms: int | None = 5_000

    buffered_timeout_ms: int | None = 89_000

    backend_timeout_ms: int | None = 30_000

    # ── Encoding ────────────────────────────────────────────────────────
    compression_format: str | None = "gzip"

    # ── HTTP ────────────────────────────────────────────────────────────
    access_control_allow_origin: str = "*"

    http_proxy: str | None = None

    # ── Observability ──────────────────────────────────────────────────
    metrics: Any | None = None

    # ── Debug ───────────────────────────────────────────────────────────
    debug_dump_payload: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be > 0, got {self.chunk_size}")
        if self.read_block_size <= 0:
            raise ValueError(f"read_block_size must be > 0, got {self.read_block_size}")
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.timeout_ms is not None and self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be > 0, got {self.timeout_ms}")
        if self.buffered_timeout_ms is not None and self.buffered_timeout_ms <= 0:
            raise ValueError(
                f"buffered_timeout_ms must be > 0, got {self.buffered_timeout_ms}"
            )
        if self.backend_timeout_ms is not None and self.backend_timeout_ms <= 0:
            raise ValueError(
                f"backend_timeout_ms must be > 0, got {self.backend_timeout_ms}"
            )
        if (
            self.compression_format is not None
            and self.compression_format not in SUPPORTED_COMPRESSION_FORMATS
        ):
            raise ValueError(
                f"compression_format must be one of {SUPPORTED_COMPRESSION_FORMATS} "
                f"or None, got {self.compression_format!r}"
            )

    def __repr__(self) -> str:
        """Mask proxy credentials to prevent accidental leakage."""
        from chunkput.utils.redact import redact_url

        parts: list[str] = []
        for f in dataclasses.fields(self):
            val = getattr(self, f.name)
            if f.name == "http_proxy" and val:
                parts.append(f"http_proxy={redact_url(val)!r}")
            else:
                parts.append(f"{f.name}={val!r}")
        return f"ChunkputConfig({', '.join(parts)})"
