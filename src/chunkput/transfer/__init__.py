"""chunkput.transfer -- HTTP transfers to presigned URLs and the backend.

This sub-package provides:

* :mod:`.retries` -- Failure classification and attempt budgeting.
* :mod:`.transport` -- Retrying PUT transport for chunks and buffers.
* :mod:`.gate` -- Per-call bounded concurrency for in-flight transfers.
* :mod:`.backend` -- Complete/abort calls to the coordinating backend.
"""

from __future__ import annotations

from .backend import BackendAPI, abort_payload, complete_payload
from .gate import ConcurrencyGate
from .retries import FailureKind, attempt_budget, classify_exception
from .transport import ChunkTransport, defined_headers

__all__ = [
    "BackendAPI",
    "ChunkTransport",
    "ConcurrencyGate",
    "FailureKind",
    "abort_payload",
    "attempt_budget",
    "classify_exception",
    "complete_payload",
    "defined_headers",
]
