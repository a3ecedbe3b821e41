"""chunkput.multipart -- orchestration of multipart and batch uploads.

* :mod:`.state` -- Read/dispatch state machine.
* :mod:`.progress` -- Progress event bookkeeping.
* :mod:`.orchestrator` -- Streaming multipart orchestrator.
* :mod:`.driver` -- Complete/abort commit protocol.
* :mod:`.batch` -- Concurrent buffered uploads of many files.
"""

from __future__ import annotations

from .batch import BatchUploader
from .driver import MultipartDriver
from .orchestrator import MultipartOrchestrator, check_presigned_urls
from .progress import ProgressTracker
from .state import MultipartStateMachine

__all__ = [
    "BatchUploader",
    "MultipartDriver",
    "MultipartOrchestrator",
    "MultipartStateMachine",
    "ProgressTracker",
    "check_presigned_urls",
]
