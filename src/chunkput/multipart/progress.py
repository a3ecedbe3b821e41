"""Progress bookkeeping for a single upload call."""

from __future__ import annotations

from chunkput.models import ProgressCallback, ProgressEvent, ProgressPhase
from chunkput.utils.chunk import percent_of


class ProgressTracker:
    """Turns byte counts into :class:`ProgressEvent` notifications.

    Increments are ``ceil(nbytes * 100 / total_bytes)``.  Each phase keeps
    its own running total, which never decreases and never exceeds 100;
    an increment that would overshoot is trimmed.

    Parameters
    ----------
    total_bytes:
        Size of the source.  ``0`` makes every increment complete the phase.
    callback:
        Receives the events.  ``None`` makes the tracker a no-op.
    file_name:
        Copied onto every event.
    """

    def __init__(
        self,
        total_bytes: int,
        callback: ProgressCallback | None,
        file_name: str | None = None,
    ) -> None:
        self.total_bytes = total_bytes
        self._callback = callback
        self._file_name = file_name
        self.totals: dict[ProgressPhase, int] = {phase: 0 for phase in ProgressPhase}

    def start(self) -> None:
        """Announce the upload with a zero-valued ``uploading`` event."""
        self._emit(ProgressPhase.UPLOADING, 0)

    def advance(self, phase: ProgressPhase, nbytes: int) -> None:
        if nbytes <= 0 and self.total_bytes > 0:
            return
        increment = percent_of(nbytes, self.total_bytes)
        self._emit(phase, increment)

    def mark(self, phase: ProgressPhase) -> None:
        """Emit a phase marker that completes *phase* (``confirming``, ``done``)."""
        self._emit(phase, 100 - self.totals[phase])

    def _emit(self, phase: ProgressPhase, increment: int) -> None:
        increment = max(0, min(increment, 100 - self.totals[phase]))
        self.totals[phase] += increment
        if self._callback is not None:
            self._callback(
                ProgressEvent(
                    phase=phase,
                    value=increment,
                    total=self.totals[phase],
                    file_name=self._file_name,
                )
            )
