"""Multipart read/dispatch state machine.

Tracks where the orchestrator's loop is and enforces valid transitions, so
an upload can never reach ``done`` without passing through the tail flush,
or leave a terminal state.
"""

from __future__ import annotations

from chunkput.models import MultipartState


class MultipartStateMachine:
    """Finite state machine for one multipart upload call.

    Valid transitions::

        READING        -> CHUNK_READY | FLUSHING_TAIL | FAILED
        CHUNK_READY    -> DISPATCHING | FAILED
        DISPATCHING    -> READING | CHUNK_READY | FAILED
        FLUSHING_TAIL  -> DONE | FAILED
        DONE           -> (terminal)
        FAILED         -> (terminal)

    ``DISPATCHING -> CHUNK_READY`` covers a single source block that fills
    more than one chunk.

    Parameters
    ----------
    upload_id:
        Identifier used in error messages (may be empty).
    """

    VALID_TRANSITIONS: dict[MultipartState, set[MultipartState]] = {
        MultipartState.READING: {
            MultipartState.CHUNK_READY,
            MultipartState.FLUSHING_TAIL,
            MultipartState.FAILED,
        },
        MultipartState.CHUNK_READY: {MultipartState.DISPATCHING, MultipartState.FAILED},
        MultipartState.DISPATCHING: {
            MultipartState.READING,
            MultipartState.CHUNK_READY,
            MultipartState.FAILED,
        },
        MultipartState.FLUSHING_TAIL: {MultipartState.DONE, MultipartState.FAILED},
        MultipartState.DONE: set(),
        MultipartState.FAILED: set(),
    }

    def __init__(self, upload_id: str = "") -> None:
        self.upload_id: str = upload_id
        self.state: MultipartState = MultipartState.READING
        self.history: list[MultipartState] = [MultipartState.READING]

    @property
    def terminal(self) -> bool:
        return not self.VALID_TRANSITIONS[self.state]

    def transition(self, new_state: MultipartState) -> None:
        """Move to *new_state*.

        Raises
        ------
        ValueError
            If the transition is not valid from the current state.
        """
        allowed = self.VALID_TRANSITIONS.get(self.state, set())
        if new_state not in allowed:
            raise ValueError(
                f"Invalid state transition: {self.state.value} -> {new_state.value} "
                f"for upload {self.upload_id or '<unknown>'}. "
                f"Allowed transitions from {self.state.value}: "
                f"{{{', '.join(sorted(s.value for s in allowed))}}}"
            )
        self.state = new_state
        self.history.append(new_state)

    def fail(self) -> None:
        """Move to ``FAILED`` unless already terminal."""
        if not self.terminal:
            self.transition(MultipartState.FAILED)
