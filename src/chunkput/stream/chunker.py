"""Re-buffer a block stream into fixed-size multipart chunks."""

from __future__ import annotations


class ChunkAccumulator:
    """Accumulates stream blocks until a full chunk is available.

    Every chunk taken with :meth:`take` is exactly *chunk_size* bytes; bytes
    past the boundary stay in the buffer for the next chunk.  Whatever is
    left at end-of-stream is returned by :meth:`take_tail`.

    >>> acc = ChunkAccumulator(4)
    >>> acc.add(b"abcdef")
    >>> acc.ready, acc.take(), acc.pending
    (True, b'abcd', 2)
    >>> acc.take_tail()
    b'ef'
    """

    __slots__ = ("_buffer", "chunk_size")

    def __init__(self, chunk_size: int) -> None:
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
        self.chunk_size: int = chunk_size
        self._buffer = bytearray()

    @property
    def pending(self) -> int:
        return len(self._buffer)

    @property
    def ready(self) -> bool:
        return len(self._buffer) >= self.chunk_size

    def add(self, block: bytes) -> None:
        self._buffer += block

    def take(self) -> bytes:
        if not self.ready:
            raise ValueError(
                f"only {len(self._buffer)} of {self.chunk_size} bytes buffered"
            )
        chunk = bytes(self._buffer[: self.chunk_size])
        del self._buffer[: self.chunk_size]
        return chunk

    def take_tail(self) -> bytes:
        tail = bytes(self._buffer)
        self._buffer.clear()
        return tail
