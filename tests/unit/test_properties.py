"""Property-based tests using Hypothesis.

Covers:
- Part-count arithmetic and the presigned URL precondition
- ChunkAccumulator cuts: exact sizes, lossless reassembly
- ProgressTracker running totals: monotone and clamped
- Redaction never leaks signatures
"""

from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st

from chunkput.errors import InsufficientPresignedUrlsError
from chunkput.models import ProgressEvent, ProgressPhase
from chunkput.multipart.orchestrator import check_presigned_urls
from chunkput.multipart.progress import ProgressTracker
from chunkput.stream.chunker import ChunkAccumulator
from chunkput.utils.chunk import estimate_part_count
from chunkput.utils.redact import redact_url

# ---------------------------------------------------------------------------
# Part counts
# ---------------------------------------------------------------------------


class TestPartCountProperties:
    @given(
        file_size=st.integers(min_value=0, max_value=10**12),
        chunk_size=st.integers(min_value=1, max_value=10**9),
    )
    def test_parts_cover_file_exactly(self, file_size: int, chunk_size: int) -> None:
        n = estimate_part_count(file_size, chunk_size)
        assert n * chunk_size >= file_size
        assert (n - 1) * chunk_size < file_size or n == 0

    @given(
        file_size=st.integers(min_value=0, max_value=10**7),
        chunk_size=st.integers(min_value=1, max_value=10**6),
        extra=st.integers(min_value=-3, max_value=3),
    )
    @settings(max_examples=200)
    def test_precondition_requires_strictly_more(
        self, file_size: int, chunk_size: int, extra: int
    ) -> None:
        needed = estimate_part_count(file_size, chunk_size)
        count = max(needed + extra, 0)
        urls = ["https://s.test/p"] * count
        try:
            check_presigned_urls(urls, file_size, chunk_size)
        except InsufficientPresignedUrlsError:
            assert count <= needed
        else:
            assert count > needed


# ---------------------------------------------------------------------------
# Chunking
# ---------------------------------------------------------------------------


class TestChunkerProperties:
    @given(
        blocks=st.lists(st.binary(max_size=300), max_size=40),
        chunk_size=st.integers(min_value=1, max_value=256),
    )
    def test_cuts_are_exact_and_lossless(self, blocks: list[bytes], chunk_size: int) -> None:
        acc = ChunkAccumulator(chunk_size)
        chunks: list[bytes] = []
        for block in blocks:
            acc.add(block)
            while acc.ready:
                chunks.append(acc.take())
        tail = acc.take_tail()

        assert all(len(chunk) == chunk_size for chunk in chunks)
        assert len(tail) < chunk_size
        assert b"".join(chunks) + tail == b"".join(blocks)
        total = sum(len(b) for b in blocks)
        assert len(chunks) + (1 if tail else 0) == estimate_part_count(total, chunk_size)


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


class TestProgressProperties:
    @given(
        total=st.integers(min_value=1, max_value=10**6),
        steps=st.lists(st.integers(min_value=0, max_value=10**5), max_size=50),
    )
    def test_totals_monotone_and_clamped(self, total: int, steps: list[int]) -> None:
        events: list[ProgressEvent] = []
        tracker = ProgressTracker(total, events.append)
        for nbytes in steps:
            tracker.advance(ProgressPhase.READING, nbytes)
        running = [e.total for e in events]
        assert running == sorted(running)
        assert all(0 <= t <= 100 for t in running)
        assert all(e.value >= 0 for e in events)
        assert sum(e.value for e in events) == (running[-1] if running else 0)


# ---------------------------------------------------------------------------
# Redaction
# ---------------------------------------------------------------------------


class TestRedactionProperties:
    @given(signature=st.text(alphabet="abcdef0123456789", min_size=8, max_size=64))
    def test_signature_never_leaks(self, signature: str) -> None:
        url = f"https://bucket.s3.test/key?partNumber=1&X-Amz-Signature={signature}"
        assert signature not in redact_url(url)
