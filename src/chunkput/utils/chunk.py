"""Part-count arithmetic shared by the orchestrator and the URL provider.

A multipart upload needs one presigned URL per part.  Compressing the
stream can make it *larger* than the source (container headers on already
compressed data), so URL providers are asked for one spare part and the
orchestrator insists on strictly more URLs than the uncompressed estimate.
"""

from __future__ import annotations


def estimate_part_count(file_size: int, chunk_size: int) -> int:
    """Return ``ceil(file_size / chunk_size)``.

    Parameters
    ----------
    file_size:
        Source size in bytes.  ``0`` yields ``0`` parts.
    chunk_size:
        Part size in bytes.

    Raises
    ------
    ValueError
        If *chunk_size* is less than 1 or *file_size* is negative.

    Examples
    --------
    >>> estimate_part_count(10 * 1024 * 1024, 2 * 1024 * 1024)
    5
    >>> estimate_part_count(1, 2 * 1024 * 1024)
    1
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
    if file_size < 0:
        raise ValueError(f"file_size must be >= 0, got {file_size}")
    return -(-file_size // chunk_size)


def slack_part_count(file_size: int, chunk_size: int) -> int:
    """Number of URLs to request for a compressed multipart upload.

    One more than :func:`estimate_part_count`.
    """
    return estimate_part_count(file_size, chunk_size) + 1


def percent_of(part: int, whole: int) -> int:
    """Return ``ceil(part * 100 / whole)``; ``100`` when *whole* is ``0``."""
    if whole <= 0:
        return 100
    return -(-part * 100 // whole)
