"""Utility helpers for chunkput."""

from __future__ import annotations

from .chunk import estimate_part_count, percent_of, slack_part_count
from .redact import redact, redact_url

__all__ = [
    "estimate_part_count",
    "percent_of",
    "redact",
    "redact_url",
    "slack_part_count",
]
