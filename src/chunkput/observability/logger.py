"""Structured JSON logger for chunkput.

Each log record is emitted as a single-line JSON object::

    {"ts": "2026-10-18T12:00:00.123+00:00", "level": "WARNING",
     "logger": "chunkput.transfer", "message": "Chunk transfer failed",
     "op": "put_chunk", "part_no": 3, "attempt": 2, "kind": "timeout",
     "url": "https://s3.test/k?partNumber=3&X-Amz-Signature=%3Credacted%3E"}

Usage::

    from chunkput.observability import get_logger

    log = get_logger("chunkput.multipart")
    log.info("upload complete", extra={"extra_fields": {"upload_id": "u-1"}})

Presigned URLs carry credentials in their query string.  Fields named
``url`` or ending in ``_url`` are masked with
:func:`chunkput.utils.redact.redact_url` when the record is formatted, so
call sites may pass raw URLs.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from chunkput.utils.redact import redact_url


def _is_url_field(key: str) -> bool:
    return key == "url" or key.endswith("_url")


def _scrub_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Return *fields* with every URL-named string value redacted."""
    return {
        key: redact_url(value) if isinstance(value, str) and _is_url_field(key) else value
        for key, value in fields.items()
    }


class StructuredFormatter(logging.Formatter):
    """Render a record as one JSON line.

    ``ts`` is the record's creation time in UTC with millisecond precision.
    Fields from ``extra={"extra_fields": {...}}`` are merged after the
    fixed keys and cannot overwrite them; URL-named fields are redacted.
    """

    RESERVED = ("ts", "level", "logger", "message")

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = dict(
            zip(
                self.RESERVED,
                (
                    created.isoformat(timespec="milliseconds"),
                    record.levelname,
                    record.name,
                    record.getMessage(),
                ),
            )
        )

        fields = getattr(record, "extra_fields", None) or {}
        for key, value in _scrub_fields(fields).items():
            entry.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(entry, default=str)


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"unknown log level {level!r}")
    return resolved


def get_logger(
    name: str = "chunkput",
    *,
    level: int | str = logging.DEBUG,
    stream: Any | None = None,
) -> logging.Logger:
    """Return the chunkput logger *name*, attaching a JSON handler once.

    Parameters
    ----------
    name:
        Logger name.  Defaults to ``"chunkput"``.
    level:
        Minimum log level, as an ``int`` or a case-insensitive string.
    stream:
        Output stream for the handler.  Defaults to ``sys.stderr``.

    Raises
    ------
    ValueError
        If *level* is a string that names no log level.
    """
    logger = logging.getLogger(name)
    if any(isinstance(h.formatter, StructuredFormatter) for h in logger.handlers):
        return logger

    logger.setLevel(_resolve_level(level))
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    return logger
