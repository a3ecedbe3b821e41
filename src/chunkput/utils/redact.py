"""Presigned-URL and payload redaction for safe logging.

A presigned URL is a bearer credential: anyone holding it may PUT to the
object until it expires.  Before a URL or a backend payload is written to
logs or debug dumps it must pass through :func:`redact_url` or
:func:`redact`.  The rules:

* **Signing query parameters** (``X-Amz-Signature``, ``X-Amz-Credential``,
  ``X-Amz-Security-Token``, ``Signature``, ``AWSAccessKeyId``, ...) keep
  their name but have their value replaced with ``<redacted>``.
* **Userinfo** (``user:password@host``) is replaced with ``<redacted>@``.
* **Sensitive keys** in dicts (``token``, ``secret``, ``password``, ...)
  are masked.
* **Bytes values** are replaced with ``<binary:N_bytes>``.
"""

from __future__ import annotations

import copy
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

# Query parameters (compared case-insensitively) that carry credentials.
_SENSITIVE_QUERY_PARAMS: frozenset[str] = frozenset({
    "x-amz-signature",
    "x-amz-credential",
    "x-amz-security-token",
    "x-goog-signature",
    "x-goog-credential",
    "signature",
    "awsaccesskeyid",
    "sig",
    "token",
})

# Substrings: if any of these appear in a key name (case-insensitive), the
# value is redacted.
_SENSITIVE_KEY_PATTERNS: frozenset[str] = frozenset({
    "token",
    "secret",
    "password",
    "credential",
    "authorization",
    "cookie",
    "private_key",
    "api_key",
    "api-key",
})

_REDACTED = "<redacted>"


def redact_url(url: str) -> str:
    """Return *url* with credential-bearing parts masked.

    Non-URL strings are returned unchanged.

    Examples
    --------
    >>> redact_url("https://b.s3.example.com/k?partNumber=1&X-Amz-Signature=abc")
    'https://b.s3.example.com/k?partNumber=1&X-Amz-Signature=%3Credacted%3E'
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.scheme or not parts.netloc:
        return url

    netloc = parts.netloc
    if "@" in netloc:
        netloc = f"{_REDACTED}@{netloc.rsplit('@', 1)[1]}"

    query = parts.query
    if query:
        pairs = parse_qsl(query, keep_blank_values=True)
        query = urlencode([
            (key, _REDACTED if key.lower() in _SENSITIVE_QUERY_PARAMS else value)
            for key, value in pairs
        ])

    return urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))


def _redact_value(value: Any) -> Any:
    """Redact a single value (recursive for dicts / lists)."""
    if isinstance(value, dict):
        return _redact_dict(value)
    if isinstance(value, list):
        return [_redact_value(item) for item in value]
    if isinstance(value, str):
        if value.startswith(("http://", "https://")):
            return redact_url(value)
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"<binary:{len(value)}_bytes>"
    return value


def _redact_dict(d: dict) -> dict:
    result: dict = {}
    for key, value in d.items():
        key_lower = key.lower() if isinstance(key, str) else ""
        if any(pat in key_lower for pat in _SENSITIVE_KEY_PATTERNS):
            result[key] = _REDACTED
        else:
            result[key] = _redact_value(value)
    return result


def redact(payload: dict) -> dict:
    """Return a deep copy of *payload* with sensitive data redacted.

    The original *payload* is never mutated.

    Examples
    --------
    >>> redact({"upload_id": "u-1", "api_key": "k"})
    {'upload_id': 'u-1', 'api_key': '<redacted>'}
    """
    safe = copy.deepcopy(payload)
    return _redact_dict(safe)
