"""Tests for utility functions.

Tests for: estimate_part_count, slack_part_count, percent_of, redact_url, redact.
"""

import pytest

from chunkput.utils.chunk import estimate_part_count, percent_of, slack_part_count
from chunkput.utils.redact import redact, redact_url

# =========================================================================
# Part-count arithmetic
# =========================================================================

class TestPartCounts:
    def test_exact_multiple(self):
        assert estimate_part_count(10 * 1024 * 1024, 2 * 1024 * 1024) == 5

    def test_remainder_rounds_up(self):
        assert estimate_part_count(2049, 1024) == 3

    def test_zero_size(self):
        assert estimate_part_count(0, 1024) == 0

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError, match="chunk_size must be >= 1"):
            estimate_part_count(10, 0)

    def test_negative_size(self):
        with pytest.raises(ValueError, match="file_size must be >= 0"):
            estimate_part_count(-1, 10)

    def test_slack(self):
        assert slack_part_count(10, 5) == 3


class TestPercentOf:
    def test_rounds_up(self):
        assert percent_of(1, 3) == 34

    def test_whole(self):
        assert percent_of(7, 7) == 100

    def test_zero_whole(self):
        assert percent_of(0, 0) == 100


# =========================================================================
# Redaction
# =========================================================================

class TestRedactUrl:
    def test_signature_masked(self):
        url = (
            "https://bucket.s3.amazonaws.com/key?partNumber=2&uploadId=abc"
            "&X-Amz-Credential=AKIA%2F20260101&X-Amz-Signature=deadbeef"
        )
        safe = redact_url(url)
        assert "deadbeef" not in safe
        assert "AKIA" not in safe
        assert "partNumber=2" in safe
        assert "uploadId=abc" in safe

    def test_case_insensitive(self):
        assert "s3cr3t" not in redact_url("https://h/k?signature=s3cr3t")

    def test_userinfo(self):
        assert redact_url("http://u:p@proxy:3128") == "http://<redacted>@proxy:3128"

    def test_non_url_unchanged(self):
        assert redact_url("not a url") == "not a url"

    def test_no_query(self):
        assert redact_url("https://h/path") == "https://h/path"


class TestRedact:
    def test_sensitive_keys(self):
        result = redact({"api_key": "k", "Authorization": "Bearer x", "upload_id": "u"})
        assert result == {"api_key": "<redacted>", "Authorization": "<redacted>", "upload_id": "u"}

    def test_nested_urls_and_bytes(self):
        payload = {
            "url": "https://h/k?X-Amz-Signature=zzz",
            "parts": [{"body": b"12345"}],
        }
        result = redact(payload)
        assert "zzz" not in result["url"]
        assert result["parts"][0]["body"] == "<binary:5_bytes>"

    def test_input_not_mutated(self):
        payload = {"token": "t", "inner": {"secret": "s"}}
        redact(payload)
        assert payload == {"token": "t", "inner": {"secret": "s"}}
