"""
Unit tests for script argument building and reply decoding.
"""

import pytest

from bucket_limiter.errors import StoreError
from bucket_limiter.models import ConsumptionRequest, Denial
from bucket_limiter.protocol import (
    SCRIPT_PATH,
    build_invocation,
    decode_result,
    expire_seconds,
    get_storage_key,
    load_script_text,
)


class TestInvocation:
    """Test cases for build_invocation."""

    def test_keys_and_args_per_request(self):
        """Test each request contributes one key and five arguments."""
        requests = [
            ConsumptionRequest("a", 1, 5, 1),
            ConsumptionRequest("b", 60, 100, 3),
        ]

        keys, args = build_invocation(requests, 1234, "limiter")

        assert keys == ["limiter:a:1", "limiter:b:60"]
        assert args == [
            1000, 5, 1, 1234, 17,
            60000, 100, 3, 1234, 135,
        ]

    def test_custom_expiry(self):
        """Test expiry multiplier and padding flow into the arguments."""
        keys, args = build_invocation([ConsumptionRequest("a", 10, 5, 1)], 0, "p", 3, 60)

        assert keys == ["p:a:10"]
        assert args[-1] == 90

    def test_storage_key(self):
        """Test storage key layout."""
        assert get_storage_key("limiter", "user:42", 30) == "limiter:user:42:30"

    def test_expire_seconds_default(self):
        """Test default idle TTL formula."""
        assert expire_seconds(1) == 17
        assert expire_seconds(600) == 1215


class TestDecode:
    """Test cases for decode_result."""

    @pytest.fixture
    def requests(self):
        return [
            ConsumptionRequest("first", 1, 5, 1),
            ConsumptionRequest("second", 60, 10, 2),
        ]

    def test_sentinel_bytes(self, requests):
        """Test the admitted sentinel as returned without decode_responses."""
        assert decode_result([b"", 0, 0, 0, 0], requests, "limiter") is None

    def test_sentinel_str(self, requests):
        """Test the admitted sentinel as returned with decode_responses."""
        assert decode_result(["", 0, 0, 0, 0], requests, "limiter") is None

    def test_denial_maps_back_to_resource_key(self, requests):
        """Test the storage key in the reply resolves to the caller's key."""
        denial = decode_result([b"limiter:second:60", 60000, 10, 1, 1700000000000], requests, "limiter")

        assert denial == Denial(
            resource_key="second",
            interval=60,
            capacity=10,
            current_tokens=1,
            last_fill_at=1700000000000,
        )

    def test_unknown_key_falls_back_to_reply(self, requests):
        """Test a key not in the batch is reported verbatim."""
        denial = decode_result(["other:x:5", 5000, 3, 0, 7], requests, "limiter")

        assert denial.resource_key == "other:x:5"
        assert denial.interval == 5

    @pytest.mark.parametrize("reply", [
        None,
        b"OK",
        [b"", 0, 0, 0],
        [b"key", b"not-a-number", 0, 0, 0],
    ])
    def test_malformed_reply(self, requests, reply):
        """Test anything but a five element reply is a store error."""
        with pytest.raises(StoreError):
            decode_result(reply, requests, "limiter")


class TestScriptText:
    """Test cases for load_script_text."""

    def test_bundled_script(self):
        """Test the packaged Lua source is loaded."""
        text = load_script_text()

        assert text == SCRIPT_PATH.read_text(encoding="utf-8")
        assert "HINCRBY" in text

    def test_override(self):
        """Test an override replaces the bundled source."""
        assert load_script_text("return 1") == "return 1"
