"""
Tests for LimiterConfig and LimiterBuilder.
"""

import pytest
import redis
from unittest.mock import MagicMock

from bucket_limiter import (
    AsyncRedisLimiter,
    ConfigurationError,
    DEFAULT_DB,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_PREFIX,
    LimiterBuilder,
    RedisLimiter,
    get_config,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep LIMITER_* variables from the host environment out of the tests."""
    for name in ("HOST", "PORT", "DB", "PREFIX", "SCRIPT", "PASSWORD"):
        monkeypatch.delenv(f"LIMITER_{name}", raising=False)


class TestLimiterConfig:
    """Test cases for LimiterConfig."""

    def test_defaults(self):
        """Test documented defaults."""
        config = get_config()

        assert config.host == DEFAULT_HOST == "localhost"
        assert config.port == DEFAULT_PORT == 6379
        assert config.db == DEFAULT_DB == 0
        assert config.prefix == DEFAULT_PREFIX == "limiter"
        assert config.script is None
        assert config.redis_url == "redis://localhost:6379/0"

    def test_environment(self, monkeypatch):
        """Test LIMITER_* variables are picked up."""
        monkeypatch.setenv("LIMITER_HOST", "redis.internal")
        monkeypatch.setenv("LIMITER_PORT", "6380")
        monkeypatch.setenv("LIMITER_PREFIX", "quota")

        config = get_config()

        assert config.host == "redis.internal"
        assert config.port == 6380
        assert config.prefix == "quota"

    def test_overrides_beat_environment(self, monkeypatch):
        """Test explicit values win over the environment."""
        monkeypatch.setenv("LIMITER_DB", "4")

        assert get_config(db=2).db == 2

    @pytest.mark.parametrize("overrides", [
        {"port": 0},
        {"port": 70000},
        {"db": -1},
        {"prefix": ""},
        {"prefix": "limiter:"},
        {"host": ""},
        {"expire_multiplier": 0},
    ])
    def test_invalid_values(self, overrides):
        """Test invalid settings raise ConfigurationError at construction."""
        with pytest.raises(ConfigurationError) as exc_info:
            get_config(**overrides)

        assert exc_info.value.code == "CONFIGURATION_ERROR"
        assert exc_info.value.details["errors"]


class TestLimiterBuilder:
    """Test cases for LimiterBuilder."""

    def test_explicit_client_wins(self):
        """Test a supplied client is used even when coordinates are set."""
        client = MagicMock()

        limiter = LimiterBuilder().client(client).host("elsewhere").port(1234).prefix("p").build()

        assert isinstance(limiter, RedisLimiter)
        assert limiter.client is client
        assert limiter.get_storage_key("k", 1) == "p:k:1"

    def test_coordinates_build_client(self):
        """Test host, port and db reach the redis client."""
        limiter = LimiterBuilder().host("cache.local").port(6390).db(3).build()

        kwargs = limiter.client.connection_pool.connection_kwargs
        assert isinstance(limiter.client, redis.Redis)
        assert (kwargs["host"], kwargs["port"], kwargs["db"]) == ("cache.local", 6390, 3)
        assert limiter.prefix == DEFAULT_PREFIX

    def test_script_and_expiry(self):
        """Test script override and expiry reach the limiter."""
        client = MagicMock()

        limiter = LimiterBuilder().client(client).script("return 1").expiry(3, 60).build()

        client.register_script.assert_called_once_with("return 1")
        assert (limiter.expire_multiplier, limiter.expire_padding) == (3, 60)

    def test_clock(self):
        """Test the clock is injected."""
        client = MagicMock()
        client.register_script.return_value.return_value = [b"", 0, 0, 0, 0]

        limiter = LimiterBuilder().client(client).clock(lambda: 42).build()
        limiter.consume_one("k", 1, 1)

        _, call_kwargs = client.register_script.return_value.call_args
        assert call_kwargs["args"][3] == 42

    def test_invalid_builder_values(self):
        """Test validation happens at build time."""
        with pytest.raises(ConfigurationError):
            LimiterBuilder().port(-5).build()

    def test_build_async(self):
        """Test the async limiter is built from coordinates."""
        limiter = LimiterBuilder().host("cache.local").build_async()

        assert isinstance(limiter, AsyncRedisLimiter)
        assert limiter.client.connection_pool.connection_kwargs["host"] == "cache.local"

    def test_default_limiter(self):
        """Test RedisLimiter.default targets localhost db 0."""
        limiter = RedisLimiter.default()

        kwargs = limiter.client.connection_pool.connection_kwargs
        assert (kwargs["host"], kwargs["port"], kwargs["db"]) == ("localhost", 6379, 0)
