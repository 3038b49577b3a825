"""
Shared fixtures for bucket limiter tests.
"""

import pytest
import fakeredis
from prometheus_client import CollectorRegistry

from bucket_limiter import LimiterMetrics, RedisLimiter

START_MS = 1_700_000_000_000


class FakeClock:
    """Settable millisecond clock."""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    """Clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def fake_server():
    """Isolated in-memory Redis server."""
    return fakeredis.FakeServer()


@pytest.fixture
def redis_client(fake_server):
    """Synchronous client on the fake server."""
    return fakeredis.FakeRedis(server=fake_server)


@pytest.fixture
def registry():
    """Private Prometheus registry."""
    return CollectorRegistry()


@pytest.fixture
def limiter(redis_client, clock, registry):
    """Limiter on the fake server with a controllable clock."""
    return RedisLimiter(redis_client, clock=clock, metrics=LimiterMetrics(registry))
