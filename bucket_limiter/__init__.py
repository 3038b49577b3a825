"""
Distributed token bucket rate limiter on a shared Redis.

- limiter: the Limiter contract and the synchronous RedisLimiter
- aio: AsyncRedisLimiter for asyncio callers
- builder: LimiterBuilder for optional-field construction
- protocol: argument/reply marshalling for the bundled Lua script
- config: LimiterConfig via pydantic-settings
- errors: BadArgument, Denied, StoreError and their base classes
- logging: structlog configuration
- metrics: Prometheus counters for consume outcomes
"""

from .aio import AsyncRedisLimiter
from .builder import LimiterBuilder
from .config import DEFAULT_DB, DEFAULT_HOST, DEFAULT_PORT, DEFAULT_PREFIX, LimiterConfig, get_config
from .errors import BadArgument, ConfigurationError, ConsumeError, Denied, LimiterException, StoreError
from .limiter import Limiter, RedisLimiter
from .metrics import LimiterMetrics
from .models import BucketState, ConsumptionRequest, Denial

__all__ = [
    "AsyncRedisLimiter",
    "BadArgument",
    "BucketState",
    "ConfigurationError",
    "ConsumeError",
    "ConsumptionRequest",
    "DEFAULT_DB",
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "DEFAULT_PREFIX",
    "Denial",
    "Denied",
    "Limiter",
    "LimiterBuilder",
    "LimiterConfig",
    "LimiterException",
    "LimiterMetrics",
    "RedisLimiter",
    "StoreError",
    "get_config",
]
