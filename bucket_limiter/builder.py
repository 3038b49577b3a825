"""
Fluent construction of limiters.
"""

from typing import Any, Callable, Dict, Optional

from .aio import AsyncRedisLimiter
from .config import LimiterConfig, get_config
from .limiter import RedisLimiter
from .logging import get_logger
from .metrics import LimiterMetrics

_COORDINATES = ("host", "port", "db", "password")


class LimiterBuilder:
    """Collects optional settings and builds a limiter.

    Unset fields fall back to ``LIMITER_*`` environment variables and then to
    the defaults in ``bucket_limiter.config``. An explicit client always wins
    over host/port/db coordinates.
    """

    def __init__(self):
        self._settings: Dict[str, Any] = {}
        self._client: Any = None
        self._clock: Optional[Callable[[], int]] = None
        self._metrics: Optional[LimiterMetrics] = None
        self.logger = get_logger("bucket_limiter.builder")

    def client(self, client: Any) -> "LimiterBuilder":
        self._client = client
        return self

    def host(self, host: str) -> "LimiterBuilder":
        self._settings["host"] = host
        return self

    def port(self, port: int) -> "LimiterBuilder":
        self._settings["port"] = port
        return self

    def db(self, db: int) -> "LimiterBuilder":
        self._settings["db"] = db
        return self

    def password(self, password: str) -> "LimiterBuilder":
        self._settings["password"] = password
        return self

    def prefix(self, prefix: str) -> "LimiterBuilder":
        self._settings["prefix"] = prefix
        return self

    def script(self, script: str) -> "LimiterBuilder":
        self._settings["script"] = script
        return self

    def expiry(self, multiplier: int, padding_seconds: int) -> "LimiterBuilder":
        self._settings["expire_multiplier"] = multiplier
        self._settings["expire_padding_seconds"] = padding_seconds
        return self

    def clock(self, clock: Callable[[], int]) -> "LimiterBuilder":
        self._clock = clock
        return self

    def metrics(self, metrics: LimiterMetrics) -> "LimiterBuilder":
        self._metrics = metrics
        return self

    def config(self) -> LimiterConfig:
        """Validate and return the resolved configuration."""
        if self._client is not None:
            ignored = [name for name in _COORDINATES if name in self._settings]
            if ignored:
                self.logger.warning("Explicit client given, ignoring connection settings", ignored=ignored)
        return get_config(**self._settings)

    def _limiter_kwargs(self, config: LimiterConfig) -> Dict[str, Any]:
        return {
            "prefix": config.prefix,
            "script": config.script,
            "clock": self._clock,
            "expire_multiplier": config.expire_multiplier,
            "expire_padding": config.expire_padding_seconds,
            "metrics": self._metrics,
        }

    def build(self) -> RedisLimiter:
        """Build a synchronous limiter."""
        config = self.config()
        if self._client is not None:
            return RedisLimiter(self._client, **self._limiter_kwargs(config))
        return RedisLimiter.from_config(config, clock=self._clock, metrics=self._metrics)

    def build_async(self) -> AsyncRedisLimiter:
        """Build an asyncio limiter; an explicit client must be a redis.asyncio client."""
        config = self.config()
        if self._client is not None:
            return AsyncRedisLimiter(self._client, **self._limiter_kwargs(config))
        return AsyncRedisLimiter.from_config(config, clock=self._clock, metrics=self._metrics)
