"""
Asyncio flavour of the Redis token bucket limiter.
"""

from typing import Any, Callable, Optional, Sequence

import redis
import redis.asyncio as aioredis

from .config import DEFAULT_PREFIX, LimiterConfig
from .limiter import LAST_FILL_AT_FIELD, TOKENS_FIELD, _BucketClientMixin
from .metrics import LimiterMetrics
from .models import BucketState, ConsumptionRequest
from .protocol import DEFAULT_EXPIRE_MULTIPLIER, DEFAULT_EXPIRE_PADDING_SECONDS, load_script_text


class AsyncRedisLimiter(_BucketClientMixin):
    """Same contract as RedisLimiter, with coroutine methods."""

    def __init__(
        self,
        client: aioredis.Redis,
        prefix: str = DEFAULT_PREFIX,
        script: Optional[str] = None,
        clock: Optional[Callable[[], int]] = None,
        expire_multiplier: int = DEFAULT_EXPIRE_MULTIPLIER,
        expire_padding: int = DEFAULT_EXPIRE_PADDING_SECONDS,
        metrics: Optional[LimiterMetrics] = None,
    ):
        self._init_common(prefix, clock, expire_multiplier, expire_padding, metrics, "bucket_limiter.aioredis")
        self.client = client
        self._script = client.register_script(load_script_text(script))

    @classmethod
    def from_config(cls, config: LimiterConfig, **kwargs: Any) -> "AsyncRedisLimiter":
        """Build a limiter and its asyncio Redis client from configuration."""
        client = aioredis.Redis(
            host=config.host,
            port=config.port,
            db=config.db,
            password=config.password,
            socket_timeout=config.socket_timeout,
        )
        return cls(
            client,
            prefix=config.prefix,
            script=config.script,
            expire_multiplier=config.expire_multiplier,
            expire_padding=config.expire_padding_seconds,
            **kwargs,
        )

    async def get_token_count(self, resource_key: str, interval: int) -> Optional[int]:
        key = self.get_storage_key(resource_key, interval)
        try:
            return self._parse_int(await self.client.hget(key, TOKENS_FIELD))
        except (redis.RedisError, ValueError) as e:
            self._read_failed("get_token_count", key, e)
            return None

    async def get_bucket_state(self, resource_key: str, interval: int) -> Optional[BucketState]:
        key = self.get_storage_key(resource_key, interval)
        try:
            return self._parse_state(await self.client.hmget(key, TOKENS_FIELD, LAST_FILL_AT_FIELD))
        except (redis.RedisError, ValueError) as e:
            self._read_failed("get_bucket_state", key, e)
            return None

    async def consume(self, requests: Sequence[ConsumptionRequest]) -> None:
        requests, keys, args = self._prepare(requests)
        try:
            with self.metrics.time_store_call():
                raw = await self._script(keys=keys, args=args)
        except redis.RedisError as e:
            raise self._store_failed("consume", keys, e) from e
        self._finish(raw, requests)

    async def consume_one(self, resource_key: str, interval: int, capacity: int, n: int = 1) -> None:
        await self.consume([ConsumptionRequest(resource_key, interval, capacity, n)])

    async def reset(self, resource_key: str, interval: int) -> bool:
        key = self.get_storage_key(resource_key, interval)
        try:
            await self.client.delete(key)
        except redis.RedisError as e:
            self.logger.error("Limiter reset failed", key=key, error=str(e))
            return False
        self.logger.info("Bucket reset", key=key)
        return True

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except redis.RedisError as e:
            self.logger.warning("Limiter store ping failed", error=str(e))
            return False

    async def close(self) -> None:
        """Close the underlying client."""
        await self.client.aclose()
