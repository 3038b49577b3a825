"""
Distributed token bucket limiter backed by Redis.

All admission decisions are made by a single Lua script executed atomically
by Redis, so any number of processes can share buckets without coordinating
with each other. The client only validates requests, captures the timestamp
for the batch and turns the script reply into ``None`` or a ``Denied`` error.
"""

import time
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Sequence

import redis

from .config import DEFAULT_PREFIX, LimiterConfig, get_config
from .errors import BadArgument, ConfigurationError, Denied, StoreError
from .logging import get_logger
from .metrics import (
    LimiterMetrics,
    OUTCOME_ADMITTED,
    OUTCOME_BAD_ARGUMENT,
    OUTCOME_DENIED,
    OUTCOME_STORE_ERROR,
)
from .models import BucketState, ConsumptionRequest
from .protocol import (
    DEFAULT_EXPIRE_MULTIPLIER,
    DEFAULT_EXPIRE_PADDING_SECONDS,
    build_invocation,
    decode_result,
    get_storage_key,
    load_script_text,
)

TOKENS_FIELD = "tokens"
LAST_FILL_AT_FIELD = "last_fill_at"


def now_ms() -> int:
    """Milliseconds since the epoch."""
    return int(time.time() * 1000)


class Limiter(ABC):
    """Admission control over named token buckets."""

    @abstractmethod
    def get_storage_key(self, resource_key: str, interval: int) -> str:
        """Storage key addressing the bucket of ``(resource_key, interval)``."""

    @abstractmethod
    def get_token_count(self, resource_key: str, interval: int) -> Optional[int]:
        """Tokens currently stored for a bucket, or None if it does not exist.

        This is a plain read: it does not refill the bucket.
        """

    @abstractmethod
    def consume(self, requests: Sequence[ConsumptionRequest]) -> None:
        """Take tokens from every bucket in ``requests`` or from none of them.

        Raises:
            BadArgument: a request is invalid; nothing was sent to the store.
            Denied: a bucket did not have enough tokens.
            StoreError: the store call failed.
        """

    def consume_one(self, resource_key: str, interval: int, capacity: int, n: int = 1) -> None:
        """Consume ``n`` tokens from a single bucket."""
        self.consume([ConsumptionRequest(resource_key, interval, capacity, n)])


class _BucketClientMixin:
    """Request preparation and reply handling shared by sync and async clients."""

    prefix: str
    expire_multiplier: int
    expire_padding: int
    metrics: LimiterMetrics

    def _init_common(
        self,
        prefix: str,
        clock: Optional[Callable[[], int]],
        expire_multiplier: int,
        expire_padding: int,
        metrics: Optional[LimiterMetrics],
        logger_name: str,
    ) -> None:
        if not prefix:
            raise ConfigurationError("prefix must be a non-empty string", details={"prefix": prefix})
        self.prefix = prefix
        self.clock = clock or now_ms
        self.expire_multiplier = expire_multiplier
        self.expire_padding = expire_padding
        self.metrics = metrics or LimiterMetrics()
        self.logger = get_logger(logger_name)

    def get_storage_key(self, resource_key: str, interval: int) -> str:
        return get_storage_key(self.prefix, resource_key, interval)

    def _prepare(self, requests: Sequence[ConsumptionRequest]):
        """Validate the batch and build the script invocation."""
        requests = list(requests)
        try:
            if not requests:
                raise BadArgument("requests must contain at least one request")
            for request in requests:
                request.validate()
        except BadArgument:
            self.metrics.record_outcome(OUTCOME_BAD_ARGUMENT)
            raise

        keys, args = build_invocation(
            requests,
            self.clock(),
            self.prefix,
            self.expire_multiplier,
            self.expire_padding,
        )
        return requests, keys, args

    def _store_failed(self, operation: str, keys: List[str], error: Exception) -> StoreError:
        self.metrics.record_outcome(OUTCOME_STORE_ERROR)
        self.logger.error("Limiter store call failed", operation=operation, keys=keys, error=str(error))
        return StoreError(f"{operation} failed: {error}", cause=error, details={"keys": keys})

    def _finish(self, raw: Any, requests: List[ConsumptionRequest]) -> None:
        try:
            denial = decode_result(raw, requests, self.prefix)
        except StoreError:
            self.metrics.record_outcome(OUTCOME_STORE_ERROR)
            self.logger.error("Limiter script returned an unexpected reply", reply=repr(raw))
            raise

        if denial is None:
            self.metrics.record_outcome(OUTCOME_ADMITTED)
            self.logger.debug("Tokens consumed", resources=[r.resource_key for r in requests])
            return

        self.metrics.record_outcome(OUTCOME_DENIED)
        self.logger.info(
            "Tokens denied",
            resource_key=denial.resource_key,
            interval=denial.interval,
            capacity=denial.capacity,
            current_tokens=denial.current_tokens,
            last_fill_at=denial.last_fill_at,
        )
        raise Denied(denial)

    @staticmethod
    def _parse_int(value: Any) -> Optional[int]:
        if value is None:
            return None
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return int(value)

    def _parse_state(self, values: Sequence[Any]) -> Optional[BucketState]:
        tokens, last_fill_at = (self._parse_int(value) for value in values)
        if tokens is None or last_fill_at is None:
            return None
        return BucketState(tokens=tokens, last_fill_at=last_fill_at)

    def _read_failed(self, operation: str, key: str, error: Exception) -> None:
        self.metrics.record_read_error(operation)
        self.logger.error("Limiter read failed", operation=operation, key=key, error=str(error))


class RedisLimiter(_BucketClientMixin, Limiter):
    """Token bucket limiter over a synchronous Redis client.

    The instance holds no mutable state besides the client, so it can be shared
    between threads as long as the client is (redis-py clients pool their
    connections and are thread-safe).
    """

    def __init__(
        self,
        client: redis.Redis,
        prefix: str = DEFAULT_PREFIX,
        script: Optional[str] = None,
        clock: Optional[Callable[[], int]] = None,
        expire_multiplier: int = DEFAULT_EXPIRE_MULTIPLIER,
        expire_padding: int = DEFAULT_EXPIRE_PADDING_SECONDS,
        metrics: Optional[LimiterMetrics] = None,
    ):
        self._init_common(prefix, clock, expire_multiplier, expire_padding, metrics, "bucket_limiter.redis")
        self.client = client
        self._script = client.register_script(load_script_text(script))

    @classmethod
    def from_client(cls, client: redis.Redis, **kwargs: Any) -> "RedisLimiter":
        """Build a limiter around an existing client."""
        return cls(client, **kwargs)

    @classmethod
    def from_config(cls, config: LimiterConfig, **kwargs: Any) -> "RedisLimiter":
        """Build a limiter and its Redis client from configuration."""
        client = redis.Redis(
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

    @classmethod
    def default(cls) -> "RedisLimiter":
        """Limiter on localhost, default port, database 0."""
        return cls.from_config(get_config())

    def get_token_count(self, resource_key: str, interval: int) -> Optional[int]:
        key = self.get_storage_key(resource_key, interval)
        try:
            return self._parse_int(self.client.hget(key, TOKENS_FIELD))
        except (redis.RedisError, ValueError) as e:
            self._read_failed("get_token_count", key, e)
            return None

    def get_bucket_state(self, resource_key: str, interval: int) -> Optional[BucketState]:
        """Both persisted fields of a bucket, or None if it does not exist."""
        key = self.get_storage_key(resource_key, interval)
        try:
            return self._parse_state(self.client.hmget(key, TOKENS_FIELD, LAST_FILL_AT_FIELD))
        except (redis.RedisError, ValueError) as e:
            self._read_failed("get_bucket_state", key, e)
            return None

    def consume(self, requests: Sequence[ConsumptionRequest]) -> None:
        requests, keys, args = self._prepare(requests)
        try:
            with self.metrics.time_store_call():
                raw = self._script(keys=keys, args=args)
        except redis.RedisError as e:
            raise self._store_failed("consume", keys, e) from e
        self._finish(raw, requests)

    def reset(self, resource_key: str, interval: int) -> bool:
        """Delete a bucket so the next consumption starts from full capacity."""
        key = self.get_storage_key(resource_key, interval)
        try:
            self.client.delete(key)
        except redis.RedisError as e:
            self.logger.error("Limiter reset failed", key=key, error=str(e))
            return False
        self.logger.info("Bucket reset", key=key)
        return True

    def ping(self) -> bool:
        """Whether the store answers."""
        try:
            return bool(self.client.ping())
        except redis.RedisError as e:
            self.logger.warning("Limiter store ping failed", error=str(e))
            return False
