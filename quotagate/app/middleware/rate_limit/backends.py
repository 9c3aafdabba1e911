"""Window counter stores for the rate limiter.

Two interchangeable stores hold the per-identifier window state:

* ``InMemoryWindowStore`` keeps records in a process-local dict. Each
  window is anchored at the first request seen for an identifier.
* ``RedisWindowStore`` keeps one counter per identifier per fixed,
  epoch-aligned window in Redis so several processes share quota. Key
  expiry is the window reset.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import redis

from quotagate.app.core.logging import get_logger
from quotagate.app.middleware.rate_limit.models import (
    RateLimitConfig,
    RateLimitDecision,
    WindowRecord,
)

logger = get_logger(__name__)


class WindowCounterStore(ABC):
    """Abstract base class for window counter stores."""

    # Whether expired records linger and need a periodic sweep
    supports_sweep: bool = False

    @abstractmethod
    async def record_and_check(
        self, identifier: str, config: RateLimitConfig, now: int
    ) -> RateLimitDecision:
        """Count a request for identifier and decide whether it may proceed.

        Args:
            identifier: Client identifier (IP, optionally with user id)
            config: Window size and request budget
            now: Current time in epoch milliseconds

        Returns:
            RateLimitDecision for this request
        """
        pass

    async def sweep(self, now: int) -> int:
        """Drop expired records. Returns the number removed."""
        return 0

    async def connect(self) -> bool:
        """Establish or verify connectivity at startup. Must not raise."""
        return True

    async def ping(self) -> bool:
        """Report whether the store is reachable."""
        return True

    async def close(self) -> None:
        """Release any resources held by the store."""
        pass


class InMemoryWindowStore(WindowCounterStore):
    """In-memory window counter store.

    Suitable for single-instance deployments; counts are lost on restart.
    ``record_and_check`` never awaits, so under asyncio the read-modify-write
    of a record cannot interleave with another request for the same key.
    """

    supports_sweep = True

    def __init__(self) -> None:
        self._records: Dict[str, WindowRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def get_record(self, identifier: str) -> Optional[WindowRecord]:
        return self._records.get(identifier)

    async def record_and_check(
        self, identifier: str, config: RateLimitConfig, now: int
    ) -> RateLimitDecision:
        record = self._records.get(identifier)

        # Start a new window if none exists or the previous one has elapsed
        if record is None or now > record.reset_time:
            record = WindowRecord(reset_time=now + config.window_ms)
            self._records[identifier] = record
            return RateLimitDecision(
                allowed=True,
                remaining=config.max_requests - 1,
                reset_time=record.reset_time,
            )

        # Denials do not consume quota
        if record.count >= config.max_requests:
            return RateLimitDecision(
                allowed=False,
                remaining=0,
                reset_time=record.reset_time,
            )

        record.count += 1
        return RateLimitDecision(
            allowed=True,
            remaining=config.max_requests - record.count,
            reset_time=record.reset_time,
        )

    async def sweep(self, now: int) -> int:
        expired = [
            key for key, record in self._records.items()
            if record.reset_time < now
        ]
        for key in expired:
            del self._records[key]
        return len(expired)


class RedisWindowStore(WindowCounterStore):
    """Redis-based distributed window counter store.

    Uses a transactional INCR/EXPIRE NX/TTL pipeline on a key per identifier
    per fixed window (EXPIRE NX needs Redis 7+). Any Redis failure fails
    open: the request is allowed and the error logged.
    """

    def __init__(
        self,
        redis_client: Any,
        key_prefix: str = "ratelimit",
        timeout: float = 2.0,
        owns_client: bool = False,
    ):
        """Initialize Redis window store.

        No I/O happens here; a bad URL or an unreachable server only shows up
        as fail-open decisions until Redis is reachable again.

        Args:
            redis_client: redis.asyncio client instance
            key_prefix: Namespace for keys, usually "ratelimit:<limiter>"
            timeout: Seconds allowed for one check before failing open
            owns_client: Close the client in close()
        """
        self._redis = redis_client
        self.key_prefix = key_prefix
        self.timeout = timeout
        self._owns_client = owns_client

    def window_key(self, identifier: str, config: RateLimitConfig, now: int) -> str:
        return f"{self.key_prefix}:{identifier}:{now // config.window_ms}"

    async def record_and_check(
        self, identifier: str, config: RateLimitConfig, now: int
    ) -> RateLimitDecision:
        key = self.window_key(identifier, config, now)
        try:
            count, ttl = await asyncio.wait_for(
                self._increment(key, config), timeout=self.timeout
            )
        except redis.ConnectionError as e:
            logger.error(f"Redis connection failed: {e}")
            return self._fail_open(config, now, "connection_error")
        except (redis.TimeoutError, asyncio.TimeoutError) as e:
            logger.warning(f"Redis timeout: {e!r}")
            return self._fail_open(config, now, "timeout")
        except redis.RedisError as e:
            logger.error(f"Redis error: {e}")
            return self._fail_open(config, now, "redis_error")
        except Exception as e:
            logger.exception(f"Unexpected rate limit error: {e}")
            return self._fail_open(config, now, "unexpected")

        reset_time = now + ttl * 1000 if ttl >= 0 else now + config.window_ms
        return RateLimitDecision(
            allowed=count <= config.max_requests,
            remaining=max(0, config.max_requests - count),
            reset_time=reset_time,
        )

    async def _increment(self, key: str, config: RateLimitConfig) -> tuple[int, int]:
        # MULTI/EXEC so the counter never exists without an expiry. EXPIRE NX
        # only sets a TTL on a key that has none, leaving the window end fixed.
        pipe = self._redis.pipeline(transaction=True)
        pipe.incr(key)
        pipe.expire(key, config.window_seconds, nx=True)
        pipe.ttl(key)
        count, _, ttl = await pipe.execute()
        return int(count), int(ttl)

    def _fail_open(
        self, config: RateLimitConfig, now: int, error_type: str
    ) -> RateLimitDecision:
        logger.warning(
            f"Rate limiting fail-open triggered due to {error_type}. "
            "Request allowed without rate limit check."
        )
        return RateLimitDecision(
            allowed=True,
            remaining=config.max_requests - 1,
            reset_time=now + config.window_ms,
        )

    async def connect(self) -> bool:
        """Verify connectivity once at startup. Never raises."""
        connected = await self.ping()
        if connected:
            logger.info("Connected to Redis rate limit store")
        else:
            logger.warning(
                "Redis rate limit store unreachable at startup; "
                "requests will fail open until it recovers"
            )
        return connected

    async def ping(self) -> bool:
        try:
            return bool(
                await asyncio.wait_for(self._redis.ping(), timeout=self.timeout)
            )
        except Exception as e:
            logger.debug(f"Redis ping failed: {e!r}")
            return False

    async def close(self) -> None:
        """Close the Redis connection if this store created it."""
        if self._owns_client and self._redis is not None:
            # Use aclose() for proper async cleanup in redis-py 5.0+
            await self._redis.aclose()
            self._redis = None
