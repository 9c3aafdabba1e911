"""Registry of named rate limiters owned by the application.

The registry picks the counter store once at construction: Redis when a
connection URL is configured, in-memory otherwise. It also owns the
background sweep that reclaims expired in-memory records.
"""

import asyncio
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

import redis.asyncio as aioredis

from quotagate.app.core.config import Settings
from quotagate.app.core.logging import get_logger
from quotagate.app.exceptions import RateLimitConfigError
from quotagate.app.middleware.rate_limit.backends import (
    InMemoryWindowStore,
    RedisWindowStore,
    WindowCounterStore,
)
from quotagate.app.middleware.rate_limit.limiter import RateLimiter, now_ms
from quotagate.app.middleware.rate_limit.models import RateLimitConfig

logger = get_logger(__name__)

API_LIMITER = "api"
AUTH_LIMITER = "auth"
VIDEO_PROCESSING_LIMITER = "video_processing"

DEFAULT_LIMITS: Dict[str, RateLimitConfig] = {
    API_LIMITER: RateLimitConfig(window_ms=15 * 60 * 1000, max_requests=100),
    AUTH_LIMITER: RateLimitConfig(window_ms=15 * 60 * 1000, max_requests=5),
    VIDEO_PROCESSING_LIMITER: RateLimitConfig(window_ms=60 * 60 * 1000, max_requests=50),
}


class RateLimiterRegistry:
    """Named limiters plus the lifecycle of their shared resources."""

    def __init__(
        self,
        limiters: Mapping[str, RateLimiter],
        backend: str = "memory",
        redis_client: Optional[Any] = None,
        sweep_interval: float = 60.0,
        owns_redis_client: bool = False,
    ):
        """Initialize the registry.

        Args:
            limiters: Limiters keyed by name
            backend: "memory" or "redis", for reporting
            redis_client: Shared Redis client, closed on stop() when owned
            sweep_interval: Seconds between sweeps of in-memory stores
            owns_redis_client: Whether stop() should close redis_client
        """
        self._limiters: Dict[str, RateLimiter] = dict(limiters)
        self.backend = backend
        self._redis = redis_client
        self._owns_redis_client = owns_redis_client
        self._sweep_interval = sweep_interval
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        limits: Mapping[str, RateLimitConfig] = DEFAULT_LIMITS,
        redis_client: Optional[Any] = None,
        clock: Callable[[], int] = now_ms,
    ) -> "RateLimiterRegistry":
        """Build one limiter per entry in limits.

        When Redis is configured (or a client is passed in) every limiter
        shares a single client; otherwise each gets its own in-memory store.
        """
        use_redis = redis_client is not None or settings.redis_enabled
        owns_client = False

        if use_redis and redis_client is None:
            redis_client = aioredis.from_url(
                settings.redis_url,
                socket_timeout=settings.rate_limit_redis_timeout,
                socket_connect_timeout=settings.rate_limit_redis_timeout,
            )
            owns_client = True

        limiters: Dict[str, RateLimiter] = {}
        for name, config in limits.items():
            store: WindowCounterStore
            if use_redis:
                store = RedisWindowStore(
                    redis_client,
                    key_prefix=f"{settings.rate_limit_key_prefix}:{name}",
                    timeout=settings.rate_limit_redis_timeout,
                )
            else:
                store = InMemoryWindowStore()
            limiters[name] = RateLimiter(config, store, name=name, clock=clock)

        backend = "redis" if use_redis else "memory"
        logger.info(f"Using {backend} rate limiter backend for: {', '.join(limiters)}")
        return cls(
            limiters,
            backend=backend,
            redis_client=redis_client,
            sweep_interval=settings.rate_limit_sweep_interval_seconds,
            owns_redis_client=owns_client,
        )

    def get(self, name: str) -> RateLimiter:
        try:
            return self._limiters[name]
        except KeyError:
            raise RateLimitConfigError(f"Unknown rate limiter: {name!r}") from None

    __getitem__ = get

    def __iter__(self) -> Iterator[RateLimiter]:
        return iter(self._limiters.values())

    def __len__(self) -> int:
        return len(self._limiters)

    def names(self) -> List[str]:
        return list(self._limiters)

    @property
    def running(self) -> bool:
        return self._task is not None

    async def sweep_all(self) -> int:
        """Sweep every limiter whose store needs it. Returns records removed."""
        removed = 0
        for limiter in self._limiters.values():
            if limiter.supports_sweep:
                removed += await limiter.sweep()
        return removed

    async def ping(self) -> bool:
        """Check the counter store is reachable."""
        # Redis-backed limiters share one client, so one round trip covers all
        if self.backend == "redis":
            first = next(iter(self._limiters.values()), None)
            return first is None or await first.store.ping()
        results = [await limiter.store.ping() for limiter in self._limiters.values()]
        return all(results)

    async def start(self) -> None:
        """Check Redis connectivity and start the sweep task if needed.

        Neither step raises: an unreachable Redis only causes fail-open
        decisions.
        """
        # Redis-backed limiters share one client, so one check covers all
        first = next(iter(self._limiters.values()), None)
        if first is not None:
            await first.store.connect()

        if not any(limiter.supports_sweep for limiter in self._limiters.values()):
            return
        if self._task is not None:
            logger.debug("Rate limit sweeper already running")
            return

        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_sweeps(), name="rate-limit-sweeper")
        logger.info(f"Started rate limit sweeper (interval: {self._sweep_interval}s)")

    async def stop(self) -> None:
        """Stop the sweep task and release the shared Redis client."""
        if self._task is not None:
            self._stop_event.set()
            try:
                await asyncio.wait_for(self._task, timeout=5.0)
            except asyncio.TimeoutError:
                logger.warning("Rate limit sweeper did not stop gracefully, cancelling")
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
            finally:
                self._task = None
                logger.info("Stopped rate limit sweeper")

        for limiter in self._limiters.values():
            await limiter.store.close()

        if self._owns_redis_client and self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def _run_sweeps(self) -> None:
        """Background task that periodically drops expired records."""
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self._sweep_interval
                )
            except asyncio.TimeoutError:
                # Normal case: interval elapsed
                pass
            if self._stop_event.is_set():
                break

            try:
                removed = await self.sweep_all()
                if removed:
                    logger.debug(f"Swept {removed} expired rate limit records")
            except Exception as e:
                logger.error(f"Error during rate limit sweep: {e}")
