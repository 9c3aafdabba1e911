"""Fixed-budget rate limiter on top of a window counter store."""

import time
from typing import Callable, Optional

from quotagate.app.middleware.rate_limit.backends import WindowCounterStore
from quotagate.app.middleware.rate_limit.models import RateLimitConfig, RateLimitDecision


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class RateLimiter:
    """Named limiter pairing a config with the store that holds its counts.

    The limiter keeps no records itself; every check is a read-modify-write
    through the store.
    """

    def __init__(
        self,
        config: RateLimitConfig,
        store: WindowCounterStore,
        name: str = "default",
        clock: Callable[[], int] = now_ms,
    ):
        self.config = config
        self.store = store
        self.name = name
        self._clock = clock

    @property
    def supports_sweep(self) -> bool:
        return self.store.supports_sweep

    def now(self) -> int:
        return self._clock()

    async def is_allowed(self, identifier: str) -> RateLimitDecision:
        """Check if a request from identifier is allowed."""
        return await self.store.record_and_check(identifier, self.config, self._clock())

    async def sweep(self, now: Optional[int] = None) -> int:
        """Clean up expired entries."""
        return await self.store.sweep(self._clock() if now is None else now)

    def __repr__(self) -> str:
        return (
            f"RateLimiter(name={self.name!r}, window_ms={self.config.window_ms}, "
            f"max_requests={self.config.max_requests}, "
            f"store={type(self.store).__name__})"
        )
