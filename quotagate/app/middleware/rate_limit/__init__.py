"""Rate limiting for quotagate.

Named limiters count requests per client identifier in either an in-memory
or a Redis-backed window counter store. Redis failures fail open.
"""

# Re-export models
from quotagate.app.middleware.rate_limit.models import (
    RateLimitConfig,
    RateLimitDecision,
    RateLimitOutcome,
    WindowRecord,
)

# Re-export backends
from quotagate.app.middleware.rate_limit.backends import (
    InMemoryWindowStore,
    RedisWindowStore,
    WindowCounterStore,
)

from quotagate.app.middleware.rate_limit.limiter import RateLimiter, now_ms
from quotagate.app.middleware.rate_limit.identifier import (
    get_client_identifier,
    resolve_client_identifier,
)
from quotagate.app.middleware.rate_limit.registry import (
    API_LIMITER,
    AUTH_LIMITER,
    DEFAULT_LIMITS,
    VIDEO_PROCESSING_LIMITER,
    RateLimiterRegistry,
)
from quotagate.app.middleware.rate_limit.gate import (
    apply_rate_limit,
    enforce_rate_limit,
    rate_limit_headers,
    require_rate_limit,
)
from quotagate.app.middleware.rate_limit.middleware import RateLimitMiddleware

__all__ = [
    # Models
    "RateLimitConfig",
    "RateLimitDecision",
    "RateLimitOutcome",
    "WindowRecord",
    # Backends
    "WindowCounterStore",
    "InMemoryWindowStore",
    "RedisWindowStore",
    # Main classes
    "RateLimiter",
    "RateLimiterRegistry",
    "RateLimitMiddleware",
    "DEFAULT_LIMITS",
    "API_LIMITER",
    "AUTH_LIMITER",
    "VIDEO_PROCESSING_LIMITER",
    # Helpers
    "now_ms",
    "resolve_client_identifier",
    "get_client_identifier",
    "apply_rate_limit",
    "enforce_rate_limit",
    "rate_limit_headers",
    "require_rate_limit",
]
