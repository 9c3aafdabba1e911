"""Turn limiter decisions into caller-facing outcomes.

``apply_rate_limit`` is the stateless gate used by both the middleware and
the ``require_rate_limit`` route dependency.
"""

import math
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Optional

from starlette.requests import Request

from quotagate.app.core.logging import get_log_context, get_logger
from quotagate.app.exceptions import RateLimitConfigError, RateLimitExceededError
from quotagate.app.middleware.rate_limit.identifier import get_client_identifier
from quotagate.app.middleware.rate_limit.limiter import RateLimiter
from quotagate.app.middleware.rate_limit.models import RateLimitOutcome

logger = get_logger(__name__)

RATE_LIMIT_EXCEEDED = "Rate limit exceeded"


async def apply_rate_limit(
    request: Request,
    limiter: RateLimiter,
    identifier: Optional[str] = None,
) -> RateLimitOutcome:
    """Check a request against limiter.

    Args:
        request: Incoming request, used to resolve the identifier
        limiter: Limiter to charge
        identifier: Explicit identifier overriding resolution from request

    Returns:
        RateLimitOutcome with remaining quota, or a retry hint when denied
    """
    client_id = identifier or get_client_identifier(request)
    decision = await limiter.is_allowed(client_id)

    if not decision.allowed:
        retry_after = max(0, math.ceil((decision.reset_time - limiter.now()) / 1000))
        logger.warning(
            "Rate limit exceeded",
            extra=get_log_context(
                request_id=getattr(request.state, "request_id", None),
                client_id=client_id,
                limiter=limiter.name,
                path=request.url.path,
                method=request.method,
                retry_after=retry_after,
            ),
        )
        return RateLimitOutcome(
            success=False,
            error=RATE_LIMIT_EXCEEDED,
            retry_after=retry_after,
        )

    return RateLimitOutcome(
        success=True,
        remaining=decision.remaining,
        reset_time=decision.reset_time,
    )


def _format_reset(reset_time_ms: int) -> str:
    return datetime.fromtimestamp(reset_time_ms / 1000, tz=timezone.utc).isoformat()


def rate_limit_headers(
    limit: int,
    outcome: RateLimitOutcome,
    now: int,
) -> Dict[str, str]:
    """Build X-RateLimit-* (and Retry-After on denial) response headers.

    Args:
        limit: Max requests per window for the limiter
        outcome: Gate outcome
        now: Current time in epoch milliseconds

    Returns:
        Header name to value mapping
    """
    if outcome.success:
        return {
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Remaining": str(outcome.remaining),
            "X-RateLimit-Reset": _format_reset(outcome.reset_time),
        }

    retry_after = outcome.retry_after or 0
    return {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": "0",
        "X-RateLimit-Reset": _format_reset(now + retry_after * 1000),
        "Retry-After": str(retry_after),
    }


def get_registry(request: Request):
    """Get the limiter registry attached to the application, if any."""
    return getattr(request.app.state, "rate_limiters", None)


async def enforce_rate_limit(request: Request, name: str) -> RateLimitOutcome:
    """Charge the named limiter and raise when the caller is over budget.

    Raises:
        RateLimitConfigError: No registry is attached or name is unknown
        RateLimitExceededError: When the caller has no quota left
    """
    registry = get_registry(request)
    if registry is None:
        raise RateLimitConfigError("No rate limiter registry attached to the application")
    limiter = registry.get(name)
    outcome = await apply_rate_limit(request, limiter)
    if not outcome.success:
        raise RateLimitExceededError(
            retry_after=outcome.retry_after,
            limit=limiter.config.max_requests,
            reset_time=limiter.now() + outcome.retry_after * 1000,
            limiter=name,
        )
    return outcome


def require_rate_limit(name: str) -> Callable[[Request], Awaitable[RateLimitOutcome]]:
    """FastAPI dependency factory charging the named limiter.

    Example:
        >>> @router.post("/login", dependencies=[Depends(require_rate_limit("auth"))])
        ... async def login(): ...
    """

    async def dependency(request: Request) -> RateLimitOutcome:
        return await enforce_rate_limit(request, name)

    return dependency
