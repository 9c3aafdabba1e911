"""Starlette middleware applying a named limiter to a set of path prefixes."""

from typing import Iterable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from quotagate.app.middleware.rate_limit.gate import (
    apply_rate_limit,
    get_registry,
    rate_limit_headers,
)
from quotagate.app.middleware.rate_limit.registry import API_LIMITER


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce rate limits on requests.

    The limiter is looked up on ``app.state.rate_limiters`` per request, so
    the registry can be created in the application lifespan after the
    middleware stack is built. Requests pass through untouched when no
    registry is attached.
    """

    def __init__(
        self,
        app,
        limiter_name: str = API_LIMITER,
        path_prefixes: Iterable[str] = ("/api",),
        exempt_paths: Iterable[str] = ("/health",),
        exempt_prefixes: Iterable[str] = (),
    ):
        super().__init__(app)
        self.limiter_name = limiter_name
        self.path_prefixes = tuple(path_prefixes)
        self.exempt_paths = frozenset(exempt_paths)
        self.exempt_prefixes = tuple(exempt_prefixes)

    def _applies_to(self, path: str) -> bool:
        if path in self.exempt_paths:
            return False
        if any(path.startswith(prefix) for prefix in self.exempt_prefixes):
            return False
        return any(path.startswith(prefix) for prefix in self.path_prefixes)

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request with rate limiting."""
        registry = get_registry(request)
        if registry is None or not self._applies_to(request.url.path):
            return await call_next(request)

        limiter = registry.get(self.limiter_name)
        outcome = await apply_rate_limit(request, limiter)
        headers = rate_limit_headers(limiter.config.max_requests, outcome, limiter.now())

        if not outcome.success:
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": "Rate limit exceeded. Please try again later.",
                    "retry_after": outcome.retry_after,
                },
                headers=headers,
            )

        response = await call_next(request)
        # Keep headers set by a route-level limiter
        for name, value in headers.items():
            response.headers.setdefault(name, value)
        return response
