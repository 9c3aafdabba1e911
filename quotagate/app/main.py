from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from quotagate.app.api.rate_limits import router as rate_limits_router
from quotagate.app.core.config import Settings, settings as default_settings
from quotagate.app.core.logging import get_logger, setup_logging
from quotagate.app.exceptions import RateLimitExceededError
from quotagate.app.middleware.rate_limit import (
    RateLimitMiddleware,
    RateLimiterRegistry,
    RateLimitOutcome,
    now_ms,
    rate_limit_headers,
)
from quotagate.app.middleware.request_id import RequestIdMiddleware


def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[RateLimiterRegistry] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use (defaults to the global settings)
        registry: Prebuilt limiter registry; built from settings on startup
            when omitted

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or default_settings
    setup_logging(settings)
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Build the limiter registry on startup and release it on shutdown."""
        limiters = (
            registry if registry is not None
            else RateLimiterRegistry.from_settings(settings)
        )
        await limiters.start()
        app.state.rate_limiters = limiters

        logger.info(
            "Application startup complete",
            extra={
                "rate_limit_backend": limiters.backend,
                "limiters": limiters.names(),
                "debug_mode": settings.debug,
            },
        )

        yield

        await limiters.stop()
        app.state.rate_limiters = None
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Quotagate",
        description="Request rate limiting with in-memory and Redis window counters",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    # Limiter checks are charged to the named limiter only, not also to "api"
    app.add_middleware(
        RateLimitMiddleware,
        path_prefixes=("/api",),
        exempt_prefixes=("/api/rate-limits/",),
    )
    app.add_middleware(RequestIdMiddleware)

    app.include_router(rate_limits_router)

    @app.exception_handler(RateLimitExceededError)
    async def rate_limit_exceeded_handler(
        request: Request, exc: RateLimitExceededError
    ) -> JSONResponse:
        outcome = RateLimitOutcome(
            success=False, error=exc.message, retry_after=exc.retry_after
        )
        # rate_limit_headers derives the reset from now + retry_after
        now = exc.reset_time - exc.retry_after * 1000 if exc.reset_time else now_ms()
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": "rate_limit_exceeded",
                "message": "Rate limit exceeded. Please try again later.",
                "limiter": exc.limiter,
                "retry_after": exc.retry_after,
            },
            headers=rate_limit_headers(exc.limit, outcome, now),
        )

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
        """Health check including the rate limit store."""
        health_status: dict[str, Any] = {"status": "ok", "components": {}}

        limiters = getattr(request.app.state, "rate_limiters", None)
        if limiters is None:
            health_status["status"] = "degraded"
            health_status["components"]["rate_limit"] = {"status": "not_started"}
            return health_status

        reachable = await limiters.ping()
        health_status["components"]["rate_limit"] = {
            "status": "ok" if reachable else "error",
            "backend": limiters.backend,
        }
        if not reachable:
            # Requests still flow: the Redis store fails open
            health_status["status"] = "degraded"
        return health_status

    return app


app = create_app()
