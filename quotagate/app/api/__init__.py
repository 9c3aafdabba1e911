"""API endpoints package for quotagate."""

from quotagate.app.api.rate_limits import router as rate_limits_router

__all__ = [
    "rate_limits_router",
]
