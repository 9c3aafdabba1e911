"""Middleware package for quotagate."""

from quotagate.app.middleware.rate_limit import RateLimitMiddleware
from quotagate.app.middleware.request_id import RequestIdMiddleware, get_request_id

__all__ = [
    "RateLimitMiddleware",
    "RequestIdMiddleware",
    "get_request_id",
]
