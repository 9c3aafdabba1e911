"""Rate limit inspection endpoints.

``GET /api/rate-limits`` lists the configured limiters. ``POST
/api/rate-limits/{name}/check`` charges only the named limiter for the caller,
which is how clients and operators try a limiter without hitting a real
endpoint.
"""

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from quotagate.app.exceptions import RateLimitConfigError
from quotagate.app.middleware.rate_limit import get_client_identifier
from quotagate.app.middleware.rate_limit.gate import enforce_rate_limit, get_registry

router = APIRouter(prefix="/api/rate-limits", tags=["rate-limits"])


def _get_registry(request: Request):
    registry = get_registry(request)
    if registry is None:
        raise RateLimitConfigError("No rate limiter registry attached to the application")
    return registry


@router.get("")
async def list_rate_limits(request: Request) -> dict[str, Any]:
    """List named limiters with their window, budget and backend."""
    registry = _get_registry(request)
    return {
        "backend": registry.backend,
        "limiters": {
            limiter.name: {
                "window_ms": limiter.config.window_ms,
                "max_requests": limiter.config.max_requests,
            }
            for limiter in registry
        },
    }


@router.post("/{name}/check")
async def check_rate_limit(name: str, request: Request) -> dict[str, Any]:
    """Charge the named limiter for the calling client."""
    if name not in _get_registry(request).names():
        raise HTTPException(status_code=404, detail=f"Unknown rate limiter: {name}")

    outcome = await enforce_rate_limit(request, name)
    return {
        "limiter": name,
        "identifier": get_client_identifier(request),
        **outcome.to_dict(),
    }
