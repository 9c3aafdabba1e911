"""Client identification for rate limiting."""

from typing import Mapping, Optional

from starlette.requests import Request

FORWARDED_FOR_HEADER = "X-Forwarded-For"
REAL_IP_HEADER = "X-Real-IP"
USER_ID_HEADER = "X-User-Id"


def resolve_client_identifier(
    client_host: Optional[str], headers: Mapping[str, str]
) -> str:
    """Derive the rate limit identifier from request metadata.

    The base is the first non-empty of the peer address, the first entry of
    X-Forwarded-For, X-Real-IP, else "unknown". An X-User-Id header is
    appended as "<ip>:<user id>" so signed-in users get their own quota.

    Args:
        client_host: Peer address of the connection, if known
        headers: Request headers (a case-insensitive mapping for real requests)

    Returns:
        Identifier string
    """
    forwarded = (headers.get(FORWARDED_FOR_HEADER) or "").split(",")[0].strip()
    real_ip = (headers.get(REAL_IP_HEADER) or "").strip()
    ip = (client_host or "").strip() or forwarded or real_ip or "unknown"

    user_id = (headers.get(USER_ID_HEADER) or "").strip()
    return f"{ip}:{user_id}" if user_id else ip


def get_client_identifier(request: Request) -> str:
    """Get rate limit identifier for a Starlette/FastAPI request."""
    client_host = request.client.host if request.client else None
    return resolve_client_identifier(client_host, request.headers)
