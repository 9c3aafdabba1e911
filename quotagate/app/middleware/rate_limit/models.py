"""Rate limiting data models.

This module contains dataclasses for limiter configuration, per-identifier
window state and the results handed back to callers. All timestamps are
epoch milliseconds.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from quotagate.app.exceptions import RateLimitConfigError


@dataclass(frozen=True)
class RateLimitConfig:
    """Window size and request budget for one named limiter."""
    window_ms: int
    max_requests: int

    def __post_init__(self) -> None:
        if self.window_ms <= 0:
            raise RateLimitConfigError(f"window_ms must be positive, got {self.window_ms}")
        if self.max_requests <= 0:
            raise RateLimitConfigError(
                f"max_requests must be positive, got {self.max_requests}"
            )

    @property
    def window_seconds(self) -> int:
        """Window length rounded up to whole seconds (Redis expiry unit)."""
        return -(-self.window_ms // 1000)


@dataclass
class WindowRecord:
    """Request count for an identifier within its current window."""
    reset_time: int
    count: int = 1


@dataclass
class RateLimitDecision:
    """Result of a rate limit check."""
    allowed: bool
    remaining: int
    reset_time: int


@dataclass
class RateLimitOutcome:
    """Caller-facing verdict produced by the decision gate."""
    success: bool
    remaining: Optional[int] = None
    reset_time: Optional[int] = None
    error: Optional[str] = None
    retry_after: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}
