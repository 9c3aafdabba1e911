"""Custom exceptions for the quotagate application."""


class QuotagateException(Exception):
    """Base class for quotagate exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code for consistent HTTP response handling.
    """
    status_code: int = 500

    def __init__(self, message: str = "Quotagate error"):
        self.message = message
        super().__init__(message)


class RateLimitExceededError(QuotagateException):
    """Raised by route dependencies when a caller has used up its window.

    The limiter itself never raises; this is how a denial crosses into the
    FastAPI exception handlers. Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429

    def __init__(
        self,
        retry_after: int,
        limit: int,
        reset_time: int | None = None,
        limiter: str | None = None,
        detail: str = "Rate limit exceeded",
    ):
        self.retry_after = retry_after
        self.limit = limit
        self.reset_time = reset_time
        self.limiter = limiter
        super().__init__(detail)


class RateLimitConfigError(QuotagateException, ValueError):
    """Raised at construction time for an invalid limiter configuration.

    Covers non-positive window or request limits and unknown limiter names.
    """
    status_code = 500
