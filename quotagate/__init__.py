"""quotagate: request rate limiting for FastAPI services."""
