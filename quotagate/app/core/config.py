from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - enables detailed error responses
    debug: bool = False

    # Redis connection URL. The first alias present wins; an empty value
    # keeps every limiter on the in-memory store.
    redis_url: str = Field(
        default="",
        validation_alias=AliasChoices("REDIS_URL", "KV_URL", "UPSTASH_REDIS_URL"),
    )

    @property
    def redis_enabled(self) -> bool:
        """True when a Redis connection URL is configured."""
        return bool(self.redis_url.strip())

    # Rate limiting settings
    rate_limit_redis_timeout: float = 2.0  # Seconds per Redis round trip before failing open
    rate_limit_sweep_interval_seconds: float = 60.0
    rate_limit_key_prefix: str = "ratelimit"

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    @field_validator("rate_limit_redis_timeout", "rate_limit_sweep_interval_seconds")
    @classmethod
    def validate_positive_seconds(cls, v: float) -> float:
        """Validate timing values are positive."""
        if v <= 0:
            raise ValueError("Rate limit timing values must be positive")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("text", "structured", "json"):
            raise ValueError("log_format must be one of: text, structured, json")
        return v

    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore", populate_by_name=True
    )


# Global settings instance
settings = Settings()
