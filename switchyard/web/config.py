"""Configuration management for the Switchyard web service."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service settings loaded from environment variables (and ``.env``)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
        env_parse_none_str="",
    )

    # Redis
    redis_host: str = Field(default="localhost", alias="REDISHOST")
    redis_port: int = Field(default=6379, alias="REDISPORT")
    redis_user: str | None = Field(default=None, alias="REDISUSER")
    redis_password: SecretStr | None = Field(default=None, alias="REDISPASSWORD")
    redis_key_prefix: str = Field(default="switchyard:", alias="REDIS_KEY_PREFIX")

    # HTTP front door
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3000, alias="PORT")
    public_base_url: str = Field(
        default="http://localhost:3000",
        alias="RAILWAY_STATIC_URL",
        description="Base URL used in the startup banner",
    )

    # Downstream
    downstream_url: str | None = Field(
        default=None, alias="N8N_WEBHOOK_URL", description="URL every item is POSTed to"
    )
    downstream_timeout_seconds: float = Field(default=30.0, alias="DOWNSTREAM_TIMEOUT_SECONDS")

    # Dispatcher
    queue_backend: Literal["redis", "memory"] = Field(default="redis", alias="QUEUE_BACKEND")
    worker_count: int = Field(default=5, alias="WORKER_COUNT", ge=1)
    rebalance_interval_seconds: float = Field(
        default=3.0, alias="REBALANCE_INTERVAL_SECONDS", gt=0
    )
    request_timeout_seconds: float = Field(default=300.0, alias="REQUEST_TIMEOUT_SECONDS", gt=0)
    max_attempts: int = Field(default=3, alias="MAX_ATTEMPTS", ge=1)
    backoff_delay_ms: int = Field(default=2000, alias="BACKOFF_DELAY_MS", ge=0)
    keep_completed: int = Field(default=100, alias="KEEP_COMPLETED", ge=0)
    keep_failed: int = Field(default=50, alias="KEEP_FAILED", ge=0)
    stalled_interval_seconds: float = Field(
        default=30.0, alias="STALLED_INTERVAL_SECONDS", gt=0
    )
    lease_seconds: float = Field(default=60.0, alias="LEASE_SECONDS", gt=0)
    max_stalled_count: int = Field(default=1, alias="MAX_STALLED_COUNT", ge=0)
    max_pending_requests: int = Field(
        default=64,
        alias="MAX_PENDING_REQUESTS",
        ge=1,
        description="Webhook requests that may wait on an outcome at once",
    )

    # Application
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"Invalid log level: {v}. Must be one of {sorted(valid)}")
        return upper

    @field_validator("public_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            v = f"https://{v}"
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
