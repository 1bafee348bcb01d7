"""
Application configuration using Pydantic Settings.
Loads configuration from environment variables with sensible defaults.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from jobqueue.constants import DEFAULT_LOCK_TTL_MS, DEFAULT_PREFIX


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Redis
    redis_url: str = "redis://localhost:6379/0"
    redis_socket_timeout_seconds: float = 5.0

    # Queue Configuration
    queue_prefix: str = DEFAULT_PREFIX
    queue_name: str = "default"
    lock_ttl_ms: int = DEFAULT_LOCK_TTL_MS

    # Worker Configuration
    worker_token: str | None = None
    worker_poll_interval_seconds: float = 1.0
    worker_batch_size: int = 10
    worker_heartbeat_interval_seconds: float | None = None  # defaults to half the lock TTL

    # Reaper Configuration
    reaper_interval_seconds: float = 10.0

    # Observability
    otel_exporter_otlp_endpoint: str | None = None
    otel_service_name: str = "redis-job-queue"
    prometheus_port: int | None = None
    log_level: str = "INFO"
    log_format: str = "json"  # json or console


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
