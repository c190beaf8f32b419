"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Gateway settings with defaults for local development."""

    # Identity of this process in the fleet (Kubernetes injects POD_NAME)
    pod_name: str = "local-pod"

    # Environment
    environment: str = "development"
    debug: bool = True

    # HTTP server
    gateway_port: int = Field(default=3000, validation_alias="PORT")

    # Comma-separated list of allowed origins (empty allows any origin)
    allowed_origins: str = ""

    # Redis broadcast bus
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_channel: str = "events-to-store"
    redis_socket_timeout: int = 5  # Socket timeout in seconds (connect and read/write)
    # Reconnect policy: delay = min(attempt * step, max_delay), gives up after max attempts
    redis_max_reconnect_attempts: int = 10
    redis_reconnect_step: float = 0.1
    redis_max_reconnect_delay: float = 2.0
    redis_pubsub_cleanup_timeout: float = 5.0  # Timeout for unsubscribe/close on shutdown

    # SSE connections
    sse_heartbeat_interval: float = 30.0  # Seconds between keepalive comments
    sse_transport_buffer_size: int = 100  # Frames buffered per client before writes are refused

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        populate_by_name = True

    def validate_production_settings(self) -> list[str]:
        """
        Validate settings that must be explicit in production.
        Returns a list of validation errors. Empty list means all checks pass.
        """
        errors = []

        if self.environment == "production":
            if self.debug:
                errors.append("DEBUG must be False in production")

            if self.pod_name == "local-pod":
                errors.append("POD_NAME must be set in production to tell pods apart in logs")

            if self.sse_heartbeat_interval <= 0:
                errors.append("SSE_HEARTBEAT_INTERVAL must be positive")

        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience exports
settings = get_settings()
