"""Configuration management with pydantic-settings for the project sync engine.

Loads from (in order of precedence):
1. Environment variables (highest priority)
2. .env file in the working directory
3. Default values (lowest priority)

Secrets (API key, Qdrant key) are held as SecretStr so they never end up in
log output or reprs.
"""

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_API_HOST",
    "DEFAULT_RATE_LIMIT_URL",
    "DEFAULT_SOURCE_HOST",
    "SyncConfig",
    "get_config",
    "reset_config",
]

DEFAULT_SOURCE_HOST = "github.com"
DEFAULT_API_HOST = "api.github.com/repos"
DEFAULT_RATE_LIMIT_URL = "https://api.github.com/rate_limit"


class SyncConfig(BaseSettings):
    """Configuration for the project sync engine.

    Attributes:
        api_user: Username for Basic Auth against the data source (optional)
        api_key: API key / token for Basic Auth (optional)
        source_host: Canonical repository host that URLs must contain
        api_host: Replacement for source_host that yields API endpoints
        rate_limit_url: Endpoint reporting the remaining request quota
        rate_padding: Requests held back from the reported remaining quota
        batch_cap: Maximum records synced per pass
        request_timeout: Per-request timeout in seconds
        readme_branch: Branch used when rebasing relative README images
        sync_interval: Seconds between scheduled passes
        notify_on_failure: Send a webhook alert when a record fails to sync
        failure_webhook_url: Target for failure alerts
        record_store: Backend for records ("memory" or "qdrant")
        metrics_enabled: Push pass metrics to the Prometheus pushgateway
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        validate_default=True,
        frozen=True,
        extra="ignore",
    )

    # Data source credentials
    api_user: str | None = Field(
        default=None, description="API username for Basic Auth (anonymous if unset)"
    )
    api_key: SecretStr | None = Field(
        default=None, description="API key/token for Basic Auth (anonymous if unset)"
    )

    # Data source endpoints
    source_host: str = Field(
        default=DEFAULT_SOURCE_HOST,
        description="Repository web host that sync URLs must contain",
    )
    api_host: str = Field(
        default=DEFAULT_API_HOST,
        description="API host + prefix substituted for source_host",
    )
    rate_limit_url: str = Field(
        default=DEFAULT_RATE_LIMIT_URL,
        description="Endpoint returning {rate: {limit, remaining}}",
    )

    # Sync behaviour
    rate_padding: int = Field(
        default=10,
        ge=0,
        le=5000,
        description="How far under the remaining rate limit to stay",
    )
    batch_cap: int = Field(
        default=30, ge=1, le=500, description="Maximum records synced per pass"
    )
    request_timeout: float = Field(
        default=10.0, gt=0.0, le=120.0, description="HTTP request timeout in seconds"
    )
    readme_branch: str = Field(
        default="master",
        description="Branch used to build raw URLs for relative README images",
    )
    sync_interval: int = Field(
        default=1800,
        ge=60,
        le=86400,
        description="Seconds between scheduled sync passes (default 30 min)",
    )

    # Failure notification
    notify_on_failure: bool = Field(
        default=False, description="Send a webhook alert when a record fails to sync"
    )
    failure_webhook_url: str | None = Field(
        default=None, description="Webhook receiving JSON failure alerts"
    )

    # Record store
    record_store: Literal["memory", "qdrant"] = Field(
        default="qdrant", description="Record store backend"
    )
    qdrant_host: str = Field(default="localhost", description="Qdrant server hostname")
    qdrant_port: int = Field(
        default=6333, ge=1, le=65535, description="Qdrant server port"
    )
    qdrant_api_key: SecretStr | None = Field(
        default=None, description="Optional API key for Qdrant authentication"
    )
    qdrant_use_https: bool = Field(
        default=False, description="Use HTTPS for Qdrant connections"
    )
    qdrant_collection: str = Field(
        default="projects", description="Collection holding synced records"
    )

    # Metrics
    metrics_enabled: bool = Field(
        default=False, description="Push pass metrics to the pushgateway"
    )
    pushgateway_url: str = Field(
        default="localhost:9091", description="Prometheus pushgateway address"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "text"] = Field(
        default="json", description="json for production, text for development"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @field_validator("source_host", "api_host")
    @classmethod
    def validate_host(cls, v: str) -> str:
        """Hosts are substituted textually, so they must be bare and non-empty."""
        v = v.strip().strip("/")
        if not v:
            raise ValueError("Host must not be empty")
        if "://" in v:
            raise ValueError("Host must not include a scheme")
        return v

    @model_validator(mode="after")
    def validate_notification_config(self) -> "SyncConfig":
        """Require a webhook target when failure alerts are enabled."""
        if self.notify_on_failure and not self.failure_webhook_url:
            raise ValueError(
                "FAILURE_WEBHOOK_URL required when NOTIFY_ON_FAILURE=true"
            )
        return self

    def has_credentials(self) -> bool:
        """True when both halves of the Basic Auth pair are configured."""
        return bool(self.api_user and self.api_key and self.api_key.get_secret_value())


@lru_cache(maxsize=1)
def get_config() -> SyncConfig:
    """Get global configuration singleton.

    First call loads from environment + .env file, subsequent calls return
    the cached instance.

    Raises:
        ValidationError: If configuration values are invalid.
    """
    return SyncConfig()


def reset_config() -> None:
    """Reset configuration singleton for testing."""
    get_config.cache_clear()
