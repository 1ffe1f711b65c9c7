"""
Shared configuration management for the Venue Portal.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="PORTAL_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="local", description="Deployment environment name")
    log_level: str = Field(default="info")

    # External services
    redis_url: str = Field(default="redis://localhost:6379/0")
    postgres_dsn: str = Field(default="postgresql://localhost:5432/portal")


class PortalConfig(BaseConfig):
    """Configuration for the portal web service."""

    host: str = "0.0.0.0"
    port: int = 8080

    # Sessions
    session_secret: str = Field(default="change-me", min_length=1)
    session_ttl_seconds: int = Field(default=3600, gt=0)
    session_cookie_name: str = "token"
    cookie_secure: bool = False

    # Credential store
    credential_backend: str = Field(default="memory", pattern="^(memory|postgres)$")
    store_timeout_seconds: float = Field(default=2.0, gt=0)

    # Rate limiting
    rate_limit_backend: str = Field(default="memory", pattern="^(memory|redis)$")
    rate_limit_window_seconds: int = Field(default=15 * 60, gt=0)
    rate_limit_max_requests: int = Field(default=100, gt=0)
    trust_forwarded_for: bool = False

    # Static assets, mounted only when the directory exists
    static_dir: Optional[str] = None


def get_config(**overrides) -> PortalConfig:
    """Get configuration for the portal service."""
    return PortalConfig(**overrides)
