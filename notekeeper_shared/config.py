"""
Shared configuration management for Notekeeper.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="NOTEKEEPER_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local", description="Deployment environment tag")
    log_level: str = Field(default="info")

    # Store of record
    postgres_dsn: str = Field(default="postgresql://localhost:5432/notekeeper")
    postgres_min_pool_size: int = Field(default=2, ge=1)
    postgres_max_pool_size: int = Field(default=10, ge=1)
    postgres_command_timeout: float = Field(default=30.0)

    # Cache store
    redis_host: str = Field(default="localhost")
    redis_port: int = Field(default=6379)
    redis_db: int = Field(default=0)
    redis_password: Optional[str] = Field(default=None)

    # Cache policy
    users_cache_ttl_seconds: int = Field(default=3600, gt=0)
    notes_cache_ttl_seconds: int = Field(default=3600, gt=0)
    cache_invalidate_on_write: bool = Field(default=False)

    # Security
    password_hash_iterations: int = Field(default=600000, ge=1)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int = 2398
    host: str = "0.0.0.0"


def get_config(service_name: str, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, **overrides)
