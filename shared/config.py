"""
Shared configuration management for the Stock Opname sync layer.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="OPNAME_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # External services
    redis_url: str = Field(default="redis://localhost:6379/0")
    cache_enabled: bool = Field(default=True)

    # Store
    seed_path: Optional[str] = Field(default=None)
    timezone: str = Field(default="Asia/Jakarta")

    # Mutation lock
    lock_timeout_seconds: float = Field(default=10.0)

    # Read cache TTLs
    history_ttl_seconds: int = Field(default=30)
    catalog_ttl_seconds: int = Field(default=300)
    search_ttl_seconds: int = Field(default=120)

    # Warmup
    warm_sample_limit: int = Field(default=4)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


class ClientConfig(BaseSettings):
    """Field-device client configuration."""

    model_config = SettingsConfigDict(
        env_prefix="OPNAME_CLIENT_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    api_url: str = Field(default="http://localhost:8020/exec")
    cache_path: str = Field(default=".opname-cache.json")
    request_timeout_seconds: float = Field(default=15.0)
    log_level: str = Field(default="info")


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)


def get_client_config(**overrides) -> ClientConfig:
    """Get configuration for the field-device client."""
    return ClientConfig(**overrides)
