"""
Shared configuration management for the Frontend Proxy.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_JWT_ISSUER = "Collaborne/collaborne-frontend-proxy"


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="local", validation_alias="CFP_ENV")
    log_level: str = Field(default="info", validation_alias="CFP_LOG_LEVEL")
    host: str = Field(default="0.0.0.0", validation_alias="CFP_HOST")
    port: int = Field(default=5000, validation_alias="PORT")

    # Catalog (PostgreSQL)
    database_url: str = Field(default="postgres://localhost:5432/frontend_proxy", validation_alias="DATABASE_URL")
    database_pool_min_size: int = Field(default=1, validation_alias="CFP_DATABASE_POOL_MIN_SIZE")
    database_pool_max_size: int = Field(default=10, validation_alias="CFP_DATABASE_POOL_MAX_SIZE")
    catalog_cache_ttl: int = Field(default=60, validation_alias="CFP_CATALOG_CACHE_TTL")

    # Object storage; credentials come from the standard AWS_* variables
    s3_bucket: Optional[str] = Field(default=None, validation_alias="CFP_AWS_BUCKET")
    s3_region: Optional[str] = Field(default=None, validation_alias="CFP_AWS_REGION")
    s3_endpoint_url: Optional[str] = Field(default=None, validation_alias="CFP_AWS_ENDPOINT_URL")

    # GitHub
    github_client_id: Optional[str] = Field(default=None, validation_alias="GH_CLIENT_ID")
    github_client_secret: Optional[str] = Field(default=None, validation_alias="GH_CLIENT_SECRET")
    github_webhook_secret: Optional[str] = Field(default=None, validation_alias="GH_WEBHOOK_SECRET")

    # Slack
    slack_client_id: Optional[str] = Field(default=None, validation_alias="SLACK_CLIENT_ID")
    slack_client_secret: Optional[str] = Field(default=None, validation_alias="SLACK_CLIENT_SECRET")

    # Token signing
    jwt_key: Optional[str] = Field(default=None, validation_alias="CFP_JWT_KEY")
    jwt_issuer: str = Field(default=DEFAULT_JWT_ISSUER, validation_alias="CFP_JWT_ISSUER")

    # Static UI
    app_dir: str = Field(default="../dist", validation_alias="CFP_APP_DIR")

    @property
    def is_production(self) -> bool:
        return self.env == "production"


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str


def get_config(service_name: str, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, **overrides)
