from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MYNUTE_",
        env_file=".env",
        extra="ignore",
    )

    # Runtime
    ENVIRONMENT: str = Field(default="dev", description="Environment name")
    HOST: str = Field(default="0.0.0.0", description="Bind host")
    PORT: int = Field(default=4000, description="Bind port")
    LOG_LEVEL: str = Field(default="INFO", description="Root log level")
    API_PREFIX: str = Field(default="/api/v1", description="Prefix for all endpoint routes")

    # Database
    DATABASE_URL: str = Field(default="sqlite:///mynute_dev.db")
    SCHEMA_MODE: str = Field(
        default="create_all",
        description="create_all: auto-create tables (dev), migrations: tables must already exist",
    )

    # Tenancy
    TENANT_HEADER: str = Field(
        default="x-company-id", description="Header carrying the company (tenant) id"
    )

    # Auth
    AUTH_HEADER: str = Field(
        default="authorization", description="Header carrying the bearer token"
    )
    JWT_SECRET_KEY: str = Field(
        default="mynute-dev-secret-change-me",
        description="HS256 secret for dev; override in production",
    )
    JWT_ACCESS_TOKEN_TTL_SECONDS: int = Field(
        default=3600, description="Access token TTL seconds"
    )
    AUTH_LEEWAY_SECONDS: int = Field(default=0, description="JWT exp leeway seconds")

    # Endpoint registry
    ENDPOINT_LOAD_RETRIES: int = Field(
        default=1, description="Attempts to find the endpoints table at startup"
    )
    ENDPOINT_LOAD_RETRY_DELAY_SECONDS: float = Field(
        default=2.0, description="Delay between endpoint table lookups"
    )
    WARN_UNREACHABLE_ENDPOINTS: bool = Field(
        default=True,
        description="Log a warning for gated endpoints without any policy rule",
    )

    # Authorization
    AUTHZ_STATEMENT_TIMEOUT_MS: int = Field(
        default=5000,
        description="Statement timeout for request-scoped sessions (PostgreSQL only, 0 disables)",
    )

    # Errors
    ERROR_DETAILS_ENABLED: bool = Field(
        default=False, description="Expose inner error strings in error payloads (dev only)"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
