"""
Application settings module.

This module provides configuration settings for the application, including
database connection, token validation, rate limiting and idempotency values.
"""

# Standard Library Imports
import logging
import secrets
from typing import Self

# Third-Party Imports
from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_IDEMPOTENCY_TTL_HOURS = 24


class Settings(BaseSettings):
    """Application settings using Pydantic for validation and environment variable loading."""

    # API Information
    API_TITLE: str = "RemitDesk API"
    API_DESCRIPTION: str = "Multi-tenant back office for currency exchange and remittance businesses"
    API_VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"

    # Environment
    TESTING: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production, test
    DEBUG: bool = False

    # Server Settings
    SERVER_HOST: str = "127.0.0.1"
    SERVER_PORT: int = 8000

    # Token validation (issuance lives in the identity service)
    JWT_SECRET_KEY: SecretStr = Field(default_factory=lambda: SecretStr(secrets.token_urlsafe(64)))
    JWT_ALGORITHM: str = "HS256"
    JWT_ISSUER: str | None = None
    JWT_AUDIENCE: str | None = None

    # Paths served without a bearer token
    PUBLIC_PATHS: list[str] = Field(default_factory=lambda: [
        "/health",
        "/openapi.json",
        "/docs",
        "/docs/oauth2-redirect",
        "/redoc",
        "/api/v1/auth/login",
        "/api/v1/auth/register",
        "/api/v1/auth/refresh",
    ])

    # CORS Settings
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    # Database Settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./remitdesk.db"
    ASYNC_DATABASE_URL: str | None = None  # Derived from DATABASE_URL if None
    DB_ECHO_LOG: bool = False

    # Logging Settings
    LOG_LEVEL: str = "INFO"

    # Monitoring and Error Tracking (Sentry)
    SENTRY_DSN: str | None = None
    SENTRY_TRACES_SAMPLE_RATE: float = 0.2

    # Rate Limiting
    RATE_LIMITING_ENABLED: bool = True
    RATE_LIMIT_GENERAL_LIMIT: int = 100
    RATE_LIMIT_GENERAL_WINDOW_SECONDS: int = 60
    RATE_LIMIT_SENSITIVE_LIMIT: int = 10
    RATE_LIMIT_SENSITIVE_WINDOW_SECONDS: int = 60
    RATE_LIMIT_AUTH_LIMIT: int = 10
    RATE_LIMIT_AUTH_WINDOW_SECONDS: int = 60
    RATE_LIMIT_PAYMENT_LIMIT: int = 30
    RATE_LIMIT_PAYMENT_WINDOW_SECONDS: int = 60
    RATE_LIMIT_TENANT_MULTIPLIER: float = 1.5
    RATE_LIMIT_SWEEP_INTERVAL_SECONDS: float = 300.0
    # Twice the longest configured window
    RATE_LIMIT_RETENTION_SECONDS: float = 600.0
    RATE_LIMIT_EXCLUDE_PATHS: list[str] = Field(default_factory=lambda: [
        "/health",
        "/docs",
        "/redoc",
        "/openapi.json",
    ])

    # Idempotency
    IDEMPOTENCY_ENABLED: bool = True
    IDEMPOTENCY_HEADER: str = "X-Idempotency-Key"
    IDEMPOTENCY_METHODS: list[str] = ["POST"]
    IDEMPOTENCY_TTL_HOURS: float = DEFAULT_IDEMPOTENCY_TTL_HOURS
    IDEMPOTENCY_RECLAIM_ATTEMPTS: int = 3
    IDEMPOTENCY_EXCLUDE_PATHS: list[str] = Field(default_factory=lambda: [
        "/api/v1/auth/login",
        "/api/v1/auth/register",
        "/api/v1/auth/refresh",
    ])

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log level is one of the valid levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @field_validator("RATE_LIMIT_TENANT_MULTIPLIER")
    @classmethod
    def validate_tenant_multiplier(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("RATE_LIMIT_TENANT_MULTIPLIER must be positive")
        return v

    @field_validator("IDEMPOTENCY_METHODS")
    @classmethod
    def normalize_idempotency_methods(cls, v: list[str]) -> list[str]:
        return [method.upper() for method in v]

    @model_validator(mode="after")
    def ensure_async_database_url(self) -> Self:
        """Ensure ASYNC_DATABASE_URL is set properly from DATABASE_URL."""
        if not self.ASYNC_DATABASE_URL:
            db_url = self.DATABASE_URL
            if db_url.startswith("sqlite:///") and "aiosqlite" not in db_url:
                self.ASYNC_DATABASE_URL = db_url.replace("sqlite:///", "sqlite+aiosqlite:///")
            elif db_url.startswith("postgresql://"):
                self.ASYNC_DATABASE_URL = db_url.replace("postgresql://", "postgresql+asyncpg://")
            else:
                self.ASYNC_DATABASE_URL = db_url
            logger.debug(f"Set ASYNC_DATABASE_URL to {self.ASYNC_DATABASE_URL} based on DATABASE_URL")

        if self.ENVIRONMENT in ("production", "test"):
            self.DEBUG = False
        if self.ENVIRONMENT == "test":
            self.TESTING = True

        return self

    @property
    def idempotency_ttl_seconds(self) -> float:
        """Idempotency retention; non-positive values fall back to 24 hours."""
        hours = self.IDEMPOTENCY_TTL_HOURS
        if hours <= 0:
            hours = DEFAULT_IDEMPOTENCY_TTL_HOURS
        return hours * 3600.0


# Create a global settings instance
settings = Settings()


def get_settings() -> Settings:
    """
    Factory function to get the application settings.

    This function enables dependency injection of settings in FastAPI and
    can be overridden through ``app.dependency_overrides`` in tests.

    Returns:
        The application settings instance
    """
    return settings
