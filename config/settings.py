"""
Configuration settings for the application.

Settings are validated once at process start by ``load_settings()`` and then
handed explicitly to ``create_app`` / ``create_web_app``.
"""
import logging
import os
import re
import sys
from datetime import timedelta
from typing import Literal, Optional

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

logger = logging.getLogger(__name__)

# Accepted forms: "900", "500ms", "30s", "15m", "12h", "7d"
_DURATION_PATTERN = re.compile(r"^\s*(\d+)\s*(ms|s|m|h|d)?\s*$")
_DURATION_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
}

USER_STORE_DATABASE = "database"
USER_STORE_PLACEHOLDER = "placeholder"


class EnvironmentValidationError(RuntimeError):
    """Raised when the process environment does not describe a valid configuration."""

    def __init__(self, message: str, problems: Optional[list] = None):
        super().__init__(message)
        self.problems = problems or []


def parse_duration(value: str) -> timedelta:
    """Parse a duration such as ``15m`` or ``7d``. Bare numbers are seconds."""
    match = _DURATION_PATTERN.match(str(value))
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return int(amount) * _DURATION_UNITS[unit or "s"]


def _check_optional_prefix(value: Optional[str], prefix: str, label: str) -> Optional[str]:
    if value and not value.startswith(prefix):
        raise ValueError(f"{label} must start with {prefix}")
    return value or None


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Server configuration
    env: Literal["development", "staging", "production", "test"] = Field(default="development", alias="ENV")
    port: int = Field(default=3001, alias="PORT")

    # CORS configuration
    cors_origin: str = Field(alias="CORS_ORIGIN", min_length=1)

    # Clerk identity provider
    clerk_publishable_key: str = Field(alias="CLERK_PUBLISHABLE_KEY")
    clerk_secret_key: str = Field(alias="CLERK_SECRET_KEY")
    # PEM public key for networkless verification of Clerk session tokens
    clerk_jwt_key: Optional[str] = Field(default=None, alias="CLERK_JWT_KEY")

    # Token signing
    jwt_secret: str = Field(alias="JWT_SECRET", min_length=32)
    jwt_expires_in: str = Field(default="15m", alias="JWT_EXPIRES_IN")
    refresh_token_secret: str = Field(alias="REFRESH_TOKEN_SECRET", min_length=32)
    refresh_token_expires_in: str = Field(default="7d", alias="REFRESH_TOKEN_EXPIRES_IN")

    # Infrastructure configuration
    database_url: str = Field(alias="DATABASE_URL")
    redis_url: Optional[str] = Field(default=None, alias="REDIS_URL")
    user_store: Literal["database", "placeholder"] = Field(default=USER_STORE_DATABASE, alias="USER_STORE")

    # Stripe billing configuration (optional)
    stripe_secret_key: Optional[str] = Field(default=None, alias="STRIPE_SECRET_KEY")
    stripe_publishable_key: Optional[str] = Field(default=None, alias="STRIPE_PUBLISHABLE_KEY")
    stripe_webhook_secret: Optional[str] = Field(default=None, alias="STRIPE_WEBHOOK_SECRET")

    # Aurora Identity (optional)
    aurora_identity_api_url: Optional[str] = Field(default=None, alias="AURORA_IDENTITY_API_URL")
    aurora_identity_api_key: Optional[str] = Field(default=None, alias="AURORA_IDENTITY_API_KEY")

    # Logging
    log_level: Literal["error", "warn", "info", "debug"] = Field(default="info", alias="LOG_LEVEL")

    # Rate limiting
    rate_limit_window_ms: int = Field(default=900000, alias="RATE_LIMIT_WINDOW_MS", gt=0)
    rate_limit_max_requests: int = Field(default=100, alias="RATE_LIMIT_MAX_REQUESTS", gt=0)
    # Peers whose X-Forwarded-For uvicorn trusts when resolving the client IP
    forwarded_allow_ips: str = Field(default="127.0.0.1", alias="FORWARDED_ALLOW_IPS")

    @field_validator("clerk_publishable_key")
    @classmethod
    def _check_clerk_publishable_key(cls, value: str) -> str:
        if not value:
            raise ValueError("Clerk publishable key is required")
        if not value.startswith("pk_"):
            raise ValueError("Clerk publishable key must start with pk_")
        return value

    @field_validator("clerk_secret_key")
    @classmethod
    def _check_clerk_secret_key(cls, value: str) -> str:
        if not value:
            raise ValueError("Clerk secret key is required")
        if not value.startswith("sk_"):
            raise ValueError("Clerk secret key must start with sk_")
        return value

    @field_validator("jwt_expires_in", "refresh_token_expires_in")
    @classmethod
    def _check_duration(cls, value: str) -> str:
        parse_duration(value)
        return value

    @field_validator("database_url")
    @classmethod
    def _check_database_url(cls, value: str) -> str:
        try:
            make_url(value)
        except ArgumentError:
            raise ValueError("Database URL must be a valid URL")
        return value

    @field_validator("stripe_secret_key")
    @classmethod
    def _check_stripe_secret_key(cls, value):
        return _check_optional_prefix(value, "sk_", "Stripe secret key")

    @field_validator("stripe_publishable_key")
    @classmethod
    def _check_stripe_publishable_key(cls, value):
        return _check_optional_prefix(value, "pk_", "Stripe publishable key")

    @field_validator("stripe_webhook_secret")
    @classmethod
    def _check_stripe_webhook_secret(cls, value):
        return _check_optional_prefix(value, "whsec_", "Stripe webhook secret")

    @field_validator("aurora_identity_api_url")
    @classmethod
    def _check_aurora_url(cls, value):
        if value and not re.match(r"^https?://[^\s/]+", value):
            raise ValueError("Aurora Identity API URL must be a valid URL")
        return value or None

    @field_validator("clerk_jwt_key", "redis_url", "aurora_identity_api_key")
    @classmethod
    def _blank_to_none(cls, value):
        return value or None

    @model_validator(mode="after")
    def _check_production_database(self):
        if self.is_production and make_url(self.database_url).get_backend_name() == "sqlite":
            raise ValueError("SQLite is forbidden in production. Use a PostgreSQL DATABASE_URL.")
        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def access_token_ttl(self) -> timedelta:
        return parse_duration(self.jwt_expires_in)

    @property
    def refresh_token_ttl(self) -> timedelta:
        return parse_duration(self.refresh_token_expires_in)

    @property
    def rate_limit_window_seconds(self) -> float:
        return self.rate_limit_window_ms / 1000.0


def _format_problems(error: ValidationError) -> list:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "settings"
        problems.append(f"{location}: {item['msg']}")
    return problems


def load_settings() -> Settings:
    """
    Parse and validate the environment.

    In production the process exits immediately on invalid configuration;
    otherwise EnvironmentValidationError is raised to the caller.
    """
    try:
        return Settings()
    except ValidationError as e:
        problems = _format_problems(e)
        logger.error("Invalid environment variables:")
        for problem in problems:
            logger.error(f"  - {problem}")
        logger.error("Please check your .env file and ensure all required variables are set.")

        if os.environ.get("ENV", "").lower() == "production":
            sys.exit(1)

        raise EnvironmentValidationError("Environment validation failed", problems) from e
