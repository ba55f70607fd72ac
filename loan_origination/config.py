"""Configuration management using Pydantic Settings"""

import logging
import os
import re
import secrets
from datetime import timedelta
from decimal import Decimal
from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from loan_origination.domain.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_DURATION_PATTERN = re.compile(r"^\s*(\d+)\s*(ms|s|m|h|d)?\s*$", re.IGNORECASE)
_DURATION_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
}

# Placeholder secrets that must never sign production tokens
DENYLISTED_SECRETS = (
    "your-256-bit-secret-key-change-this-in-production",
    "secret",
    "changeme",
    "default",
    "test",
)
MIN_SECRET_BYTES = 32


def _env_files() -> tuple[str, ...]:
    """`.env` first, then the profile-specific file so it wins on conflicts"""
    profile = os.getenv("APP_ENVIRONMENT", "development").strip().lower()
    return (".env", f".env.{profile}")


class Settings(BaseSettings):
    """Application configuration loaded from .env files and environment variables"""

    model_config = SettingsConfigDict(env_file=_env_files(), env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = "postgresql+psycopg2://localhost:5432/loan_origination"
    database_username: Optional[str] = None
    database_password: Optional[str] = None

    # JWT
    jwt_secret_key: Optional[str] = None
    jwt_access_token_expiration: timedelta = timedelta(minutes=30)
    jwt_refresh_token_expiration: timedelta = timedelta(days=7)
    jwt_issuer: str = "loan-origination-system"
    jwt_audience: str = "loan-origination-client"

    # Blacklist cache
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_timeout_seconds: float = 0.1

    # Service
    service_name: str = "loan-origination"
    server_port: int = 8080
    app_environment: Literal["development", "production", "test", "local", "staging"] = "development"
    log_level: str = "INFO"

    # Security
    bcrypt_rounds: int = 12

    # Loan pricing
    processing_fee_percentage: Decimal = Decimal("1.00")
    processing_fee_minimum: Decimal = Decimal("50.00")

    @field_validator("jwt_access_token_expiration", "jwt_refresh_token_expiration", mode="before")
    @classmethod
    def parse_duration(cls, value):
        """Accept short forms like 30m or 7d and bare seconds in addition to ISO-8601"""
        if isinstance(value, str):
            match = _DURATION_PATTERN.match(value)
            if match:
                amount, unit = match.groups()
                return int(amount) * _DURATION_UNITS[(unit or "s").lower()]
        return value

    @field_validator("app_environment", mode="before")
    @classmethod
    def normalize_environment(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def is_production(self) -> bool:
        return self.app_environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Load settings once per process"""
    return Settings()


def is_default_secret(secret: Optional[str]) -> bool:
    """True when the secret is missing, too short, or contains a known placeholder"""
    if not secret:
        return True
    lowered = secret.lower()
    if any(placeholder in lowered for placeholder in DENYLISTED_SECRETS):
        return True
    return len(secret.encode("utf-8")) < MIN_SECRET_BYTES


def validate_jwt_settings(settings: Settings) -> None:
    """
    Check JWT configuration at startup.

    Weak or placeholder secrets are logged as warnings in every environment
    and abort startup in production. Outside production a missing secret is
    replaced by a random per-process key, so tokens do not survive a restart.

    Raises:
        ConfigurationError: Weak secret while running in production
    """
    logger.info(
        "JWT configuration loaded",
        extra={
            "issuer": settings.jwt_issuer,
            "audience": settings.jwt_audience,
            "access_token_minutes": settings.jwt_access_token_expiration.total_seconds() / 60,
            "refresh_token_days": settings.jwt_refresh_token_expiration.days,
        },
    )

    if is_default_secret(settings.jwt_secret_key):
        if settings.is_production:
            logger.error("Default or weak JWT secret key detected in production environment")
            raise ConfigurationError("Default JWT secret key detected in production environment")
        logger.warning(
            "Using a default or weak JWT secret key; set JWT_SECRET_KEY to a random value of at least %d bytes",
            MIN_SECRET_BYTES,
        )
        if not settings.jwt_secret_key:
            logger.warning("No JWT secret key configured; signing tokens with an ephemeral key")
            settings.jwt_secret_key = secrets.token_urlsafe(48)

    if settings.jwt_access_token_expiration > timedelta(minutes=60):
        logger.warning("Access token expiration exceeds 60 minutes")
    if settings.jwt_refresh_token_expiration > timedelta(days=30):
        logger.warning("Refresh token expiration exceeds 30 days")
