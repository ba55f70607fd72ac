"""Unit tests for configuration parsing and JWT safety checks"""

import pytest
from datetime import timedelta
from unittest.mock import MagicMock
from loan_origination.api.main import create_app
from loan_origination.config import Settings, is_default_secret, validate_jwt_settings
from loan_origination.domain.exceptions import ConfigurationError

STRONG_SECRET = "f7c1d2e9a0b34c58b6d1e2f3a4b5c6d7e8f9a0b1c2d3e4f5"


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("30m", timedelta(minutes=30)),
        ("7d", timedelta(days=7)),
        ("2h", timedelta(hours=2)),
        ("45s", timedelta(seconds=45)),
        ("500ms", timedelta(milliseconds=500)),
        ("PT15M", timedelta(minutes=15)),
        ("3600", timedelta(hours=1)),
    ],
)
def test_duration_forms(raw, expected):
    settings = Settings(jwt_access_token_expiration=raw)
    assert settings.jwt_access_token_expiration == expected


def test_environment_variables_override_defaults(monkeypatch):
    monkeypatch.setenv("JWT_ISSUER", "branch-gateway")
    monkeypatch.setenv("JWT_REFRESH_TOKEN_EXPIRATION", "14d")
    monkeypatch.setenv("APP_ENVIRONMENT", "Production")

    settings = Settings()

    assert settings.jwt_issuer == "branch-gateway"
    assert settings.jwt_refresh_token_expiration == timedelta(days=14)
    assert settings.is_production is True


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.jwt_audience == "loan-origination-client"
    assert settings.server_port == 8080
    assert settings.redis_timeout_seconds == 0.1


@pytest.mark.parametrize(
    "secret",
    [
        None,
        "",
        "your-256-bit-secret-key-change-this-in-production",
        "MySecretKeyThatIsLongEnoughToPassTheLengthCheck",
        "short-random-0x9f",
    ],
)
def test_weak_secrets_detected(secret):
    assert is_default_secret(secret) is True


def test_strong_secret_accepted():
    assert is_default_secret(STRONG_SECRET) is False


def test_weak_secret_fails_production_startup():
    settings = Settings(jwt_secret_key="changeme", app_environment="production")
    with pytest.raises(ConfigurationError):
        validate_jwt_settings(settings)


def test_weak_secret_only_warns_outside_production():
    settings = Settings(jwt_secret_key="changeme", app_environment="development")
    validate_jwt_settings(settings)


def test_strong_secret_passes_production_startup():
    settings = Settings(jwt_secret_key=STRONG_SECRET, app_environment="production")
    validate_jwt_settings(settings)


def test_missing_secret_gets_ephemeral_key_outside_production():
    settings = Settings(_env_file=None, jwt_secret_key=None, app_environment="development")

    validate_jwt_settings(settings)

    assert is_default_secret(settings.jwt_secret_key) is False


def test_development_app_starts_without_secret():
    settings = Settings(_env_file=None, jwt_secret_key=None, app_environment="development", log_level="WARNING")

    app = create_app(settings, cache=MagicMock())

    token_service = app.state.token_service
    assert token_service.parse(token_service.issue_access_token("dev"))["sub"] == "dev"


def test_missing_secret_fails_production_startup():
    settings = Settings(_env_file=None, jwt_secret_key=None, app_environment="production")
    with pytest.raises(ConfigurationError):
        create_app(settings, cache=MagicMock())
