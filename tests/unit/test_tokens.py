"""Unit tests for token issuing, validation and the blacklist"""

import pytest
from datetime import datetime, timedelta, timezone
from jose import jwt
from loan_origination.domain.exceptions import InvalidTokenError, TokenExpiredError, TokenRevokedError
from loan_origination.infrastructure.security.tokens import (
    ACCESS_TOKEN_TYPE,
    ALGORITHM,
    BLACKLIST_VALUE,
    REFRESH_TOKEN_TYPE,
    TokenService,
    blacklist_key,
    token_signature,
)


def _clock(moment: datetime):
    return lambda: moment


def test_issue_access_token_claims(token_service, settings):
    token = token_service.issue_access_token("alice")
    claims = jwt.get_unverified_claims(token)

    assert claims["sub"] == "alice"
    assert claims["iss"] == settings.jwt_issuer
    assert claims["aud"] == settings.jwt_audience
    assert claims["type"] == ACCESS_TOKEN_TYPE
    assert claims["exp"] - claims["iat"] == 30 * 60
    assert jwt.get_unverified_header(token)["alg"] == ALGORITHM


def test_refresh_token_lifetime(token_service):
    token = token_service.issue_refresh_token("alice")
    claims = jwt.get_unverified_claims(token)

    assert claims["type"] == REFRESH_TOKEN_TYPE
    assert claims["exp"] - claims["iat"] == 7 * 24 * 3600


def test_tokens_issued_together_differ(token_service):
    assert token_service.issue_access_token("alice") != token_service.issue_access_token("alice")


def test_validate_round_trip(token_service):
    token = token_service.issue_access_token("alice")

    assert token_service.validate(token) is True
    assert token_service.validate(token, "alice") is True
    assert token_service.extract_username(token) == "alice"
    assert token_service.extract_token_type(token) == ACCESS_TOKEN_TYPE


def test_validate_rejects_other_username(token_service):
    token = token_service.issue_access_token("alice")
    assert token_service.validate(token, "mallory") is False


def test_validate_rejects_tampered_token(token_service):
    token = token_service.issue_access_token("alice")
    header, payload, signature = token.split(".")
    tampered = ".".join([header, payload, signature[:-2] + ("AA" if signature[-2:] != "AA" else "BB")])

    assert token_service.validate(tampered) is False
    with pytest.raises(InvalidTokenError):
        token_service.parse(tampered)


def test_validate_rejects_garbage(token_service):
    assert token_service.validate("not-a-token") is False


def test_parse_rejects_wrong_audience(token_service, settings):
    now = datetime.now(timezone.utc)
    foreign = jwt.encode(
        {
            "sub": "alice",
            "iss": settings.jwt_issuer,
            "aud": "some-other-client",
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(minutes=5)).timestamp()),
            "type": "access",
        },
        settings.jwt_secret_key,
        algorithm=ALGORITHM,
    )
    with pytest.raises(InvalidTokenError):
        token_service.parse(foreign)


def test_expired_token(settings, fake_redis):
    past = TokenService(settings, fake_redis, clock=_clock(datetime.now(timezone.utc) - timedelta(hours=2)))
    token = past.issue_access_token("alice")
    service = TokenService(settings, fake_redis)

    with pytest.raises(TokenExpiredError):
        service.parse(token)
    assert service.validate(token) is False
    assert service.is_expired(token) is True
    assert service.expiration_in_seconds(token) < 0


def test_verify_checks_token_type(token_service):
    refresh = token_service.issue_refresh_token("alice")

    assert token_service.verify(refresh, expected_type=REFRESH_TOKEN_TYPE)["sub"] == "alice"
    with pytest.raises(InvalidTokenError):
        token_service.verify(refresh, expected_type=ACCESS_TOKEN_TYPE)


def test_blacklist_key_uses_signature_segment(token_service):
    token = token_service.issue_access_token("alice")

    assert token_signature(token) == token.split(".")[2]
    assert blacklist_key(token) == "jwt:blacklist:" + token.split(".")[2]


def test_blacklisted_token_fails_validation(token_service, fake_redis):
    token = token_service.issue_access_token("alice")

    assert token_service.blacklist(token) is True
    assert fake_redis.get(blacklist_key(token)) == BLACKLIST_VALUE
    assert token_service.is_blacklisted(token) is True
    assert token_service.validate(token) is False
    with pytest.raises(TokenRevokedError):
        token_service.verify(token)


def test_blacklist_ttl_matches_remaining_lifetime(token_service):
    token = token_service.issue_access_token("alice")
    token_service.blacklist(token)

    ttl = token_service.blacklist_ttl(token)
    assert 0 < ttl <= 30 * 60


def test_remove_from_blacklist(token_service):
    token = token_service.issue_access_token("alice")
    token_service.blacklist(token)
    token_service.remove_from_blacklist(token)

    assert token_service.validate(token) is True


def test_blacklist_skips_expired_token(settings, fake_redis):
    past = TokenService(settings, fake_redis, clock=_clock(datetime.now(timezone.utc) - timedelta(hours=2)))
    token = past.issue_access_token("alice")

    assert TokenService(settings, fake_redis).blacklist(token) is False
    assert fake_redis.store == {}


def test_cache_outage_fails_open(settings, failing_redis):
    service = TokenService(settings, failing_redis)
    token = service.issue_access_token("alice")

    assert service.is_blacklisted(token) is False
    assert service.validate(token, "alice") is True
    assert service.blacklist(token) is False
    assert service.blacklist_ttl(token) is None
    service.remove_from_blacklist(token)


def test_missing_secret_is_rejected(settings, fake_redis):
    settings.jwt_secret_key = None
    with pytest.raises(ValueError):
        TokenService(settings, fake_redis)
