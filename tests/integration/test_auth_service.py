"""Integration tests for registration, login, refresh rotation and logout"""

import pytest
from datetime import datetime, timedelta, timezone
from loan_origination.domain.exceptions import AuthenticationFailedError, ForbiddenError, ValidationError
from loan_origination.infrastructure.database.models import User
from loan_origination.services.auth import AuthService

PASSWORD = "C0rrect-Horse-Battery"


@pytest.fixture
def auth(db, token_service, password_hasher):
    return AuthService(db, token_service, password_hasher)


def _register(auth, username="alice", email="alice@bank.example"):
    return auth.register(username=username, email=email, password=PASSWORD, role_code="LOAN_OFFICER")


def test_register_issues_tokens_and_stores_refresh_token(db, auth, token_service):
    tokens = _register(auth)

    user = db.query(User).filter(User.username == "alice").one()
    assert user.status_code == "ACTIVE"
    assert user.password != PASSWORD
    assert user.refresh_token == tokens.refresh_token
    assert user.refresh_token_expiry is not None
    assert tokens.token_type == "Bearer"
    assert tokens.message == "Registration successful"
    assert 0 < tokens.expires_in <= 30 * 60
    assert token_service.validate(tokens.access_token, "alice") is True


def test_register_rejects_duplicate_username_and_email(auth):
    _register(auth)

    with pytest.raises(ValidationError):
        _register(auth, email="other@bank.example")
    with pytest.raises(ValidationError):
        _register(auth, username="alice2")


def test_register_rejects_short_password(auth):
    with pytest.raises(ValidationError):
        auth.register(username="bob", email="bob@bank.example", password="short")


def test_login_by_username_or_email(auth):
    _register(auth)

    assert auth.authenticate("alice", PASSWORD).message == "Login successful"
    assert auth.authenticate("alice@bank.example", PASSWORD).username == "alice"


def test_login_bad_credentials(auth):
    _register(auth)

    with pytest.raises(AuthenticationFailedError):
        auth.authenticate("alice", "wrong-password")
    with pytest.raises(AuthenticationFailedError):
        auth.authenticate("nobody", PASSWORD)


def test_login_inactive_user(auth, make_user, user_password):
    make_user("dormant", status_code="INACTIVE")

    with pytest.raises(ForbiddenError):
        auth.authenticate("dormant", user_password)


def test_refresh_rotates_token(db, auth):
    tokens = _register(auth)

    refreshed = auth.refresh(tokens.refresh_token)

    assert refreshed.refresh_token != tokens.refresh_token
    assert refreshed.message == "Token refreshed successfully"
    db.expire_all()
    assert db.query(User).filter(User.username == "alice").one().refresh_token == refreshed.refresh_token


def test_old_refresh_token_stops_working_after_rotation(auth):
    tokens = _register(auth)
    auth.refresh(tokens.refresh_token)

    with pytest.raises(AuthenticationFailedError):
        auth.refresh(tokens.refresh_token)


def test_refresh_rejects_access_token(auth):
    tokens = _register(auth)
    with pytest.raises(AuthenticationFailedError):
        auth.refresh(tokens.access_token)


def test_refresh_rejects_expired_stored_expiry(db, auth):
    tokens = _register(auth)
    user = db.query(User).filter(User.username == "alice").one()
    user.refresh_token_expiry = datetime.now(timezone.utc) - timedelta(minutes=1)
    db.commit()

    with pytest.raises(AuthenticationFailedError):
        auth.refresh(tokens.refresh_token)


def test_losing_concurrent_rotation_fails(auth, monkeypatch):
    """Test conditional update refusing a token another refresh already replaced"""
    tokens = _register(auth)
    monkeypatch.setattr(auth.users, "rotate_refresh_token", lambda *args: False)

    with pytest.raises(AuthenticationFailedError, match="already been used"):
        auth.refresh(tokens.refresh_token)


def test_logout_clears_refresh_token_and_blacklists_access_token(db, auth, token_service):
    tokens = _register(auth)

    auth.logout(refresh_token=tokens.refresh_token, access_token=tokens.access_token)

    db.expire_all()
    user = db.query(User).filter(User.username == "alice").one()
    assert user.refresh_token is None
    assert user.refresh_token_expiry is None
    assert token_service.validate(tokens.access_token) is False
    with pytest.raises(AuthenticationFailedError):
        auth.refresh(tokens.refresh_token)


def test_logout_requires_a_token(auth):
    with pytest.raises(ValidationError):
        auth.logout()


def test_logout_by_username(db, auth, token_service):
    tokens = _register(auth)

    auth.logout_by_username("alice", tokens.access_token)

    db.expire_all()
    assert db.query(User).filter(User.username == "alice").one().refresh_token is None
    assert token_service.is_blacklisted(tokens.access_token) is True
