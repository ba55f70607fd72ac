"""Registration, login, refresh-token rotation and logout"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from loan_origination.domain.exceptions import (
    AuthenticationFailedError,
    ConflictError,
    ForbiddenError,
    ValidationError,
)
from loan_origination.domain.models import RecordStatus, TokenPair
from loan_origination.infrastructure.database.models import User
from loan_origination.infrastructure.database.repositories import UserRepository
from loan_origination.infrastructure.database.session import transaction
from loan_origination.infrastructure.observability.metrics import record_auth_event
from loan_origination.infrastructure.security.passwords import PasswordHasher, is_valid_password
from loan_origination.infrastructure.security.tokens import REFRESH_TOKEN_TYPE, TokenService
from loan_origination.utils.date_utils import ensure_utc

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid username/email or password"


class AuthService:
    """Authentication flows backed by the user table and the token service"""

    def __init__(self, db: Session, token_service: TokenService, password_hasher: PasswordHasher):
        self.db = db
        self.users = UserRepository(db)
        self.tokens = token_service
        self.hasher = password_hasher

    def register(
        self,
        username: str,
        email: str,
        password: str,
        phone: Optional[str] = None,
        branch_id: Optional[int] = None,
        role_code: Optional[str] = None,
    ) -> TokenPair:
        """
        Create an ACTIVE user and log them in immediately.

        Raises:
            ValidationError: Duplicate username/email or weak password
            ConflictError: A concurrent registration took the username/email
        """
        if not is_valid_password(password):
            raise ValidationError("Password must be at least 8 characters long")

        try:
            with transaction(self.db):
                if self.users.get_by_username(username) is not None:
                    raise ValidationError(f"Username already exists: {username}")
                if self.users.get_by_email(email) is not None:
                    raise ValidationError(f"Email already exists: {email}")

                user = User(
                    username=username,
                    email=email,
                    phone=phone,
                    password=self.hasher.hash(password),
                    branch_id=branch_id,
                    role_code=role_code,
                    status_code=RecordStatus.ACTIVE.value,
                    created_at=self.tokens.now(),
                )
                self.users.add(user)
                tokens = self._issue_tokens(user, "Registration successful")
        except IntegrityError as e:
            record_auth_event("register", success=False)
            raise ConflictError("Username or email already exists") from e
        except ValidationError:
            record_auth_event("register", success=False)
            raise

        record_auth_event("register", success=True)
        logger.info("User registered successfully: %s", username)
        return tokens

    def authenticate(self, username_or_email: str, password: str) -> TokenPair:
        """
        Log in by username, falling back to email.

        Raises:
            AuthenticationFailedError: Unknown user or wrong password
            ForbiddenError: Account is not ACTIVE
        """
        with transaction(self.db):
            user = self.users.get_by_username(username_or_email)
            if user is None:
                user = self.users.get_by_email(username_or_email)

            if user is None or not self.hasher.verify(password, user.password):
                record_auth_event("login", success=False)
                logger.warning("Failed login attempt for: %s", username_or_email)
                raise AuthenticationFailedError(INVALID_CREDENTIALS)

            if user.status_code != RecordStatus.ACTIVE.value:
                record_auth_event("login", success=False)
                raise ForbiddenError("User account is not active")

            tokens = self._issue_tokens(user, "Login successful")

        record_auth_event("login", success=True)
        logger.info("User logged in: %s", user.username)
        return tokens

    def refresh(self, refresh_token: str) -> TokenPair:
        """
        Rotate a refresh token.

        The stored token is replaced with a conditional update, so of two
        concurrent refreshes using the same token only one succeeds; the old
        token stops matching any user as soon as the new one is committed.

        Raises:
            AuthenticationFailedError: Invalid, expired, revoked or already-rotated token
        """
        try:
            claims = self.tokens.verify(refresh_token, expected_type=REFRESH_TOKEN_TYPE)
        except AuthenticationFailedError:
            record_auth_event("refresh", success=False)
            raise

        with transaction(self.db):
            user = self.users.get_by_refresh_token(refresh_token)
            if user is None or user.username != claims["sub"]:
                record_auth_event("refresh", success=False)
                raise AuthenticationFailedError("Invalid refresh token")

            expiry = ensure_utc(user.refresh_token_expiry)
            if expiry is None or expiry < self.tokens.now():
                record_auth_event("refresh", success=False)
                raise AuthenticationFailedError("Refresh token expired")

            access_token = self.tokens.issue_access_token(user.username)
            new_refresh_token = self.tokens.issue_refresh_token(user.username)
            new_expiry = self.tokens.now() + self.tokens.refresh_token_expiration

            if not self.users.rotate_refresh_token(user.id, refresh_token, new_refresh_token, new_expiry):
                record_auth_event("refresh", success=False)
                logger.warning("Refresh token for %s was rotated concurrently", user.username)
                raise AuthenticationFailedError("Refresh token has already been used")

        record_auth_event("refresh", success=True)
        return TokenPair(
            access_token=access_token,
            refresh_token=new_refresh_token,
            expires_in=self.tokens.expiration_in_seconds(access_token),
            message="Token refreshed successfully",
            username=claims["sub"],
        )

    def logout(self, refresh_token: Optional[str] = None, access_token: Optional[str] = None) -> None:
        """
        Clear the stored refresh token and blacklist the access token.

        Raises:
            ValidationError: Neither token was provided
        """
        if not refresh_token and not access_token:
            raise ValidationError("Refresh token or access token is required")

        if refresh_token:
            with transaction(self.db):
                user = self.users.get_by_refresh_token(refresh_token)
                if user is not None:
                    self._clear_refresh_token(user)
                    logger.info("User %s logged out successfully", user.username)

        if access_token:
            self.blacklist_access_token(access_token)

        record_auth_event("logout", success=True)

    def logout_by_username(self, username: str, access_token: Optional[str] = None) -> None:
        with transaction(self.db):
            user = self.users.get_by_username(username)
            if user is not None:
                self._clear_refresh_token(user)
                logger.info("User %s logged out successfully", username)

        if access_token:
            self.blacklist_access_token(access_token)

        record_auth_event("logout", success=True)

    def blacklist_access_token(self, access_token: str) -> bool:
        blacklisted = self.tokens.blacklist(access_token)
        if blacklisted:
            logger.debug("Access token blacklisted")
        return blacklisted

    def _issue_tokens(self, user: User, message: str) -> TokenPair:
        access_token = self.tokens.issue_access_token(user.username)
        refresh_token = self.tokens.issue_refresh_token(user.username)

        user.refresh_token = refresh_token
        user.refresh_token_expiry = self.tokens.now() + self.tokens.refresh_token_expiration
        self.db.flush()

        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.tokens.expiration_in_seconds(access_token),
            message=message,
            username=user.username,
        )

    def _clear_refresh_token(self, user: User) -> None:
        user.refresh_token = None
        user.refresh_token_expiry = None
        self.db.flush()
