"""Signed bearer tokens (HS256 JWT) with a Redis-backed blacklist"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from jose import jwt, JWTError
from redis.exceptions import RedisError

from loan_origination.config import Settings
from loan_origination.domain.exceptions import (
    AuthenticationFailedError,
    InvalidTokenError,
    TokenExpiredError,
    TokenRevokedError,
)
from loan_origination.infrastructure.observability.metrics import blacklist_cache_error_counter

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

BLACKLIST_KEY_PREFIX = "jwt:blacklist:"
BLACKLIST_VALUE = "blacklisted"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def token_signature(token: str) -> str:
    """Signature segment of a compact JWT; the whole token if it is not three segments"""
    parts = token.split(".")
    if len(parts) == 3:
        return parts[2]
    return token


def blacklist_key(token: str) -> str:
    return BLACKLIST_KEY_PREFIX + token_signature(token)


class TokenService:
    """
    Issue, parse and validate access/refresh tokens.

    Claims: sub (username), iss, aud, iat, exp, type ("access" | "refresh")
    and a random jti so two tokens issued in the same second differ.

    The blacklist is keyed by the signature segment and lives in a shared
    cache with TTL equal to the token's remaining lifetime. Cache failures
    fail open: lookups report "not blacklisted" and writes are skipped.
    """

    def __init__(self, settings: Settings, cache, clock: Callable[[], datetime] = _utcnow):
        if not settings.jwt_secret_key:
            raise ValueError("JWT secret key is not configured")
        self._secret = settings.jwt_secret_key
        self._issuer = settings.jwt_issuer
        self._audience = settings.jwt_audience
        self.access_token_expiration: timedelta = settings.jwt_access_token_expiration
        self.refresh_token_expiration: timedelta = settings.jwt_refresh_token_expiration
        self._cache = cache
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    # Issuing

    def issue_access_token(self, username: str) -> str:
        return self._issue(username, self.access_token_expiration, ACCESS_TOKEN_TYPE)

    def issue_refresh_token(self, username: str) -> str:
        return self._issue(username, self.refresh_token_expiration, REFRESH_TOKEN_TYPE)

    def _issue(self, username: str, lifetime: timedelta, token_type: str) -> str:
        issued_at = self.now()
        claims = {
            "sub": username,
            "iss": self._issuer,
            "aud": self._audience,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + lifetime).timestamp()),
            "type": token_type,
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(claims, self._secret, algorithm=ALGORITHM)

    # Parsing

    def parse(self, token: str) -> Dict[str, Any]:
        """
        Verify signature, issuer and audience, then check expiry.

        Does not consult the blacklist.

        Raises:
            InvalidTokenError: Malformed token, bad signature, wrong iss/aud
            TokenExpiredError: exp is not in the future
        """
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                audience=self._audience,
                issuer=self._issuer,
                options={"verify_exp": False},
            )
        except JWTError as e:
            raise InvalidTokenError(f"Invalid token: {e}") from e

        if not claims.get("sub") or "exp" not in claims:
            raise InvalidTokenError("Token is missing required claims")

        if self._is_past(claims["exp"]):
            raise TokenExpiredError("Token expired")
        return claims

    def verify(self, token: str, expected_type: Optional[str] = None) -> Dict[str, Any]:
        """
        Parse the token and reject it if blacklisted or of an unexpected type.

        Raises:
            InvalidTokenError, TokenExpiredError, TokenRevokedError
        """
        claims = self.parse(token)
        if expected_type is not None and claims.get("type") != expected_type:
            raise InvalidTokenError(f"Expected a {expected_type} token")
        if self.is_blacklisted(token):
            raise TokenRevokedError("Token has been revoked")
        return claims

    def validate(self, token: str, expected_username: Optional[str] = None) -> bool:
        """True iff the signature verifies, exp is in the future, the token is not
        blacklisted, and (when given) sub equals `expected_username`"""
        try:
            claims = self.verify(token)
        except AuthenticationFailedError as e:
            logger.debug("Token failed validation: %s", e.message)
            return False
        if expected_username is not None and claims["sub"] != expected_username:
            return False
        return True

    def extract_username(self, token: str) -> str:
        return self.parse(token)["sub"]

    def extract_token_type(self, token: str) -> Optional[str]:
        return self.parse(token).get("type")

    def _unverified_exp(self, token: str) -> int:
        try:
            claims = jwt.get_unverified_claims(token)
        except JWTError as e:
            raise InvalidTokenError(f"Invalid token: {e}") from e
        if "exp" not in claims:
            raise InvalidTokenError("Token has no exp claim")
        return int(claims["exp"])

    def is_expired(self, token: str) -> bool:
        """True when a correctly signed token is past its exp claim"""
        self._verify_signature(token)
        return self._is_past(self._unverified_exp(token))

    def _verify_signature(self, token: str) -> None:
        try:
            jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={"verify_exp": False, "verify_aud": False, "verify_iss": False},
            )
        except JWTError as e:
            raise InvalidTokenError(f"Invalid token: {e}") from e

    def expiration_in_seconds(self, token: str) -> int:
        """Remaining lifetime in whole seconds (negative once expired)"""
        remaining = self._unverified_exp(token) - self.now().timestamp()
        return int(remaining)

    def _is_past(self, exp: int) -> bool:
        return int(exp) <= self.now().timestamp()

    # Blacklist

    def is_blacklisted(self, token: str) -> bool:
        try:
            return self._cache.get(blacklist_key(token)) == BLACKLIST_VALUE
        except RedisError as e:
            blacklist_cache_error_counter.labels(operation="read").inc()
            logger.error("Error checking token blacklist, treating token as not blacklisted: %s", e)
            return False

    def blacklist(self, token: str) -> bool:
        """
        Add a still-valid token to the blacklist until it expires.

        Returns:
            True when the token was written to the cache
        """
        if not self.validate(token):
            logger.warning("Attempted to blacklist invalid or expired token")
            return False

        ttl_seconds = self.expiration_in_seconds(token)
        if ttl_seconds <= 0:
            logger.warning("Token already expired, not adding to blacklist")
            return False

        try:
            self._cache.set(blacklist_key(token), BLACKLIST_VALUE, ex=ttl_seconds)
        except RedisError as e:
            blacklist_cache_error_counter.labels(operation="write").inc()
            logger.error("Failed to blacklist token: %s", e)
            return False

        logger.debug("Token blacklisted with TTL: %s seconds", ttl_seconds)
        return True

    def blacklist_ttl(self, token: str) -> Optional[int]:
        """Remaining blacklist TTL in seconds; None when the cache is unavailable"""
        try:
            return self._cache.ttl(blacklist_key(token))
        except RedisError as e:
            blacklist_cache_error_counter.labels(operation="read").inc()
            logger.error("Error getting blacklist TTL: %s", e)
            return None

    def remove_from_blacklist(self, token: str) -> None:
        try:
            self._cache.delete(blacklist_key(token))
        except RedisError as e:
            blacklist_cache_error_counter.labels(operation="delete").inc()
            logger.error("Error removing token from blacklist: %s", e)
