"""Password hashing with bcrypt via passlib"""

import logging

from passlib.context import CryptContext

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


class PasswordHasher:
    """Adaptive password hashing; verification is constant-time inside passlib"""

    def __init__(self, rounds: int = 12):
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, hashed_password: str) -> bool:
        """Return False for a mismatch or an unreadable stored hash"""
        try:
            return self._context.verify(password, hashed_password)
        except (ValueError, TypeError):
            logger.warning("Stored password hash could not be verified")
            return False


def is_valid_password(password: str) -> bool:
    return len(password) >= MIN_PASSWORD_LENGTH
