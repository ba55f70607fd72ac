"""Domain-specific exceptions, each tagged with the failure category it surfaces as"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Failure categories mapped once to HTTP at the transport boundary"""

    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    AUTH_FAILED = "AUTH_FAILED"
    REVOKED = "REVOKED"
    EXPIRED = "EXPIRED"
    FORBIDDEN = "FORBIDDEN"
    INTERNAL = "INTERNAL"


class DomainException(Exception):
    """Base exception for domain layer"""

    kind: ErrorKind = ErrorKind.INTERNAL
    code: Optional[str] = None

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(DomainException):
    """Missing or invalid input, out-of-range amount, or violated state precondition"""

    kind = ErrorKind.VALIDATION


class InvalidStateTransitionError(ValidationError):
    """Requested status change is not in the transition table"""

    def __init__(self, current_status: str, requested_status: str):
        super().__init__(f"Invalid status transition from {current_status} to {requested_status}")
        self.current_status = current_status
        self.requested_status = requested_status


class NotFoundError(DomainException):
    """Unknown id, code or phone"""

    kind = ErrorKind.NOT_FOUND


class ConflictError(DomainException):
    """Duplicate unique field, or deletion blocked by dependent rows"""

    kind = ErrorKind.CONFLICT


class AuthenticationFailedError(DomainException):
    """Bad credentials or unusable token"""

    kind = ErrorKind.AUTH_FAILED


class InvalidTokenError(AuthenticationFailedError):
    """Token is malformed, has a bad signature, or the wrong issuer/audience/type"""

    code = "TOKEN_INVALID"


class TokenExpiredError(AuthenticationFailedError):
    """Token is past its exp claim"""

    kind = ErrorKind.EXPIRED
    code = "TOKEN_EXPIRED"


class TokenRevokedError(AuthenticationFailedError):
    """Token signature is on the blacklist"""

    kind = ErrorKind.REVOKED
    code = "TOKEN_BLACKLISTED"


class ForbiddenError(DomainException):
    """Inactive account or insufficient role"""

    kind = ErrorKind.FORBIDDEN


class InternalError(DomainException):
    """Storage, cache or programming failure"""

    kind = ErrorKind.INTERNAL


class ConfigurationError(InternalError):
    """Configuration is unsafe for the current environment"""

    pass
