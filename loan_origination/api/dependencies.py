"""Dependency injection for FastAPI endpoints"""

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from loan_origination.api.middleware import extract_bearer_token
from loan_origination.config import Settings
from loan_origination.domain.exceptions import AuthenticationFailedError, ForbiddenError
from loan_origination.domain.models import ADMIN_ROLE, RecordStatus
from loan_origination.infrastructure.database.models import User
from loan_origination.infrastructure.database.repositories import UserRepository
from loan_origination.infrastructure.database.session import get_db
from loan_origination.infrastructure.security.passwords import PasswordHasher
from loan_origination.infrastructure.security.tokens import TokenService
from loan_origination.services.approvals import ApprovalWorkflowService
from loan_origination.services.auth import AuthService
from loan_origination.services.customers import CustomerService
from loan_origination.services.loan_applications import LoanApplicationService
from loan_origination.services.products import ProductService


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_password_hasher(request: Request) -> PasswordHasher:
    return request.app.state.password_hasher


def get_bearer_token(request: Request) -> Optional[str]:
    """Bearer token accepted by the authentication middleware, else the raw header value"""
    token = getattr(request.state, "token", None)
    if token is not None:
        return token
    return extract_bearer_token(request.headers.get("Authorization"))


def get_auth_service(
    db: Session = Depends(get_db),
    token_service: TokenService = Depends(get_token_service),
    password_hasher: PasswordHasher = Depends(get_password_hasher),
) -> AuthService:
    return AuthService(db, token_service, password_hasher)


def get_loan_application_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
) -> LoanApplicationService:
    return LoanApplicationService(db, settings)


def get_approval_service(db: Session = Depends(get_db)) -> ApprovalWorkflowService:
    return ApprovalWorkflowService(db)


def get_customer_service(db: Session = Depends(get_db)) -> CustomerService:
    return CustomerService(db)


def get_product_service(db: Session = Depends(get_db)) -> ProductService:
    return ProductService(db)


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    token_service: TokenService = Depends(get_token_service),
) -> User:
    """
    Resolve the request principal from the token bound by the middleware.

    Raises:
        AuthenticationFailedError: No token, unknown user, or token not valid for that user
        ForbiddenError: User account is not active
    """
    token = getattr(request.state, "token", None)
    username = getattr(request.state, "token_subject", None)
    if token is None or username is None:
        raise AuthenticationFailedError("Authentication required")

    user = UserRepository(db).get_by_username(username)
    if user is None or not token_service.validate(token, user.username):
        raise AuthenticationFailedError("Invalid token")

    if user.status_code != RecordStatus.ACTIVE.value:
        raise ForbiddenError("User account is not active")

    request.state.user = user
    return user


def ensure_role(user: User, role: str) -> None:
    """
    Allow the action only for the owning role or ADMIN.

    Raises:
        ForbiddenError: Caller holds neither role
    """
    if user.role_code != ADMIN_ROLE and user.role_code != role:
        raise ForbiddenError(f"Only {role} can act on this approval")
