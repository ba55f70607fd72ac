"""/api/auth - registration, login, token refresh and logout"""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from loan_origination.api.dependencies import get_auth_service, get_bearer_token, get_current_user
from loan_origination.api.v1.schemas import (
    HealthResponse,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    RefreshTokenRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from loan_origination.domain.models import TokenPair
from loan_origination.infrastructure.database.models import User
from loan_origination.services.auth import AuthService

router = APIRouter()


def _token_response(tokens: TokenPair) -> TokenResponse:
    return TokenResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_type=tokens.token_type,
        expires_in=tokens.expires_in,
        username=tokens.username,
        message=tokens.message,
    )


@router.post("/register", response_model=TokenResponse)
def register(body: RegisterRequest, auth: AuthService = Depends(get_auth_service)):
    """Create an ACTIVE user and return a fresh token pair"""
    tokens = auth.register(
        username=body.username,
        email=body.email,
        password=body.password,
        phone=body.phone,
        branch_id=body.branch_id,
        role_code=body.role_code,
    )
    return _token_response(tokens)


@router.post("/login", response_model=TokenResponse)
def login(body: LoginRequest, auth: AuthService = Depends(get_auth_service)):
    return _token_response(auth.authenticate(body.username_or_email, body.password))


@router.post("/refresh", response_model=TokenResponse)
def refresh(body: RefreshTokenRequest, auth: AuthService = Depends(get_auth_service)):
    """Rotate the refresh token; the submitted one stops working immediately"""
    return _token_response(auth.refresh(body.refresh_token))


@router.post("/logout", response_model=MessageResponse)
def logout(
    body: Optional[LogoutRequest] = None,
    access_token: Optional[str] = Depends(get_bearer_token),
    auth: AuthService = Depends(get_auth_service),
):
    """
    Clear the stored refresh token and blacklist the bearer access token.

    Either the body's refreshToken or an Authorization header is required.
    """
    refresh_token = body.refresh_token if body else None
    auth.logout(refresh_token=refresh_token, access_token=access_token)
    return MessageResponse(message="Logout successful")


@router.get("/health", response_model=HealthResponse)
def health(request: Request):
    return HealthResponse(status="UP", service=request.app.state.settings.service_name)


@router.get("/me", response_model=UserResponse)
def me(user: User = Depends(get_current_user)):
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        phone=user.phone,
        role_code=user.role_code,
        branch_id=user.branch_id,
        status_code=user.status_code,
    )
