"""FastAPI middleware for request tracing, metrics and bearer-token authentication"""

import uuid
import time
from typing import Optional

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from loan_origination.domain.exceptions import InvalidTokenError, TokenExpiredError
from loan_origination.infrastructure.observability.metrics import request_duration_histogram
from loan_origination.infrastructure.security.tokens import ACCESS_TOKEN_TYPE

PUBLIC_PATHS = frozenset(
    {
        "/api/auth/login",
        "/api/auth/refresh",
        "/api/auth/register",
        "/api/auth/logout",
        "/api/auth/health",
        "/error",
        "/health",
        "/metrics",
    }
)
PUBLIC_PREFIXES = ("/swagger", "/v3/api-docs", "/webjars")

BEARER_PREFIX = "Bearer "


def is_public_path(path: str) -> bool:
    if path in PUBLIC_PATHS:
        return True
    return any(path == prefix or path.startswith(prefix + "/") for prefix in PUBLIC_PREFIXES)


def _unauthorized(message: str, code: str) -> JSONResponse:
    return JSONResponse(status_code=401, content={"error": message, "code": code})


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Token from an `Authorization: Bearer <token>` header value"""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add unique request ID to each request for distributed tracing"""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record HTTP request metrics"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        duration = time.time() - start_time
        # Label by route template so path parameters don't explode cardinality
        route = request.scope.get("route")
        request_duration_histogram.labels(
            method=request.method,
            endpoint=getattr(route, "path", request.url.path),
            status=response.status_code,
        ).observe(duration)

        return response


class JWTAuthenticationMiddleware(BaseHTTPMiddleware):
    """
    Reject revoked, expired or invalid bearer tokens before routing.

    Requests on public paths and requests without a bearer token pass
    through untouched; endpoints that need a principal deny them later.
    Accepted tokens are exposed as `request.state.token` and
    `request.state.token_subject`.
    """

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if is_public_path(path):
            return await call_next(request)

        token = extract_bearer_token(request.headers.get("Authorization"))
        if token is None:
            return await call_next(request)

        token_service = request.app.state.token_service

        # Cache lookups block on the network
        if await run_in_threadpool(token_service.is_blacklisted, token):
            return _unauthorized("Token has been revoked", "TOKEN_BLACKLISTED")

        try:
            claims = token_service.parse(token)
        except TokenExpiredError:
            return _unauthorized("Token expired", "TOKEN_EXPIRED")
        except InvalidTokenError:
            return _unauthorized("Invalid token", "TOKEN_INVALID")

        if claims.get("type") != ACCESS_TOKEN_TYPE:
            return _unauthorized("Invalid token", "TOKEN_INVALID")

        request.state.token = token
        request.state.token_subject = claims["sub"]
        return await call_next(request)
