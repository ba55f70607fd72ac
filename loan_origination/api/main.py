"""FastAPI application factory"""

from typing import Optional

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from loan_origination.api.errors import register_exception_handlers
from loan_origination.api.middleware import JWTAuthenticationMiddleware, MetricsMiddleware, RequestIDMiddleware
from loan_origination.api.v1 import approvals, auth, calculations, customers, loan_applications, products
from loan_origination.config import Settings, get_settings, validate_jwt_settings
from loan_origination.infrastructure.cache.redis_client import create_redis_client
from loan_origination.infrastructure.observability.logging import setup_logging
from loan_origination.infrastructure.security.passwords import PasswordHasher
from loan_origination.infrastructure.security.tokens import TokenService


def create_app(settings: Optional[Settings] = None, cache=None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: Loaded configuration (default: process settings)
        cache: Blacklist cache client exposing get/set/delete/ttl (default: Redis)

    Raises:
        ConfigurationError: Weak JWT secret in production
    """
    settings = settings or get_settings()

    # Setup structured logging
    setup_logging(settings.log_level, settings.service_name)
    validate_jwt_settings(settings)

    app = FastAPI(
        title="Loan Origination System",
        description="Loan applications, tiered approvals and operator authentication",
        version="0.1.0",
        docs_url="/swagger",
        redoc_url=None,
        openapi_url="/v3/api-docs",
    )

    app.state.settings = settings
    app.state.token_service = TokenService(settings, cache if cache is not None else create_redis_client(settings))
    app.state.password_hasher = PasswordHasher(rounds=settings.bcrypt_rounds)

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(JWTAuthenticationMiddleware)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(customers.router, prefix="/api/customers", tags=["customers"])
    app.include_router(products.router, prefix="/api/products", tags=["products"])
    app.include_router(loan_applications.router, prefix="/api/loan-applications", tags=["loan-applications"])
    app.include_router(approvals.router, prefix="/api", tags=["approvals"])
    app.include_router(calculations.router, prefix="/api/calculations", tags=["calculations"])

    return app


app = create_app()
