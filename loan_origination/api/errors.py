"""Single mapping from categorized failures to HTTP responses"""

import logging
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from loan_origination.domain.exceptions import DomainException, ErrorKind
from loan_origination.infrastructure.observability.logging import log_request_failure

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred"

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.AUTH_FAILED: 401,
    ErrorKind.REVOKED: 401,
    ErrorKind.EXPIRED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.INTERNAL: 500,
}


def error_response(status: int, message: str, path: str, code: Optional[str] = None) -> JSONResponse:
    body = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "status": status,
        "error": HTTPStatus(status).phrase,
        "message": message,
        "path": path,
    }
    if code:
        body["code"] = code
    return JSONResponse(status_code=status, content=body)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


async def handle_domain_exception(request: Request, exc: DomainException) -> JSONResponse:
    status = STATUS_BY_KIND[exc.kind]
    path = request.url.path

    if status >= 500:
        logger.error("Internal error on %s: %s", path, exc.message, exc_info=exc)
        return error_response(status, GENERIC_ERROR_MESSAGE, path)

    log_request_failure(_request_id(request), path, status, exc.message)
    code = exc.code if exc.kind in (ErrorKind.REVOKED, ErrorKind.EXPIRED) else None
    return error_response(status, exc.message, path, code)


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else first.get("msg")
    else:
        message = "Invalid request"

    log_request_failure(_request_id(request), request.url.path, 400, message)
    return error_response(400, message, request.url.path)


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail), request.url.path)


async def handle_database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error on %s", request.url.path, exc_info=exc)
    return error_response(500, GENERIC_ERROR_MESSAGE, request.url.path)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unexpected error on %s", request.url.path, exc_info=exc)
    return error_response(500, GENERIC_ERROR_MESSAGE, request.url.path)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainException, handle_domain_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(SQLAlchemyError, handle_database_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
