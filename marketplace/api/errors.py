"""Exception handlers.

Services raise domain exceptions and routers let them propagate; the
handlers registered here turn them into the standard error body
``{error_code, message, details, request_id}``.
"""

import structlog
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from marketplace.domain.exceptions import (
    BadRequestError,
    ConflictError,
    DomainError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
)

logger = structlog.get_logger()

# Most specific family first
_STATUS_BY_FAMILY: list[tuple[type[DomainError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (UnauthorizedError, status.HTTP_401_UNAUTHORIZED),
    (BadRequestError, status.HTTP_400_BAD_REQUEST),
]


def status_for(exc: DomainError) -> int:
    """HTTP status for a domain exception, 400 for unknown families."""
    for family, code in _STATUS_BY_FAMILY:
        if isinstance(exc, family):
            return code
    return status.HTTP_400_BAD_REQUEST


def error_body(
    request: Request,
    error_code: str,
    message: str,
    details: dict | list | None = None,
) -> dict:
    return {
        "error_code": error_code,
        "message": message,
        "details": details if details is not None else {},
        "request_id": getattr(request.state, "request_id", None),
    }


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Map a domain exception onto its HTTP status."""
    status_code = status_for(exc)
    logger.info(
        "Request rejected",
        path=request.url.path,
        method=request.method,
        status_code=status_code,
        error_code=exc.error_code,
        message=exc.message,
    )
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(error_body(request, exc.error_code, exc.message, exc.details)),
        headers=headers,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request body/query validation failures are 400 VALIDATION_ERROR."""
    details = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg", ""),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(request, "VALIDATION_ERROR", "Request validation failed", details),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent error format."""
    if isinstance(exc.detail, dict):
        content = error_body(
            request,
            exc.detail.get("error_code", "ERROR"),
            exc.detail.get("message", "An error occurred"),
            exc.detail.get("details"),
        )
    else:
        content = error_body(request, "HTTP_ERROR", str(exc.detail))
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(request, "INTERNAL_ERROR", "An internal error occurred"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install every handler on the application."""
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
