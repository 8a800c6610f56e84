"""API middleware for the marketplace.

Provides:
- Request ID correlation
- Bearer token resolution through the identity port
- Error handling
"""

import time
from typing import Callable
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from marketplace.infrastructure.container import get_container

logger = structlog.get_logger()


# ============================================================================
# Request ID Middleware
# ============================================================================


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Middleware to add request ID for correlation.

    Generates or extracts a request ID and adds it to:
    - Request state for access in handlers
    - Response headers for client correlation
    - Log context for tracing
    """

    HEADER_NAME = "X-Request-ID"

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        request_id = request.headers.get(self.HEADER_NAME) or str(uuid4())
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start_time = time.perf_counter()
        response = None
        try:
            response = await call_next(request)
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                "Request completed",
                method=request.method,
                path=request.url.path,
                status_code=getattr(response, "status_code", 500),
                duration_ms=round(duration_ms, 2),
            )
            structlog.contextvars.unbind_contextvars("request_id")

        response.headers[self.HEADER_NAME] = request_id
        return response


# ============================================================================
# Identity Middleware
# ============================================================================


class IdentityMiddleware(BaseHTTPMiddleware):
    """Resolve ``Authorization: Bearer <token>`` into a principal.

    The principal (or None) is stored on ``request.state.principal``.
    Rejecting anonymous callers is left to the role dependencies so
    public and anonymous-cart routes need no path list here.
    """

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        request.state.principal = None

        auth_header = request.headers.get("Authorization")
        if auth_header:
            parts = auth_header.split(" ", 1)
            if len(parts) == 2 and parts[0].lower() == "bearer" and parts[1].strip():
                principal = await get_container().identity.resolve(parts[1].strip())
                if principal is None:
                    logger.warning(
                        "Unknown bearer token",
                        path=request.url.path,
                        method=request.method,
                    )
                else:
                    request.state.principal = principal
                    structlog.contextvars.bind_contextvars(
                        user_id=principal.user_id, role=principal.role.value
                    )
            else:
                logger.warning(
                    "Invalid authorization format",
                    path=request.url.path,
                    method=request.method,
                )

        try:
            return await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("user_id", "role")


# ============================================================================
# Error Handling Middleware
# ============================================================================


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware for consistent error handling.

    Catches exceptions raised by the other middleware and returns
    standardized error responses.
    """

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            request_id = getattr(request.state, "request_id", None)

            logger.exception(
                "Unhandled exception",
                path=request.url.path,
                method=request.method,
                error=str(e),
            )

            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error_code": "INTERNAL_ERROR",
                    "message": "An internal error occurred",
                    "details": {},
                    "request_id": request_id,
                },
            )


# ============================================================================
# Middleware Setup
# ============================================================================


def setup_middleware(app: FastAPI) -> None:
    """Configure all middleware for the application.

    Middleware is added in reverse order (last added = first executed).

    Args:
        app: FastAPI application instance.
    """
    # Error handling
    app.add_middleware(ErrorHandlerMiddleware)

    # Principal resolution
    app.add_middleware(IdentityMiddleware)

    # Request ID correlation (outermost, so every log carries the id)
    app.add_middleware(RequestIdMiddleware)
