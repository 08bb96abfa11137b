"""
Global exception handlers
Every error leaves the API in the same {success: false, error: {...}} envelope.
"""
from fastapi import FastAPI, Request, HTTPException
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from slowapi.errors import RateLimitExceeded
import logging

from utils.response import error_response

logger = logging.getLogger(__name__)

ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    429: "RATE_LIMITED",
    500: "INTERNAL_ERROR",
    502: "BAD_GATEWAY",
    503: "SERVICE_UNAVAILABLE",
}


def setup_exception_handlers(app: FastAPI):
    """Install the envelope-producing exception handlers on the app"""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code >= 500:
            logger.error(f"HTTP {exc.status_code} on {request.method} {request.url.path}: {exc.detail}")
        else:
            logger.warning(f"HTTP {exc.status_code} on {request.method} {request.url.path}: {exc.detail}")
        response = error_response(
            message=str(exc.detail),
            status_code=exc.status_code,
            code=ERROR_CODES.get(exc.status_code, "UNKNOWN_ERROR"),
        )
        if getattr(exc, "headers", None):
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Invalid request data on {request.method} {request.url.path}: {exc.errors()}")
        return error_response(
            message="Invalid request data",
            status_code=400,
            code=ERROR_CODES[400],
            details=exc.errors(),
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.warning(f"Rate limit exceeded for {request.client.host if request.client else 'unknown'} on {request.url.path}")
        return error_response(
            message=f"Too many requests: {exc.detail}",
            status_code=429,
            code=ERROR_CODES[429],
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {type(exc).__name__}: {exc}")
        return error_response(
            message="Internal server error",
            status_code=500,
            code=ERROR_CODES[500],
        )
