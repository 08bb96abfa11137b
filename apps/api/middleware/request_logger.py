"""Request logging middleware"""
import logging
import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every API request with its outcome and the caller's identity"""

    skip_paths = ("/health", "/docs", "/openapi.json", "/redoc", "/favicon.ico")

    async def dispatch(self, request: Request, call_next):
        # Skip logging for health check and docs
        if any(request.url.path.startswith(path) for path in self.skip_paths):
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - started) * 1000

        # Set by the auth dependency once the token has been verified
        user = getattr(request.state, "user", None)
        caller = f"{user.role.value}:{user.user_id}" if user else "anonymous"

        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(
            level,
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"({duration_ms:.1f} ms) by {caller} from {self._client_ip(request)}"
        )
        return response

    @staticmethod
    def _client_ip(request: Request) -> str:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
        return request.client.host if request.client else "unknown"
