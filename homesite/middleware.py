"""HTTP middleware: request logging and security headers."""

from __future__ import annotations

import logging
import os
import time
from typing import Callable
from urllib.parse import urlsplit

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .settings import S3_ENDPOINT_URL

logger = logging.getLogger(__name__)

# Paths too noisy to log on every hit
EXCLUDED_PATHS = {
    "/api/health",
    "/favicon.ico",
}

EXCLUDED_PATH_PREFIXES = (
    "/api/media/",
    "/static/",
)


def _origin(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log one line per request with method, path, status and duration.

    Server errors are logged at ERROR level, client errors at WARNING.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        started = time.perf_counter()

        response = await call_next(request)

        if self._should_log(request, path):
            elapsed_ms = (time.perf_counter() - started) * 1000
            level = self._level_for(response.status_code)
            logger.log(level, "%s %s -> %d (%.1f ms)", request.method, path, response.status_code, elapsed_ms)

        return response

    def _should_log(self, request: Request, path: str) -> bool:
        # Skip OPTIONS requests (CORS preflight)
        if request.method == "OPTIONS":
            return False

        if path in EXCLUDED_PATHS:
            return False

        return not path.startswith(EXCLUDED_PATH_PREFIXES)

    def _level_for(self, status_code: int) -> int:
        if status_code >= 500:
            return logging.ERROR
        elif status_code >= 400:
            return logging.WARNING
        else:
            return logging.INFO


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses.

    Implements OWASP recommended security headers to protect against
    common web vulnerabilities.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"

        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"

        # Referrer policy - only send origin on cross-origin requests
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # Permissions policy - disable unnecessary browser features
        response.headers["Permissions-Policy"] = (
            "geolocation=(), microphone=(), camera=(), payment=(), usb=()"
        )

        # HSTS - Force HTTPS in production
        environment = os.getenv("ENVIRONMENT", "development")
        if environment == "production" or request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        # Pages use inline styles; scripts only come from /static. Uploads PUT
        # straight to the object store.
        csp_directives = [
            "default-src 'self'",
            "script-src 'self'",
            f"connect-src 'self' {_origin(S3_ENDPOINT_URL)}",
            "style-src 'self' 'unsafe-inline'",
            "img-src 'self' data: blob:",
            "frame-ancestors 'none'",
            "base-uri 'self'",
            "form-action 'self'",
        ]
        response.headers["Content-Security-Policy"] = "; ".join(csp_directives)

        return response
