"""
Security headers middleware
"""
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from .security import security_headers

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses"""

    # Validation and sync endpoints are called from the external book origin
    # and may be framed by it.
    FRAMEABLE_PREFIXES = ("/api/v1/book-access/",)
    # Swagger UI and ReDoc load their assets from a CDN
    DOCS_PREFIXES = ("/docs", "/redoc")

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        headers = security_headers()
        if request.url.path.startswith(self.FRAMEABLE_PREFIXES):
            headers.pop("X-Frame-Options", None)
        if request.url.path.startswith(self.DOCS_PREFIXES):
            headers.pop("Content-Security-Policy", None)

        for name, value in headers.items():
            response.headers.setdefault(name, value)

        return response
