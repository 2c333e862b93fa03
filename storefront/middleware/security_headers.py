from __future__ import annotations

from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from storefront.core.config import settings


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach the configured security headers to every response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        headers = {
            "Content-Security-Policy": settings.CONTENT_SECURITY_POLICY,
            "X-Frame-Options": settings.X_FRAME_OPTIONS,
            "X-Content-Type-Options": settings.X_CONTENT_TYPE_OPTIONS,
            "Referrer-Policy": settings.REFERRER_POLICY,
        }
        # HSTS solo tiene sentido detrás de HTTPS
        if settings.cookie_secure:
            headers["Strict-Transport-Security"] = settings.STRICT_TRANSPORT_SECURITY
        for name, value in headers.items():
            response.headers.setdefault(name, value)
        return response
