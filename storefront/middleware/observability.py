from __future__ import annotations

import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from storefront.core.logging import get_logger
from storefront.core.metrics import record_request_metrics, route_template

REQUEST_ID_HEADER = "X-Request-ID"

logger = get_logger("storefront.requests")


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Times every request, feeds the HTTP metrics and logs error responses.

    The incoming ``X-Request-ID`` is echoed back, or a new one is minted, so a
    storefront report can be matched against the logs.
    """

    def __init__(self, app, *, log_client_errors: bool = True) -> None:
        super().__init__(app)
        self.log_client_errors = log_client_errors

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            elapsed = time.perf_counter() - started
            record_request_metrics(request, 500, elapsed)
            logger.exception("Unhandled server error", extra=_context(request, request_id, 500, elapsed))
            raise

        elapsed = time.perf_counter() - started
        record_request_metrics(request, response.status_code, elapsed)
        response.headers[REQUEST_ID_HEADER] = request_id

        if response.status_code >= 500:
            logger.error("Server error response", extra=_context(request, request_id, response.status_code, elapsed))
        elif response.status_code >= 400 and self.log_client_errors:
            logger.warning("Client error response", extra=_context(request, request_id, response.status_code, elapsed))
        return response


def _context(request: Request, request_id: str, status_code: int, elapsed: float) -> dict:
    return {
        "request_id": request_id,
        "method": request.method,
        "path": route_template(request),
        "status_code": status_code,
        "duration_ms": round(elapsed * 1000, 2),
        "client_ip": client_ip(request),
    }


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None
