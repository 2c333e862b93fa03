from __future__ import annotations

from typing import Callable

from fastapi import status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from storefront.core.config import settings
from storefront.core.logging import get_logger


class PayloadLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests whose payload exceeds MAX_REQUEST_SIZE_BYTES with a 413."""

    def __init__(self, app, max_bytes: int | None = None) -> None:
        super().__init__(app)
        self._max_bytes = max_bytes
        self.logger = get_logger("storefront.request_limit")

    @property
    def max_bytes(self) -> int:
        return self._max_bytes or settings.MAX_REQUEST_SIZE_BYTES

    async def dispatch(self, request: Request, call_next: Callable):
        declared = request.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > self.max_bytes:
            return self._reject(request, int(declared))

        # Starlette cachea el body; el webhook lo vuelve a leer crudo para la firma
        body = await request.body()
        if len(body) > self.max_bytes:
            return self._reject(request, len(body))

        return await call_next(request)

    def _reject(self, request: Request, size: int) -> JSONResponse:
        self.logger.warning(
            "Rejected request exceeding payload limit",
            extra={"method": request.method, "path": request.url.path, "content_length": size},
        )
        return JSONResponse(
            {"detail": "Request payload too large."},
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        )
