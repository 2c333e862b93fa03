from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from storefront.core.logging import get_logger
from storefront.services.exceptions import (
    CartConsistencyError,
    ConflictError,
    DomainValidationError,
    EmptyCartError,
    GuestSessionError,
    OrderMaterializationError,
    ResourceNotFoundError,
    ServiceError,
)
from storefront.services.payment_providers import (
    PaymentProviderConfigurationError,
    PaymentProviderError,
    WebhookSignatureError,
)

logger = get_logger("storefront.errors")

# excepción -> status; FastAPI resuelve por MRO, así que la más específica gana
SERVICE_ERROR_STATUS: dict[type[Exception], int] = {
    ResourceNotFoundError: 404,
    DomainValidationError: 422,
    ConflictError: 409,
    EmptyCartError: 400,
    CartConsistencyError: 500,
    GuestSessionError: 500,
    OrderMaterializationError: 500,
    ServiceError: 400,
    WebhookSignatureError: 400,
    PaymentProviderConfigurationError: 503,
    PaymentProviderError: 502,
}


def _handler_for(status_code: int):
    async def handle(request: Request, exc: Exception) -> JSONResponse:
        detail = getattr(exc, "detail", None) or str(exc)
        if status_code >= 500:
            logger.error(
                "Service error",
                extra={"path": request.url.path, "error_type": type(exc).__name__, "detail": detail},
            )
        return JSONResponse(status_code=status_code, content={"detail": detail})

    return handle


def register_exception_handlers(app: FastAPI) -> None:
    for exc_class, status_code in SERVICE_ERROR_STATUS.items():
        app.add_exception_handler(exc_class, _handler_for(status_code))
