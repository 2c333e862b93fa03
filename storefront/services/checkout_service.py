from __future__ import annotations

import uuid
from urllib.parse import urljoin

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from storefront.core.config import settings
from storefront.core.logging import get_logger
from storefront.domain.identity import Identity, UserIdentity
from storefront.services import cart_service
from storefront.services.catalog_service import variant_image_urls
from storefront.services.exceptions import EmptyCartError, ResourceNotFoundError
from storefront.services.payment_providers import (
    PaymentProviderConfigurationError,
    PaymentProviderError,
    stripe_checkout,
)

logger = get_logger("storefront.checkout")

CHECKOUT_FAILED = "Unable to start checkout."


def _absolute_url(url: str | None, base_url: str) -> str | None:
    if not url:
        return None
    if url.startswith(("http://", "https://")):
        return url
    return urljoin(base_url.rstrip("/") + "/", url.lstrip("/"))


def _image_list(url: str | None, base_url: str) -> list[str]:
    absolute = _absolute_url(url, base_url)
    return [absolute] if absolute else []


def _build_payload(cart_id: uuid.UUID, user_id: uuid.UUID | None, lines, images, base_url: str) -> dict:
    base = base_url.rstrip("/")
    return {
        "mode": "payment",
        "payment_method_types": ["card"],
        "billing_address_collection": "required",
        "shipping_address_collection": {
            "allowed_countries": list(settings.STRIPE_ALLOWED_SHIPPING_COUNTRIES),
        },
        "success_url": f"{base}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{base}/cart",
        "client_reference_id": str(cart_id),
        "metadata": {
            "cart_id": str(cart_id),
            "user_id": str(user_id) if user_id else "",
        },
        "line_items": [
            {
                "quantity": line.quantity,
                "price_data": {
                    "currency": settings.STRIPE_CURRENCY,
                    "unit_amount": line.unit_amount,
                    "product_data": {
                        "name": line.product_name,
                        "images": _image_list(images.get(line.variant_id), base),
                        "metadata": {"variant_id": str(line.variant_id)},
                    },
                },
            }
            for line in lines
        ],
    }


async def create_checkout_session(
    db: AsyncSession,
    identity: Identity,
    cart_id: uuid.UUID,
    base_url: str | None = None,
) -> str:
    """Start a hosted checkout for the caller's own cart and return its URL."""
    cart = await cart_service.get_owner_cart(db, identity)
    # carrito ajeno o inexistente: mismo 404 para no filtrar ids
    if cart is None or cart.id != cart_id:
        raise ResourceNotFoundError("Cart not found")

    lines = await cart_service.snapshot_lines(db, cart.id)
    if not lines:
        raise EmptyCartError("Cart is empty.")

    images = await variant_image_urls(db, [(line.product_id, line.variant_id) for line in lines])
    user_id = identity.user_id if isinstance(identity, UserIdentity) else None
    payload = _build_payload(cart.id, user_id, lines, images, base_url or settings.FRONTEND_URL)

    try:
        session = await run_in_threadpool(stripe_checkout.create_checkout_session, payload)
    except PaymentProviderConfigurationError:
        raise
    except PaymentProviderError as exc:
        logger.error("Checkout session creation failed", extra={"cart_id": str(cart.id), "error": str(exc)})
        raise PaymentProviderError(CHECKOUT_FAILED) from exc

    url = session.get("url")
    if not url:
        logger.error("Checkout session without redirect URL", extra={"cart_id": str(cart.id)})
        raise PaymentProviderError(CHECKOUT_FAILED)

    logger.info(
        "Checkout session created",
        extra={"cart_id": str(cart.id), "checkout_session_id": session.get("id"), "lines": len(lines)},
    )
    return url
