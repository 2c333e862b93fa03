from __future__ import annotations

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.logging import get_logger
from storefront.services import order_service

logger = get_logger("storefront.payments")

MATERIALIZING_EVENTS = frozenset(
    {
        "checkout.session.completed",
        "checkout.session.async_payment_succeeded",
    }
)


async def handle_stripe_event(db: AsyncSession, event: dict) -> uuid.UUID | None:
    """Dispatch a verified Stripe event; returns the materialized order id, if any."""
    event_type = event.get("type")
    obj = (event.get("data") or {}).get("object") or {}

    if event_type in MATERIALIZING_EVENTS:
        session_id = obj.get("id")
        if not session_id:
            logger.warning("Checkout event without session id", extra={"event_id": event.get("id")})
            return None
        metadata = obj.get("metadata") or {}
        user_id = (metadata.get("user_id") or metadata.get("userId") or "").strip() or None
        return await order_service.materialize_order(
            db, session_id, fallback_user_id=user_id, trigger="webhook"
        )

    if event_type == "payment_intent.payment_failed":
        logger.warning("Stripe payment failed", extra={"payment_intent_id": obj.get("id")})
        return None

    logger.debug("Ignoring Stripe event", extra={"event_type": event_type})
    return None
