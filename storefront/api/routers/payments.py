from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.logging import get_logger, security_alert
from storefront.core.metrics import record_webhook_event
from storefront.db.operations import commit_async, rollback_async
from storefront.db.session_async import get_async_db
from storefront.middleware.observability import client_ip
from storefront.services import payment_service
from storefront.services.payment_providers import WebhookSignatureError, stripe_checkout

router = APIRouter(prefix="/payments", tags=["payments"])

logger = get_logger("storefront.payments.api")


@router.post("/stripe/webhook")
async def stripe_webhook(request: Request, db: AsyncSession = Depends(get_async_db)):
    signature = request.headers.get("stripe-signature")
    if not signature:
        return JSONResponse({"error": "Missing Stripe signature."}, status_code=400)

    payload = await request.body()
    try:
        event = stripe_checkout.construct_webhook_event(payload, signature)
    except WebhookSignatureError as exc:
        security_alert("Invalid Stripe webhook signature", client_ip=client_ip(request))
        record_webhook_event("unknown", "invalid_signature")
        return JSONResponse({"error": str(exc)}, status_code=400)

    event_type = event.get("type") or "unknown"
    logger.info("Stripe event received", extra={"event_id": event.get("id"), "event_type": event_type})
    try:
        await payment_service.handle_stripe_event(db, event)
        await commit_async(db)
    except Exception:
        # non-2xx: Stripe reintenta
        await rollback_async(db)
        record_webhook_event(event_type, "failed")
        raise

    record_webhook_event(event_type, "processed")
    return {"received": True}
