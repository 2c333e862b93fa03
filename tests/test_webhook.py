import hashlib
import hmac
import json
import time

import httpx
import pytest

from storefront.core.config import settings
from storefront.domain.enums import CartOwnerKind
from storefront.main import app
from storefront.models.cart import Cart, CartItem
from storefront.models.order import Order, Payment

WEBHOOK_URL = "/api/v1/payments/stripe/webhook"


def _signed(event: dict, secret: str | None = None, timestamp: int | None = None) -> tuple[bytes, str]:
    body = json.dumps(event).encode()
    timestamp = timestamp or int(time.time())
    signed_payload = f"{timestamp}.{body.decode()}".encode()
    digest = hmac.new((secret or settings.STRIPE_WEBHOOK_SECRET).encode(), signed_payload, hashlib.sha256).hexdigest()
    return body, f"t={timestamp},v1={digest}"


def _event(event_type: str, obj: dict) -> dict:
    return {"id": "evt_test", "type": event_type, "data": {"object": obj}}


async def _post(client, event: dict, **sign_kwargs):
    body, header = _signed(event, **sign_kwargs)
    return await client.post(
        WEBHOOK_URL, content=body, headers={"Stripe-Signature": header, "Content-Type": "application/json"}
    )


def _paid_cart_session(db_session, user, catalog, fake_stripe) -> dict:
    cart = Cart(owner_kind=CartOwnerKind.user, user_id=user.id)
    db_session.add(cart)
    db_session.flush()
    db_session.add(CartItem(cart_id=cart.id, variant_id=catalog.sale_variant_id, quantity=2))
    db_session.commit()

    session = fake_stripe.add_session(metadata={"cart_id": str(cart.id), "user_id": str(user.id)})
    return fake_stripe.mark_paid(session["id"], payment_intent="pi_webhook")


@pytest.mark.asyncio
async def test_missing_signature_is_rejected(client):
    resp = await client.post(WEBHOOK_URL, content=b"{}")
    assert resp.status_code == 400
    assert resp.json() == {"error": "Missing Stripe signature."}


@pytest.mark.asyncio
async def test_invalid_signature_is_rejected(client, fake_stripe):
    resp = await _post(client, _event("checkout.session.completed", {"id": "cs_test_x"}), secret="whsec_wrong")
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid Stripe signature"}
    assert fake_stripe.retrieve_calls == []


@pytest.mark.asyncio
async def test_stale_signature_is_rejected(client):
    stale = int(time.time()) - settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS - 60
    resp = await _post(client, _event("checkout.session.completed", {"id": "cs_test_x"}), timestamp=stale)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_completed_session_materializes_once(client, db_session, normal_user, catalog, fake_stripe):
    session = _paid_cart_session(db_session, normal_user, catalog, fake_stripe)
    event = _event("checkout.session.completed", {"id": session["id"], "metadata": session["metadata"]})

    first = await _post(client, event)
    assert first.status_code == 200
    assert first.json() == {"received": True}

    # Stripe reintenta la entrega
    second = await _post(client, event)
    assert second.status_code == 200

    db_session.expire_all()
    order = db_session.query(Order).one()
    assert order.user_id == normal_user.id
    assert order.total_amount == 3100
    assert db_session.query(Payment).one().transaction_id == "pi_webhook"

    lookup = await client.get("/api/v1/orders", params={"session_id": session["id"]})
    assert lookup.json()["order"]["id"] == str(order.id)


@pytest.mark.asyncio
async def test_failed_payment_and_unknown_events_are_acknowledged(client, db_session, fake_stripe):
    resp = await _post(client, _event("payment_intent.payment_failed", {"id": "pi_failed"}))
    assert resp.status_code == 200

    resp = await _post(client, _event("customer.created", {"id": "cus_123"}))
    assert resp.status_code == 200

    assert db_session.query(Order).count() == 0
    assert fake_stripe.retrieve_calls == []


@pytest.mark.asyncio
async def test_materialization_failure_returns_5xx(fake_stripe):
    session = fake_stripe.add_session(metadata={})
    fake_stripe.mark_paid(session["id"])
    event = _event("checkout.session.completed", {"id": session["id"]})

    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await _post(client, event)

    assert resp.status_code == 500
