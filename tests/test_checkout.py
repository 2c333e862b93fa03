import uuid

import pytest

from storefront.core.config import settings
from storefront.core.security import create_session_token
from storefront.domain.enums import CartOwnerKind
from storefront.models.cart import Cart, CartItem
from storefront.services.payment_providers import PaymentProviderConfigurationError, stripe_checkout
from conftest import sign_in

CHECKOUT_URL = "/api/v1/checkout/sessions"
ITEMS_URL = "/api/v1/cart/items"


async def _guest_cart_with_items(client, catalog) -> str:
    await client.post(ITEMS_URL, json={"variantId": str(catalog.plain_variant_id), "quantity": 2})
    resp = await client.post(ITEMS_URL, json={"variantId": str(catalog.sale_variant_id), "quantity": 1})
    return resp.json()["cartId"]


@pytest.mark.asyncio
async def test_guest_checkout_returns_provider_url(client, catalog, fake_stripe, monkeypatch):
    monkeypatch.setattr(settings, "CORS_ALLOWED_ORIGINS", ["http://shop.test"])
    cart_id = await _guest_cart_with_items(client, catalog)

    resp = await client.post(CHECKOUT_URL, json={"cartId": cart_id}, headers={"Origin": "http://shop.test"})
    assert resp.status_code == 200, resp.text
    session_id = next(iter(fake_stripe.sessions))
    assert resp.json() == {"url": fake_stripe.sessions[session_id]["url"]}

    payload = fake_stripe.created_payloads[0]
    assert payload["mode"] == "payment"
    assert payload["billing_address_collection"] == "required"
    assert payload["success_url"] == "http://shop.test/checkout/success?session_id={CHECKOUT_SESSION_ID}"
    assert payload["cancel_url"] == "http://shop.test/cart"
    assert payload["metadata"] == {"cart_id": cart_id, "user_id": ""}
    assert payload["shipping_address_collection"]["allowed_countries"] == settings.STRIPE_ALLOWED_SHIPPING_COUNTRIES

    lines = {
        line["price_data"]["product_data"]["metadata"]["variant_id"]: line for line in payload["line_items"]
    }
    plain = lines[str(catalog.plain_variant_id)]
    sale = lines[str(catalog.sale_variant_id)]
    assert plain["quantity"] == 2
    assert plain["price_data"]["unit_amount"] == 1000
    assert plain["price_data"]["currency"] == settings.STRIPE_CURRENCY
    assert plain["price_data"]["product_data"]["images"] == ["http://shop.test/img/air-runner.png"]
    assert sale["price_data"]["unit_amount"] == 1550
    assert sale["price_data"]["product_data"]["images"] == ["https://cdn.example.com/air-runner-white.png"]


@pytest.mark.asyncio
async def test_checkout_falls_back_to_frontend_url(client, catalog, fake_stripe):
    cart_id = await _guest_cart_with_items(client, catalog)
    resp = await client.post(CHECKOUT_URL, json={"cartId": cart_id})
    assert resp.status_code == 200
    assert fake_stripe.created_payloads[0]["cancel_url"] == f"{settings.FRONTEND_URL}/cart"


@pytest.mark.asyncio
async def test_unlisted_origin_does_not_become_return_url(client, catalog, fake_stripe):
    cart_id = await _guest_cart_with_items(client, catalog)
    resp = await client.post(CHECKOUT_URL, json={"cartId": cart_id}, headers={"Origin": "https://evil.example"})
    assert resp.status_code == 200

    payload = fake_stripe.created_payloads[0]
    assert payload["success_url"] == f"{settings.FRONTEND_URL}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}"
    assert payload["cancel_url"] == f"{settings.FRONTEND_URL}/cart"
    assert "evil.example" not in str(payload)


@pytest.mark.asyncio
async def test_empty_cart_is_rejected_before_provider(client, fake_stripe):
    cart_id = (await client.get("/api/v1/cart", params={"create_guest": "true"})).json()["cartId"]

    resp = await client.post(CHECKOUT_URL, json={"cartId": cart_id})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Cart is empty."
    assert fake_stripe.created_payloads == []


@pytest.mark.asyncio
async def test_foreign_cart_is_not_found(client, catalog, normal_user, db_session, fake_stripe):
    other = Cart(owner_kind=CartOwnerKind.user, user_id=normal_user.id)
    db_session.add(other)
    db_session.flush()
    db_session.add(CartItem(cart_id=other.id, variant_id=catalog.plain_variant_id, quantity=1))
    db_session.commit()

    await _guest_cart_with_items(client, catalog)
    resp = await client.post(CHECKOUT_URL, json={"cartId": str(other.id)})
    assert resp.status_code == 404
    assert fake_stripe.created_payloads == []


@pytest.mark.asyncio
async def test_anonymous_checkout_is_not_found(client, fake_stripe):
    resp = await client.post(CHECKOUT_URL, json={"cartId": str(uuid.uuid4())})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_provider_failure_is_generic_bad_gateway(client, catalog, fake_stripe):
    cart_id = await _guest_cart_with_items(client, catalog)
    fake_stripe.fail_create = True

    resp = await client.post(CHECKOUT_URL, json={"cartId": cart_id})
    assert resp.status_code == 502
    assert resp.json() == {"detail": "Unable to start checkout."}


@pytest.mark.asyncio
async def test_provider_session_without_url_fails(client, catalog, monkeypatch):
    monkeypatch.setattr(stripe_checkout, "create_checkout_session", lambda payload: {"id": "cs_test_nourl"})
    cart_id = await _guest_cart_with_items(client, catalog)

    resp = await client.post(CHECKOUT_URL, json={"cartId": cart_id})
    assert resp.status_code == 502


@pytest.mark.asyncio
async def test_missing_provider_key_is_service_unavailable(client, catalog, monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", "")
    cart_id = await _guest_cart_with_items(client, catalog)

    resp = await client.post(CHECKOUT_URL, json={"cartId": cart_id})
    assert resp.status_code == 503
    assert "not configured" in resp.json()["detail"]

    with pytest.raises(PaymentProviderConfigurationError):
        stripe_checkout.create_checkout_session({})


@pytest.mark.asyncio
async def test_user_checkout_carries_user_metadata(client, catalog, normal_user, fake_stripe):
    body = (await sign_in(client, normal_user)).json()
    await client.post(ITEMS_URL, json={"variantId": str(catalog.plain_variant_id), "quantity": 1})

    resp = await client.post(CHECKOUT_URL, json={"cartId": body["cart"]["cartId"]})
    assert resp.status_code == 200
    assert fake_stripe.created_payloads[0]["metadata"] == {
        "cart_id": body["cart"]["cartId"],
        "user_id": str(normal_user.id),
    }


@pytest.mark.asyncio
async def test_leftover_guest_cookie_is_merged_before_checkout(client, catalog, normal_user, fake_stripe, db_session):
    user_cart = Cart(owner_kind=CartOwnerKind.user, user_id=normal_user.id)
    db_session.add(user_cart)
    db_session.commit()

    # carrito de invitado y, en la misma request, un token de usuario válido
    guest_cart_id = await _guest_cart_with_items(client, catalog)
    token = create_session_token(subject=normal_user.id)

    resp = await client.post(
        CHECKOUT_URL,
        json={"cartId": guest_cart_id},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert resp.status_code == 200, resp.text

    payload = fake_stripe.created_payloads[0]
    assert payload["metadata"] == {"cart_id": str(user_cart.id), "user_id": str(normal_user.id)}
    assert sum(line["quantity"] for line in payload["line_items"]) == 3
    assert client.cookies.get(settings.GUEST_COOKIE_NAME) is None

    db_session.expire_all()
    assert db_session.query(Cart).count() == 1
