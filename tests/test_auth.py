import pytest

from storefront.core.config import settings
from storefront.core.security import create_session_token, decode_session_token
from storefront.models.user import User
from conftest import USER_PASSWORD, sign_in

SIGN_UP_URL = "/api/v1/auth/sign-up"
SIGN_IN_URL = "/api/v1/auth/sign-in"
SESSION_URL = "/api/v1/auth/session"


@pytest.mark.asyncio
async def test_sign_up_sets_session_cookie(client, db_session):
    resp = await client.post(SIGN_UP_URL, json={"name": "Ana", "email": "ana@example.com", "password": "Secret123"})
    assert resp.status_code == 201, resp.text

    body = resp.json()
    assert body["user"]["email"] == "ana@example.com"
    assert body["user"]["fullName"] == "Ana"
    assert body["cart"]["cartId"] is not None
    assert body["cart"]["items"] == []

    token = client.cookies.get(settings.AUTH_COOKIE_NAME)
    assert decode_session_token(token)["sub"] == body["user"]["id"]

    user = db_session.query(User).filter(User.email == "ana@example.com").one()
    assert user.hashed_password and user.hashed_password != "Secret123"
    assert user.last_login_at is not None


@pytest.mark.asyncio
async def test_sign_up_rejects_registered_email(client, normal_user):
    resp = await client.post(SIGN_UP_URL, json={"email": normal_user.email, "password": "Another123"})
    assert resp.status_code == 409
    assert resp.json()["detail"] == "Email already registered."


@pytest.mark.asyncio
async def test_sign_up_claims_checkout_created_user(client, db_session):
    db_session.add(User(email="walkin@example.com", hashed_password=None))
    db_session.commit()

    resp = await client.post(SIGN_UP_URL, json={"email": "walkin@example.com", "password": "Secret123"})
    assert resp.status_code == 201
    db_session.expire_all()
    assert db_session.query(User).filter(User.email == "walkin@example.com").one().hashed_password


@pytest.mark.asyncio
async def test_sign_up_validates_payload(client):
    assert (await client.post(SIGN_UP_URL, json={"email": "bad", "password": "Secret123"})).status_code == 422
    assert (await client.post(SIGN_UP_URL, json={"email": "a@example.com", "password": "short"})).status_code == 422


@pytest.mark.asyncio
async def test_sign_in_with_wrong_password(client, normal_user):
    resp = await client.post(SIGN_IN_URL, json={"email": normal_user.email, "password": "WrongPass1"})
    assert resp.status_code == 400
    assert resp.json() == {"detail": "Invalid email or password."}
    assert client.cookies.get(settings.AUTH_COOKIE_NAME) is None


@pytest.mark.asyncio
async def test_password_less_user_cannot_sign_in(client, db_session):
    db_session.add(User(email="nopass@example.com", hashed_password=None))
    db_session.commit()
    resp = await client.post(SIGN_IN_URL, json={"email": "nopass@example.com", "password": "anything"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_sign_in_is_case_insensitive_and_sets_cookie(client, normal_user):
    resp = await client.post(SIGN_IN_URL, json={"email": normal_user.email.upper(), "password": USER_PASSWORD})
    assert resp.status_code == 200
    assert resp.json()["user"]["id"] == str(normal_user.id)
    assert resp.json()["cart"]["isAuthenticated"] is True
    assert client.cookies.get(settings.AUTH_COOKIE_NAME)


@pytest.mark.asyncio
async def test_sign_out_clears_both_cookies(client, normal_user, catalog):
    await client.post("/api/v1/cart/items", json={"variantId": str(catalog.plain_variant_id)})
    await sign_in(client, normal_user)

    resp = await client.post("/api/v1/auth/sign-out")
    assert resp.json() == {"success": True}
    assert client.cookies.get(settings.AUTH_COOKIE_NAME) is None
    assert client.cookies.get(settings.GUEST_COOKIE_NAME) is None
    assert (await client.get(SESSION_URL)).json()["kind"] == "anonymous"


@pytest.mark.asyncio
async def test_bearer_token_is_accepted(client, normal_user):
    token = create_session_token(subject=normal_user.id)
    resp = await client.get(SESSION_URL, headers={"Authorization": f"Bearer {token}"})
    assert resp.json()["userId"] == str(normal_user.id)


@pytest.mark.asyncio
async def test_auth_endpoints_are_rate_limited(client, normal_user):
    statuses = []
    for _ in range(settings.RATE_LIMIT_AUTH_PER_MINUTE + 1):
        resp = await client.post(SIGN_IN_URL, json={"email": normal_user.email, "password": "WrongPass1"})
        statuses.append(resp.status_code)

    assert statuses[:-1] == [400] * settings.RATE_LIMIT_AUTH_PER_MINUTE
    assert statuses[-1] == 429
    assert "Retry-After" in resp.headers
