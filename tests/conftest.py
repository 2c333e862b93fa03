# tests/conftest.py
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import copy
import os
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Generator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

os.environ.setdefault("SECRET_KEY", "storefront-test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("ASYNC_DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_storefront")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_storefront")

from storefront.main import app
from storefront.core import rate_limiter
from storefront.core.security import get_password_hash
from storefront.db.session import Base, SessionLocal, engine
from storefront.db.session_async import AsyncSessionLocal
from storefront.models.product import Product, ProductImage, ProductVariant
from storefront.models.user import User
from storefront.services.payment_providers import PaymentProviderError, stripe_checkout

USER_PASSWORD = "User12345"


# ---------- Base de datos ----------
@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Crea las tablas en SQLite solo una vez por sesión de tests."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    rate_limiter._rate_limiter = None
    yield
    rate_limiter._rate_limiter = None


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, Any, None]:
    """Sesión sync corta para preparar y verificar filas."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest_asyncio.fixture(scope="function")
async def client():
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def async_db_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.rollback()


# ---------- Catálogo ----------
@dataclass
class Catalog:
    product_id: uuid.UUID
    plain_variant_id: uuid.UUID
    sale_variant_id: uuid.UUID
    inactive_variant_id: uuid.UUID


@pytest.fixture(scope="function")
def catalog(db_session: Session) -> Catalog:
    """Un producto con variante a precio lista, variante en oferta y variante inactiva."""
    product = Product(name="Air Runner", slug=f"air-runner-{uuid.uuid4().hex[:6]}", active=True)
    db_session.add(product)
    db_session.flush()

    plain = ProductVariant(
        product_id=product.id, sku=f"AR-BLK-{uuid.uuid4().hex[:6]}", color_name="Black", size_label="42",
        price=Decimal("10.00"), sale_price=None,
    )
    sale = ProductVariant(
        product_id=product.id, sku=f"AR-WHT-{uuid.uuid4().hex[:6]}", color_name="White", size_label="43",
        price=Decimal("20.00"), sale_price=Decimal("15.50"),
    )
    inactive = ProductVariant(
        product_id=product.id, sku=f"AR-RED-{uuid.uuid4().hex[:6]}", color_name="Red", size_label="44",
        price=Decimal("30.00"), active=False,
    )
    db_session.add_all([plain, sale, inactive])
    db_session.flush()

    db_session.add_all(
        [
            ProductImage(product_id=product.id, url="/img/air-runner.png", is_primary=True, sort_order=0),
            ProductImage(product_id=product.id, url="/img/air-runner-side.png", is_primary=False, sort_order=1),
            ProductImage(
                product_id=product.id,
                variant_id=sale.id,
                url="https://cdn.example.com/air-runner-white.png",
                is_primary=False,
                sort_order=5,
            ),
        ]
    )
    db_session.commit()
    return Catalog(product.id, plain.id, sale.id, inactive.id)


# ---------- Usuarios ----------
@pytest.fixture(scope="function")
def normal_user(db_session: Session) -> User:
    user = User(
        email=f"user-{uuid.uuid4().hex[:8]}@example.com",
        full_name="Test User",
        hashed_password=get_password_hash(USER_PASSWORD),
        is_active=True,
        email_verified=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


async def sign_in(client: httpx.AsyncClient, user: User, password: str = USER_PASSWORD) -> httpx.Response:
    resp = await client.post("/api/v1/auth/sign-in", json={"email": user.email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp


# ---------- Stripe falso ----------
class FakeStripe:
    """In-memory stand-in for the Checkout Sessions API."""

    def __init__(self) -> None:
        self.sessions: dict[str, dict] = {}
        self.created_payloads: list[dict] = []
        self.retrieve_calls: list[str] = []
        self.fail_create = False
        self.fail_retrieve = False

    def create_checkout_session(self, payload: dict) -> dict:
        if self.fail_create:
            raise PaymentProviderError("Stripe error: card_declined")
        self.created_payloads.append(payload)
        session_id = f"cs_test_{uuid.uuid4().hex}"
        session = {
            "id": session_id,
            "object": "checkout.session",
            "url": f"https://checkout.stripe.test/pay/{session_id}",
            "payment_status": "unpaid",
            "payment_intent": None,
            "client_reference_id": payload.get("client_reference_id"),
            "metadata": dict(payload.get("metadata") or {}),
            "customer_details": None,
        }
        self.sessions[session_id] = session
        return copy.deepcopy(session)

    def retrieve_checkout_session(self, session_id: str) -> dict:
        self.retrieve_calls.append(session_id)
        if self.fail_retrieve or session_id not in self.sessions:
            raise PaymentProviderError(f"Stripe error: No such checkout.session: {session_id}")
        return copy.deepcopy(self.sessions[session_id])

    def add_session(self, **fields: Any) -> dict:
        session_id = fields.pop("id", f"cs_test_{uuid.uuid4().hex}")
        session = {
            "id": session_id,
            "payment_status": "unpaid",
            "payment_intent": None,
            "metadata": {},
            "customer_details": None,
        }
        session.update(fields)
        self.sessions[session_id] = session
        return session

    def mark_paid(
        self,
        session_id: str,
        payment_intent: str | None = None,
        email: str = "buyer@example.com",
        address: dict | None = None,
    ) -> dict:
        session = self.sessions[session_id]
        session["payment_status"] = "paid"
        session["payment_intent"] = {"id": payment_intent or f"pi_{uuid.uuid4().hex[:16]}", "object": "payment_intent"}
        session["customer_details"] = {
            "email": email,
            "name": "Buyer Example",
            "address": address or {"line1": "1 Billing St", "city": "Austin", "country": "US", "postal_code": "73301"},
        }
        session["shipping_details"] = {"name": "Buyer Example", "address": address}
        return session


@pytest.fixture(scope="function")
def fake_stripe(monkeypatch) -> FakeStripe:
    fake = FakeStripe()
    monkeypatch.setattr(stripe_checkout, "create_checkout_session", fake.create_checkout_session)
    monkeypatch.setattr(stripe_checkout, "retrieve_checkout_session", fake.retrieve_checkout_session)
    return fake
