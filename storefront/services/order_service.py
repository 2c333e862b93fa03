"""Idempotent order materialization from paid checkout sessions, and order lookup."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from storefront.core.config import settings
from storefront.core.logging import get_logger
from storefront.core.metrics import record_materialization
from storefront.domain.addresses import NormalizedAddress, normalize_address
from storefront.domain.enums import AddressType, OrderStatus, PaymentMethod, PaymentStatus
from storefront.models.cart import Cart
from storefront.models.order import Address, Order, OrderItem, Payment
from storefront.models.product import Product, ProductVariant
from storefront.models.user import User
from storefront.schemas.checkout import CheckoutSessionSnapshot
from storefront.schemas.order import OrderDetail, OrderItemRead
from storefront.services import cart_service
from storefront.services.catalog_service import variant_image_urls
from storefront.services.exceptions import OrderMaterializationError
from storefront.services.payment_providers import PaymentProviderError, stripe_checkout
from storefront.services.pricing import format_minor_units

logger = get_logger("storefront.orders")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_uuid(value) -> uuid.UUID | None:
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except ValueError:
        return None


async def _retrieve_snapshot(session_id: str) -> CheckoutSessionSnapshot:
    raw = await run_in_threadpool(stripe_checkout.retrieve_checkout_session, session_id)
    return CheckoutSessionSnapshot.from_provider(raw)


async def _find_existing_order_id(db: AsyncSession, snapshot: CheckoutSessionSnapshot) -> uuid.UUID | None:
    stmt = (
        select(Payment.order_id)
        .where(
            or_(
                Payment.transaction_id == snapshot.transaction_id,
                Payment.checkout_session_id == snapshot.id,
            )
        )
        .limit(1)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def _load_cart(db: AsyncSession, snapshot: CheckoutSessionSnapshot) -> Cart:
    if not snapshot.cart_id:
        raise OrderMaterializationError("Missing cart metadata.")
    cart_id = _parse_uuid(snapshot.cart_id)
    cart = await db.get(Cart, cart_id) if cart_id else None
    if cart is None:
        raise OrderMaterializationError("Cart not found.")
    return cart


async def _load_user(db: AsyncSession, candidate) -> User | None:
    user_id = _parse_uuid(candidate)
    if user_id is None:
        return None
    return await db.get(User, user_id)


async def _get_or_create_user_by_email(db: AsyncSession, email: str, name: str | None) -> User:
    email = email.strip().lower()
    user = (await db.execute(select(User).where(User.email == email).limit(1))).scalars().first()
    if user is not None:
        return user
    user = User(email=email, full_name=name, hashed_password=None, email_verified=False)
    db.add(user)
    await db.flush()
    logger.info("User created from checkout email", extra={"user_id": str(user.id)})
    return user


async def _resolve_owner(db: AsyncSession, snapshot: CheckoutSessionSnapshot, fallback_user_id) -> User:
    # explícito > metadata > email del checkout
    for candidate in (fallback_user_id, snapshot.user_id):
        user = await _load_user(db, candidate)
        if user is not None:
            return user
    if snapshot.customer_email:
        return await _get_or_create_user_by_email(db, snapshot.customer_email, snapshot.customer_name)
    raise OrderMaterializationError("Unable to resolve user for order.")


def _address(user_id: uuid.UUID, kind: AddressType, normalized: NormalizedAddress) -> Address:
    return Address(
        user_id=user_id,
        type=kind,
        line1=normalized.line1,
        line2=normalized.line2,
        city=normalized.city,
        state=normalized.state,
        country=normalized.country,
        postal_code=normalized.postal_code,
        is_default=False,
    )


async def materialize_order(
    db: AsyncSession,
    checkout_session_id: str,
    fallback_user_id: uuid.UUID | str | None = None,
    trigger: str = "lookup",
) -> uuid.UUID | None:
    """Turn a paid checkout session into an order exactly once.

    Returns the order id, or ``None`` while the session is unpaid. Safe to call
    concurrently from the webhook and the lookup endpoint: a payment that
    already exists for the session short-circuits, and losing the insert race
    returns the winner's order. The caller commits.
    """
    snapshot = await _retrieve_snapshot(checkout_session_id)
    log_context = {
        "checkout_session_id": snapshot.id,
        "transaction_id": snapshot.transaction_id,
        "trigger": trigger,
    }

    if not snapshot.is_paid:
        logger.info("Checkout session not paid yet", extra={**log_context, "payment_status": snapshot.payment_status})
        record_materialization(trigger, "unpaid")
        return None

    existing_order_id = await _find_existing_order_id(db, snapshot)
    if existing_order_id is not None:
        logger.info("Order already materialized", extra={**log_context, "order_id": str(existing_order_id)})
        record_materialization(trigger, "existing")
        return existing_order_id

    cart = await _load_cart(db, snapshot)
    lines = await cart_service.snapshot_lines(db, cart.id)
    if not lines:
        # carrito vacío: otro trigger pudo haber materializado y vaciado entre medio
        winner = await _find_existing_order_id(db, snapshot)
        if winner is None:
            raise OrderMaterializationError("Cart is empty.")
        logger.info("Order materialized concurrently", extra={**log_context, "order_id": str(winner)})
        record_materialization(trigger, "race_lost")
        return winner

    user = await _resolve_owner(db, snapshot, fallback_user_id)

    shipping = _address(user.id, AddressType.shipping, normalize_address(snapshot.shipping_address))
    billing = _address(user.id, AddressType.billing, normalize_address(snapshot.billing_address))
    db.add_all([shipping, billing])
    await db.flush()

    # enteros en centavos de punta a punta
    total = sum(line.unit_amount * line.quantity for line in lines)
    order = Order(
        user_id=user.id,
        status=OrderStatus.paid,
        total_amount=total,
        currency=settings.STRIPE_CURRENCY,
        shipping_address_id=shipping.id,
        billing_address_id=billing.id,
    )
    order.items = [
        OrderItem(variant_id=line.variant_id, quantity=line.quantity, price_at_purchase=line.unit_amount)
        for line in lines
    ]
    payment = Payment(
        order=order,
        method=PaymentMethod.stripe,
        status=PaymentStatus.completed,
        paid_at=_utcnow(),
        transaction_id=snapshot.transaction_id,
        checkout_session_id=snapshot.id,
    )
    db.add_all([order, payment])

    try:
        await db.flush()
    except IntegrityError:
        # otro trigger ganó la carrera: su orden es la nuestra
        await db.rollback()
        winner = await _find_existing_order_id(db, snapshot)
        if winner is None:
            raise
        logger.info("Order materialized concurrently", extra={**log_context, "order_id": str(winner)})
        record_materialization(trigger, "race_lost")
        return winner

    await cart_service.clear_cart(db, cart.id)

    logger.info(
        "Order materialized",
        extra={**log_context, "order_id": str(order.id), "cart_id": str(cart.id), "total_amount": total},
    )
    record_materialization(trigger, "created")
    return order.id


# ---------- Lookup ----------

async def _payment_where(db: AsyncSession, *criteria) -> Payment | None:
    return (await db.execute(select(Payment).where(*criteria).limit(1))).scalars().first()


async def _resolve_payment(db: AsyncSession, identifier: str) -> Payment | None:
    payment = await _payment_where(db, Payment.transaction_id == identifier)
    if payment is not None or not identifier.startswith("cs_"):
        return payment

    payment = await _payment_where(db, Payment.checkout_session_id == identifier)
    if payment is not None:
        return payment

    try:
        snapshot = await _retrieve_snapshot(identifier)
    except PaymentProviderError as exc:
        logger.warning("Provider lookup failed", extra={"checkout_session_id": identifier, "error": str(exc)})
        return None
    if not snapshot.payment_intent_id:
        return None
    return await _payment_where(db, Payment.transaction_id == snapshot.transaction_id)


async def _order_detail(db: AsyncSession, order: Order) -> OrderDetail:
    stmt = (
        select(
            OrderItem.id,
            OrderItem.variant_id,
            OrderItem.quantity,
            OrderItem.price_at_purchase,
            Product.id,
            Product.name,
        )
        .join(ProductVariant, ProductVariant.id == OrderItem.variant_id)
        .join(Product, Product.id == ProductVariant.product_id)
        .where(OrderItem.order_id == order.id)
        .order_by(Product.name, OrderItem.id)
    )
    rows = (await db.execute(stmt)).all()
    images = await variant_image_urls(db, [(row[4], row[1]) for row in rows])
    return OrderDetail(
        id=order.id,
        status=order.status,
        total_amount=format_minor_units(order.total_amount),
        items=[
            OrderItemRead(
                id=item_id,
                name=name,
                image_url=images.get(variant_id),
                quantity=quantity,
                price=format_minor_units(price),
            )
            for item_id, variant_id, quantity, price, _product_id, name in rows
        ],
    )


async def find_order(db: AsyncSession, identifier: str) -> OrderDetail | None:
    """Find an order by id, payment transaction id or checkout session id."""
    identifier = (identifier or "").strip()
    if not identifier:
        return None

    order = None
    order_id = _parse_uuid(identifier)
    if order_id is not None:
        order = await db.get(Order, order_id)

    if order is None:
        payment = await _resolve_payment(db, identifier)
        if payment is None:
            return None
        order = await db.get(Order, payment.order_id)
        if order is None:
            return None

    return await _order_detail(db, order)
