from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.logging import get_logger
from storefront.domain.enums import CartOwnerKind
from storefront.domain.identity import GuestIdentity, Identity, UserIdentity
from storefront.models.cart import Cart, CartItem
from storefront.models.guest import Guest
from storefront.models.product import Product, ProductVariant
from storefront.schemas.cart import CartItemRead, CartSummary
from storefront.services.catalog_service import variant_image_urls
from storefront.services.exceptions import (
    CartConsistencyError,
    DomainValidationError,
    ResourceNotFoundError,
)
from storefront.services.pricing import effective_unit_price, format_minor_units, to_minor_units

logger = get_logger("storefront.cart")

_NO_SYNC = {"synchronize_session": False}


@dataclass(frozen=True, slots=True)
class MergeResult:
    guest_cart_id: uuid.UUID
    cart_id: uuid.UUID
    lines: int


@dataclass(frozen=True, slots=True)
class CartLine:
    """Cart line priced at its current effective unit price."""

    variant_id: uuid.UUID
    product_name: str
    quantity: int
    unit_price: Decimal
    unit_amount: int
    product_id: uuid.UUID


def _insert(db: AsyncSession, model):
    dialect = db.bind.dialect.name
    if dialect == "postgresql":
        return pg_insert(model)
    if dialect == "sqlite":
        return sqlite_insert(model)
    raise DomainValidationError(f"Atomic upsert not supported on {dialect}")


# ---------- Carritos ----------

async def _find_cart(db: AsyncSession, *, user_id: uuid.UUID | None = None, guest_id: uuid.UUID | None = None) -> Cart | None:
    stmt = select(Cart)
    if user_id is not None:
        stmt = stmt.where(Cart.user_id == user_id)
    elif guest_id is not None:
        stmt = stmt.where(Cart.guest_id == guest_id)
    else:
        return None
    return (await db.execute(stmt.limit(1))).scalars().first()


async def _create_cart(db: AsyncSession, *, user_id: uuid.UUID | None = None, guest_id: uuid.UUID | None = None) -> Cart:
    # ON CONFLICT DO NOTHING: dos requests concurrentes no generan dos carritos
    kind = CartOwnerKind.user if user_id is not None else CartOwnerKind.guest
    conflict_column = "user_id" if user_id is not None else "guest_id"
    stmt = (
        _insert(db, Cart)
        .values(id=uuid.uuid4(), owner_kind=kind, user_id=user_id, guest_id=guest_id)
        .on_conflict_do_nothing(index_elements=[conflict_column])
    )
    await db.execute(stmt)
    cart = await _find_cart(db, user_id=user_id, guest_id=guest_id)
    if cart is None:
        raise CartConsistencyError("Cart could not be created.")
    logger.info("Cart created", extra={"cart_id": str(cart.id), "owner_kind": kind.value})
    return cart


async def get_user_cart(db: AsyncSession, user_id: uuid.UUID) -> Cart:
    cart = await _find_cart(db, user_id=user_id)
    if cart is None:
        cart = await _create_cart(db, user_id=user_id)
    return cart


async def get_owner_cart(db: AsyncSession, identity: Identity) -> Cart | None:
    if isinstance(identity, UserIdentity):
        return await _find_cart(db, user_id=identity.user_id)
    if isinstance(identity, GuestIdentity):
        return await _find_cart(db, guest_id=identity.guest_id)
    return None


async def get_or_create_cart(db: AsyncSession, identity: Identity, create_guest_cart: bool = False) -> Cart | None:
    """User carts always exist on demand; guest carts only when asked for."""
    if isinstance(identity, UserIdentity):
        return await get_user_cart(db, identity.user_id)
    if isinstance(identity, GuestIdentity):
        cart = await _find_cart(db, guest_id=identity.guest_id)
        if cart is None and create_guest_cart:
            cart = await _create_cart(db, guest_id=identity.guest_id)
        return cart
    return None


async def require_cart(db: AsyncSession, identity: Identity) -> Cart:
    cart = await get_or_create_cart(db, identity, create_guest_cart=True)
    if cart is None:
        logger.error("Resolved identity without a cart", extra={"identity": identity.kind})
        raise CartConsistencyError("Cart not found.")
    return cart


# ---------- Líneas ----------

async def _upsert_item(db: AsyncSession, cart_id: uuid.UUID, variant_id: uuid.UUID, quantity: int) -> None:
    stmt = _insert(db, CartItem).values(
        id=uuid.uuid4(), cart_id=cart_id, variant_id=variant_id, quantity=quantity
    )
    # suma atómica: nunca leer-modificar-escribir
    stmt = stmt.on_conflict_do_update(
        index_elements=["cart_id", "variant_id"],
        set_={"quantity": CartItem.quantity + stmt.excluded.quantity},
    )
    await db.execute(stmt)


async def add_item(db: AsyncSession, cart: Cart, variant_id: uuid.UUID, quantity: int = 1) -> None:
    if quantity <= 0:
        raise DomainValidationError("Quantity must be a positive integer")

    stmt = (
        select(ProductVariant.id)
        .join(Product, Product.id == ProductVariant.product_id)
        .where(ProductVariant.id == variant_id, ProductVariant.active.is_(True), Product.active.is_(True))
    )
    if (await db.execute(stmt)).scalar_one_or_none() is None:
        raise ResourceNotFoundError("Variant not found")

    await _upsert_item(db, cart.id, variant_id, quantity)


async def update_item(db: AsyncSession, cart: Cart, item_id: uuid.UUID, quantity: int) -> None:
    scope = (CartItem.id == item_id, CartItem.cart_id == cart.id)
    if quantity <= 0:
        await db.execute(delete(CartItem).where(*scope).execution_options(**_NO_SYNC))
        return
    await db.execute(update(CartItem).where(*scope).values(quantity=quantity).execution_options(**_NO_SYNC))


async def remove_item(db: AsyncSession, cart: Cart, item_id: uuid.UUID) -> None:
    await db.execute(
        delete(CartItem)
        .where(CartItem.id == item_id, CartItem.cart_id == cart.id)
        .execution_options(**_NO_SYNC)
    )


async def clear_cart(db: AsyncSession, cart_id: uuid.UUID) -> None:
    await db.execute(delete(CartItem).where(CartItem.cart_id == cart_id).execution_options(**_NO_SYNC))


# ---------- Lectura ----------

async def snapshot_lines(db: AsyncSession, cart_id: uuid.UUID) -> list[CartLine]:
    stmt = (
        select(
            CartItem.variant_id,
            CartItem.quantity,
            ProductVariant.price,
            ProductVariant.sale_price,
            Product.id,
            Product.name,
        )
        .join(ProductVariant, ProductVariant.id == CartItem.variant_id)
        .join(Product, Product.id == ProductVariant.product_id)
        .where(CartItem.cart_id == cart_id)
        .order_by(CartItem.created_at, CartItem.id)
    )
    lines = []
    for variant_id, quantity, price, sale_price, product_id, product_name in (await db.execute(stmt)).all():
        unit_price = effective_unit_price(price, sale_price)
        lines.append(
            CartLine(
                variant_id=variant_id,
                product_name=product_name,
                quantity=quantity,
                unit_price=unit_price,
                unit_amount=to_minor_units(unit_price),
                product_id=product_id,
            )
        )
    return lines


def empty_summary(is_authenticated: bool = False) -> CartSummary:
    return CartSummary(cart_id=None, items=[], item_count=0, subtotal="0.00", is_authenticated=is_authenticated)


async def build_summary(db: AsyncSession, cart: Cart | None, is_authenticated: bool) -> CartSummary:
    """Fresh summary from the live rows; the subtotal is never cached."""
    if cart is None:
        return empty_summary(is_authenticated)

    stmt = (
        select(
            CartItem.id,
            CartItem.variant_id,
            CartItem.quantity,
            ProductVariant.price,
            ProductVariant.sale_price,
            ProductVariant.color_name,
            ProductVariant.size_label,
            Product.id,
            Product.name,
        )
        .join(ProductVariant, ProductVariant.id == CartItem.variant_id)
        .join(Product, Product.id == ProductVariant.product_id)
        .where(CartItem.cart_id == cart.id)
        .order_by(CartItem.created_at.desc(), CartItem.id.desc())
    )
    rows = (await db.execute(stmt)).all()
    images = await variant_image_urls(db, [(row[7], row[1]) for row in rows])

    items: list[CartItemRead] = []
    subtotal = 0
    item_count = 0
    for item_id, variant_id, quantity, price, sale_price, color, size, product_id, product_name in rows:
        unit_amount = to_minor_units(effective_unit_price(price, sale_price))
        subtotal += unit_amount * quantity
        item_count += quantity
        items.append(
            CartItemRead(
                id=item_id,
                cart_id=cart.id,
                product_id=product_id,
                product_name=product_name,
                variant_id=variant_id,
                color_name=color,
                size_name=size,
                image_url=images.get(variant_id),
                price=format_minor_units(unit_amount),
                quantity=quantity,
            )
        )

    return CartSummary(
        cart_id=cart.id,
        items=items,
        item_count=item_count,
        subtotal=format_minor_units(subtotal),
        is_authenticated=is_authenticated,
    )


# ---------- Merge ----------

async def merge_guest_cart(db: AsyncSession, user_id: uuid.UUID, guest_token: str) -> MergeResult | None:
    """Add the guest cart's quantities into the user's cart, then drop the guest cart."""
    guest = (
        await db.execute(select(Guest).where(Guest.session_token == guest_token).limit(1))
    ).scalars().first()
    if guest is None:
        return None

    guest_cart = await _find_cart(db, guest_id=guest.id)
    if guest_cart is None:
        return None

    user_cart = await get_user_cart(db, user_id)
    guest_items = (
        await db.execute(select(CartItem.variant_id, CartItem.quantity).where(CartItem.cart_id == guest_cart.id))
    ).all()
    for variant_id, quantity in guest_items:
        await _upsert_item(db, user_cart.id, variant_id, quantity)

    await clear_cart(db, guest_cart.id)
    await db.delete(guest_cart)
    await db.flush()

    logger.info(
        "Guest cart merged",
        extra={"guest_cart_id": str(guest_cart.id), "cart_id": str(user_cart.id), "lines": len(guest_items)},
    )
    return MergeResult(guest_cart_id=guest_cart.id, cart_id=user_cart.id, lines=len(guest_items))
