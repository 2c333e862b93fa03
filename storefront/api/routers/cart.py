from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status

from storefront.api.deps import SessionContext, get_session_context
from storefront.db.operations import commit_async
from storefront.models.cart import Cart
from storefront.schemas.cart import CartItemCreate, CartItemUpdate, CartSummary
from storefront.services import cart_service

router = APIRouter(prefix="/cart", tags=["cart"])


async def _mutable_cart(ctx: SessionContext) -> Cart:
    # toda mutación necesita dueño: anónimo -> invitado nuevo
    await ctx.ensure_owner()
    return await cart_service.require_cart(ctx.db, ctx.identity)


async def _summary(ctx: SessionContext, cart: Cart | None) -> CartSummary:
    return await cart_service.build_summary(ctx.db, cart, ctx.is_authenticated)


@router.get("", response_model=CartSummary)
async def get_cart(
    create_guest: bool = Query(default=False, description="Crear invitado y carrito si no existen"),
    ctx: SessionContext = Depends(get_session_context),
):
    if create_guest:
        await ctx.ensure_owner()
    cart = await cart_service.get_or_create_cart(ctx.db, ctx.identity, create_guest_cart=create_guest)
    await commit_async(ctx.db)
    return await _summary(ctx, cart)


@router.post("/items", response_model=CartSummary, status_code=status.HTTP_201_CREATED)
async def add_cart_item(
    item: CartItemCreate,
    ctx: SessionContext = Depends(get_session_context),
):
    cart = await _mutable_cart(ctx)
    await cart_service.add_item(ctx.db, cart, item.variant_id, item.quantity)
    await commit_async(ctx.db)
    return await _summary(ctx, cart)


@router.put("/items/{item_id}", response_model=CartSummary)
async def update_cart_item(
    item_id: uuid.UUID,
    payload: CartItemUpdate,
    ctx: SessionContext = Depends(get_session_context),
):
    cart = await _mutable_cart(ctx)
    await cart_service.update_item(ctx.db, cart, item_id, payload.quantity)
    await commit_async(ctx.db)
    return await _summary(ctx, cart)


@router.delete("/items/{item_id}", response_model=CartSummary)
async def remove_cart_item(
    item_id: uuid.UUID,
    ctx: SessionContext = Depends(get_session_context),
):
    cart = await _mutable_cart(ctx)
    await cart_service.remove_item(ctx.db, cart, item_id)
    await commit_async(ctx.db)
    return await _summary(ctx, cart)


@router.delete("", response_model=CartSummary)
async def clear_cart(ctx: SessionContext = Depends(get_session_context)):
    cart = await _mutable_cart(ctx)
    await cart_service.clear_cart(ctx.db, cart.id)
    await commit_async(ctx.db)
    return await _summary(ctx, cart)
