from __future__ import annotations

import uuid
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models.product import ProductImage


async def variant_image_urls(
    db: AsyncSession,
    pairs: Iterable[tuple[uuid.UUID, uuid.UUID]],
) -> dict[uuid.UUID, str | None]:
    """Map each variant id to its display image.

    ``pairs`` are ``(product_id, variant_id)``. A variant's own image beats the
    product's generic image; within each group primary images come first, then
    ``sort_order``.
    """
    pairs = list(pairs)
    if not pairs:
        return {}

    product_ids = {product_id for product_id, _ in pairs}
    stmt = (
        select(ProductImage.product_id, ProductImage.variant_id, ProductImage.url)
        .where(ProductImage.product_id.in_(product_ids))
        .order_by(ProductImage.is_primary.desc(), ProductImage.sort_order, ProductImage.id)
    )
    rows = (await db.execute(stmt)).all()

    own: dict[uuid.UUID, str] = {}
    generic: dict[uuid.UUID, str] = {}
    for product_id, variant_id, url in rows:
        if variant_id is None:
            generic.setdefault(product_id, url)
        else:
            own.setdefault(variant_id, url)

    return {variant_id: own.get(variant_id) or generic.get(product_id) for product_id, variant_id in pairs}
