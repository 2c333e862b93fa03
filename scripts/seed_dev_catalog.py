"""Seed script for populating a development catalog (products, variants, images)."""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Sequence

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from sqlalchemy import select

from storefront.core.logging import get_logger, setup_logging
from storefront.db.operations import commit_async
from storefront.db.session_async import AsyncSessionLocal
from storefront.models.product import Product, ProductImage, ProductVariant
from storefront.utils.slugify import slugify

logger = get_logger("scripts.seed_dev_catalog")


@dataclass(frozen=True, slots=True)
class VariantSeed:
    sku: str
    color_name: str
    size_label: str
    price: Decimal
    sale_price: Decimal | None = None
    in_stock: bool = True
    image_url: str | None = None


@dataclass(frozen=True, slots=True)
class ProductSeed:
    name: str
    description: str
    images: Sequence[str] = field(default_factory=tuple)
    variants: Sequence[VariantSeed] = field(default_factory=tuple)

    @property
    def slug(self) -> str:
        return slugify(self.name)


PRODUCTS: tuple[ProductSeed, ...] = (
    ProductSeed(
        name="Air Runner Classic",
        description="Zapatilla de running de uso diario.",
        images=("/shoes/air-runner-classic.png",),
        variants=(
            VariantSeed("AIR-RUN-BLK-42", "Black", "42", Decimal("120.00")),
            VariantSeed("AIR-RUN-BLK-43", "Black", "43", Decimal("120.00")),
            VariantSeed(
                "AIR-RUN-WHT-42",
                "White",
                "42",
                Decimal("120.00"),
                sale_price=Decimal("99.99"),
                image_url="/shoes/air-runner-classic-white.png",
            ),
        ),
    ),
    ProductSeed(
        name="Court Low Retro",
        description="Zapatilla urbana de caña baja.",
        images=("/shoes/court-low-retro.png", "/shoes/court-low-retro-side.png"),
        variants=(
            VariantSeed("COURT-LOW-RED-40", "Red", "40", Decimal("89.50"), sale_price=Decimal("74.25")),
            VariantSeed("COURT-LOW-RED-41", "Red", "41", Decimal("89.50"), in_stock=False),
        ),
    ),
    ProductSeed(
        name="Trail Pro GTX",
        description="Calzado impermeable para montaña.",
        images=(),
        variants=(
            VariantSeed("TRAIL-PRO-GRN-44", "Green", "44", Decimal("159.00"), image_url="/shoes/trail-pro-green.png"),
        ),
    ),
)


async def _seed_product(session, seed: ProductSeed) -> bool:
    existing = (await session.execute(select(Product).where(Product.slug == seed.slug))).scalars().first()
    if existing is not None:
        return False

    product = Product(name=seed.name, slug=seed.slug, description=seed.description, active=True)
    session.add(product)
    await session.flush()

    for index, url in enumerate(seed.images):
        session.add(
            ProductImage(
                product_id=product.id,
                url=url,
                alt_text=seed.name,
                is_primary=index == 0,
                sort_order=index,
            )
        )

    for variant_seed in seed.variants:
        variant = ProductVariant(
            product_id=product.id,
            sku=variant_seed.sku,
            color_name=variant_seed.color_name,
            size_label=variant_seed.size_label,
            price=variant_seed.price,
            sale_price=variant_seed.sale_price,
            in_stock=variant_seed.in_stock,
            active=True,
        )
        session.add(variant)
        await session.flush()
        if variant_seed.image_url:
            session.add(
                ProductImage(
                    product_id=product.id,
                    variant_id=variant.id,
                    url=variant_seed.image_url,
                    alt_text=f"{seed.name} {variant_seed.color_name}",
                    is_primary=True,
                    sort_order=0,
                )
            )
    return True


async def seed_dev_catalog(products: Sequence[ProductSeed] = PRODUCTS) -> int:
    """Insert missing catalog products; returns how many were created."""
    created = 0
    async with AsyncSessionLocal() as session:
        for seed in products:
            if await _seed_product(session, seed):
                created += 1
        await commit_async(session)
    logger.info("Development catalog seeded", extra={"created": created, "total": len(products)})
    return created


def main() -> None:
    setup_logging()
    logging.getLogger().setLevel(logging.INFO)
    asyncio.run(seed_dev_catalog())


if __name__ == "__main__":
    main()
