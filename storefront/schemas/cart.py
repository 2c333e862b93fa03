# storefront/schemas/cart.py
from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from pydantic import Field

from storefront.schemas.common import CamelModel


class CartItemCreate(CamelModel):
    # Pydantic v2 parsea strings UUID sin problema si el tipo es UUID
    variant_id: UUID
    quantity: int = Field(default=1, gt=0)


class CartItemUpdate(CamelModel):
    # <= 0 elimina la línea
    quantity: int


class CartItemRead(CamelModel):
    id: UUID
    cart_id: UUID
    product_id: UUID
    product_name: str
    variant_id: UUID
    color_name: str
    size_name: str
    image_url: Optional[str] = None
    price: str
    quantity: int


class CartSummary(CamelModel):
    cart_id: Optional[UUID] = None
    items: List[CartItemRead] = Field(default_factory=list)
    item_count: int = 0
    subtotal: str = "0.00"
    is_authenticated: bool = False
