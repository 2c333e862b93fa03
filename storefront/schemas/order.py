# storefront/schemas/order.py
from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from pydantic import Field

from storefront.domain.enums import OrderStatus
from storefront.schemas.common import CamelModel


class OrderItemRead(CamelModel):
    id: UUID
    name: str
    image_url: Optional[str] = None
    quantity: int
    price: str


class OrderDetail(CamelModel):
    id: UUID
    status: OrderStatus
    total_amount: str
    items: List[OrderItemRead] = Field(default_factory=list)


class OrderLookupResponse(CamelModel):
    order: Optional[OrderDetail] = None
