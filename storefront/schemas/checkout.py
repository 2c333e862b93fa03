# storefront/schemas/checkout.py
"""Typed views over the payment provider's checkout session payloads."""

from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from storefront.schemas.common import CamelModel


class CheckoutSessionCreate(CamelModel):
    cart_id: UUID


class CheckoutSessionRead(CamelModel):
    url: str


class ProviderAddress(BaseModel):
    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None

    @classmethod
    def from_provider(cls, data: Any) -> Optional["ProviderAddress"]:
        if not isinstance(data, dict):
            return None
        return cls.model_validate({key: data.get(key) for key in cls.model_fields})


def _get_path(data: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


class CheckoutSessionSnapshot(BaseModel):
    """Normalized checkout session, built once from the raw provider response."""

    id: str
    payment_status: Optional[str] = None
    payment_intent_id: Optional[str] = None
    cart_id: Optional[str] = None
    user_id: Optional[str] = None
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    shipping_address: Optional[ProviderAddress] = None
    billing_address: Optional[ProviderAddress] = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"

    @property
    def transaction_id(self) -> str:
        # único identificador canónico para webhook, polling y lookup
        return self.payment_intent_id or self.id

    @classmethod
    def from_provider(cls, data: dict[str, Any]) -> "CheckoutSessionSnapshot":
        metadata = data.get("metadata") or {}
        if not isinstance(metadata, dict):
            metadata = {}

        intent = data.get("payment_intent")
        if isinstance(intent, dict):
            intent_id = intent.get("id")
        else:
            intent_id = intent or None

        shipping = _get_path(data, "shipping_details", "address") or _get_path(
            data, "collected_information", "shipping_details", "address"
        )
        customer = data.get("customer_details") or {}

        return cls(
            id=data["id"],
            payment_status=data.get("payment_status"),
            payment_intent_id=intent_id,
            cart_id=metadata.get("cart_id") or metadata.get("cartId") or None,
            user_id=(metadata.get("user_id") or metadata.get("userId") or "").strip() or None,
            customer_email=customer.get("email") or data.get("customer_email"),
            customer_name=customer.get("name") or _get_path(data, "shipping_details", "name"),
            shipping_address=ProviderAddress.from_provider(shipping),
            billing_address=ProviderAddress.from_provider(customer.get("address")),
            metadata={str(k): str(v) for k, v in metadata.items() if v is not None},
        )
