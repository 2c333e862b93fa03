"""Normalization of provider-collected postal addresses.

Checkout sessions may come back with partial or missing address data; orders
are still created, with sentinel values in the gaps.
"""

from __future__ import annotations

from dataclasses import dataclass

from storefront.schemas.checkout import ProviderAddress

UNKNOWN = "Unknown"
UNKNOWN_POSTAL_CODE = "00000"


@dataclass(frozen=True, slots=True)
class NormalizedAddress:
    line1: str
    city: str
    state: str
    country: str
    postal_code: str
    line2: str | None = None


def _or_default(value: str | None, default: str) -> str:
    if value is None:
        return default
    value = value.strip()
    return value or default


def normalize_address(address: ProviderAddress | None) -> NormalizedAddress:
    if address is None:
        address = ProviderAddress()
    line2 = (address.line2 or "").strip() or None
    return NormalizedAddress(
        line1=_or_default(address.line1, UNKNOWN),
        line2=line2,
        city=_or_default(address.city, UNKNOWN),
        state=_or_default(address.state, UNKNOWN),
        country=_or_default(address.country, UNKNOWN),
        postal_code=_or_default(address.postal_code, UNKNOWN_POSTAL_CODE),
    )
