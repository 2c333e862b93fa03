from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

Amount = Union[Decimal, int, float, str]

_CENTS = Decimal("100")


def effective_unit_price(price: Amount, sale_price: Amount | None) -> Decimal:
    """Sale price wins when present and positive."""
    if sale_price is not None:
        sale = Decimal(str(sale_price))
        if sale > 0:
            return sale
    return Decimal(str(price))


def to_minor_units(amount: Amount) -> int:
    # siempre centavos enteros; nunca sumamos floats
    value = Decimal(str(amount)) * _CENTS
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_minor_units(minor: int) -> str:
    return f"{(Decimal(minor) / _CENTS).quantize(Decimal('0.01'))}"
