from . import auth
from . import cart
from . import checkout
from . import orders
from . import payments

__all__ = [
    "auth",
    "cart",
    "checkout",
    "orders",
    "payments",
]
