# storefront/domain/enums.py
import enum


class CartOwnerKind(str, enum.Enum):
    user = "user"
    guest = "guest"


class OrderStatus(str, enum.Enum):
    pending = "pending"
    paid = "paid"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"


class PaymentMethod(str, enum.Enum):
    stripe = "stripe"
    paypal = "paypal"
    cod = "cod"


class PaymentStatus(str, enum.Enum):
    initiated = "initiated"
    completed = "completed"
    failed = "failed"


class AddressType(str, enum.Enum):
    billing = "billing"
    shipping = "shipping"
