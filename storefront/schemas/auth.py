# storefront/schemas/auth.py
from typing import Literal, Optional
from uuid import UUID

from pydantic import EmailStr, Field

from storefront.schemas.cart import CartSummary
from storefront.schemas.common import CamelModel


class SignUpRequest(CamelModel):
    name: Optional[str] = Field(default=None, max_length=200)
    email: EmailStr  # Más estricto que str para validación automática
    password: str = Field(..., min_length=8, max_length=128)


class SignInRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class UserRead(CamelModel):
    id: UUID
    email: EmailStr
    full_name: Optional[str] = None


class AuthResponse(CamelModel):
    user: UserRead
    cart: CartSummary


class SessionRead(CamelModel):
    kind: Literal["user", "guest", "anonymous"]
    user_id: Optional[UUID] = None
    is_authenticated: bool = False
