"""Caller identities resolved from the session cookies.

A cart owner is either a user or a guest, never both; ``CartOwner`` is the
union of the two identity types that may own a cart.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Literal, Union

from storefront.domain.enums import CartOwnerKind


@dataclass(frozen=True, slots=True)
class UserIdentity:
    user_id: uuid.UUID
    kind: Literal["user"] = "user"

    @property
    def owner_kind(self) -> CartOwnerKind:
        return CartOwnerKind.user


@dataclass(frozen=True, slots=True)
class GuestIdentity:
    guest_id: uuid.UUID
    token: str
    kind: Literal["guest"] = "guest"

    @property
    def owner_kind(self) -> CartOwnerKind:
        return CartOwnerKind.guest


@dataclass(frozen=True, slots=True)
class AnonymousIdentity:
    kind: Literal["anonymous"] = "anonymous"


ANONYMOUS = AnonymousIdentity()

CartOwner = Union[UserIdentity, GuestIdentity]
Identity = Union[UserIdentity, GuestIdentity, AnonymousIdentity]
