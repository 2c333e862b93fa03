# storefront/api/deps.py
from __future__ import annotations

from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.cookies import set_guest_cookie
from storefront.db.session_async import get_async_db
from storefront.domain.identity import CartOwner, GuestIdentity, Identity, UserIdentity
from storefront.services import session_service


def get_auth_token(request: Request) -> str | None:
    """Session cookie first, then an ``Authorization: Bearer`` header."""
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if token:
        return token
    header = request.headers.get("authorization") or ""
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


def get_guest_token(request: Request) -> str | None:
    return request.cookies.get(settings.GUEST_COOKIE_NAME) or None


class SessionContext:
    """Per-request identity plus the handles needed to mutate it."""

    def __init__(self, db: AsyncSession, request: Request, response: Response, identity: Identity) -> None:
        self.db = db
        self.request = request
        self.response = response
        self.identity = identity

    @property
    def is_authenticated(self) -> bool:
        return isinstance(self.identity, UserIdentity)

    @property
    def guest_token(self) -> str | None:
        return get_guest_token(self.request)

    async def ensure_owner(self) -> CartOwner:
        """Return a cart owner, creating a guest identity for anonymous callers."""
        if isinstance(self.identity, (UserIdentity, GuestIdentity)):
            return self.identity

        guest = await session_service.create_guest(self.db)
        set_guest_cookie(self.response, guest.session_token)
        self.identity = GuestIdentity(guest_id=guest.id, token=guest.session_token)
        return self.identity


async def get_session_context(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_async_db),
) -> SessionContext:
    identity = await session_service.resolve_identity(db, get_auth_token(request), get_guest_token(request))
    return SessionContext(db, request, response, identity)
