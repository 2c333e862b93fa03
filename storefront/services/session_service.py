"""Guest-session to user identity bridge."""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timedelta, timezone

from jose import JWTError
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.logging import get_logger
from storefront.core.security import decode_session_token
from storefront.domain.identity import ANONYMOUS, GuestIdentity, Identity, UserIdentity
from storefront.models.cart import Cart, CartItem
from storefront.models.guest import Guest
from storefront.models.user import User
from storefront.services import cart_service
from storefront.services.exceptions import GuestSessionError

logger = get_logger("storefront.session")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def _resolve_user(db: AsyncSession, auth_token: str) -> UserIdentity | None:
    try:
        payload = decode_session_token(auth_token)
        user_id = uuid.UUID(str(payload.get("sub")))
        user = await db.get(User, user_id)
    except (JWTError, ValueError) as exc:
        logger.info("Discarding invalid auth session", extra={"error": str(exc)})
        return None
    except SQLAlchemyError:
        logger.exception("User lookup failed during session resolution")
        await db.rollback()
        return None

    if not user or not user.is_active:
        return None
    return UserIdentity(user_id=user.id)


async def get_active_guest(db: AsyncSession, token: str) -> Guest | None:
    stmt = select(Guest).where(Guest.session_token == token, Guest.expires_at > _utcnow()).limit(1)
    return (await db.execute(stmt)).scalars().first()


async def resolve_identity(
    db: AsyncSession,
    auth_token: str | None,
    guest_token: str | None,
) -> Identity:
    """Resolve the caller; never raises, failures degrade to anonymous."""
    if auth_token:
        identity = await _resolve_user(db, auth_token)
        if identity is not None:
            return identity

    if guest_token:
        try:
            guest = await get_active_guest(db, guest_token)
        except SQLAlchemyError:
            logger.exception("Guest lookup failed during session resolution")
            await db.rollback()
            return ANONYMOUS
        if guest is not None:
            return GuestIdentity(guest_id=guest.id, token=guest.session_token)

    return ANONYMOUS


async def create_guest(db: AsyncSession) -> Guest:
    now = _utcnow()
    guest = Guest(
        session_token=secrets.token_urlsafe(32),
        created_at=now,
        expires_at=now + timedelta(days=settings.GUEST_SESSION_TTL_DAYS),
    )
    db.add(guest)
    try:
        await db.flush()
    except SQLAlchemyError as exc:
        logger.exception("Unable to create guest session")
        await db.rollback()
        raise GuestSessionError("Unable to create guest session.") from exc

    logger.info("Guest session created", extra={"guest_id": str(guest.id)})
    return guest


async def merge_guest_session(
    db: AsyncSession, user_id: uuid.UUID, guest_token: str
) -> cart_service.MergeResult | None:
    """Fold the guest's cart into the user's cart and drop the guest identity."""
    merged = await cart_service.merge_guest_cart(db, user_id, guest_token)
    result = await db.execute(delete(Guest).where(Guest.session_token == guest_token))
    if result.rowcount:
        logger.info("Guest session merged", extra={"user_id": str(user_id)})
    return merged


async def purge_expired_guests(db: AsyncSession, now: datetime | None = None) -> int:
    """Delete expired guests with their carts and cart items."""
    now = now or _utcnow()
    expired = select(Guest.id).where(Guest.expires_at <= now)
    expired_carts = select(Cart.id).where(Cart.guest_id.in_(expired))

    no_sync = {"synchronize_session": False}
    await db.execute(delete(CartItem).where(CartItem.cart_id.in_(expired_carts)).execution_options(**no_sync))
    await db.execute(delete(Cart).where(Cart.guest_id.in_(expired)).execution_options(**no_sync))
    result = await db.execute(delete(Guest).where(Guest.expires_at <= now).execution_options(**no_sync))
    purged = result.rowcount or 0
    if purged:
        logger.info("Expired guest sessions purged", extra={"count": purged})
    return purged
