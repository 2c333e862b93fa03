from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.security import get_password_hash, verify_password
from storefront.db.operations import flush_async
from storefront.models.user import User
from storefront.schemas.auth import SignUpRequest
from storefront.services.exceptions import ConflictError


def _normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_by_email(db: AsyncSession, email: str) -> User | None:
    stmt = select(User).where(User.email == _normalize_email(email)).limit(1)
    result = await db.execute(stmt)
    return result.scalars().first()


async def register(db: AsyncSession, data: SignUpRequest) -> User:
    """Create a user, or claim one created earlier from a checkout email."""
    user = await get_by_email(db, data.email)
    if user is not None and user.hashed_password:
        raise ConflictError("Email already registered.")

    if user is None:
        user = User(email=_normalize_email(data.email), email_verified=False)
        db.add(user)
    user.hashed_password = get_password_hash(data.password)
    if data.name:
        user.full_name = data.name
    user.is_active = True
    await flush_async(db, user)
    return user


async def authenticate(db: AsyncSession, email: str, password: str) -> User | None:
    user = await get_by_email(db, email)
    if not user or not user.hashed_password or not user.is_active:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def mark_login(user: User) -> None:
    user.last_login_at = datetime.now(timezone.utc)
