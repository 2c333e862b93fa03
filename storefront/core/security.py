"""Password hashing and the signed token behind the ``auth_session`` cookie."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from storefront.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

SESSION_TOKEN_TYPE = "session"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_session_token(subject: uuid.UUID | str, expires_days: int | None = None) -> str:
    issued = datetime.now(timezone.utc)
    claims = {
        "sub": str(subject),
        "type": SESSION_TOKEN_TYPE,
        "iat": int(issued.timestamp()),
        "exp": issued + timedelta(days=expires_days or settings.SESSION_TTL_DAYS),
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def _signing_keys() -> list[str]:
    # clave vigente primero; las anteriores siguen validando durante la rotación
    keys = [settings.SECRET_KEY, *settings.SECRET_KEY_FALLBACKS]
    return list(dict.fromkeys(key for key in keys if key))


def decode_session_token(token: str) -> dict[str, Any]:
    """Verify signature, expiry and token type; raises ``JWTError`` otherwise."""
    try:
        header = jwt.get_unverified_header(token)
    except JWTError as exc:
        raise JWTError("Invalid token header") from exc
    if header.get("alg") != settings.JWT_ALGORITHM:
        raise JWTError("Token signed with unexpected algorithm")

    error: JWTError = JWTError("No signing key configured")
    for key in _signing_keys():
        try:
            claims = jwt.decode(token, key, algorithms=[settings.JWT_ALGORITHM])
        except JWTError as exc:
            error = exc
            continue
        if claims.get("type") != SESSION_TOKEN_TYPE:
            raise JWTError("Invalid token type")
        return claims
    raise error
