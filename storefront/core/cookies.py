"""Session cookie helpers shared by the auth, cart and checkout routers."""

from __future__ import annotations

from starlette.responses import Response

from storefront.core.config import settings


def _cookie_kwargs(max_age_days: int) -> dict:
    return {
        "httponly": True,
        "secure": settings.cookie_secure,
        "samesite": "strict",
        "path": "/",
        "max_age": max_age_days * 24 * 60 * 60,
    }


def set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(settings.AUTH_COOKIE_NAME, token, **_cookie_kwargs(settings.SESSION_TTL_DAYS))


def set_guest_cookie(response: Response, token: str) -> None:
    response.set_cookie(settings.GUEST_COOKIE_NAME, token, **_cookie_kwargs(settings.GUEST_SESSION_TTL_DAYS))


def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(
        settings.AUTH_COOKIE_NAME,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="strict",
    )


def clear_guest_cookie(response: Response) -> None:
    response.delete_cookie(
        settings.GUEST_COOKIE_NAME,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="strict",
    )
