from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status

from storefront.api.deps import SessionContext, get_session_context
from storefront.core.config import settings
from storefront.core.cookies import clear_auth_cookie, clear_guest_cookie, set_auth_cookie
from storefront.core.logging import get_logger, security_alert
from storefront.core.metrics import record_login_attempt
from storefront.core.rate_limiter import rate_limit
from storefront.core.security import create_session_token
from storefront.db.operations import commit_async
from storefront.domain.identity import UserIdentity
from storefront.middleware.observability import client_ip
from storefront.models.user import User
from storefront.schemas.auth import AuthResponse, SessionRead, SignInRequest, SignUpRequest, UserRead
from storefront.services import cart_service, session_service, user_service

router = APIRouter(prefix="/auth", tags=["auth"])

auth_logger = get_logger("storefront.auth")

auth_rate_limit = rate_limit(
    settings.RATE_LIMIT_AUTH_PER_MINUTE,
    period_seconds=settings.RATE_LIMIT_AUTH_WINDOW_SECONDS,
    scope="auth",
    identifier=lambda request: client_ip(request) or "anonymous",
)


async def _start_session(ctx: SessionContext, user: User) -> AuthResponse:
    """Set the auth cookie and fold any guest cart into the user's cart."""
    guest_token = ctx.guest_token
    if guest_token:
        await session_service.merge_guest_session(ctx.db, user.id, guest_token)
        clear_guest_cookie(ctx.response)

    cart = await cart_service.get_user_cart(ctx.db, user.id)
    await commit_async(ctx.db)

    set_auth_cookie(ctx.response, create_session_token(subject=user.id))
    ctx.identity = UserIdentity(user_id=user.id)
    summary = await cart_service.build_summary(ctx.db, cart, is_authenticated=True)
    return AuthResponse(user=UserRead.model_validate(user), cart=summary)


@router.post(
    "/sign-up",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(auth_rate_limit)],
)
async def sign_up(payload: SignUpRequest, ctx: SessionContext = Depends(get_session_context)):
    user = await user_service.register(ctx.db, payload)
    user_service.mark_login(user)
    auth_logger.info("User registered", extra={"user_id": str(user.id)})
    return await _start_session(ctx, user)


@router.post("/sign-in", response_model=AuthResponse, dependencies=[Depends(auth_rate_limit)])
async def sign_in(
    payload: SignInRequest,
    request: Request,
    ctx: SessionContext = Depends(get_session_context),
):
    user = await user_service.authenticate(ctx.db, payload.email, payload.password)
    if not user:
        record_login_attempt("failure")
        security_alert("Failed sign-in attempt", email=payload.email, client_ip=client_ip(request))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid email or password.")

    record_login_attempt("success")
    user_service.mark_login(user)
    auth_logger.info("User authenticated", extra={"user_id": str(user.id), "client_ip": client_ip(request)})
    return await _start_session(ctx, user)


@router.post("/sign-out")
async def sign_out(ctx: SessionContext = Depends(get_session_context)):
    clear_auth_cookie(ctx.response)
    clear_guest_cookie(ctx.response)
    return {"success": True}


@router.get("/session", response_model=SessionRead)
async def current_session(ctx: SessionContext = Depends(get_session_context)):
    identity = ctx.identity
    return SessionRead(
        kind=identity.kind,
        user_id=identity.user_id if isinstance(identity, UserIdentity) else None,
        is_authenticated=ctx.is_authenticated,
    )
