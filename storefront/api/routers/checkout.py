from __future__ import annotations

from fastapi import APIRouter, Depends

from storefront.api.deps import SessionContext, get_session_context
from storefront.core.config import settings
from storefront.core.cookies import clear_guest_cookie
from storefront.core.logging import get_logger
from storefront.db.operations import commit_async
from storefront.domain.identity import UserIdentity
from storefront.schemas.checkout import CheckoutSessionCreate, CheckoutSessionRead
from storefront.services import checkout_service, session_service

router = APIRouter(prefix="/checkout", tags=["checkout"])


logger = get_logger("storefront.checkout.api")


def _base_url(ctx: SessionContext) -> str:
    # las URLs de retorno de Stripe solo apuntan a orígenes conocidos
    origin = (ctx.request.headers.get("origin") or "").rstrip("/")
    if origin and origin in settings.allowed_origins:
        return origin
    if origin:
        logger.warning("Ignoring unlisted checkout origin", extra={"origin": origin})
    return settings.FRONTEND_URL


@router.post("/sessions", response_model=CheckoutSessionRead)
async def create_checkout_session(
    payload: CheckoutSessionCreate,
    ctx: SessionContext = Depends(get_session_context),
):
    cart_id = payload.cart_id

    # usuario logueado que todavía arrastra la cookie de invitado
    guest_token = ctx.guest_token
    if isinstance(ctx.identity, UserIdentity) and guest_token:
        merged = await session_service.merge_guest_session(ctx.db, ctx.identity.user_id, guest_token)
        clear_guest_cookie(ctx.response)
        if merged and merged.guest_cart_id == cart_id:
            cart_id = merged.cart_id
        await commit_async(ctx.db)

    url = await checkout_service.create_checkout_session(ctx.db, ctx.identity, cart_id, base_url=_base_url(ctx))
    return {"url": url}
