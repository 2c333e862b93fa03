from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.logging import get_logger
from storefront.db.operations import commit_async, rollback_async
from storefront.db.session_async import get_async_db
from storefront.schemas.order import OrderLookupResponse
from storefront.services import order_service

router = APIRouter(prefix="/orders", tags=["orders"])

logger = get_logger("storefront.orders.api")


@router.get("", response_model=OrderLookupResponse)
async def get_order_status(
    session_id: str | None = Query(default=None, description="Checkout session, transaction u order id"),
    db: AsyncSession = Depends(get_async_db),
):
    """Order for a checkout session; materializes it when the webhook has not yet."""
    if not session_id:
        return JSONResponse({"error": "Missing session_id parameter"}, status_code=400)

    try:
        order = await order_service.find_order(db, session_id)
        if order is None:
            order_id = await order_service.materialize_order(db, session_id, trigger="lookup")
            if order_id is not None:
                await commit_async(db)
                order = await order_service.find_order(db, str(order_id))
    except Exception:
        logger.exception("Order lookup failed", extra={"session_id": session_id})
        await rollback_async(db)
        return JSONResponse({"error": "Failed to fetch order"}, status_code=500)

    return OrderLookupResponse(order=order)
