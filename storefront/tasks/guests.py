from __future__ import annotations

import asyncio

from storefront.core.celery_app import celery_app
from storefront.core.logging import get_logger
from storefront.db.operations import commit_async
from storefront.db.session_async import AsyncSessionLocal
from storefront.services import session_service

logger = get_logger("storefront.tasks.guests")


async def _purge_expired() -> int:
    async with AsyncSessionLocal() as session:
        purged = await session_service.purge_expired_guests(session)
        await commit_async(session)
        return purged


@celery_app.task(name="guests.purge_expired")
def purge_expired_guests() -> int:
    purged = asyncio.run(_purge_expired())
    logger.info("Guest purge finished", extra={"purged": purged})
    return purged
