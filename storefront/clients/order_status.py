"""Bounded polling of the order lookup endpoint after a checkout redirect.

The success page cannot know whether the webhook or the lookup fallback will
create the order first, so it polls until the order shows up, the attempt
budget runs out, the endpoint fails, or the caller cancels.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass
from typing import Any

import httpx
from tenacity import AsyncRetrying, retry_if_result, stop_after_attempt, stop_when_event_set, wait_fixed

from storefront.core.config import settings
from storefront.core.logging import get_logger

logger = get_logger("storefront.clients.order_status")


class PollState(str, enum.Enum):
    polling = "polling"
    found = "found"
    exhausted = "exhausted"
    fatal_error = "fatal_error"
    cancelled = "cancelled"


class OrderStatusError(Exception):
    """Non-200 answer or transport failure; polling stops."""


@dataclass
class PollResult:
    state: PollState
    attempts: int
    order: dict[str, Any] | None = None
    error: str | None = None


class OrderStatusPoller:
    def __init__(
        self,
        client: httpx.AsyncClient,
        session_id: str,
        *,
        max_attempts: int | None = None,
        interval: float | None = None,
        cancel_event: asyncio.Event | None = None,
        path: str | None = None,
    ) -> None:
        self.client = client
        self.session_id = session_id
        self.max_attempts = max_attempts or settings.ORDER_POLL_MAX_ATTEMPTS
        self.interval = settings.ORDER_POLL_INTERVAL_SECONDS if interval is None else interval
        self.cancel_event = cancel_event or asyncio.Event()
        self.path = path or f"{settings.API_V1_STR}/orders"
        self.state = PollState.polling
        self.attempts = 0

    def cancel(self) -> None:
        self.cancel_event.set()

    async def _fetch(self) -> dict[str, Any] | None:
        if self.cancel_event.is_set():
            return None
        self.attempts += 1
        try:
            response = await self.client.get(self.path, params={"session_id": self.session_id})
        except httpx.HTTPError as exc:
            raise OrderStatusError(f"Order status request failed: {exc}") from exc

        if response.status_code != 200:
            try:
                message = response.json().get("error")
            except ValueError:
                message = None
            raise OrderStatusError(message or f"Order status returned {response.status_code}")

        return response.json().get("order")

    async def run(self) -> PollResult:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts) | stop_when_event_set(self.cancel_event),
            wait=wait_fixed(self.interval),
            retry=retry_if_result(lambda order: order is None),
            # presupuesto agotado: devolvemos None en vez de RetryError
            retry_error_callback=lambda _state: None,
        )

        try:
            order = await retrying(self._fetch)
        except OrderStatusError as exc:
            logger.warning(
                "Order polling failed",
                extra={"session_id": self.session_id, "attempts": self.attempts, "error": str(exc)},
            )
            self.state = PollState.fatal_error
            return PollResult(self.state, self.attempts, error=str(exc))

        if order is not None:
            self.state = PollState.found
        elif self.cancel_event.is_set():
            self.state = PollState.cancelled
        else:
            self.state = PollState.exhausted
        logger.info(
            "Order polling finished",
            extra={"session_id": self.session_id, "attempts": self.attempts, "state": self.state.value},
        )
        return PollResult(self.state, self.attempts, order=order)
