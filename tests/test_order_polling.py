import asyncio

import httpx
import pytest

from storefront.clients.order_status import OrderStatusPoller, PollState

ORDER = {"id": "3f1c9a52-1111-4a4a-9b9b-000000000001", "status": "paid", "totalAmount": "35.50", "items": []}


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")


@pytest.mark.asyncio
async def test_polls_until_order_appears():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.params["session_id"])
        if len(calls) < 3:
            return httpx.Response(200, json={"order": None})
        return httpx.Response(200, json={"order": ORDER})

    async with _client(handler) as client:
        result = await OrderStatusPoller(client, "cs_test_poll", max_attempts=5, interval=0).run()

    assert result.state == PollState.found
    assert result.attempts == 3
    assert result.order == ORDER
    assert calls == ["cs_test_poll"] * 3


@pytest.mark.asyncio
async def test_gives_up_after_attempt_budget():
    async with _client(lambda request: httpx.Response(200, json={"order": None})) as client:
        poller = OrderStatusPoller(client, "cs_test_poll", max_attempts=4, interval=0)
        result = await poller.run()

    assert result.state == PollState.exhausted
    assert result.attempts == 4
    assert result.order is None
    assert poller.state == PollState.exhausted


@pytest.mark.asyncio
async def test_error_response_stops_immediately():
    def handler(request):
        return httpx.Response(500, json={"error": "Failed to fetch order"})

    async with _client(handler) as client:
        result = await OrderStatusPoller(client, "cs_test_poll", max_attempts=5, interval=0).run()

    assert result.state == PollState.fatal_error
    assert result.attempts == 1
    assert result.error == "Failed to fetch order"


@pytest.mark.asyncio
async def test_transport_error_is_fatal():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        result = await OrderStatusPoller(client, "cs_test_poll", max_attempts=5, interval=0).run()

    assert result.state == PollState.fatal_error
    assert "connection refused" in result.error


@pytest.mark.asyncio
async def test_cancel_stops_polling():
    cancel = asyncio.Event()
    calls = []

    def handler(request):
        calls.append(1)
        cancel.set()
        return httpx.Response(200, json={"order": None})

    async with _client(handler) as client:
        result = await OrderStatusPoller(
            client, "cs_test_poll", max_attempts=10, interval=0, cancel_event=cancel
        ).run()

    assert result.state == PollState.cancelled
    assert result.attempts == 1
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_cancelled_before_start_makes_no_request():
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(200, json={"order": ORDER})

    async with _client(handler) as client:
        poller = OrderStatusPoller(client, "cs_test_poll", max_attempts=3, interval=0)
        poller.cancel()
        result = await poller.run()

    assert result.state == PollState.cancelled
    assert result.attempts == 0
    assert calls == []


@pytest.mark.asyncio
async def test_polls_real_lookup_endpoint(client, fake_stripe):
    session = fake_stripe.add_session(metadata={})

    result = await OrderStatusPoller(client, session["id"], max_attempts=2, interval=0).run()

    assert result.state == PollState.exhausted
    assert result.attempts == 2
