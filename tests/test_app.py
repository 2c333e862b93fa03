import pytest

from storefront.core.config import settings


@pytest.mark.asyncio
async def test_root_and_metrics(client):
    assert (await client.get("/")).json()["status"] == "ok"

    await client.get("/api/v1/cart")
    resp = await client.get("/metrics")
    assert resp.status_code == 200
    assert "storefront" in resp.text


@pytest.mark.asyncio
async def test_security_headers_present(client):
    resp = await client.get("/api/v1/cart")
    assert resp.headers["X-Frame-Options"] == "DENY"
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert "Content-Security-Policy" in resp.headers
    assert "Strict-Transport-Security" not in resp.headers


@pytest.mark.asyncio
async def test_oversized_payload_is_rejected(client, monkeypatch):
    monkeypatch.setattr(settings, "MAX_REQUEST_SIZE_BYTES", 32)
    resp = await client.post("/api/v1/cart/items", content=b"x" * 64, headers={"Content-Type": "application/json"})
    assert resp.status_code == 413
    assert resp.json() == {"detail": "Request payload too large."}


@pytest.mark.asyncio
async def test_request_id_is_echoed_or_minted(client):
    echoed = await client.get("/", headers={"X-Request-ID": "req-abc"})
    assert echoed.headers["X-Request-ID"] == "req-abc"

    minted = await client.get("/")
    assert len(minted.headers["X-Request-ID"]) == 32
