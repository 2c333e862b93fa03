"""Fixed-window request limiting for the sign-in and sign-up endpoints."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

import redis.asyncio as redis_async
from fastapi import HTTPException, Request, status
from redis.exceptions import RedisError

from storefront.core.config import settings
from storefront.core.logging import get_logger

logger = get_logger("storefront.rate_limiter")


class RateLimitExceeded(Exception):
    def __init__(self, retry_after: float) -> None:
        super().__init__(f"Rate limit exceeded, retry in {retry_after:.0f}s")
        self.retry_after = retry_after


class RateLimiter:
    """Counts hits per key and window; Redis when configured, process memory otherwise."""

    def __init__(self, redis_url: str | None = None, prefix: str = "storefront:rl") -> None:
        self.prefix = prefix
        self._redis = redis_async.from_url(redis_url, decode_responses=True) if redis_url else None
        self._windows: dict[str, tuple[int, float]] = {}
        self._lock = asyncio.Lock()

    async def _redis_hit(self, key: str, period_seconds: int) -> tuple[int, float] | None:
        if self._redis is None:
            return None
        redis_key = f"{self.prefix}:{key}"
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.incr(redis_key)
                pipe.expire(redis_key, period_seconds, nx=True)
                pipe.ttl(redis_key)
                count, _, ttl = await pipe.execute()
        except RedisError as exc:
            logger.warning("Redis unavailable, using in-memory rate limiting", extra={"error": str(exc)})
            return None
        return int(count), float(ttl if ttl and ttl > 0 else period_seconds)

    async def _memory_hit(self, key: str, period_seconds: int) -> tuple[int, float]:
        now = time.monotonic()
        async with self._lock:
            count, window_end = self._windows.get(key, (0, now + period_seconds))
            if now >= window_end:
                count, window_end = 0, now + period_seconds
            count += 1
            self._windows[key] = (count, window_end)
        return count, window_end - now

    async def hit(self, key: str, limit: int, period_seconds: int) -> float:
        """Register one hit; returns seconds left in the window or raises ``RateLimitExceeded``."""
        result = await self._redis_hit(key, period_seconds)
        if result is None:
            result = await self._memory_hit(key, period_seconds)
        count, remaining = result
        if count > limit:
            raise RateLimitExceeded(retry_after=remaining)
        return remaining


_rate_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter(redis_url=settings.REDIS_URL)
    return _rate_limiter


def rate_limit(
    limit: int,
    period_seconds: int = 60,
    scope: str = "default",
    identifier: Callable[[Request], str] | None = None,
) -> Callable[[Request], Awaitable[None]]:
    """FastAPI dependency factory; ``identifier`` picks the bucket (client IP by default)."""

    def default_identifier(request: Request) -> str:
        return request.client.host if request.client else "anonymous"

    key_for = identifier or default_identifier

    async def dependency(request: Request) -> None:
        try:
            await get_rate_limiter().hit(f"{scope}:{key_for(request)}", limit, period_seconds)
        except RateLimitExceeded as exc:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests, please slow down.",
                headers={"Retry-After": str(max(1, round(exc.retry_after)))},
            ) from exc

    return dependency
