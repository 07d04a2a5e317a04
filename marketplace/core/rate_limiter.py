from __future__ import annotations

import logging
import math
import threading
import time
from typing import Dict, Tuple

from fastapi import HTTPException, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

log = logging.getLogger("marketplace.rate_limit")

TOO_MANY_REQUESTS = "Too many requests from this IP, please try again later!"


class RateLimitExceeded(Exception):
    def __init__(self, retry_after: float):
        super().__init__(TOO_MANY_REQUESTS)
        self.retry_after = retry_after


class RateLimiter:
    """Fixed-window hit counter keyed by an arbitrary string."""

    def __init__(self) -> None:
        self._hits: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()

    def check(self, key: str, limit: int, window_seconds: int) -> int:
        """Record a hit and return the remaining budget; raise once over the limit."""
        now = time.time()
        with self._lock:
            count, reset = self._hits.get(key, (0, now + window_seconds))
            if now > reset:
                count = 0
                reset = now + window_seconds
            count += 1
            self._hits[key] = (count, reset)
            if count > limit:
                raise RateLimitExceeded(reset - now)
            return limit - count

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


_limiter = RateLimiter()


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit_ip(request: Request, scope: str, *, limit: int, window_seconds: int) -> None:
    """Per-endpoint limiter for sensitive routes (login, password reset)."""
    key = f"{scope}:{client_ip(request)}"
    try:
        _limiter.check(key, limit, window_seconds)
    except RateLimitExceeded as exc:
        raise HTTPException(
            429, TOO_MANY_REQUESTS, headers={"Retry-After": str(math.ceil(exc.retry_after))}
        ) from exc


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Limit every request under ``path_prefix`` per client IP."""

    def __init__(self, app, *, path_prefix: str, limit: int, window_seconds: int, limiter: RateLimiter | None = None) -> None:
        super().__init__(app)
        self._prefix = path_prefix
        self._limit = limit
        self._window = window_seconds
        self._limiter = limiter or _limiter

    async def dispatch(self, request, call_next):
        if not request.url.path.startswith(self._prefix):
            return await call_next(request)
        ip = client_ip(request)
        try:
            remaining = self._limiter.check(f"global:{ip}", self._limit, self._window)
        except RateLimitExceeded as exc:
            log.warning("Rate limit exceeded ip=%s path=%s", ip, request.url.path)
            return JSONResponse(
                status_code=429,
                content={"status": "fail", "message": TOO_MANY_REQUESTS},
                headers={"Retry-After": str(math.ceil(exc.retry_after))},
            )
        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self._limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response
