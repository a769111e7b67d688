"""Fixed-window request limits per client address and path.

Counters live in Redis (``ratelimit:{ip}:{path}``), so every API process
shares them. Without a Redis connection requests are not limited, and a
Redis failure lets the request through.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, NamedTuple

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from crackzone.utils.errors import ErrorCode
from crackzone.utils.json_utils import ORJSONResponse
from crackzone.utils.redis_client import get_redis

logger = logging.getLogger(__name__)

EXEMPT_PREFIXES = ("/ws", "/health", "/docs", "/redoc", "/openapi.json")


class Window(NamedTuple):
    limit: int
    seconds: int


FIFTEEN_MINUTES = 900

# Longest matching prefix first
RULES: tuple[tuple[str, Window], ...] = (
    ("/api/auth/login", Window(5, FIFTEEN_MINUTES)),
    ("/api/auth/register", Window(5, FIFTEEN_MINUTES)),
    ("/api/auth/forgot-password", Window(5, FIFTEEN_MINUTES)),
    ("/api/auth/reset-password", Window(5, FIFTEEN_MINUTES)),
    ("/api/auth/resend-verification", Window(5, FIFTEEN_MINUTES)),
    ("/api/auth", Window(30, FIFTEEN_MINUTES)),
    ("/api/images", Window(10, FIFTEEN_MINUTES)),
    ("/api/users/me/avatar", Window(10, FIFTEEN_MINUTES)),
    ("/api/transactions/withdraw", Window(5, 3600)),
)
DEFAULT_WINDOW = Window(100, FIFTEEN_MINUTES)


def window_for(path: str) -> Window:
    for prefix, window in RULES:
        if path.startswith(prefix):
            return window
    return DEFAULT_WINDOW


def client_address(request: Request) -> str:
    # First hop of X-Forwarded-For when running behind a proxy
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _too_many_requests(request: Request, window: Window) -> ORJSONResponse:
    message = "Too many requests. Please try again later."
    return ORJSONResponse(
        status_code=429,
        headers={"Retry-After": str(window.seconds)},
        content={
            "error": {
                "code": ErrorCode.RATE_LIMIT_EXCEEDED.value,
                "message": message,
                "details": {"limit": window.limit, "window": window.seconds, "retryAfter": window.seconds},
            },
            "message": message,
            "statusCode": 429,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "path": request.url.path,
            "method": request.method,
        },
    )


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: Callable, redis_client=None):
        """``redis_client`` defaults to the shared connection, looked up per request."""
        super().__init__(app)
        self._redis = redis_client

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        redis = self._redis or get_redis()
        if (
            redis is None
            or path.startswith(EXEMPT_PREFIXES)
            or request.headers.get("upgrade", "").lower() == "websocket"
        ):
            return await call_next(request)

        address = client_address(request)
        window = window_for(path)
        key = f"ratelimit:{address}:{path}"
        try:
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, window.seconds)
        except Exception as e:
            logger.error(f"Rate limit counter unavailable, allowing request: {e}")
            return await call_next(request)

        if count > window.limit:
            logger.warning(f"Rate limited {address} on {path}: {count} requests in {window.seconds}s window")
            return _too_many_requests(request, window)

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(window.limit)
        response.headers["X-RateLimit-Remaining"] = str(max(0, window.limit - count))
        response.headers["X-RateLimit-Reset"] = str(window.seconds)
        return response
