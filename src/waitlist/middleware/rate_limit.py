"""Redis-backed fixed window rate limiting middleware."""

import time
from typing import Any

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from waitlist.redis_client import get_redis

logger = structlog.get_logger()

_EXEMPT_PATHS = frozenset({"/health", "/ready", "/version"})

# Long-lived streams are authenticated by session and never counted
_EXEMPT_PREFIXES = ("/api/v1/sse/",)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limit requests per IP using Redis counters.

    ``route_limits`` maps ``(method, path)`` to a stricter
    ``(requests, window_seconds)`` pair with its own counter bucket.
    """

    def __init__(
        self,
        app: Any,  # noqa: ANN401
        requests_per_window: int = 100,
        window_seconds: int = 60,
        route_limits: dict[tuple[str, str], tuple[int, int]] | None = None,
    ) -> None:
        super().__init__(app)
        self.requests_per_window = requests_per_window
        self.window_seconds = window_seconds
        self.route_limits = route_limits or {}

    def _limit_for(self, request: Request) -> tuple[str, int, int]:
        route = (request.method, request.url.path)
        if route in self.route_limits:
            limit, window = self.route_limits[route]
            return f"{route[0]}:{route[1]}", limit, window
        return "global", self.requests_per_window, self.window_seconds

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Check rate limit, return 429 if exceeded."""
        path = request.url.path
        if path in _EXEMPT_PATHS or path.startswith(_EXEMPT_PREFIXES):
            return await call_next(request)

        bucket, limit, window_seconds = self._limit_for(request)
        client_ip = request.client.host if request.client else "unknown"
        window = int(time.time()) // window_seconds
        rate_key = f"ratelimit:{bucket}:{client_ip}:{window}"

        try:
            redis = get_redis()
            pipe = redis.pipeline()
            pipe.incr(rate_key)
            pipe.expire(rate_key, window_seconds + 1)
            results: list[Any] = await pipe.execute()
        except RuntimeError:
            # Redis not initialized, let the request through
            return await call_next(request)

        current_count: int = results[0]
        remaining = max(0, limit - current_count)

        if current_count > limit:
            logger.warning("rate_limit_exceeded", client_ip=client_ip, bucket=bucket, path=path)
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests. Please try again later."},
                headers={
                    "Retry-After": str(window_seconds),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Limit": str(limit),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Limit"] = str(limit)
        return response
