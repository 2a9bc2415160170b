"""Redis fixed-window rate limiting for the auth endpoints.

Only paths under /api/v1/auth are counted; they are the brute-force target.
When Redis is not configured every request passes through.
"""

import time
from typing import Any

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from knowva.redis_client import count_hit, redis_enabled

logger = structlog.get_logger()

RATE_LIMITED_PREFIX = "/api/v1/auth"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Count auth requests per client IP and window; answer 429 past the limit."""

    def __init__(
        self,
        app: Any,  # noqa: ANN401
        requests_per_window: int = 100,
        window_seconds: int = 60,
    ) -> None:
        super().__init__(app)
        self.requests_per_window = requests_per_window
        self.window_seconds = window_seconds

    def window_key(self, request: Request, now: float | None = None) -> str:
        client_ip = request.client.host if request.client else "unknown"
        window = int(time.time() if now is None else now) // self.window_seconds
        return f"ratelimit:auth:{client_ip}:{window}"

    def _limit_headers(self, remaining: int) -> dict[str, str]:
        return {
            "X-RateLimit-Remaining": str(remaining),
            "X-RateLimit-Limit": str(self.requests_per_window),
        }

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not request.url.path.startswith(RATE_LIMITED_PREFIX) or not redis_enabled():
            return await call_next(request)

        key = self.window_key(request)
        hits = await count_hit(key, self.window_seconds + 1)
        if hits > self.requests_per_window:
            logger.warning("rate_limited", key=key, hits=hits)
            return JSONResponse(
                status_code=429,
                content={"error": "Rate limit exceeded. Try again later."},
                headers={"Retry-After": str(self.window_seconds), **self._limit_headers(0)},
            )

        response = await call_next(request)
        response.headers.update(self._limit_headers(max(0, self.requests_per_window - hits)))
        return response
