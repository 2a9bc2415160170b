"""Middleware registration."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from knowva.config import Settings
from knowva.middleware.error_handler import setup_error_handlers
from knowva.middleware.logging import setup_logging
from knowva.middleware.rate_limit import RateLimitMiddleware
from knowva.middleware.request_id import RequestIdMiddleware

# The mobile client sends the refresh token on logout in its own header.
CORS_ALLOW_HEADERS = ["Authorization", "Content-Type", "X-Refresh-Token", "X-Request-Id"]
CORS_EXPOSE_HEADERS = ["X-Request-Id", "X-RateLimit-Remaining", "X-RateLimit-Limit"]


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Install logging, error handlers and the middleware stack.

    Starlette runs middleware in reverse-add order (last added = outermost),
    so CORS wraps everything including the rate limiter's 429 responses.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=CORS_ALLOW_HEADERS,
        expose_headers=CORS_EXPOSE_HEADERS,
    )
