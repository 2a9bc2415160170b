"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from knowva.auth.jwt import JwtConfig, TokenIssuer
from knowva.auth.router import router as auth_router
from knowva.auth.service import AuthService
from knowva.config import Settings, get_settings
from knowva.database import close_db, create_schema, init_db
from knowva.health.router import router as health_router
from knowva.middleware import setup_middleware
from knowva.redis_client import close_redis, init_redis

logger = structlog.get_logger()


def _lifespan(settings: Settings):  # noqa: ANN202
    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
        """Startup and shutdown lifecycle."""
        await init_db(settings)
        if settings.uses_in_memory_database:
            # Nothing runs migrations against a throwaway database
            logger.warning("using_in_memory_database")
            await create_schema()
        if settings.redis_url:
            await init_redis(settings.redis_url)

        yield

        await close_db()
        await close_redis()

    return lifespan


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Knowva API",
        description="Authentication API for the Knowva trivia game",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=_lifespan(settings),
    )
    app.state.settings = settings
    app.state.auth_service = AuthService(TokenIssuer(JwtConfig.from_settings(settings)))

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)

    return app


app = create_app()
