"""Service info, health, readiness, and version endpoints."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from knowva.config import Settings
from knowva.database import get_session

router = APIRouter()

SERVICE_NAME = "Knowva API"

_AUTH_ENDPOINTS = {
    "POST /api/v1/auth/register": "Register new user account",
    "POST /api/v1/auth/login": "Login with email and password",
    "POST /api/v1/auth/refresh": "Refresh access token",
    "POST /api/v1/auth/logout": "Logout and invalidate tokens (requires auth)",
    "GET /api/v1/auth/me": "Get current user profile (requires auth)",
    "PUT /api/v1/auth/me": "Update user profile (requires auth)",
    "GET /api/v1/auth/me/stats": "Get user statistics (requires auth)",
}


def _settings(request: Request) -> Settings:
    return request.app.state.settings


@router.get("/")
async def root(request: Request) -> dict[str, object]:
    """Service banner with entry points."""
    return {
        "service": SERVICE_NAME,
        "version": _settings(request).app_version,
        "status": "healthy",
        "endpoints": {"auth": "/api/v1/auth", "health": "/health"},
    }


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe, returns 200 if the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe, checks DB connectivity."""
    checks: dict[str, object] = {}
    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        checks["database"] = "ok"
    except Exception as exc:
        checks["database"] = f"error: {exc}"

    all_ok = all(v == "ok" for v in checks.values())
    return {"status": "ready" if all_ok else "degraded", "checks": checks}


@router.get("/version")
async def version(request: Request) -> dict[str, str]:
    """Return API version and environment."""
    settings = _settings(request)
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }


@router.get("/api/v1/docs")
async def endpoint_listing(request: Request) -> dict[str, object]:
    """Plain listing of the auth endpoints."""
    return {
        "title": SERVICE_NAME,
        "version": _settings(request).app_version,
        "description": "Authentication API for Knowva trivia game",
        "endpoints": _AUTH_ENDPOINTS,
    }
