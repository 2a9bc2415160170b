"""Authentication router: all /api/v1/auth/* endpoints.

Handlers only decode requests and call the AuthService; typed errors are
turned into responses by the handlers in knowva.middleware.error_handler.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from knowva.auth.dependencies import get_auth_service, get_current_user_id
from knowva.auth.schemas import (
    AuthResponse,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    SuccessResponse,
    UpdateProfileRequest,
    UserProfileResponse,
)
from knowva.auth.service import AuthService
from knowva.database import get_session

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


def _client_info(request: Request) -> tuple[str | None, str | None]:
    ip_address = request.client.host if request.client else None
    return ip_address, request.headers.get("user-agent")


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Register with email, password, username and display name."""
    ip_address, user_agent = _client_info(request)
    return await service.register(
        db,
        email=body.email,
        password=body.password,
        username=body.username,
        display_name=body.display_name,
        ip_address=ip_address,
        user_agent=user_agent,
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Login with email + password."""
    ip_address, user_agent = _client_info(request)
    return await service.login(
        db,
        email=body.email,
        password=body.password,
        ip_address=ip_address,
        user_agent=user_agent,
    )


@router.post("/refresh", response_model=AuthResponse)
async def refresh(
    body: RefreshRequest,
    db: AsyncSession = Depends(get_session),
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Rotate refresh token."""
    return await service.refresh(db, body.refresh_token)


@router.post("/logout", response_model=SuccessResponse)
async def logout(
    _user_id: str = Depends(get_current_user_id),
    x_refresh_token: str | None = Header(default=None),
    db: AsyncSession = Depends(get_session),
    service: AuthService = Depends(get_auth_service),
) -> SuccessResponse:
    """Revoke the refresh token passed in X-Refresh-Token, if any."""
    await service.logout(db, x_refresh_token)
    return SuccessResponse(message="Logged out successfully")


@router.get("/me", response_model=UserProfileResponse)
async def get_me(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    service: AuthService = Depends(get_auth_service),
) -> UserProfileResponse:
    """Get own full profile."""
    return await service.get_profile(db, user_id)


@router.put("/me", response_model=UserProfileResponse)
async def update_me(
    body: UpdateProfileRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    service: AuthService = Depends(get_auth_service),
) -> UserProfileResponse:
    """Update display name, avatar URL and/or preferences."""
    return await service.update_profile(
        db,
        user_id,
        display_name=body.display_name,
        avatar_url=body.avatar_url,
        preferences=body.preferences,
    )


@router.get("/me/stats")
async def get_my_stats(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    service: AuthService = Depends(get_auth_service),
) -> dict[str, Any]:
    """Score, streak, level and win-rate statistics."""
    return await service.get_stats(db, user_id)
