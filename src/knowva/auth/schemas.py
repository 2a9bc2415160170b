"""Request/response schemas for authentication endpoints.

Wire format is camelCase; Python attributes stay snake_case.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from knowva.users.schemas import UserPreferences


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class RegisterRequest(_CamelModel):
    """Email + password registration."""

    email: str
    password: str
    username: str
    display_name: str


class LoginRequest(_CamelModel):
    """Login with email + password."""

    email: str
    password: str


class RefreshRequest(_CamelModel):
    """Refresh token rotation request."""

    refresh_token: str


class UpdateProfileRequest(_CamelModel):
    """Partial profile update; omitted fields are left unchanged."""

    display_name: str | None = None
    avatar_url: str | None = None
    preferences: UserPreferences | None = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class UserProfileResponse(_CamelModel):
    """Full user profile with derived statistics."""

    id: str
    username: str
    display_name: str
    email: str
    avatar_url: str | None = None
    level: int = 1
    total_score: int = 0
    games_played: int = 0
    games_won: int = 0
    win_rate: float = 0.0
    rank: str = "Beginner"
    badges: list[str] = []
    preferences: UserPreferences
    created_at: datetime
    last_active_at: datetime
    is_online: bool = False


class AuthResponse(_CamelModel):
    """Token pair returned after register, login and refresh."""

    access_token: str
    refresh_token: str
    user: UserProfileResponse
    expires_in: int = Field(description="Access token lifetime in milliseconds")


class SuccessResponse(_CamelModel):
    message: str
    timestamp: str = Field(default_factory=_timestamp)


class ErrorResponse(_CamelModel):
    error: str
    details: str | None = None
    timestamp: str = Field(default_factory=_timestamp)
