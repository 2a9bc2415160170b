"""
Session and token persistence.

Every function runs on the caller's session and flushes but never commits;
the auth service owns the transaction.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

import pydantic
import structlog
from sqlalchemy import func, or_, select, update

from knowva.auth.jwt import hash_refresh_token
from knowva.db.models import RefreshToken, User, UserSession
from knowva.users.schemas import UserPreferences

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

SESSION_TTL = timedelta(days=7)
ONLINE_WINDOW = timedelta(minutes=5)

_badges_adapter = pydantic.TypeAdapter(list[str])


# ---------------------------------------------------------------------------
# User queries
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: str) -> User | None:
    """Fetch a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch a user by email (case-insensitive)."""
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    return result.scalar_one_or_none()


async def find_user_by_email_or_username(db: AsyncSession, email: str, username: str) -> User | None:
    """Fetch the first user whose email or username collides with the given pair."""
    result = await db.execute(
        select(User)
        .where(or_(User.email == email.lower(), User.username == username.lower()))
        .limit(1)
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# JSON blob codecs
# ---------------------------------------------------------------------------


def encode_preferences(preferences: UserPreferences) -> str:
    return preferences.model_dump_json(by_alias=True)


def decode_preferences(raw: str | None) -> UserPreferences:
    """Decode stored preferences, falling back to defaults on bad data."""
    try:
        return UserPreferences.model_validate_json(raw or "{}")
    except pydantic.ValidationError:
        logger.warning("preferences_decode_failed")
        return UserPreferences()


def decode_badges(raw: str | None) -> list[str]:
    """Decode the stored badge list, falling back to an empty list on bad data."""
    try:
        return _badges_adapter.validate_json(raw or "[]")
    except pydantic.ValidationError:
        logger.warning("badges_decode_failed")
        return []


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


async def create_session(
    db: AsyncSession,
    user_id: str,
    ip_address: str | None,
    user_agent: str | None,
    now: datetime,
) -> str:
    """Record a login session and return its session token."""
    session_token = str(uuid.uuid4())
    db.add(
        UserSession(
            user_id=user_id,
            session_token=session_token,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=now,
            expires_at=now + SESSION_TTL,
        )
    )
    await db.flush()
    return session_token


async def is_online(db: AsyncSession, user_id: str, now: datetime) -> bool:
    """True if the user has an active session created within the online window."""
    result = await db.execute(
        select(func.count())
        .select_from(UserSession)
        .where(UserSession.user_id == user_id)
        .where(UserSession.is_active == True)  # noqa: E712
        .where(UserSession.created_at > now - ONLINE_WINDOW)
    )
    return result.scalar_one() > 0


# ---------------------------------------------------------------------------
# Refresh tokens
# ---------------------------------------------------------------------------


async def store_refresh_token(
    db: AsyncSession,
    user_id: str,
    token: str,
    expires_at: datetime,
    now: datetime,
) -> RefreshToken:
    """Persist the digest of a freshly issued refresh token."""
    record = RefreshToken(
        user_id=user_id,
        token_hash=hash_refresh_token(token),
        expires_at=expires_at,
        created_at=now,
        last_used_at=now,
        is_revoked=False,
    )
    db.add(record)
    await db.flush()
    return record


async def find_usable_refresh_token(
    db: AsyncSession,
    token: str,
    now: datetime,
) -> tuple[RefreshToken, User] | None:
    """
    Look up a refresh token that can still be exchanged.

    Returns None when the token is unknown, revoked, expired, or owned by a
    deactivated user. The token row is locked until the transaction ends on
    databases that support SELECT ... FOR UPDATE.
    """
    result = await db.execute(
        select(RefreshToken, User)
        .join(User, RefreshToken.user_id == User.id)
        .where(RefreshToken.token_hash == hash_refresh_token(token))
        .where(RefreshToken.is_revoked == False)  # noqa: E712
        .where(RefreshToken.expires_at > now)
        .where(User.is_active == True)  # noqa: E712
        .with_for_update(of=RefreshToken)
    )
    row = result.first()
    if row is None:
        return None
    return row[0], row[1]


async def revoke_refresh_token(db: AsyncSession, token: str) -> bool:
    """
    Revoke a refresh token if it is still live.

    Idempotent. Returns True only when this call flipped the flag, which makes
    it usable as a compare-and-set during rotation.
    """
    result = await db.execute(
        update(RefreshToken)
        .where(RefreshToken.token_hash == hash_refresh_token(token))
        .where(RefreshToken.is_revoked == False)  # noqa: E712
        .values(is_revoked=True)
    )
    await db.flush()
    return bool(result.rowcount)


async def revoke_all_refresh_tokens(db: AsyncSession, user_id: str) -> int:
    """Revoke every live refresh token for a user. Returns count revoked."""
    result = await db.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user_id)
        .where(RefreshToken.is_revoked == False)  # noqa: E712
        .values(is_revoked=True)
    )
    await db.flush()
    return result.rowcount  # type: ignore[return-value]


async def touch_refresh_token(db: AsyncSession, record: RefreshToken, now: datetime) -> None:
    record.last_used_at = now
    await db.flush()
