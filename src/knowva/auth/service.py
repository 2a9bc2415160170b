"""
Authentication business logic.

Registration, login, refresh-token rotation, logout and profile use cases.
Each public method is one unit of work: it commits once on success and rolls
back on any error.
"""

from __future__ import annotations

import asyncio
import re
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from knowva.auth import store
from knowva.auth.exceptions import (
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from knowva.auth.jwt import TokenIssuer, utc_now
from knowva.auth.password import (
    check_needs_rehash,
    check_password_strength,
    hash_password,
    verify_password,
)
from knowva.auth.schemas import AuthResponse, UserProfileResponse
from knowva.db.models import User
from knowva.users.schemas import UserPreferences
from knowva.users.stats import rank_for, round_half_up, win_rate

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9+_.-]+@([A-Za-z0-9.-]+\.[A-Za-z]{2,})$")
USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")
USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 50
DISPLAY_NAME_MAX_LENGTH = 100

INVALID_CREDENTIALS = "Invalid email or password"


def is_valid_email(email: str) -> bool:
    return EMAIL_PATTERN.match(email) is not None


def is_valid_username(username: str) -> bool:
    return USERNAME_MIN_LENGTH <= len(username) <= USERNAME_MAX_LENGTH and USERNAME_PATTERN.match(username) is not None


def is_valid_url(url: str) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return bool(parts.scheme and parts.netloc)


def _conflicting_field(existing: User | None, email: str) -> str:
    return "username" if existing is not None and existing.email != email else "email"


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo; everything is stored as UTC.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


@asynccontextmanager
async def unit_of_work(db: AsyncSession) -> AsyncIterator[None]:
    """Commit on success, roll back on any exception."""
    try:
        yield
    except BaseException:
        await db.rollback()
        raise
    await db.commit()


class AuthService:
    """Composes the password hasher, token issuer and store into use cases."""

    def __init__(self, issuer: TokenIssuer, clock: Callable[[], datetime] = utc_now) -> None:
        self.issuer = issuer
        self._clock = clock

    # ------------------------------------------------------------------
    # Registration / login
    # ------------------------------------------------------------------

    async def register(
        self,
        db: AsyncSession,
        *,
        email: str,
        password: str,
        username: str,
        display_name: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuthResponse:
        """
        Create an account and sign it in.

        Raises:
            ValidationError: Weak password, malformed email or username.
            ConflictError: Email or username already registered.
        """
        violations = check_password_strength(password)
        if violations:
            raise ValidationError("Password validation failed", violations)
        if not is_valid_email(email):
            raise ValidationError("Invalid email format")
        if not is_valid_username(username):
            raise ValidationError(
                "Username must be 3-50 characters and contain only letters, numbers, and underscores"
            )

        email = email.lower()
        username = username.lower()

        try:
            async with unit_of_work(db):
                now = self._clock()
                existing = await store.find_user_by_email_or_username(db, email, username)
                if existing is not None:
                    raise ConflictError(_conflicting_field(existing, email))

                password_hash = await asyncio.to_thread(hash_password, password)
                user = User(
                    username=username,
                    display_name=display_name,
                    email=email,
                    password_hash=password_hash,
                    preferences=store.encode_preferences(UserPreferences()),
                    created_at=now,
                    last_active_at=now,
                )
                db.add(user)
                await db.flush()

                response = await self._sign_in(db, user, ip_address, user_agent, now)
                logger.info("user_registered", user_id=user.id, username=username)
        except IntegrityError:
            # A concurrent registration claimed the email or username after our check
            async with unit_of_work(db):
                existing = await store.find_user_by_email_or_username(db, email, username)
            field = _conflicting_field(existing, email)
            logger.info("registration_conflict", field=field)
            raise ConflictError(field) from None
        return response

    async def login(
        self,
        db: AsyncSession,
        *,
        email: str,
        password: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuthResponse:
        """
        Authenticate with email + password.

        Unknown email and wrong password raise the same error so accounts
        cannot be enumerated.

        Raises:
            UnauthorizedError: Bad credentials or deactivated account.
        """
        async with unit_of_work(db):
            now = self._clock()
            user = await store.get_user_by_email(db, email)
            if user is None:
                logger.info("login_failed", reason="unknown_email")
                raise UnauthorizedError(INVALID_CREDENTIALS)

            if not await asyncio.to_thread(verify_password, password, user.password_hash):
                logger.info("login_failed", reason="bad_password", user_id=user.id)
                raise UnauthorizedError(INVALID_CREDENTIALS)

            if not user.is_active:
                logger.info("login_failed", reason="deactivated", user_id=user.id)
                raise UnauthorizedError("Account is deactivated")

            if check_needs_rehash(user.password_hash):
                user.password_hash = await asyncio.to_thread(hash_password, password)
                logger.info("password_rehashed", user_id=user.id)

            # A fresh login supersedes every refresh token issued before it
            revoked = await store.revoke_all_refresh_tokens(db, user.id)
            user.last_active_at = now
            response = await self._sign_in(db, user, ip_address, user_agent, now)
            logger.info("user_logged_in", user_id=user.id, revoked_tokens=revoked)
        return response

    async def _sign_in(
        self,
        db: AsyncSession,
        user: User,
        ip_address: str | None,
        user_agent: str | None,
        now: datetime,
    ) -> AuthResponse:
        """Create a session, mint a token pair and persist the refresh token."""
        session_id = await store.create_session(db, user.id, ip_address, user_agent, now)
        refresh_token = self.issuer.issue_refresh()
        await store.store_refresh_token(db, user.id, refresh_token, self.issuer.refresh_expiry(now), now)
        access_token = self.issuer.issue_access(user.id, session_id, now=now)
        return await self._auth_response(db, user, access_token, refresh_token, now)

    async def _auth_response(
        self,
        db: AsyncSession,
        user: User,
        access_token: str,
        refresh_token: str,
        now: datetime,
    ) -> AuthResponse:
        return AuthResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            user=await self._profile(db, user, now),
            expires_in=self.issuer.access_expires_in_ms,
        )

    # ------------------------------------------------------------------
    # Token lifecycle
    # ------------------------------------------------------------------

    async def refresh(self, db: AsyncSession, refresh_token: str) -> AuthResponse:
        """
        Exchange a refresh token for a new token pair (rotation).

        The presented token is revoked and its successor stored in the same
        transaction. If a concurrent request already consumed the token, the
        revoke matches no live row and this call fails instead of minting a
        second successor.

        Raises:
            UnauthorizedError: Token unknown, revoked, expired, or owner inactive.
        """
        async with unit_of_work(db):
            now = self._clock()
            found = await store.find_usable_refresh_token(db, refresh_token, now)
            if found is None:
                logger.info("refresh_rejected")
                raise UnauthorizedError("Invalid or expired refresh token")
            record, user = found

            session_id = str(uuid.uuid4())
            access_token = self.issuer.issue_access(user.id, session_id, now=now)
            new_refresh_token = self.issuer.issue_refresh()

            if not await store.revoke_refresh_token(db, refresh_token):
                logger.warning("refresh_race_lost", user_id=user.id)
                raise UnauthorizedError("Invalid or expired refresh token")
            await store.touch_refresh_token(db, record, now)
            await store.store_refresh_token(db, user.id, new_refresh_token, self.issuer.refresh_expiry(now), now)

            response = await self._auth_response(db, user, access_token, new_refresh_token, now)
            logger.info("refresh_rotated", user_id=user.id)
        return response

    async def logout(self, db: AsyncSession, refresh_token: str | None = None) -> None:
        """
        Revoke the given refresh token, if any.

        Always succeeds: revocation is best effort and database errors are
        logged, not raised. The login session itself stays active, so the user
        may still show as online for the rest of the online window.
        """
        if not refresh_token:
            return
        try:
            async with unit_of_work(db):
                revoked = await store.revoke_refresh_token(db, refresh_token)
        except SQLAlchemyError as exc:
            logger.warning("logout_revoke_failed", error=str(exc))
            return
        logger.info("user_logged_out", revoked=revoked)

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    async def _profile(self, db: AsyncSession, user: User, now: datetime) -> UserProfileResponse:
        rate = win_rate(user.games_played, user.games_won)
        return UserProfileResponse(
            id=user.id,
            username=user.username,
            display_name=user.display_name,
            email=user.email,
            avatar_url=user.avatar_url,
            level=user.level,
            total_score=user.total_score,
            games_played=user.games_played,
            games_won=user.games_won,
            win_rate=round_half_up(rate),
            rank=rank_for(user.level, rate),
            badges=store.decode_badges(user.badges),
            preferences=store.decode_preferences(user.preferences),
            created_at=_as_utc(user.created_at),
            last_active_at=_as_utc(user.last_active_at),
            is_online=await store.is_online(db, user.id, now),
        )

    async def _require_user(self, db: AsyncSession, user_id: str) -> User:
        user = await store.get_user_by_id(db, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def get_profile(self, db: AsyncSession, user_id: str) -> UserProfileResponse:
        """Raises NotFoundError if the user does not exist."""
        async with unit_of_work(db):
            user = await self._require_user(db, user_id)
            profile = await self._profile(db, user, self._clock())
        return profile

    async def update_profile(
        self,
        db: AsyncSession,
        user_id: str,
        *,
        display_name: str | None = None,
        avatar_url: str | None = None,
        preferences: UserPreferences | None = None,
    ) -> UserProfileResponse:
        """
        Patch the given profile fields and mark the user active.

        Raises:
            ValidationError: Display name not 1-100 characters or malformed avatar URL.
            NotFoundError: User does not exist.
        """
        if display_name is not None and not 1 <= len(display_name) <= DISPLAY_NAME_MAX_LENGTH:
            raise ValidationError("Display name must be between 1 and 100 characters")
        if avatar_url is not None and not is_valid_url(avatar_url):
            raise ValidationError("Invalid avatar URL format")

        async with unit_of_work(db):
            now = self._clock()
            user = await self._require_user(db, user_id)
            if display_name is not None:
                user.display_name = display_name
            if avatar_url is not None:
                user.avatar_url = avatar_url
            if preferences is not None:
                user.preferences = store.encode_preferences(preferences)
            user.last_active_at = now
            await db.flush()

            profile = await self._profile(db, user, now)
            logger.info("profile_updated", user_id=user_id)
        return profile

    async def get_stats(self, db: AsyncSession, user_id: str) -> dict[str, Any]:
        """Read-only projection of the game statistics. Raises NotFoundError."""
        async with unit_of_work(db):
            user = await self._require_user(db, user_id)
        return {
            "totalScore": user.total_score,
            "gamesPlayed": user.games_played,
            "gamesWon": user.games_won,
            "currentStreak": user.current_streak,
            "bestStreak": user.best_streak,
            "level": user.level,
            "winRate": win_rate(user.games_played, user.games_won),
        }
