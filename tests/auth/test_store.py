"""Tests for the session and refresh-token store."""

from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from knowva.auth import store
from knowva.auth.jwt import hash_refresh_token
from knowva.db.models import RefreshToken, User, UserSession
from knowva.users.schemas import UserPreferences


async def _make_user(db: AsyncSession, username: str = "storeuser", active: bool = True) -> User:
    user = User(
        username=username,
        display_name="Store User",
        email=f"{username}@example.com",
        password_hash="$argon2id$placeholder",
        is_active=active,
    )
    db.add(user)
    await db.flush()
    return user


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TestUserQueries:
    async def test_get_user_by_email_is_case_insensitive(self, db_session: AsyncSession):
        user = await _make_user(db_session)
        found = await store.get_user_by_email(db_session, "StoreUser@Example.COM")
        assert found is not None
        assert found.id == user.id

    async def test_find_by_email_or_username(self, db_session: AsyncSession):
        user = await _make_user(db_session)
        by_username = await store.find_user_by_email_or_username(db_session, "other@example.com", "STOREUSER")
        by_email = await store.find_user_by_email_or_username(db_session, "storeuser@example.com", "other")
        assert by_username is not None and by_username.id == user.id
        assert by_email is not None and by_email.id == user.id
        assert await store.find_user_by_email_or_username(db_session, "x@example.com", "x") is None

    async def test_get_user_by_id_missing(self, db_session: AsyncSession):
        assert await store.get_user_by_id(db_session, "00000000-0000-0000-0000-000000000000") is None


class TestBlobCodecs:
    def test_preferences_round_trip_uses_camel_case(self):
        raw = store.encode_preferences(UserPreferences(difficulty_level="Hard"))
        assert '"difficultyLevel":"Hard"' in raw
        assert store.decode_preferences(raw).difficulty_level == "Hard"

    def test_corrupt_preferences_fall_back_to_defaults(self):
        assert store.decode_preferences("{not json") == UserPreferences()
        assert store.decode_preferences('{"soundEnabled": "loud"}') == UserPreferences()

    def test_empty_preferences_object_uses_defaults(self):
        assert store.decode_preferences("{}") == UserPreferences()

    def test_badges(self):
        assert store.decode_badges('["first_win", "streak_5"]') == ["first_win", "streak_5"]
        assert store.decode_badges("oops") == []
        assert store.decode_badges('{"a": 1}') == []


class TestSessions:
    async def test_create_session(self, db_session: AsyncSession):
        user = await _make_user(db_session)
        now = _now()
        token = await store.create_session(db_session, user.id, "10.0.0.1", "pytest", now)

        row = (await db_session.execute(select(UserSession).where(UserSession.session_token == token))).scalar_one()
        assert row.user_id == user.id
        assert row.ip_address == "10.0.0.1"
        assert row.is_active is True

    async def test_recent_session_means_online(self, db_session: AsyncSession):
        user = await _make_user(db_session)
        now = _now()
        await store.create_session(db_session, user.id, None, None, now)
        assert await store.is_online(db_session, user.id, now) is True

    async def test_old_session_means_offline(self, db_session: AsyncSession):
        user = await _make_user(db_session)
        now = _now()
        await store.create_session(db_session, user.id, None, None, now - timedelta(minutes=6))
        assert await store.is_online(db_session, user.id, now) is False

    async def test_inactive_session_means_offline(self, db_session: AsyncSession):
        user = await _make_user(db_session)
        now = _now()
        token = await store.create_session(db_session, user.id, None, None, now)
        row = (await db_session.execute(select(UserSession).where(UserSession.session_token == token))).scalar_one()
        row.is_active = False
        await db_session.flush()
        assert await store.is_online(db_session, user.id, now) is False


class TestRefreshTokens:
    async def test_stored_token_is_hashed(self, db_session: AsyncSession):
        user = await _make_user(db_session)
        now = _now()
        record = await store.store_refresh_token(db_session, user.id, "raw-token", now + timedelta(days=30), now)
        assert record.token_hash == hash_refresh_token("raw-token")
        assert record.token_hash != "raw-token"
        assert record.is_revoked is False

    async def test_find_usable(self, db_session: AsyncSession):
        user = await _make_user(db_session)
        now = _now()
        await store.store_refresh_token(db_session, user.id, "live", now + timedelta(days=30), now)

        found = await store.find_usable_refresh_token(db_session, "live", now)
        assert found is not None
        record, owner = found
        assert owner.id == user.id
        assert record.user_id == user.id

    async def test_unknown_token_not_usable(self, db_session: AsyncSession):
        assert await store.find_usable_refresh_token(db_session, "missing", _now()) is None

    async def test_expired_token_not_usable(self, db_session: AsyncSession):
        user = await _make_user(db_session)
        now = _now()
        await store.store_refresh_token(db_session, user.id, "old", now - timedelta(seconds=1), now - timedelta(days=30))
        assert await store.find_usable_refresh_token(db_session, "old", now) is None

    async def test_revoked_token_not_usable(self, db_session: AsyncSession):
        user = await _make_user(db_session)
        now = _now()
        await store.store_refresh_token(db_session, user.id, "gone", now + timedelta(days=30), now)
        assert await store.revoke_refresh_token(db_session, "gone") is True
        assert await store.find_usable_refresh_token(db_session, "gone", now) is None

    async def test_deactivated_owner_not_usable(self, db_session: AsyncSession):
        user = await _make_user(db_session, active=False)
        now = _now()
        await store.store_refresh_token(db_session, user.id, "banned", now + timedelta(days=30), now)
        assert await store.find_usable_refresh_token(db_session, "banned", now) is None

    async def test_revoke_is_idempotent_compare_and_set(self, db_session: AsyncSession):
        user = await _make_user(db_session)
        now = _now()
        await store.store_refresh_token(db_session, user.id, "once", now + timedelta(days=30), now)
        assert await store.revoke_refresh_token(db_session, "once") is True
        assert await store.revoke_refresh_token(db_session, "once") is False
        assert await store.revoke_refresh_token(db_session, "never-issued") is False

    async def test_revoke_all(self, db_session: AsyncSession):
        user = await _make_user(db_session)
        other = await _make_user(db_session, username="bystander")
        now = _now()
        for token in ("a", "b", "c"):
            await store.store_refresh_token(db_session, user.id, token, now + timedelta(days=30), now)
        await store.store_refresh_token(db_session, other.id, "d", now + timedelta(days=30), now)
        await store.revoke_refresh_token(db_session, "a")

        assert await store.revoke_all_refresh_tokens(db_session, user.id) == 2

        rows = (await db_session.execute(select(RefreshToken).where(RefreshToken.user_id == user.id))).scalars().all()
        assert all(row.is_revoked for row in rows)
        assert await store.find_usable_refresh_token(db_session, "d", now) is not None
