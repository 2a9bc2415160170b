"""Shared test fixtures.

Every test gets a fresh in-memory SQLite database; Redis is not configured,
so the rate limiter is a pass-through unless a test installs a fake client.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from knowva.auth.jwt import JwtConfig, TokenIssuer
from knowva.auth.service import AuthService
from knowva.config import Settings
from knowva.database import close_db, create_schema, get_engine, init_db
from knowva.main import create_app
from knowva.redis_client import set_redis

TEST_PASSWORD = "SecureP@ss1"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="",
        redis_url="",
        jwt_secret="test-secret-key-with-enough-length-for-hs256",
        jwt_issuer="knowva-test",
        jwt_audience="knowva-test-users",
        log_format="console",
    )


@pytest.fixture
def issuer(settings: Settings) -> TokenIssuer:
    return TokenIssuer(JwtConfig.from_settings(settings))


@pytest.fixture
def auth_service(issuer: TokenIssuer) -> AuthService:
    return AuthService(issuer)


@pytest_asyncio.fixture
async def app(settings: Settings) -> AsyncGenerator[FastAPI, None]:
    """Application wired to a fresh in-memory database."""
    application = create_app(settings)
    await init_db(settings)
    await create_schema()
    yield application
    set_redis(None)
    await close_db()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client (the lifespan is replaced by the app fixture)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def db_session(app: FastAPI) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for service calls and assertions."""
    async with AsyncSession(get_engine(), expire_on_commit=False) as session:
        yield session


async def _register(
    client: AsyncClient,
    email: str = "player@example.com",
    username: str = "player_one",
    display_name: str = "Player One",
    password: str = TEST_PASSWORD,
) -> dict:
    """Helper to register a user over HTTP."""
    response = await client.post("/api/v1/auth/register", json={
        "email": email,
        "password": password,
        "username": username,
        "displayName": display_name,
    })
    data = response.json()
    return {
        "status_code": response.status_code,
        "email": email,
        "password": password,
        "username": username,
        "user_id": data.get("user", {}).get("id"),
        "access_token": data.get("accessToken"),
        "refresh_token": data.get("refreshToken"),
    }


@pytest_asyncio.fixture
async def registered_user(client: AsyncClient) -> dict:
    """Register a user. Returns dict with credentials and tokens."""
    user = await _register(client)
    assert user["status_code"] == 201
    return user


@pytest_asyncio.fixture
async def authed_client(client: AsyncClient, registered_user: dict) -> AsyncClient:
    """Client carrying the registered user's access token."""
    client.headers["Authorization"] = f"Bearer {registered_user['access_token']}"
    return client
