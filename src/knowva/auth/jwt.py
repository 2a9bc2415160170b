"""
HS256 access tokens and opaque refresh tokens.

Access tokens carry the user id as `sub` and the login session as
`session_id`. Refresh tokens carry no claims at all; they are random lookup
keys into the refresh_tokens table.
"""

from __future__ import annotations

import hashlib
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import jwt

if TYPE_CHECKING:
    from knowva.config import Settings

ALGORITHM = "HS256"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class JwtConfig:
    """Signing and lifetime configuration for the token issuer."""

    secret: str
    issuer: str
    audience: str
    access_token_ttl: timedelta = timedelta(minutes=30)
    refresh_token_ttl: timedelta = timedelta(days=30)

    @classmethod
    def from_settings(cls, settings: Settings) -> JwtConfig:
        return cls(
            secret=settings.jwt_secret,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            access_token_ttl=timedelta(minutes=settings.jwt_access_token_expire_minutes),
            refresh_token_ttl=timedelta(days=settings.jwt_refresh_token_expire_days),
        )


def hash_refresh_token(token: str) -> str:
    """SHA-256 digest of a refresh token, the form stored in the database."""
    return hashlib.sha256(token.encode()).hexdigest()


class TokenIssuer:
    """Mints and validates tokens for a single fixed configuration."""

    def __init__(self, config: JwtConfig, clock: Callable[[], datetime] = utc_now) -> None:
        self.config = config
        self._clock = clock

    @property
    def access_expires_in_ms(self) -> int:
        """Access token lifetime in milliseconds, as reported to clients."""
        return int(self.config.access_token_ttl.total_seconds() * 1000)

    def refresh_expiry(self, now: datetime | None = None) -> datetime:
        return (now or self._clock()) + self.config.refresh_token_ttl

    def issue_access(self, user_id: str, session_id: str, now: datetime | None = None) -> str:
        """
        Create a short-lived access token.

        Args:
            user_id: The user's database ID, stored as `sub`.
            session_id: The login session the token belongs to.
            now: Issue time; defaults to the issuer's clock.

        Returns:
            Encoded JWT string.
        """
        issued_at = now or self._clock()
        payload: dict[str, Any] = {
            "iss": self.config.issuer,
            "aud": self.config.audience,
            "sub": str(user_id),
            "session_id": session_id,
            "type": "access",
            "iat": issued_at,
            "exp": issued_at + self.config.access_token_ttl,
        }
        return jwt.encode(payload, self.config.secret, algorithm=ALGORITHM)

    @staticmethod
    def issue_refresh() -> str:
        """Generate an unguessable opaque refresh token (384 bits of entropy)."""
        return secrets.token_urlsafe(48)

    def validate_access(self, token: str) -> dict[str, Any] | None:
        """
        Verify and decode an access token.

        Returns the claims, or None when the token is malformed, expired,
        signed with another key, meant for another issuer or audience, or is
        not an access token. Callers cannot tell these cases apart.
        """
        try:
            payload: dict[str, Any] = jwt.decode(
                token,
                self.config.secret,
                algorithms=[ALGORITHM],
                issuer=self.config.issuer,
                audience=self.config.audience,
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.InvalidTokenError:
            return None

        if payload.get("type") != "access":
            return None
        return payload

    def extract_user_id(self, token: str) -> str | None:
        payload = self.validate_access(token)
        return payload["sub"] if payload else None
