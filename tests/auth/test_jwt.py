"""Tests for access and refresh token handling."""

from datetime import datetime, timedelta, timezone

import jwt

from knowva.auth.jwt import JwtConfig, TokenIssuer, hash_refresh_token


def _config(**overrides) -> JwtConfig:
    values = {
        "secret": "unit-test-secret-key-with-enough-length",
        "issuer": "knowva-app",
        "audience": "knowva-users",
    }
    values.update(overrides)
    return JwtConfig(**values)


class TestAccessToken:
    def test_issue_and_validate(self):
        issuer = TokenIssuer(_config())
        token = issuer.issue_access("user-1", "session-1")
        payload = issuer.validate_access(token)
        assert payload is not None
        assert payload["sub"] == "user-1"
        assert payload["session_id"] == "session-1"
        assert payload["type"] == "access"
        assert payload["iss"] == "knowva-app"
        assert payload["aud"] == "knowva-users"

    def test_lifetime_is_thirty_minutes(self):
        issuer = TokenIssuer(_config())
        token = issuer.issue_access("user-1", "session-1")
        payload = issuer.validate_access(token)
        assert payload["exp"] - payload["iat"] == 30 * 60

    def test_expired_token_is_invalid(self):
        past = datetime.now(timezone.utc) - timedelta(minutes=31)
        issuer = TokenIssuer(_config(), clock=lambda: past)
        token = issuer.issue_access("user-1", "session-1")
        assert issuer.validate_access(token) is None

    def test_still_valid_just_before_expiry(self):
        past = datetime.now(timezone.utc) - timedelta(minutes=29)
        issuer = TokenIssuer(_config(), clock=lambda: past)
        token = issuer.issue_access("user-1", "session-1")
        assert issuer.validate_access(token) is not None

    def test_wrong_secret_rejected(self):
        token = TokenIssuer(_config(secret="another-secret-key-with-enough-length")).issue_access("u", "s")
        assert TokenIssuer(_config()).validate_access(token) is None

    def test_wrong_issuer_rejected(self):
        token = TokenIssuer(_config(issuer="someone-else")).issue_access("u", "s")
        assert TokenIssuer(_config()).validate_access(token) is None

    def test_wrong_audience_rejected(self):
        token = TokenIssuer(_config(audience="other-app")).issue_access("u", "s")
        assert TokenIssuer(_config()).validate_access(token) is None

    def test_malformed_token_rejected(self):
        assert TokenIssuer(_config()).validate_access("not.a.jwt") is None

    def test_non_access_type_rejected(self):
        config = _config()
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {
                "iss": config.issuer,
                "aud": config.audience,
                "sub": "u",
                "type": "refresh",
                "iat": now,
                "exp": now + timedelta(minutes=5),
            },
            config.secret,
            algorithm="HS256",
        )
        assert TokenIssuer(config).validate_access(token) is None

    def test_extract_user_id(self):
        issuer = TokenIssuer(_config())
        assert issuer.extract_user_id(issuer.issue_access("user-42", "s")) == "user-42"
        assert issuer.extract_user_id("garbage") is None

    def test_expires_in_reported_in_milliseconds(self):
        assert TokenIssuer(_config()).access_expires_in_ms == 1_800_000


class TestRefreshToken:
    def test_refresh_tokens_are_unique_and_long(self):
        tokens = {TokenIssuer.issue_refresh() for _ in range(100)}
        assert len(tokens) == 100
        assert all(len(t) >= 64 for t in tokens)

    def test_refresh_token_is_not_a_jwt(self):
        token = TokenIssuer.issue_refresh()
        assert token.count(".") == 0

    def test_refresh_expiry_is_thirty_days(self):
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        assert TokenIssuer(_config()).refresh_expiry(now) == now + timedelta(days=30)

    def test_hash_is_stable_sha256(self):
        assert hash_refresh_token("abc") == hash_refresh_token("abc")
        assert len(hash_refresh_token("abc")) == 64


class TestJwtConfig:
    def test_from_settings(self, settings):
        config = JwtConfig.from_settings(settings)
        assert config.secret == settings.jwt_secret
        assert config.issuer == "knowva-test"
        assert config.audience == "knowva-test-users"
        assert config.access_token_ttl == timedelta(minutes=30)
        assert config.refresh_token_ttl == timedelta(days=30)
