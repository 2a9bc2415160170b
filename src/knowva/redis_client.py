"""Redis access for the auth rate limiter.

Redis is optional. Without a configured URL no client exists and callers
treat rate limiting as disabled.
"""

import redis.asyncio as redis

_client: redis.Redis | None = None


async def init_redis(url: str) -> None:
    """Create the shared client; connections are opened lazily."""
    global _client  # noqa: PLW0603
    _client = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
    )


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client:
        await _client.aclose()
        _client = None


def set_redis(client: redis.Redis | None) -> None:
    """Install an already-built client, or clear it with None."""
    global _client  # noqa: PLW0603
    _client = client


def redis_enabled() -> bool:
    return _client is not None


def get_redis() -> redis.Redis:
    """Raises RuntimeError when Redis is not configured."""
    if _client is None:
        msg = "Redis not configured. Set KNOWVA_REDIS_URL to enable rate limiting."
        raise RuntimeError(msg)
    return _client


async def count_hit(key: str, ttl_seconds: int) -> int:
    """Increment a window counter and return its new value.

    INCR and EXPIRE go out in one pipeline round trip.
    """
    pipe = get_redis().pipeline()
    pipe.incr(key)
    pipe.expire(key, ttl_seconds)
    count, _ = await pipe.execute()
    return int(count)
