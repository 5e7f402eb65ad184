"""Redis client for rate-limit counters.

Redis is optional: with no URL configured the client is never created and
the rate limiter lets every request through.
"""

import redis.asyncio as redis
import structlog

logger = structlog.get_logger()

_client: redis.Redis | None = None


async def init_redis(url: str) -> None:
    """Create the shared client, or leave Redis disabled when `url` is empty."""
    global _client  # noqa: PLW0603
    if not url:
        logger.info("redis_disabled")
        return
    _client = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        decode_responses=True,
        max_connections=20,
        socket_timeout=2.0,
    )


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


def get_redis() -> redis.Redis:
    """Shared client; RuntimeError when Redis is not configured."""
    if _client is None:
        msg = "Redis is not configured"
        raise RuntimeError(msg)
    return _client
