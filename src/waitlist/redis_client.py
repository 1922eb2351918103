"""Redis pool backing the rate limiter counters.

Redis is optional at runtime: until ``init_redis`` runs, ``get_redis`` raises
RuntimeError and the rate limiter lets requests through.
"""

import redis.asyncio as redis

_pool: redis.Redis | None = None


async def init_redis(url: str, max_connections: int = 20) -> None:
    global _pool  # noqa: PLW0603
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=max_connections,
    )


async def close_redis() -> None:
    global _pool  # noqa: PLW0603
    if _pool:
        await _pool.aclose()
        _pool = None


def get_redis() -> redis.Redis:
    if _pool is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _pool


async def redis_status() -> str:
    """``ok``, ``disabled`` before init, or ``error: <reason>``."""
    if _pool is None:
        return "disabled"
    try:
        await _pool.ping()
    except Exception as exc:
        return f"error: {exc}"
    return "ok"
