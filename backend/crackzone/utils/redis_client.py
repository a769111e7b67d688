"""Shared Redis connection for the cache, the rate limiter and websocket fan-out.

Redis is optional: a single-process deployment runs without ``REDIS_URL`` and
every consumer falls back to its local behaviour when ``get_redis()`` is None.
"""

from redis.asyncio import ConnectionPool, Redis

from crackzone.config import Settings, get_settings

_pool: ConnectionPool | None = None
_client: Redis | None = None


def _build_pool(settings: Settings) -> ConnectionPool:
    return ConnectionPool.from_url(
        settings.redis_url,
        max_connections=settings.redis_max_connections,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_connect_timeout,
        health_check_interval=settings.redis_health_check_interval,
        retry_on_timeout=True,
        decode_responses=True,
    )


async def init_redis(settings: Settings | None = None) -> Redis | None:
    """Open the pool and ping the server; no-op without a configured URL."""
    global _pool, _client

    settings = settings or get_settings()
    if not settings.redis_url:
        return None

    _pool = _build_pool(settings)
    client = Redis(connection_pool=_pool)
    await client.ping()
    _client = client
    return client


async def close_redis() -> None:
    global _pool, _client
    client, pool = _client, _pool
    _client, _pool = None, None
    if client is not None:
        await client.aclose()
    if pool is not None:
        await pool.disconnect()


def get_redis() -> Redis | None:
    return _client
