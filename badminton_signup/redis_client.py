from redis import asyncio as aioredis
from redis.exceptions import RedisError
from .config import get_settings

S = get_settings()

# rate-limit counters, the roller lock and its heartbeat; nothing durable lives here
redis = aioredis.from_url(S.REDIS_URL, encoding="utf-8", decode_responses=True, socket_timeout=2.0)


async def redis_health() -> bool:
    try:
        return bool(await redis.ping())
    except RedisError:
        return False


async def key_alive(key: str) -> bool:
    """True while `key` exists (used for worker heartbeats)."""
    try:
        return bool(await redis.exists(key))
    except RedisError:
        return False


async def close_redis() -> None:
    await redis.aclose()
