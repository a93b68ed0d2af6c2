from __future__ import annotations
import asyncio
import logging
from datetime import datetime, timezone
from redis.exceptions import RedisError
from .. import redis_client

log = logging.getLogger("app.heartbeat")


async def beat(key: str, interval_sec: int = 5, ttl_sec: int = 20):
    # ops can alert when the key expires (worker dead or wedged)
    while True:
        try:
            await redis_client.redis.set(key, datetime.now(timezone.utc).isoformat(), ex=ttl_sec)
        except RedisError as e:
            log.warning("heartbeat_failed", extra={"key": key, "error": str(e)})
        await asyncio.sleep(interval_sec)
