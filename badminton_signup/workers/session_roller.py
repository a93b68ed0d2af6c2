from __future__ import annotations
import argparse
import asyncio
import contextlib
import logging

from redis.exceptions import RedisError

from ..config import get_settings
from ..db import SessionLocal, engine
from .. import redis_client
from ..observability.heartbeat import beat
from ..observability.logging import setup_logging
from ..services.errors import StoreFailure
from ..services.rollover import rollover_cycle, RolloverResult

S = get_settings()
log = logging.getLogger("worker.session_roller")

LOCK_KEY = "lock:session_roller"
HEARTBEAT_KEY = "hb:session_roller"


async def _acquire_lock() -> bool:
    # one replica per tick; TTL stays below ROLLOVER_INTERVAL_SEC
    return await redis_client.redis.set(LOCK_KEY, "1", ex=S.ROLLOVER_LOCK_TTL_SEC, nx=True) is True


async def run_once() -> RolloverResult | None:
    """One rollover tick. None when another replica holds the lock."""
    if not await _acquire_lock():
        log.debug("rollover_skipped_locked")
        return None
    async with SessionLocal() as db:
        result = await rollover_cycle(db)
    if result.archived or result.created:
        log.info(
            "rollover_applied",
            extra={"archived": result.archived, "created": result.created, "target_date": result.target_date.isoformat()},
        )
    return result


async def run_forever() -> None:
    hb = asyncio.create_task(beat(HEARTBEAT_KEY))
    try:
        while True:
            try:
                await run_once()
            except (StoreFailure, RedisError) as e:
                # transient; the next tick retries
                log.warning("rollover_tick_failed", extra={"error": str(e)})
            await asyncio.sleep(S.ROLLOVER_INTERVAL_SEC)
    finally:
        hb.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await hb
        await redis_client.close_redis()
        await engine.dispose()


async def _run_single() -> None:
    try:
        await run_once()
    finally:
        await redis_client.close_redis()
        await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Archive past sessions and open the next club day.")
    parser.add_argument("--once", action="store_true", help="run a single tick and exit")
    args = parser.parse_args()

    setup_logging()
    asyncio.run(_run_single() if args.once else run_forever())


if __name__ == "__main__":
    main()
