import logging
import time
from typing import AsyncIterator

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import get_settings

log = logging.getLogger("app.sql")
S = get_settings()


def make_engine(url: str) -> AsyncEngine:
    connect_args = {}
    if url.startswith("postgresql+asyncpg://"):
        # per-statement deadline; roster_tx adds a whole-transaction one
        connect_args["command_timeout"] = S.STORE_TIMEOUT_SEC
    eng = create_async_engine(url, pool_pre_ping=True, connect_args=connect_args)
    event.listen(eng.sync_engine, "before_cursor_execute", _start_timer)
    event.listen(eng.sync_engine, "after_cursor_execute", _warn_if_slow)
    return eng


def _start_timer(conn, cursor, statement, parameters, context, executemany):
    context._roster_t0 = time.perf_counter()


def _warn_if_slow(conn, cursor, statement, parameters, context, executemany):
    t0 = getattr(context, "_roster_t0", None)
    if t0 is None:
        return
    elapsed_ms = int((time.perf_counter() - t0) * 1000)
    if elapsed_ms >= S.SLOW_QUERY_MS:
        log.warning("slow_query", extra={"elapsed_ms": elapsed_ms, "sql": statement[:200]})


engine = make_engine(S.DATABASE_URL)

SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def db_health() -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        log.warning("db_unhealthy", extra={"error": str(e)[:200]})
        return False
    return True


async def get_db() -> AsyncIterator[AsyncSession]:
    async with SessionLocal() as session:
        yield session
