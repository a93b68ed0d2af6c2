from __future__ import annotations
import asyncio
import logging
import uuid
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..models import Session as SessionModel
from .errors import StoreFailure

S = get_settings()
log = logging.getLogger("app.roster")

# One lock per session id; entries vanish once no coroutine holds a reference.
_session_locks: "weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock]" = weakref.WeakValueDictionary()


def _session_lock(session_id: uuid.UUID) -> asyncio.Lock:
    lock = _session_locks.get(session_id)
    if lock is None:
        lock = asyncio.Lock()
        _session_locks[session_id] = lock
    return lock


def _store_failure(e: BaseException, *, op: str, session_id: Optional[uuid.UUID] = None) -> StoreFailure:
    sid = str(session_id) if session_id else ""
    if isinstance(e, TimeoutError):
        log.error("store_timeout", extra={"op": op, "session_id": sid})
        return StoreFailure("store operation timed out")
    log.error("store_failure", extra={"op": op, "session_id": sid, "error": str(e)[:200]})
    return StoreFailure(str(e))


def _is_postgres(db: AsyncSession) -> bool:
    return db.bind is not None and db.bind.dialect.name == "postgresql"


async def begin_serializable_tx(db: AsyncSession) -> None:
    """
    Ensure we're not inside an active transaction, then start a new one where
    the very first statement is 'SET TRANSACTION ISOLATION LEVEL SERIALIZABLE'.
    Other backends just get a fresh transaction.
    """
    # End any auto-begun tx from earlier reads on the same session (safe if none).
    if db.in_transaction():
        await db.rollback()

    if _is_postgres(db):
        # This execute will implicitly BEGIN a new tx; SET TRANSACTION is its first statement.
        await db.execute(text("SET TRANSACTION ISOLATION LEVEL SERIALIZABLE"))


async def lock_session_row(db: AsyncSession, session_id: uuid.UUID) -> Optional[SessionModel]:
    # FOR UPDATE is a no-op on SQLite; the in-process lock covers it there
    res = await db.execute(
        select(SessionModel).where(SessionModel.id == session_id).with_for_update()
    )
    return res.scalar_one_or_none()


@asynccontextmanager
async def roster_tx(db: AsyncSession, session_id: Optional[uuid.UUID] = None) -> AsyncIterator[AsyncSession]:
    """
    Serialize a multi-step roster mutation.

    - per-session asyncio.Lock (sessions never contend with each other)
    - fresh transaction, SERIALIZABLE on PostgreSQL
    - whole-block deadline of STORE_TIMEOUT_SEC
    - commit on success; rollback on any error
    SQLAlchemy errors and timeouts surface as StoreFailure; domain errors pass through.
    """
    lock = _session_lock(session_id) if session_id is not None else None
    try:
        async with asyncio.timeout(S.STORE_TIMEOUT_SEC):
            if lock is not None:
                await lock.acquire()
            try:
                await begin_serializable_tx(db)
                try:
                    yield db
                    await db.commit()
                except BaseException:
                    await db.rollback()
                    raise
            finally:
                if lock is not None:
                    lock.release()
    except (TimeoutError, SQLAlchemyError) as e:
        raise _store_failure(e, op="tx", session_id=session_id) from e


@asynccontextmanager
async def store_call(op: str) -> AsyncIterator[None]:
    """
    Deadline and error mapping for reads that run outside roster_tx.

    No lock and no commit; the caller's session keeps whatever transaction
    the read auto-began.
    """
    try:
        async with asyncio.timeout(S.STORE_TIMEOUT_SEC):
            yield
    except (TimeoutError, SQLAlchemyError) as e:
        raise _store_failure(e, op=op) from e
