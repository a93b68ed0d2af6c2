from __future__ import annotations
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..models import Session as SessionModel
from ..repos import registrants as roster_repo
from ..repos import sessions as sess_repo
from ..observability.metrics import SESSIONS_CREATED
from .errors import NotFound, InvalidState
from .tx import roster_tx, lock_session_row, store_call

S = get_settings()
log = logging.getLogger("app.sessions")

# courts -> max_players; other court counts are rejected
COURT_CAPACITY = {2: 14, 3: 20}


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


@dataclass
class SessionPatch:
    """Explicit partial update. A field left as UNSET is not touched;
    cost=None clears the cost."""
    courts: Any = UNSET
    cost: Any = UNSET
    archived: Any = UNSET

    @classmethod
    def from_fields(cls, fields: dict[str, Any]) -> "SessionPatch":
        return cls(**{k: v for k, v in fields.items() if k in ("courts", "cost", "archived")})


def max_players_for(courts: int) -> int:
    try:
        return COURT_CAPACITY[courts]
    except KeyError:
        raise InvalidState(f"unsupported court count: {courts}") from None


def club_today(now: Optional[datetime] = None) -> date:
    tz = ZoneInfo(S.CLUB_TIMEZONE)
    return (now or datetime.now(tz)).astimezone(tz).date()


def next_session_date(today: date, *, weekday: Optional[int] = None, include_today: bool = True) -> date:
    """Next occurrence of the club weekday.

    include_today=True keeps today when it already is that weekday (sign-up
    view on session day); False always moves a week on (rollover).
    """
    wd = S.SESSION_WEEKDAY if weekday is None else weekday
    days = (wd - today.weekday()) % 7
    if days == 0 and not include_today:
        days = 7
    return today + timedelta(days=days)


async def create_session(
    db: AsyncSession,
    *,
    on_date: date,
    courts: int = 2,
    source: str = "admin",
) -> SessionModel:
    max_players = max_players_for(courts)
    async with roster_tx(db):
        if await sess_repo.get_by_date(db, on_date) is not None:
            raise InvalidState(f"session already exists for {on_date.isoformat()}")
        try:
            s = await sess_repo.create_session(db, on_date=on_date, courts=courts, max_players=max_players)
        except IntegrityError:
            # lost a race against another insert for the same date
            raise InvalidState(f"session already exists for {on_date.isoformat()}") from None

    SESSIONS_CREATED.labels(source=source).inc()
    log.info("session_created", extra={"session_id": str(s.id), "date": on_date.isoformat(), "courts": courts})
    return s


async def update_session(
    db: AsyncSession,
    *,
    session_id: uuid.UUID,
    patch: SessionPatch,
) -> SessionModel:
    """Apply courts/cost/archived changes. Changing courts recomputes max_players."""
    values: dict[str, Any] = {}
    if patch.courts is not UNSET:
        values["courts"] = patch.courts
        values["max_players"] = max_players_for(patch.courts)
    if patch.cost is not UNSET:
        if patch.cost is not None and Decimal(patch.cost) < 0:
            raise InvalidState("cost cannot be negative")
        values["cost"] = patch.cost
    if patch.archived is not UNSET:
        values["archived"] = bool(patch.archived)

    async with roster_tx(db, session_id):
        sess = await lock_session_row(db, session_id)
        if sess is None:
            raise NotFound("session")
        await sess_repo.update_fields(db, session_id=session_id, **values)
        await db.refresh(sess)

    if values:
        log.info("session_updated", extra={"session_id": str(session_id), "fields": sorted(values)})
    return sess


async def set_courts(db: AsyncSession, *, session_id: uuid.UUID, courts: int) -> SessionModel:
    return await update_session(db, session_id=session_id, patch=SessionPatch(courts=courts))


async def set_cost(db: AsyncSession, *, session_id: uuid.UUID, cost: Optional[Decimal]) -> SessionModel:
    return await update_session(db, session_id=session_id, patch=SessionPatch(cost=cost))


async def set_archived(db: AsyncSession, *, session_id: uuid.UUID, archived: bool) -> SessionModel:
    return await update_session(db, session_id=session_id, patch=SessionPatch(archived=archived))


async def delete_session(db: AsyncSession, *, session_id: uuid.UUID) -> int:
    """Delete a session and its registrants (registrants first, same transaction).

    Returns the number of registrants removed."""
    async with roster_tx(db, session_id):
        sess = await lock_session_row(db, session_id)
        if sess is None:
            raise NotFound("session")
        removed = await roster_repo.delete_for_session(db, session_id)
        await sess_repo.delete_session(db, session_id)

    log.info("session_deleted", extra={"session_id": str(session_id), "registrants": removed})
    return removed


async def current_session(db: AsyncSession, *, today: Optional[date] = None) -> SessionModel:
    """The live session for the upcoming club day, created on demand."""
    target = next_session_date(today or club_today(), include_today=True)
    async with store_call("current_session"):
        existing = await sess_repo.get_by_date(db, target)
    if existing is not None and not existing.archived:
        return existing
    if existing is not None:
        # archived on its own date; nothing new to open until the next cycle
        raise NotFound("no open session")
    try:
        return await create_session(db, on_date=target, courts=S.DEFAULT_COURTS, source="on_demand")
    except InvalidState:
        # created concurrently by another request
        async with store_call("current_session"):
            existing = await sess_repo.get_by_date(db, target)
        if existing is None:
            raise
        return existing


async def list_sessions(
    db: AsyncSession,
    *,
    include_archived: bool,
    today: Optional[date] = None,
    limit: int = 100,
):
    async with store_call("list_sessions"):
        return await sess_repo.list_sessions(
            db, today=today or club_today(), include_archived=include_archived, limit=limit
        )


async def session_stats(db: AsyncSession, *, session_id: uuid.UUID) -> tuple[SessionModel, int, int]:
    """(session, main_count, waitlist_count)."""
    async with store_call("session_stats"):
        row = await sess_repo.get_with_counts(db, session_id=session_id)
    if row is None:
        raise NotFound("session")
    return row
