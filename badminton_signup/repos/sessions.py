from __future__ import annotations
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional, Sequence, Tuple

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, update, delete

from ..models import Session, Registrant


def _main_count_scalar(session_id_col) -> sa.sql.elements.ColumnElement[int]:
    # COUNT of main-list registrants for a session (scalar subquery)
    return (
        select(func.count(Registrant.id))
        .where(Registrant.session_id == session_id_col, Registrant.waitlisted.is_(False))
        .scalar_subquery()
    )


def _waitlist_count_scalar(session_id_col) -> sa.sql.elements.ColumnElement[int]:
    return (
        select(func.count(Registrant.id))
        .where(Registrant.session_id == session_id_col, Registrant.waitlisted.is_(True))
        .scalar_subquery()
    )


async def create_session(
    db: AsyncSession,
    *,
    on_date: date,
    courts: int,
    max_players: int,
    cost: Optional[Decimal] = None,
) -> Session:
    s = Session(
        date=on_date,
        courts=courts,
        max_players=max_players,
        cost=cost,
        archived=False,
    )
    db.add(s)
    await db.flush()
    return s


async def get(db: AsyncSession, session_id: uuid.UUID) -> Optional[Session]:
    res = await db.execute(select(Session).where(Session.id == session_id))
    return res.scalar_one_or_none()


async def get_by_date(db: AsyncSession, on_date: date) -> Optional[Session]:
    res = await db.execute(select(Session).where(Session.date == on_date))
    return res.scalar_one_or_none()


async def get_with_counts(
    db: AsyncSession,
    *,
    session_id: uuid.UUID,
) -> Optional[Tuple[Session, int, int]]:
    q = select(
        Session,
        _main_count_scalar(Session.id).label("main_count"),
        _waitlist_count_scalar(Session.id).label("waitlist_count"),
    ).where(Session.id == session_id)
    res = await db.execute(q)
    row = res.first()
    return tuple(row) if row else None


async def list_sessions(
    db: AsyncSession,
    *,
    today: date,
    include_archived: bool,
    limit: int = 100,
) -> Sequence[Tuple[Session, int, int]]:
    # Return (Session, main_count, waitlist_count), newest date first
    q = select(
        Session,
        _main_count_scalar(Session.id).label("main_count"),
        _waitlist_count_scalar(Session.id).label("waitlist_count"),
    )
    if not include_archived:
        q = q.where(Session.archived.is_(False), Session.date >= today)
    q = q.order_by(Session.date.desc()).limit(limit)
    res = await db.execute(q)
    return [tuple(r) for r in res.all()]


async def update_fields(db: AsyncSession, *, session_id: uuid.UUID, **values) -> None:
    if not values:
        return
    await db.execute(update(Session).where(Session.id == session_id).values(**values))
    await db.flush()


async def archive_before(db: AsyncSession, *, today: date) -> int:
    """Archive every live session dated strictly before `today`."""
    res = await db.execute(
        update(Session)
        .where(Session.archived.is_(False), Session.date < today)
        .values(archived=True)
    )
    return res.rowcount or 0


async def delete_session(db: AsyncSession, session_id: uuid.UUID) -> int:
    res = await db.execute(delete(Session).where(Session.id == session_id))
    return res.rowcount or 0
