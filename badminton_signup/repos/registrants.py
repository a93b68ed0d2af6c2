from __future__ import annotations
import uuid
from typing import Optional, Sequence

from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Registrant
from ..services.errors import NotFound

# Roster store: every call is scoped to one session and runs inside the caller's
# transaction (no commits here).


async def get(db: AsyncSession, registrant_id: uuid.UUID, *, for_update: bool = False) -> Registrant:
    q = select(Registrant).where(Registrant.id == registrant_id)
    if for_update:
        q = q.with_for_update()
    res = await db.execute(q)
    reg = res.scalar_one_or_none()
    if reg is None:
        raise NotFound("registrant")
    return reg


async def find(db: AsyncSession, registrant_id: uuid.UUID) -> Optional[Registrant]:
    res = await db.execute(select(Registrant).where(Registrant.id == registrant_id))
    return res.scalar_one_or_none()


async def _list(db: AsyncSession, session_id: uuid.UUID, waitlisted: bool) -> list[Registrant]:
    res = await db.execute(
        select(Registrant)
        .where(Registrant.session_id == session_id, Registrant.waitlisted.is_(waitlisted))
        .order_by(Registrant.position.asc(), Registrant.signed_up_at.asc())
    )
    return list(res.scalars().all())


async def list_main(db: AsyncSession, session_id: uuid.UUID) -> list[Registrant]:
    return await _list(db, session_id, False)


async def list_waitlist(db: AsyncSession, session_id: uuid.UUID) -> list[Registrant]:
    return await _list(db, session_id, True)


async def count_main(db: AsyncSession, session_id: uuid.UUID) -> int:
    res = await db.execute(
        select(func.count(Registrant.id)).where(
            Registrant.session_id == session_id,
            Registrant.waitlisted.is_(False),
        )
    )
    return int(res.scalar_one())


async def max_position(db: AsyncSession, session_id: uuid.UUID, *, waitlisted: bool) -> int:
    """Current tail position of one list (0 when empty)."""
    res = await db.execute(
        select(func.coalesce(func.max(Registrant.position), 0)).where(
            Registrant.session_id == session_id,
            Registrant.waitlisted.is_(waitlisted),
        )
    )
    return int(res.scalar_one())


async def insert(
    db: AsyncSession,
    *,
    session_id: uuid.UUID,
    name: str,
    secret: Optional[str],
    waitlisted: bool,
) -> Registrant:
    pos = await max_position(db, session_id, waitlisted=waitlisted) + 1
    r = Registrant(
        session_id=session_id,
        name=name,
        secret=secret,
        waitlisted=waitlisted,
        position=pos,
        paid=False,
    )
    db.add(r)
    await db.flush()
    return r


async def remove(db: AsyncSession, registrant_id: uuid.UUID) -> Registrant:
    """Delete one registrant and hand back the row as it was before deletion."""
    reg = await get(db, registrant_id, for_update=True)
    await db.delete(reg)
    await db.flush()
    return reg


async def set_paid(db: AsyncSession, registrant_id: uuid.UUID, paid: bool) -> Registrant:
    reg = await get(db, registrant_id, for_update=True)
    reg.paid = paid
    await db.flush()
    return reg


async def set_list_and_position(
    db: AsyncSession,
    registrant_id: uuid.UUID,
    *,
    waitlisted: bool,
    position: int,
) -> Registrant:
    reg = await get(db, registrant_id, for_update=True)
    reg.waitlisted = waitlisted
    reg.position = position
    await db.flush()
    return reg


async def renumber(
    db: AsyncSession,
    session_id: uuid.UUID,
    *,
    waitlisted: bool,
    ordered_ids: Sequence[uuid.UUID],
) -> None:
    """Rewrite positions 1..len(ordered_ids) for one list, in the given order.

    All rows change in a single flush so the caller's transaction sees the
    whole renumbering or none of it.
    """
    rows = await _list(db, session_id, waitlisted)
    by_id = {r.id: r for r in rows}
    for pos, rid in enumerate(ordered_ids, start=1):
        row = by_id.get(rid)
        if row is None:
            raise NotFound("registrant")
        row.position = pos
    await db.flush()


async def delete_for_session(db: AsyncSession, session_id: uuid.UUID) -> int:
    res = await db.execute(delete(Registrant).where(Registrant.session_id == session_id))
    return res.rowcount or 0
