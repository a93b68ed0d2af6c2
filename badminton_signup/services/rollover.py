from __future__ import annotations
import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..repos import sessions as sess_repo
from ..observability.metrics import SESSIONS_ARCHIVED, SESSIONS_CREATED
from .session_admin import club_today, next_session_date, max_players_for
from .tx import roster_tx

S = get_settings()
log = logging.getLogger("app.rollover")


@dataclass
class RolloverResult:
    archived: int
    target_date: date
    created: bool
    session_id: uuid.UUID


async def rollover_cycle(db: AsyncSession, *, today: Optional[date] = None) -> RolloverResult:
    """
    Weekly maintenance:
      - archive every live session dated strictly before today
      - make sure a session exists for the next club day after today
    Safe to run any number of times a day; the date is UNIQUE, and losing an
    insert race to another writer counts as "already exists".
    """
    today = today or club_today()
    target = next_session_date(today, include_today=False)
    created = False

    async with roster_tx(db):
        archived = await sess_repo.archive_before(db, today=today)

    async with roster_tx(db):
        sess = await sess_repo.get_by_date(db, target)
        if sess is None:
            try:
                sess = await sess_repo.create_session(
                    db,
                    on_date=target,
                    courts=S.DEFAULT_COURTS,
                    max_players=max_players_for(S.DEFAULT_COURTS),
                )
                created = True
            except IntegrityError:
                # opened concurrently (on-demand current_session or another replica)
                await db.rollback()
                sess = await sess_repo.get_by_date(db, target)
                if sess is None:
                    raise

    if created:
        SESSIONS_CREATED.labels(source="rollover").inc()
    if archived:
        SESSIONS_ARCHIVED.inc(archived)

    log.info(
        "rollover",
        extra={"archived": archived, "target_date": target.isoformat(), "created": created},
    )
    return RolloverResult(archived=archived, target_date=target, created=created, session_id=sess.id)

