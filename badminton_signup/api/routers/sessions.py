from __future__ import annotations
import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...db import get_db
from ...models import Session as SessionModel
from ...auth.deps import require_user, require_admin
from ...services import session_admin
from ...services.errors import RosterError
from ...services.roster import cost_per_player
from ...domain.schemas.roster import (
    SessionCreateIn,
    SessionPatchIn,
    SessionOut,
    SessionWithStatsOut,
)
from ..errors import to_http

router = APIRouter(tags=["sessions"])


# ---------- Helpers ----------
def _to_stats(s: SessionModel, main_count: int, waitlist_count: int) -> SessionWithStatsOut:
    base = SessionOut.from_model(s).model_dump()
    return SessionWithStatsOut(
        **base,
        main_count=main_count,
        waitlist_count=waitlist_count,
        spots_left=max(0, s.max_players - main_count),
        cost_per_player=cost_per_player(s.cost, main_count),
    )


async def _stats_for(db: AsyncSession, session_id: uuid.UUID) -> SessionWithStatsOut:
    try:
        row = await session_admin.session_stats(db, session_id=session_id)
    except RosterError as e:
        raise to_http(e)
    return _to_stats(*row)


# ---------- User ----------
@router.get("/sessions/current", response_model=SessionWithStatsOut, dependencies=[Depends(require_user)])
async def get_current_session(db: AsyncSession = Depends(get_db)):
    try:
        s = await session_admin.current_session(db)
    except RosterError as e:
        raise to_http(e)
    return await _stats_for(db, s.id)


@router.get("/sessions/{session_id}", response_model=SessionWithStatsOut, dependencies=[Depends(require_user)])
async def get_session(session_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await _stats_for(db, session_id)


# ---------- Admin ----------
@router.get("/sessions", response_model=list[SessionWithStatsOut], dependencies=[Depends(require_admin)])
async def list_sessions(
    db: AsyncSession = Depends(get_db),
    include_archived: bool = Query(default=False),
    limit: int = Query(default=100, gt=0, le=500),
):
    try:
        rows = await session_admin.list_sessions(db, include_archived=include_archived, limit=limit)
    except RosterError as e:
        raise to_http(e)
    return [_to_stats(s, main_count, waitlist_count) for (s, main_count, waitlist_count) in rows]


@router.post(
    "/admin/sessions",
    response_model=SessionOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_session(payload: SessionCreateIn, db: AsyncSession = Depends(get_db)):
    try:
        s = await session_admin.create_session(db, on_date=payload.date, courts=payload.courts)
    except RosterError as e:
        raise to_http(e)
    return SessionOut.from_model(s)


@router.patch("/admin/sessions/{session_id}", response_model=SessionWithStatsOut, dependencies=[Depends(require_admin)])
async def patch_session(
    session_id: uuid.UUID,
    payload: SessionPatchIn,
    db: AsyncSession = Depends(get_db),
):
    # only fields present in the body are applied
    patch = session_admin.SessionPatch.from_fields(payload.model_dump(exclude_unset=True))
    try:
        s = await session_admin.update_session(db, session_id=session_id, patch=patch)
    except RosterError as e:
        raise to_http(e)
    return await _stats_for(db, s.id)


@router.delete(
    "/admin/sessions/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
async def delete_session(session_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    try:
        await session_admin.delete_session(db, session_id=session_id)
    except RosterError as e:
        raise to_http(e)
    return None
