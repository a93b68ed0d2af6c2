from __future__ import annotations
import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...db import get_db
from ...auth.deps import require_user, require_admin
from ...services import roster as roster_service
from ...services.errors import RosterError
from ...services.rate_limit import limit_cancel
from ...domain.schemas.roster import (
    SignupIn,
    CancelIn,
    CancelOut,
    PlayerPatchIn,
    RegistrantOut,
    RosterOut,
    SessionOut,
    SessionWithStatsOut,
)
from ..errors import to_http

router = APIRouter(tags=["players"])


def _cancel_out(result: roster_service.CancelResult) -> CancelOut:
    return CancelOut(
        removed=RegistrantOut.from_model(result.removed),
        promoted=RegistrantOut.from_model(result.promoted) if result.promoted else None,
    )


# ---------- User ----------
@router.get("/sessions/{session_id}/players", response_model=RosterOut, dependencies=[Depends(require_user)])
async def list_players(session_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    try:
        r = await roster_service.get_roster(db, session_id=session_id)
    except RosterError as e:
        raise to_http(e)
    main_count = len(r.main)
    stats = SessionWithStatsOut(
        **SessionOut.from_model(r.session).model_dump(),
        main_count=main_count,
        waitlist_count=len(r.waitlist),
        spots_left=max(0, r.session.max_players - main_count),
        cost_per_player=r.cost_per_player,
    )
    return RosterOut(
        session=stats,
        players=[RegistrantOut.from_model(p) for p in r.main],
        waitlist=[RegistrantOut.from_model(p) for p in r.waitlist],
    )


@router.post(
    "/sessions/{session_id}/players",
    response_model=RegistrantOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_user)],
)
async def sign_up(session_id: uuid.UUID, payload: SignupIn, db: AsyncSession = Depends(get_db)):
    try:
        reg = await roster_service.signup(db, session_id=session_id, name=payload.name, secret=payload.pin)
    except RosterError as e:
        raise to_http(e)
    return RegistrantOut.from_model(reg)


@router.post(
    "/players/{player_id}/cancel",
    response_model=CancelOut,
    dependencies=[Depends(require_user), Depends(limit_cancel)],
)
async def cancel_self(player_id: uuid.UUID, payload: CancelIn, db: AsyncSession = Depends(get_db)):
    try:
        result = await roster_service.cancel(db, registrant_id=player_id, secret=payload.pin, bypass_secret=False)
    except RosterError as e:
        raise to_http(e)
    return _cancel_out(result)


# ---------- Admin ----------
@router.delete("/admin/players/{player_id}", response_model=CancelOut, dependencies=[Depends(require_admin)])
async def remove_player(player_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    try:
        result = await roster_service.cancel(db, registrant_id=player_id, secret=None, bypass_secret=True)
    except RosterError as e:
        raise to_http(e)
    return _cancel_out(result)


@router.post("/admin/players/{player_id}/promote", response_model=RegistrantOut, dependencies=[Depends(require_admin)])
async def promote_player(player_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    try:
        reg = await roster_service.promote(db, registrant_id=player_id)
    except RosterError as e:
        raise to_http(e)
    return RegistrantOut.from_model(reg)


@router.patch("/admin/players/{player_id}", response_model=RegistrantOut, dependencies=[Depends(require_admin)])
async def patch_player(player_id: uuid.UUID, payload: PlayerPatchIn, db: AsyncSession = Depends(get_db)):
    try:
        reg = await roster_service.set_paid(db, registrant_id=player_id, paid=payload.paid)
    except RosterError as e:
        raise to_http(e)
    return RegistrantOut.from_model(reg)
