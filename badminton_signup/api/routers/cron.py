from __future__ import annotations
import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...config import get_settings
from ...db import get_db
from ...services.errors import RosterError
from ...services.rollover import rollover_cycle
from ...domain.schemas.roster import RolloverOut
from ..errors import to_http

router = APIRouter(prefix="/cron", tags=["cron"])
S = get_settings()


def _check_cron_auth(authorization: Optional[str] = Header(default=None)) -> None:
    # Only enforced in prod; dev/test can trigger it freely
    if S.ENV != "prod":
        return
    expected = f"Bearer {S.CRON_SECRET}" if S.CRON_SECRET else None
    if not expected or not authorization or not hmac.compare_digest(authorization, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@router.post("/rollover", response_model=RolloverOut, dependencies=[Depends(_check_cron_auth)])
async def run_rollover(db: AsyncSession = Depends(get_db)):
    try:
        r = await rollover_cycle(db)
    except RosterError as e:
        raise to_http(e)
    return RolloverOut(archived=r.archived, target_date=r.target_date, created=r.created, session_id=r.session_id)
