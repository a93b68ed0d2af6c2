# badminton_signup/services/roster.py
from __future__ import annotations
import hmac
import logging
import re
import uuid
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Registrant, Session as SessionModel
from ..repos import registrants as roster_repo
from ..repos import sessions as sess_repo
from ..observability.metrics import SIGNUPS, CANCELED, PROMOTED, AUTH_FAILURES
from .errors import NotFound, AuthFailure, InvalidState
from .tx import roster_tx, lock_session_row, store_call

log = logging.getLogger("app.roster")

_PIN_RE = re.compile(r"^\d{4}$")
_CENT = Decimal("0.01")


@dataclass
class CancelResult:
    removed: Registrant
    promoted: Optional[Registrant] = None


@dataclass
class Roster:
    session: SessionModel
    main: list[Registrant]
    waitlist: list[Registrant]

    @property
    def cost_per_player(self) -> Optional[Decimal]:
        return cost_per_player(self.session.cost, len(self.main))


def cost_per_player(cost: Optional[Decimal], main_count: int) -> Optional[Decimal]:
    """Share of the session cost per main-list player, or None when either side is zero/unset."""
    if cost is None or main_count <= 0:
        return None
    cost = Decimal(cost)
    if cost <= 0:
        return None
    return (cost / main_count).quantize(_CENT, rounding=ROUND_HALF_UP)


def _code_matches(stored: Optional[str], given: Optional[str]) -> bool:
    # an entry without a stored code can only be removed by an admin
    if stored is None or given is None:
        return False
    return hmac.compare_digest(given.encode(), stored.encode())


async def _promote_head(db: AsyncSession, session_id: uuid.UUID) -> Optional[Registrant]:
    """Move the lowest-position waitlist entry to the tail of the main list."""
    waitlist = await roster_repo.list_waitlist(db, session_id)
    if not waitlist:
        return None
    head = waitlist[0]
    return await _move_to_main(db, head, waitlist[1:])


async def _move_to_main(db: AsyncSession, reg: Registrant, rest: list[Registrant]) -> Registrant:
    # Appends after the current max; the main list itself is not compacted.
    tail = await roster_repo.max_position(db, reg.session_id, waitlisted=False)
    promoted = await roster_repo.set_list_and_position(db, reg.id, waitlisted=False, position=tail + 1)
    await roster_repo.renumber(db, reg.session_id, waitlisted=True, ordered_ids=[r.id for r in rest])
    return promoted


async def signup(
    db: AsyncSession,
    *,
    session_id: uuid.UUID,
    name: str,
    secret: str,
) -> Registrant:
    """
    Admit a registrant to a session.

    Lands on the main list while it holds fewer than max_players entries,
    otherwise on the waitlist. Either way the entrant is appended at the tail
    of its list (arrival order, no re-sorting).
    """
    name = (name or "").strip()
    if not name:
        raise InvalidState("name required")
    if not _PIN_RE.match(secret or ""):
        raise InvalidState("PIN must be exactly 4 digits")

    async with roster_tx(db, session_id):
        sess = await lock_session_row(db, session_id)
        if sess is None:
            raise NotFound("session")
        if sess.archived:
            raise InvalidState("session is archived")

        count = await roster_repo.count_main(db, session_id)
        waitlisted = count >= sess.max_players
        reg = await roster_repo.insert(
            db, session_id=session_id, name=name, secret=secret, waitlisted=waitlisted
        )

    SIGNUPS.labels(list="waitlist" if waitlisted else "main").inc()
    log.info(
        "signup",
        extra={"session_id": str(session_id), "registrant_id": str(reg.id), "waitlisted": waitlisted, "position": reg.position},
    )
    return reg


async def cancel(
    db: AsyncSession,
    *,
    registrant_id: uuid.UUID,
    secret: Optional[str],
    bypass_secret: bool,
) -> CancelResult:
    """Remove a registrant; a freed main-list spot goes to the head of the waitlist.

    Promotion only happens while the main list is below max_players after the
    removal, so a lowered capacity is never overfilled.
    """
    async with store_call("find_registrant"):
        found = await roster_repo.find(db, registrant_id)
    if found is None:
        raise NotFound("registrant")
    session_id = found.session_id

    async with roster_tx(db, session_id):
        sess = await lock_session_row(db, session_id)
        reg = await roster_repo.get(db, registrant_id, for_update=True)

        if not bypass_secret and not _code_matches(reg.secret, secret):
            AUTH_FAILURES.inc()
            raise AuthFailure("invalid PIN")

        removed = await roster_repo.remove(db, registrant_id)
        promoted: Optional[Registrant] = None

        if removed.waitlisted:
            rest = await roster_repo.list_waitlist(db, session_id)
            await roster_repo.renumber(db, session_id, waitlisted=True, ordered_ids=[r.id for r in rest])
        elif sess is not None:
            remaining = await roster_repo.count_main(db, session_id)
            if remaining < sess.max_players:
                promoted = await _promote_head(db, session_id)

    CANCELED.labels(list="waitlist" if removed.waitlisted else "main", by="admin" if bypass_secret else "self").inc()
    if promoted is not None:
        PROMOTED.labels(reason="auto").inc()
    log.info(
        "cancel",
        extra={
            "session_id": str(session_id),
            "registrant_id": str(registrant_id),
            "promoted_id": str(promoted.id) if promoted else "",
        },
    )
    return CancelResult(removed=removed, promoted=promoted)


async def promote(db: AsyncSession, *, registrant_id: uuid.UUID) -> Registrant:
    """Admin override: move a waitlisted registrant to the main list regardless of capacity."""
    async with store_call("find_registrant"):
        found = await roster_repo.find(db, registrant_id)
    if found is None:
        raise NotFound("registrant")
    session_id = found.session_id

    async with roster_tx(db, session_id):
        await lock_session_row(db, session_id)
        reg = await roster_repo.get(db, registrant_id, for_update=True)
        if not reg.waitlisted:
            raise InvalidState("registrant is not on the waitlist")
        waitlist = await roster_repo.list_waitlist(db, session_id)
        rest = [r for r in waitlist if r.id != reg.id]
        promoted = await _move_to_main(db, reg, rest)

    PROMOTED.labels(reason="admin").inc()
    log.info("promote", extra={"session_id": str(session_id), "registrant_id": str(registrant_id)})
    return promoted


async def set_paid(db: AsyncSession, *, registrant_id: uuid.UUID, paid: bool) -> Registrant:
    async with store_call("find_registrant"):
        found = await roster_repo.find(db, registrant_id)
    if found is None:
        raise NotFound("registrant")

    async with roster_tx(db, found.session_id):
        reg = await roster_repo.set_paid(db, registrant_id, paid)
    return reg


async def get_roster(db: AsyncSession, *, session_id: uuid.UUID) -> Roster:
    async with store_call("get_roster"):
        sess = await sess_repo.get(db, session_id)
        if sess is None:
            raise NotFound("session")
        main = await roster_repo.list_main(db, session_id)
        waitlist = await roster_repo.list_waitlist(db, session_id)
    return Roster(session=sess, main=main, waitlist=waitlist)
