import uuid

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from badminton_signup.services import roster as roster_service
from badminton_signup.services.errors import NotFound, InvalidState
from tests.conftest import mk_session, positions

pytestmark = pytest.mark.asyncio


async def _signup_all(db, sid, names):
    out = []
    for n in names:
        out.append((await roster_service.signup(db, session_id=sid, name=n, secret="5555")).id)
    return out


async def test_promote_moves_any_waitlisted_to_main_tail_past_capacity(db: AsyncSession):
    sid = await mk_session(db, max_players=2)
    a, b, w1, w2, w3 = await _signup_all(db, sid, ["A", "B", "W1", "W2", "W3"])

    promoted = await roster_service.promote(db, registrant_id=w2)
    assert promoted.waitlisted is False
    assert promoted.position == 3

    # main is now above max_players; that is allowed for an explicit promotion
    assert await positions(db, sid, waitlisted=False) == [("A", 1), ("B", 2), ("W2", 3)]
    assert await positions(db, sid, waitlisted=True) == [("W1", 1), ("W3", 2)]


async def test_promote_main_registrant_is_invalid(db: AsyncSession):
    sid = await mk_session(db, max_players=2)
    a, _ = await _signup_all(db, sid, ["A", "B"])

    with pytest.raises(InvalidState):
        await roster_service.promote(db, registrant_id=a)
    assert await positions(db, sid, waitlisted=False) == [("A", 1), ("B", 2)]


async def test_promote_unknown_registrant(db: AsyncSession):
    with pytest.raises(NotFound):
        await roster_service.promote(db, registrant_id=uuid.uuid4())


async def test_set_paid_toggles_flag(db: AsyncSession):
    sid = await mk_session(db)
    (a,) = await _signup_all(db, sid, ["A"])

    reg = await roster_service.set_paid(db, registrant_id=a, paid=True)
    assert reg.paid is True
    reg = await roster_service.set_paid(db, registrant_id=a, paid=False)
    assert reg.paid is False


async def test_set_paid_unknown_registrant(db: AsyncSession):
    with pytest.raises(NotFound):
        await roster_service.set_paid(db, registrant_id=uuid.uuid4(), paid=True)


async def test_get_roster_lists_in_position_order(db: AsyncSession):
    sid = await mk_session(db, max_players=2)
    await _signup_all(db, sid, ["A", "B", "C", "D"])

    r = await roster_service.get_roster(db, session_id=sid)
    assert [p.name for p in r.main] == ["A", "B"]
    assert [p.name for p in r.waitlist] == ["C", "D"]
    assert r.cost_per_player is None


async def test_get_roster_unknown_session(db: AsyncSession):
    with pytest.raises(NotFound):
        await roster_service.get_roster(db, session_id=uuid.uuid4())
