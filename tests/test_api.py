import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text

from badminton_signup.auth.deps import cookie_name
from badminton_signup.auth.jwt import create_role_token
from badminton_signup.db import get_db
from badminton_signup.main import app
from badminton_signup.services.errors import StoreFailure, NotFound
from badminton_signup.services.rate_limit import limit_login, limit_cancel
from badminton_signup.api.errors import to_http
from tests.conftest import mk_session

pytestmark = pytest.mark.asyncio


async def _no_limit() -> None:
    return None


@pytest_asyncio.fixture
async def client(session_factory):
    async def _db():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[limit_login] = _no_limit
    app.dependency_overrides[limit_cancel] = _no_limit
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def _as(client: AsyncClient, *roles: str) -> AsyncClient:
    for role in roles:
        client.cookies.set(cookie_name(role), create_role_token(role))
    return client


# ---------- auth gate ----------
async def test_login_sets_cookie_and_rejects_wrong_password(client):
    bad = await client.post("/auth/login", json={"password": "nope", "type": "user"})
    assert bad.status_code == 401

    ok = await client.post("/auth/login", json={"password": "shuttle", "type": "user"})
    assert ok.status_code == 200
    assert ok.json() == {"authenticated": True}
    assert cookie_name("user") in ok.headers.get("set-cookie", "")


async def test_user_password_does_not_grant_admin(client):
    r = await client.post("/auth/login", json={"password": "shuttle", "type": "admin"})
    assert r.status_code == 401


async def test_status_reports_each_role(client):
    _as(client, "user")
    assert (await client.get("/auth/status", params={"type": "user"})).json() == {"authenticated": True}
    assert (await client.get("/auth/status", params={"type": "admin"})).json() == {"authenticated": False}


async def test_routes_require_cookie(client, db):
    sid = await mk_session(db)
    assert (await client.get(f"/sessions/{sid}/players")).status_code == 401

    _as(client, "user")
    assert (await client.get(f"/sessions/{sid}/players")).status_code == 200
    assert (await client.delete(f"/admin/sessions/{sid}")).status_code == 403


async def test_forged_token_is_rejected(client, db):
    sid = await mk_session(db)
    client.cookies.set(cookie_name("user"), "not-a-jwt")
    assert (await client.get(f"/sessions/{sid}/players")).status_code == 401


# ---------- roster ----------
async def test_signup_and_roster_never_expose_pin(client, db):
    sid = await mk_session(db, max_players=1)
    _as(client, "user")

    first = await client.post(f"/sessions/{sid}/players", json={"name": "Alice", "pin": "8642"})
    second = await client.post(f"/sessions/{sid}/players", json={"name": "Bob", "pin": "8642"})
    assert first.status_code == 201
    assert second.status_code == 201
    assert first.json()["waitlisted"] is False
    assert second.json()["waitlisted"] is True

    roster = await client.get(f"/sessions/{sid}/players")
    assert roster.status_code == 200
    body = roster.json()
    assert [p["name"] for p in body["players"]] == ["Alice"]
    assert [p["name"] for p in body["waitlist"]] == ["Bob"]
    assert body["session"]["spots_left"] == 0
    assert "8642" not in roster.text
    assert "8642" not in first.text


async def test_signup_validates_body(client, db):
    sid = await mk_session(db)
    _as(client, "user")
    r = await client.post(f"/sessions/{sid}/players", json={"name": "  ", "pin": "12"})
    assert r.status_code == 422


async def test_cancel_wrong_pin_then_right_pin(client, db):
    sid = await mk_session(db, max_players=1)
    _as(client, "user")
    a = (await client.post(f"/sessions/{sid}/players", json={"name": "A", "pin": "1111"})).json()
    await client.post(f"/sessions/{sid}/players", json={"name": "B", "pin": "2222"})

    wrong = await client.post(f"/players/{a['id']}/cancel", json={"pin": "9999"})
    assert wrong.status_code == 401

    right = await client.post(f"/players/{a['id']}/cancel", json={"pin": "1111"})
    assert right.status_code == 200
    body = right.json()
    assert body["removed"]["name"] == "A"
    assert body["promoted"]["name"] == "B"
    assert body["promoted"]["waitlisted"] is False


async def test_cancel_unknown_player_is_404(client):
    _as(client, "user")
    r = await client.post("/players/00000000-0000-0000-0000-000000000000/cancel", json={"pin": "1234"})
    assert r.status_code == 404


async def test_archived_session_signup_is_conflict(client, db):
    sid = await mk_session(db, archived=True)
    _as(client, "user")
    r = await client.post(f"/sessions/{sid}/players", json={"name": "Late", "pin": "1234"})
    assert r.status_code == 409


# ---------- admin ----------
async def test_admin_session_lifecycle(client):
    _as(client, "admin")

    created = await client.post("/admin/sessions", json={"date": "2026-03-09", "courts": 3})
    assert created.status_code == 201
    sid = created.json()["id"]
    assert created.json()["max_players"] == 20

    dup = await client.post("/admin/sessions", json={"date": "2026-03-09"})
    assert dup.status_code == 409

    patched = await client.patch(f"/admin/sessions/{sid}", json={"courts": 2, "cost": "70"})
    assert patched.status_code == 200
    assert patched.json()["max_players"] == 14

    for n in ["A", "B"]:
        await client.post(f"/sessions/{sid}/players", json={"name": n, "pin": "1234"})
    stats = (await client.get(f"/sessions/{sid}")).json()
    assert stats["main_count"] == 2
    assert stats["cost_per_player"] == "35.00"

    listed = await client.get("/sessions", params={"include_archived": True})
    assert [s["id"] for s in listed.json()] == [sid]

    gone = await client.delete(f"/admin/sessions/{sid}")
    assert gone.status_code == 204
    assert (await client.get(f"/sessions/{sid}")).status_code == 404


async def test_admin_patch_rejects_null_courts(client, db):
    sid = await mk_session(db)
    _as(client, "admin")
    r = await client.patch(f"/admin/sessions/{sid}", json={"courts": None})
    assert r.status_code == 422


async def test_admin_remove_promote_and_mark_paid(client, db):
    sid = await mk_session(db, max_players=1)
    _as(client, "admin")
    a = (await client.post(f"/sessions/{sid}/players", json={"name": "A", "pin": "1111"})).json()
    b = (await client.post(f"/sessions/{sid}/players", json={"name": "B", "pin": "2222"})).json()
    c = (await client.post(f"/sessions/{sid}/players", json={"name": "C", "pin": "3333"})).json()

    promoted = await client.post(f"/admin/players/{c['id']}/promote")
    assert promoted.status_code == 200
    assert promoted.json()["waitlisted"] is False

    again = await client.post(f"/admin/players/{a['id']}/promote")
    assert again.status_code == 409

    paid = await client.patch(f"/admin/players/{a['id']}", json={"paid": True})
    assert paid.json()["paid"] is True

    removed = await client.delete(f"/admin/players/{a['id']}")
    assert removed.status_code == 200
    # main still holds C above the single spot, so B stays waitlisted
    assert removed.json()["promoted"] is None

    roster = (await client.get(f"/sessions/{sid}/players")).json()
    assert [p["name"] for p in roster["players"]] == ["C"]
    assert [p["id"] for p in roster["waitlist"]] == [b["id"]]


async def test_current_session_is_created_on_demand(client):
    _as(client, "user")
    r = await client.get("/sessions/current")
    assert r.status_code == 200
    assert r.json()["archived"] is False
    assert r.json()["max_players"] == 14

    again = await client.get("/sessions/current")
    assert again.json()["id"] == r.json()["id"]


async def test_cron_rollover_outside_prod(client):
    r = await client.post("/cron/rollover")
    assert r.status_code == 200
    assert r.json()["created"] is True


async def test_broken_store_reads_are_503_not_500(client, db):
    sid = await mk_session(db)
    await db.execute(text("DROP TABLE registrants"))
    await db.commit()
    _as(client, "user")

    for path in (f"/sessions/{sid}/players", f"/sessions/{sid}"):
        r = await client.get(path)
        assert r.status_code == 503
        assert r.json()["detail"] == "storage unavailable, try again"


def test_error_mapping():
    assert to_http(NotFound("session")).status_code == 404
    assert to_http(NotFound("session")).detail == "session not found"
    assert to_http(StoreFailure("boom")).detail == "storage unavailable, try again"


async def test_health_and_metrics(client):
    assert (await client.get("/health/liveness")).status_code == 200
    m = await client.get("/metrics")
    assert m.status_code == 200
    assert "roster_signups_total" in m.text
