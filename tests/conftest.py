import os

# Settings are read once; pin the test environment before anything imports the package.
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("USER_PASSWORD", "shuttle")
os.environ.setdefault("ADMIN_PASSWORD", "smash")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import uuid
from datetime import date
from typing import Optional

import pytest
import pytest_asyncio
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from badminton_signup.db import make_engine
from badminton_signup.models import Base, Registrant, Session as SessionModel
from badminton_signup.repos import sessions as sess_repo
from badminton_signup.services.session_admin import max_players_for

# Point TEST_DATABASE_URL at a throwaway PostgreSQL database to run against the
# real backend; otherwise each test gets its own SQLite file.
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")


@pytest_asyncio.fixture
async def engine(tmp_path):
    url = TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'roster.db'}"
    eng = make_engine(url)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    # drop pooled connections so the next test (own event loop) never reuses one
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as s:
        yield s


# ---------- helpers ----------
async def mk_session(
    db: AsyncSession,
    *,
    on_date: date = date(2026, 3, 2),
    courts: int = 2,
    max_players: Optional[int] = None,
    archived: bool = False,
) -> uuid.UUID:
    s = await sess_repo.create_session(
        db,
        on_date=on_date,
        courts=courts,
        max_players=max_players if max_players is not None else max_players_for(courts),
    )
    s.archived = archived
    await db.commit()
    return s.id


async def set_max_players(db: AsyncSession, session_id: uuid.UUID, max_players: int) -> None:
    await db.execute(update(SessionModel).where(SessionModel.id == session_id).values(max_players=max_players))
    await db.commit()


async def positions(db: AsyncSession, session_id: uuid.UUID, *, waitlisted: bool) -> list[tuple[str, int]]:
    """(name, position) pairs of one list, in list order, read fresh from the DB."""
    db.expire_all()
    rows = (
        await db.execute(
            select(Registrant.name, Registrant.position)
            .where(Registrant.session_id == session_id, Registrant.waitlisted.is_(waitlisted))
            .order_by(Registrant.position.asc())
        )
    ).all()
    await db.rollback()
    return [(n, p) for n, p in rows]


def assert_contiguous(pairs: list[tuple[str, int]]) -> None:
    assert [p for _, p in pairs] == list(range(1, len(pairs) + 1))
