from __future__ import annotations

import uuid
import datetime as dt
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import CheckConstraint, ForeignKey, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------- Base & naming ----------
class Base(DeclarativeBase):
    # Keep index/constraint names stable for cleaner migrations
    metadata = sa.MetaData(
        naming_convention={
            "ix": "ix_%(column_0_label)s",
            "uq": "uq_%(table_name)s_%(column_0_name)s",
            "ck": "ck_%(table_name)s_%(constraint_name)s",
            "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
            "pk": "pk_%(table_name)s",
        }
    )


# ---------- SESSIONS (one weekly occurrence) ----------
class Session(Base):
    __tablename__ = "sessions"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    date: Mapped[dt.date] = mapped_column(sa.Date, nullable=False, unique=True)

    courts: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=2, server_default=sa.text("2"))
    # derived from courts (2 -> 14, 3 -> 20); see services.session_admin.max_players_for
    max_players: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=14, server_default=sa.text("14"))
    cost: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(10, 2), nullable=True)

    archived: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False, server_default=sa.false())

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_utcnow, server_default=sa.func.now()
    )

    __table_args__ = (
        CheckConstraint("max_players > 0", name="sessions_max_players_pos"),
        CheckConstraint("cost IS NULL OR cost >= 0", name="sessions_cost_nonneg"),
        Index("ix_sessions_archived", "archived"),
    )


# ---------- REGISTRANTS (main list + waitlist) ----------
class Registrant(Base):
    __tablename__ = "registrants"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    session_id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, ForeignKey("sessions.id"), nullable=False)

    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    # 4-digit self-service cancel code; never leaves the service layer.
    # NULL means only an admin can remove the entry.
    secret: Mapped[Optional[str]] = mapped_column(sa.String(4), nullable=True)

    waitlisted: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False, server_default=sa.false())
    # 1-based, scoped to (session_id, waitlisted)
    position: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    paid: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False, server_default=sa.false())

    signed_up_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_utcnow, server_default=sa.func.now()
    )

    __table_args__ = (
        CheckConstraint("position >= 1", name="registrants_position_pos"),
        Index("ix_registrants_session_list_pos", "session_id", "waitlisted", "position"),
    )
