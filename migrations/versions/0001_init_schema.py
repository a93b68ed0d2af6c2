"""init schema: sessions + registrants

Revision ID: 0001_init
Revises:
Create Date: 2025-11-03

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # sessions
    op.create_table(
        "sessions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("courts", sa.Integer(), nullable=False, server_default=sa.text("2")),
        sa.Column("max_players", sa.Integer(), nullable=False, server_default=sa.text("14")),
        sa.Column("cost", sa.Numeric(10, 2), nullable=True),
        sa.Column("archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("max_players > 0", name="ck_sessions_sessions_max_players_pos"),
        sa.CheckConstraint("cost IS NULL OR cost >= 0", name="ck_sessions_sessions_cost_nonneg"),
        sa.PrimaryKeyConstraint("id", name="pk_sessions"),
        sa.UniqueConstraint("date", name="uq_sessions_date"),
    )
    op.create_index("ix_sessions_archived", "sessions", ["archived"], unique=False)

    # registrants
    op.create_table(
        "registrants",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("session_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("secret", sa.String(4), nullable=True),
        sa.Column("waitlisted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("paid", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("signed_up_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("position >= 1", name="ck_registrants_registrants_position_pos"),
        sa.PrimaryKeyConstraint("id", name="pk_registrants"),
        sa.ForeignKeyConstraint(["session_id"], ["sessions.id"], name="fk_registrants_session_id_sessions"),
    )
    op.create_index(
        "ix_registrants_session_list_pos",
        "registrants",
        ["session_id", "waitlisted", "position"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_registrants_session_list_pos", table_name="registrants")
    op.drop_table("registrants")
    op.drop_index("ix_sessions_archived", table_name="sessions")
    op.drop_table("sessions")
