"""create import_events and promotion_history, add rollback columns

Revision ID: 20261019_0005
Revises: 20261019_0004
Create Date: 2026-10-19 09:20:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0005"
down_revision = "20261019_0004"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("import_sessions", sa.Column("rolled_back_by", sa.Integer(), nullable=True))
    op.add_column("import_sessions", sa.Column("rolled_back_at", sa.DateTime(timezone=True), nullable=True))

    op.create_table(
        "import_events",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("import_session_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("level", sa.String(length=16), nullable=False),
        sa.Column(
            "event",
            sa.String(length=40),
            nullable=False,
            comment="Lifecycle step, e.g. uploaded, staged, promoted, rolled_back",
        ),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["import_session_id"], ["import_sessions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_import_events_session", "import_events", ["import_session_id"], unique=False)
    op.create_index("ix_import_events_level", "import_events", ["level"], unique=False)

    op.create_table(
        "promotion_history",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("import_session_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("state_id", sa.Integer(), nullable=False),
        sa.Column("statistic_id", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("previous_value", sa.Float(), nullable=True),
        sa.Column("previous_import_session_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.ForeignKeyConstraint(["import_session_id"], ["import_sessions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["previous_import_session_id"], ["import_sessions.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "import_session_id",
            "state_id",
            "statistic_id",
            "year",
            name="uq_promotion_history_session_key",
        ),
    )
    op.create_index(
        "ix_promotion_history_previous_session",
        "promotion_history",
        ["previous_import_session_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_promotion_history_previous_session", table_name="promotion_history")
    op.drop_table("promotion_history")
    op.drop_index("ix_import_events_level", table_name="import_events")
    op.drop_index("ix_import_events_session", table_name="import_events")
    op.drop_table("import_events")
    op.drop_column("import_sessions", "rolled_back_at")
    op.drop_column("import_sessions", "rolled_back_by")
