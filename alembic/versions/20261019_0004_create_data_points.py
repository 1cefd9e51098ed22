"""create data_points table

Revision ID: 20261019_0004
Revises: 20261019_0003
Create Date: 2026-10-19 09:15:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0004"
down_revision = "20261019_0003"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "data_points",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("state_id", sa.Integer(), nullable=False),
        sa.Column("statistic_id", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("value", sa.Float(), nullable=False),
        sa.Column(
            "import_session_id",
            postgresql.UUID(as_uuid=True),
            nullable=True,
            comment="Import session that last wrote this value",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["state_id"], ["states.id"]),
        sa.ForeignKeyConstraint(["statistic_id"], ["statistics.id"]),
        sa.ForeignKeyConstraint(["import_session_id"], ["import_sessions.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("state_id", "statistic_id", "year", name="uq_data_points_state_statistic_year"),
    )
    op.create_index("ix_data_points_statistic_year", "data_points", ["statistic_id", "year"], unique=False)
    op.create_index("ix_data_points_import_session_id", "data_points", ["import_session_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_data_points_import_session_id", table_name="data_points")
    op.drop_index("ix_data_points_statistic_year", table_name="data_points")
    op.drop_table("data_points")
