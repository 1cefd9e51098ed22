"""create import_sessions, import_staged_rows and import_failed_rows tables

Revision ID: 20261019_0003
Revises: 20261019_0002
Create Date: 2026-10-19 09:10:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0003"
down_revision = "20261019_0002"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "import_sessions",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("file_size_bytes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("content_hash", sa.String(length=64), nullable=False, comment="sha256 of the normalised file text"),
        sa.Column("source_content", sa.Text(), nullable=False),
        sa.Column("source_headers", sa.JSON(), nullable=True, comment="CSV header row in file order"),
        sa.Column("template_id", sa.Integer(), nullable=False),
        sa.Column(
            "metadata_json",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            comment="Validated upload metadata (tagged by kind)",
        ),
        sa.Column("uploaded_by", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("attempt", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("total_rows", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("valid_rows", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed_rows", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("published_rows", sa.Integer(), nullable=True),
        sa.Column("validation_summary", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column(
            "duplicate_of",
            postgresql.UUID(as_uuid=True),
            nullable=True,
            comment="Earlier session with the same content hash",
        ),
        sa.Column("promoted_by", sa.Integer(), nullable=True),
        sa.Column("validated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("promoted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["template_id"], ["import_templates.id"]),
        sa.ForeignKeyConstraint(["duplicate_of"], ["import_sessions.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_import_sessions_status", "import_sessions", ["status"], unique=False)
    op.create_index("ix_import_sessions_content_hash", "import_sessions", ["content_hash"], unique=False)
    op.create_index("ix_import_sessions_created_at", "import_sessions", ["created_at"], unique=False)
    op.create_index(
        "ix_import_sessions_hash_status",
        "import_sessions",
        ["content_hash", "status"],
        unique=False,
    )

    op.create_table(
        "import_staged_rows",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("import_session_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "row_number",
            sa.Integer(),
            nullable=False,
            comment="1-based line number in the source file (header is row 1)",
        ),
        sa.Column("state_id", sa.Integer(), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("statistic_id", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("value", sa.Float(), nullable=False),
        sa.Column("is_valid", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("raw_fields", sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(["import_session_id"], ["import_sessions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["state_id"], ["states.id"]),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"]),
        sa.ForeignKeyConstraint(["statistic_id"], ["statistics.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_import_staged_rows_session", "import_staged_rows", ["import_session_id"], unique=False)
    op.create_index(
        "ix_import_staged_rows_session_row",
        "import_staged_rows",
        ["import_session_id", "row_number"],
        unique=False,
    )

    op.create_table(
        "import_failed_rows",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("import_session_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("attempt", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("row_number", sa.Integer(), nullable=False),
        sa.Column("column_name", sa.String(length=120), nullable=True),
        sa.Column(
            "raw_fields",
            sa.JSON(),
            nullable=False,
            comment="Original field values keyed by source header, file order preserved",
        ),
        sa.Column(
            "reason",
            sa.String(length=40),
            nullable=False,
            comment="missing_field, non_numeric_value, year_out_of_range, unresolved_reference",
        ),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["import_session_id"], ["import_sessions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_import_failed_rows_session_attempt",
        "import_failed_rows",
        ["import_session_id", "attempt"],
        unique=False,
    )
    op.create_index("ix_import_failed_rows_reason", "import_failed_rows", ["reason"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_import_failed_rows_reason", table_name="import_failed_rows")
    op.drop_index("ix_import_failed_rows_session_attempt", table_name="import_failed_rows")
    op.drop_table("import_failed_rows")
    op.drop_index("ix_import_staged_rows_session_row", table_name="import_staged_rows")
    op.drop_index("ix_import_staged_rows_session", table_name="import_staged_rows")
    op.drop_table("import_staged_rows")
    op.drop_index("ix_import_sessions_hash_status", table_name="import_sessions")
    op.drop_index("ix_import_sessions_created_at", table_name="import_sessions")
    op.drop_index("ix_import_sessions_content_hash", table_name="import_sessions")
    op.drop_index("ix_import_sessions_status", table_name="import_sessions")
    op.drop_table("import_sessions")
