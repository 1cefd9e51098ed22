"""
db/models/import_rows.py

Per-row records owned by an import session: staged rows awaiting promotion
and failed rows kept for the operator's failure report.

Staged rows live in their own table with their own key sequence so no
production read path can see them.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, BigIntIdentity

if TYPE_CHECKING:
    from db.models.import_session import ImportSession


class FailureReason:
    MISSING_FIELD = "missing_field"
    NON_NUMERIC_VALUE = "non_numeric_value"
    YEAR_OUT_OF_RANGE = "year_out_of_range"
    UNRESOLVED_REFERENCE = "unresolved_reference"

    ALL = (MISSING_FIELD, NON_NUMERIC_VALUE, YEAR_OUT_OF_RANGE, UNRESOLVED_REFERENCE)


class StagedRow(Base):
    __tablename__ = "import_staged_rows"

    id: Mapped[int] = mapped_column(BigIntIdentity, primary_key=True, autoincrement=True)
    import_session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("import_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    row_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="1-based line number in the source file (header is row 1)",
    )
    state_id: Mapped[int] = mapped_column(Integer, ForeignKey("states.id"), nullable=False)
    category_id: Mapped[int] = mapped_column(Integer, ForeignKey("categories.id"), nullable=False)
    statistic_id: Mapped[int] = mapped_column(Integer, ForeignKey("statistics.id"), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    value: Mapped[float] = mapped_column(Float, nullable=False)
    is_valid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    raw_fields: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    import_session: Mapped["ImportSession"] = relationship(
        "ImportSession",
        back_populates="staged_rows",
    )

    __table_args__ = (
        Index("ix_import_staged_rows_session", "import_session_id"),
        Index("ix_import_staged_rows_session_row", "import_session_id", "row_number"),
    )


class FailedRow(Base):
    """
    One row that could not be resolved or validated. Written once, never updated.

    ``attempt`` ties the entry to the staging pass that produced it, so a
    retried import keeps the history of earlier attempts.
    """

    __tablename__ = "import_failed_rows"

    id: Mapped[int] = mapped_column(BigIntIdentity, primary_key=True, autoincrement=True)
    import_session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("import_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    attempt: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    row_number: Mapped[int] = mapped_column(Integer, nullable=False)
    column_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    raw_fields: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        comment="Original field values keyed by source header, file order preserved",
    )
    reason: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        comment="missing_field, non_numeric_value, year_out_of_range, unresolved_reference",
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    import_session: Mapped["ImportSession"] = relationship(
        "ImportSession",
        back_populates="failed_row_entries",
    )

    __table_args__ = (
        Index("ix_import_failed_rows_session_attempt", "import_session_id", "attempt"),
        Index("ix_import_failed_rows_reason", "reason"),
    )
