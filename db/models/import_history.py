"""
db/models/import_history.py

Audit records owned by an import session: the lifecycle event log and the
per-key promotion history that makes a promotion reversible.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, BigIntIdentity

if TYPE_CHECKING:
    from db.models.import_session import ImportSession


class ImportEventLevel:
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    ALL = (INFO, WARNING, ERROR)


class ImportEvent(Base):
    """
    One entry in an import's event log. Append-only.
    """

    __tablename__ = "import_events"

    id: Mapped[int] = mapped_column(BigIntIdentity, primary_key=True, autoincrement=True)
    import_session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("import_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    level: Mapped[str] = mapped_column(String(16), nullable=False, default=ImportEventLevel.INFO)
    event: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        comment="Lifecycle step, e.g. uploaded, staged, promoted, rolled_back",
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    import_session: Mapped["ImportSession"] = relationship(
        "ImportSession",
        back_populates="events",
    )

    __table_args__ = (
        Index("ix_import_events_session", "import_session_id"),
        Index("ix_import_events_level", "level"),
    )


class PromotionHistoryEntry(Base):
    """
    What a promotion replaced for one (state, statistic, year).

    ``previous_value`` is NULL when the promotion inserted the data point.
    ``previous_import_session_id`` is the import that owned the replaced value.
    """

    __tablename__ = "promotion_history"

    id: Mapped[int] = mapped_column(BigIntIdentity, primary_key=True, autoincrement=True)
    import_session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("import_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    state_id: Mapped[int] = mapped_column(Integer, nullable=False)
    statistic_id: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    previous_import_session_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("import_sessions.id", ondelete="SET NULL"),
        nullable=True,
    )

    import_session: Mapped["ImportSession"] = relationship(
        "ImportSession",
        back_populates="promotion_history",
        foreign_keys=[import_session_id],
    )

    __table_args__ = (
        UniqueConstraint(
            "import_session_id",
            "state_id",
            "statistic_id",
            "year",
            name="uq_promotion_history_session_key",
        ),
        Index("ix_promotion_history_previous_session", "previous_import_session_id"),
    )
