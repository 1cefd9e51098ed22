"""
db/models/data_point.py

Published production value for one (state, statistic, year).

Rows are written only by the promotion engine. Each row remembers the
import session that last wrote it.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Float, ForeignKey, Index, Integer, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, BigIntIdentity, TimestampMixin

if TYPE_CHECKING:
    from db.models.reference import Statistic

DATA_POINT_KEY_CONSTRAINT = "uq_data_points_state_statistic_year"


class DataPoint(Base, TimestampMixin):
    __tablename__ = "data_points"

    id: Mapped[int] = mapped_column(BigIntIdentity, primary_key=True, autoincrement=True)
    state_id: Mapped[int] = mapped_column(Integer, ForeignKey("states.id"), nullable=False)
    statistic_id: Mapped[int] = mapped_column(Integer, ForeignKey("statistics.id"), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    value: Mapped[float] = mapped_column(Float, nullable=False)
    import_session_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("import_sessions.id", ondelete="SET NULL"),
        nullable=True,
        comment="Import session that last wrote this value",
    )

    statistic: Mapped["Statistic"] = relationship("Statistic", back_populates="data_points")

    __table_args__ = (
        UniqueConstraint("state_id", "statistic_id", "year", name=DATA_POINT_KEY_CONSTRAINT),
        Index("ix_data_points_statistic_year", "statistic_id", "year"),
        Index("ix_data_points_import_session_id", "import_session_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<DataPoint state_id={self.state_id} statistic_id={self.statistic_id} "
            f"year={self.year} value={self.value}>"
        )
