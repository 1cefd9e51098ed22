"""
db/models/import_template.py

Import templates select the column layout an uploaded CSV must follow.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class ImportLayout:
    # State,Year,Category,Measure,Value
    MULTI_CATEGORY = "multi-category"
    # State,Year,Value with category/statistic supplied in upload metadata
    SINGLE_CATEGORY = "single-category"


class ImportTemplate(Base, TimestampMixin):
    __tablename__ = "import_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    layout: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="multi-category, single-category",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (Index("ix_import_templates_is_active", "is_active"),)

    def __repr__(self) -> str:
        return f"<ImportTemplate id={self.id} name={self.name!r} layout={self.layout!r}>"
