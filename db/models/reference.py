"""
db/models/reference.py

Reference entities uploaded rows are resolved against: states, categories
and the statistics (measures) published under each category.

These tables are seeded ahead of time and are read-only from the import
pipeline's point of view.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base

if TYPE_CHECKING:
    from db.models.data_point import DataPoint


class ReferenceKind:
    STATE = "state"
    CATEGORY = "category"
    STATISTIC = "statistic"


class State(Base):
    __tablename__ = "states"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    abbreviation: Mapped[str] = mapped_column(
        String(2),
        nullable=False,
        unique=True,
        comment="USPS two-letter code",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (Index("ix_states_is_active", "is_active"),)

    def __repr__(self) -> str:
        return f"<State id={self.id} name={self.name!r}>"


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    statistics: Mapped[list["Statistic"]] = relationship(
        "Statistic",
        back_populates="category",
    )

    __table_args__ = (Index("ix_categories_is_active", "is_active"),)

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r}>"


class Statistic(Base):
    """
    One published measure, e.g. "GDP" under "Economy".

    Names are unique within a category, not globally.
    """

    __tablename__ = "statistics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("categories.id"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    unit: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    category: Mapped["Category"] = relationship("Category", back_populates="statistics")
    data_points: Mapped[list["DataPoint"]] = relationship(
        "DataPoint",
        back_populates="statistic",
    )

    __table_args__ = (
        UniqueConstraint("category_id", "name", name="uq_statistics_category_name"),
        Index("ix_statistics_category_id", "category_id"),
        Index("ix_statistics_is_active", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<Statistic id={self.id} name={self.name!r} category_id={self.category_id}>"
