"""
Read-only lookups over reference data (states, categories, statistics) and
import templates.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.import_template import ImportTemplate
from db.models.reference import Category, State, Statistic


class ReferenceRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def list_active_states(self) -> list[State]:
        stmt = select(State).where(State.is_active.is_(True)).order_by(State.name)
        return list(self._session.scalars(stmt).all())

    def list_active_categories(self) -> list[Category]:
        stmt = (
            select(Category)
            .where(Category.is_active.is_(True))
            .order_by(Category.sort_order, Category.name)
        )
        return list(self._session.scalars(stmt).all())

    def list_active_statistics(self) -> list[Statistic]:
        """
        Active statistics whose category is active as well.
        """

        stmt = (
            select(Statistic)
            .join(Category, Category.id == Statistic.category_id)
            .where(Statistic.is_active.is_(True), Category.is_active.is_(True))
            .order_by(Statistic.category_id, Statistic.name)
        )
        return list(self._session.scalars(stmt).all())

    def get_template(self, template_id: int, *, active_only: bool = True) -> ImportTemplate | None:
        template = self._session.get(ImportTemplate, template_id)
        if template is None:
            return None
        if active_only and not template.is_active:
            return None
        return template

    def list_templates(self, *, active_only: bool = True) -> list[ImportTemplate]:
        stmt = select(ImportTemplate).order_by(ImportTemplate.id)
        if active_only:
            stmt = stmt.where(ImportTemplate.is_active.is_(True))
        return list(self._session.scalars(stmt).all())
