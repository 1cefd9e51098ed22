"""
app/repositories/data_point_repository.py

Production data point persistence. Written only during promotion and rollback.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from typing import NamedTuple

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from db.base import utcnow
from db.models.data_point import DataPoint

DataPointKey = tuple[int, int, int]


class ExistingPoint(NamedTuple):
    value: float
    import_id: uuid.UUID | None


_KEY_COLUMNS = ("state_id", "statistic_id", "year")
# Keeps the OR-of-ANDs lookup below the bind parameter limits of both backends.
_LOOKUP_CHUNK = 300


class DataPointRepository:
    """
    Repository for production data points keyed on (state, statistic, year).
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def upsert(
        self,
        *,
        state_id: int,
        statistic_id: int,
        year: int,
        value: float,
        import_id: uuid.UUID,
    ) -> None:
        """
        Insert the value, or overwrite the existing one for the same key.
        """

        insert = self._dialect_insert()
        stmt = insert(DataPoint).values(
            state_id=state_id,
            statistic_id=statistic_id,
            year=year,
            value=value,
            import_session_id=import_id,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=list(_KEY_COLUMNS),
            set_={
                "value": stmt.excluded.value,
                "import_session_id": stmt.excluded.import_session_id,
                "updated_at": utcnow(),
            },
        )
        self._session.execute(stmt)

    def existing_points(self, keys: Iterable[DataPointKey]) -> dict[DataPointKey, ExistingPoint]:
        """
        Current production value and owning import for the given keys; missing keys are absent.
        """

        unique_keys = list(dict.fromkeys(keys))
        found: dict[DataPointKey, ExistingPoint] = {}
        for start in range(0, len(unique_keys), _LOOKUP_CHUNK):
            chunk = unique_keys[start : start + _LOOKUP_CHUNK]
            stmt = select(
                DataPoint.state_id,
                DataPoint.statistic_id,
                DataPoint.year,
                DataPoint.value,
                DataPoint.import_session_id,
            ).where(
                or_(
                    *(
                        and_(
                            DataPoint.state_id == state_id,
                            DataPoint.statistic_id == statistic_id,
                            DataPoint.year == year,
                        )
                        for state_id, statistic_id, year in chunk
                    )
                )
            )
            for state_id, statistic_id, year, value, import_id in self._session.execute(stmt).all():
                found[(state_id, statistic_id, year)] = ExistingPoint(value=value, import_id=import_id)
        return found

    def existing_values(self, keys: Iterable[DataPointKey]) -> dict[DataPointKey, float]:
        return {key: point.value for key, point in self.existing_points(keys).items()}

    def restore(self, key: DataPointKey, *, value: float, import_id: uuid.UUID | None) -> None:
        state_id, statistic_id, year = key
        self._session.execute(
            update(DataPoint)
            .where(
                DataPoint.state_id == state_id,
                DataPoint.statistic_id == statistic_id,
                DataPoint.year == year,
            )
            .values(value=value, import_session_id=import_id)
            .execution_options(synchronize_session=False)
        )

    def delete(self, key: DataPointKey) -> None:
        state_id, statistic_id, year = key
        self._session.execute(
            delete(DataPoint)
            .where(
                DataPoint.state_id == state_id,
                DataPoint.statistic_id == statistic_id,
                DataPoint.year == year,
            )
            .execution_options(synchronize_session=False)
        )

    def get(self, *, state_id: int, statistic_id: int, year: int) -> DataPoint | None:
        stmt = select(DataPoint).where(
            DataPoint.state_id == state_id,
            DataPoint.statistic_id == statistic_id,
            DataPoint.year == year,
        ).execution_options(populate_existing=True)
        return self._session.scalars(stmt).one_or_none()

    def count_for_import(self, import_id: uuid.UUID) -> int:
        stmt = select(func.count()).select_from(DataPoint).where(DataPoint.import_session_id == import_id)
        return int(self._session.scalar(stmt) or 0)

    def _dialect_insert(self):
        dialect = self._session.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert
        if dialect == "sqlite":
            return sqlite.insert
        raise RuntimeError(f"Upsert is not supported for database dialect {dialect!r}.")
