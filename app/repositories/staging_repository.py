"""
app/repositories/staging_repository.py

Staging store for validated rows awaiting promotion.

Rows are keyed by import session id and written in batches. Nothing here
reads or writes production data.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from typing import Any

from sqlalchemy import delete, func, insert, select
from sqlalchemy.orm import Session

from app.domain.imports import ValidRow
from db.models.import_rows import StagedRow

_DEFAULT_BATCH_SIZE = 1000


class StagingRepository:
    """
    Repository for staged import rows.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def stage(
        self,
        import_id: uuid.UUID,
        rows: Sequence[ValidRow],
        *,
        batch_size: int = _DEFAULT_BATCH_SIZE,
    ) -> int:
        """
        Bulk insert validated rows for one import.
        """

        if not rows:
            return 0

        payloads: list[dict[str, Any]] = [
            {
                "import_session_id": import_id,
                "row_number": row.row_number,
                "state_id": row.state_id,
                "category_id": row.category_id,
                "statistic_id": row.statistic_id,
                "year": row.year,
                "value": row.value,
                "is_valid": True,
                "raw_fields": row.raw_fields,
            }
            for row in rows
        ]

        size = max(1, batch_size)
        for start in range(0, len(payloads), size):
            self._session.execute(insert(StagedRow), payloads[start : start + size])
        return len(payloads)

    def list_by_import(
        self,
        import_id: uuid.UUID,
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[StagedRow]:
        stmt = (
            select(StagedRow)
            .where(StagedRow.import_session_id == import_id)
            .order_by(StagedRow.row_number)
        )
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(max(1, limit))
        return list(self._session.scalars(stmt).all())

    def count(self, import_id: uuid.UUID) -> int:
        stmt = select(func.count()).select_from(StagedRow).where(StagedRow.import_session_id == import_id)
        return int(self._session.scalar(stmt) or 0)

    def discard(self, import_id: uuid.UUID) -> int:
        """
        Delete every staged row of the import. Returns the number removed.
        """

        result = self._session.execute(
            delete(StagedRow)
            .where(StagedRow.import_session_id == import_id)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)
