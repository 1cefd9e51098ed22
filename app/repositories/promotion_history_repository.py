"""
app/repositories/promotion_history_repository.py

Per-key record of what each promotion replaced, used to roll it back.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from typing import Any

from sqlalchemy import delete, insert, select, update
from sqlalchemy.orm import Session

from app.repositories.data_point_repository import DataPointKey, ExistingPoint
from db.models.import_history import PromotionHistoryEntry

_DEFAULT_BATCH_SIZE = 1000


class PromotionHistoryRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def record_many(
        self,
        import_id: uuid.UUID,
        replaced: Mapping[DataPointKey, ExistingPoint | None],
        *,
        batch_size: int = _DEFAULT_BATCH_SIZE,
    ) -> int:
        """
        Store, per written key, the point it replaced (None when it inserted).
        """

        payloads: list[dict[str, Any]] = [
            {
                "import_session_id": import_id,
                "state_id": state_id,
                "statistic_id": statistic_id,
                "year": year,
                "previous_value": previous.value if previous is not None else None,
                "previous_import_session_id": previous.import_id if previous is not None else None,
            }
            for (state_id, statistic_id, year), previous in replaced.items()
        ]
        if not payloads:
            return 0

        size = max(1, batch_size)
        for start in range(0, len(payloads), size):
            self._session.execute(insert(PromotionHistoryEntry), payloads[start : start + size])
        return len(payloads)

    def list_for_import(self, import_id: uuid.UUID) -> list[PromotionHistoryEntry]:
        stmt = (
            select(PromotionHistoryEntry)
            .where(PromotionHistoryEntry.import_session_id == import_id)
            .order_by(PromotionHistoryEntry.id)
            .execution_options(populate_existing=True)
        )
        return list(self._session.scalars(stmt).all())

    def relink(self, entry: PromotionHistoryEntry) -> int:
        """
        Point later promotions that replaced ``entry``'s value at what it replaced.

        Called when ``entry``'s import is rolled back, so rolling back a later
        import never restores a value that is no longer published.
        """

        result = self._session.execute(
            update(PromotionHistoryEntry)
            .where(
                PromotionHistoryEntry.previous_import_session_id == entry.import_session_id,
                PromotionHistoryEntry.state_id == entry.state_id,
                PromotionHistoryEntry.statistic_id == entry.statistic_id,
                PromotionHistoryEntry.year == entry.year,
            )
            .values(
                previous_value=entry.previous_value,
                previous_import_session_id=entry.previous_import_session_id,
            )
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)

    def forget_import(self, import_id: uuid.UUID) -> None:
        """
        Drop an import's own history and unlink it from other imports' history.
        """

        self.purge(import_id)
        self._session.execute(
            update(PromotionHistoryEntry)
            .where(PromotionHistoryEntry.previous_import_session_id == import_id)
            .values(previous_import_session_id=None)
            .execution_options(synchronize_session=False)
        )

    def purge(self, import_id: uuid.UUID) -> int:
        result = self._session.execute(
            delete(PromotionHistoryEntry)
            .where(PromotionHistoryEntry.import_session_id == import_id)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)
