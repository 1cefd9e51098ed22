"""
app/repositories/import_event_repository.py

Persistent per-import event log read back by operators.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from db.models.import_history import ImportEvent, ImportEventLevel


class ImportEventRepository:
    """
    Appends lifecycle events on the caller's session; the caller commits.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def record(
        self,
        import_id: uuid.UUID,
        *,
        event: str,
        message: str,
        level: str = ImportEventLevel.INFO,
        details: dict[str, Any] | None = None,
    ) -> ImportEvent:
        if level not in ImportEventLevel.ALL:
            raise ValueError(f"Unknown event level: {level!r}")
        entry = ImportEvent(
            import_session_id=import_id,
            level=level,
            event=event,
            message=message[:2000],
            details=details,
        )
        self._session.add(entry)
        return entry

    def list_for_import(
        self,
        import_id: uuid.UUID,
        *,
        level: str | None = None,
        limit: int | None = None,
    ) -> list[ImportEvent]:
        """
        Events newest first, optionally filtered by level.
        """

        stmt = select(ImportEvent).where(ImportEvent.import_session_id == import_id)
        if level is not None:
            stmt = stmt.where(ImportEvent.level == level)
        stmt = stmt.order_by(ImportEvent.id.desc())
        if limit is not None:
            stmt = stmt.limit(max(1, limit))
        return list(self._session.scalars(stmt).all())

    def purge(self, import_id: uuid.UUID) -> int:
        result = self._session.execute(
            delete(ImportEvent)
            .where(ImportEvent.import_session_id == import_id)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)
