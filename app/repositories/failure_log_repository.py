"""
app/repositories/failure_log_repository.py

Append-only log of rows that failed resolution or validation, plus the CSV
failure report offered to operators.
"""

from __future__ import annotations

import csv
import io
import uuid
from collections.abc import Sequence
from typing import Any

from sqlalchemy import delete, func, insert, select
from sqlalchemy.orm import Session

from app.domain.imports import InvalidRow
from db.models.import_rows import FailedRow, FailureReason

_DEFAULT_BATCH_SIZE = 1000

REPORT_LEADING_COLUMNS = ("Row Number",)
REPORT_TRAILING_COLUMNS = ("Failure Reason", "Failure Column", "Failure Message")


class FailureLogRepository:
    """
    Repository for failed import rows.

    Entries are never updated. Each staging attempt writes its own set,
    tagged with the session's attempt number.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def record(
        self,
        import_id: uuid.UUID,
        *,
        attempt: int,
        row_number: int,
        raw_fields: dict[str, Any],
        reason: str,
        column: str | None,
        message: str,
    ) -> None:
        if reason not in FailureReason.ALL:
            raise ValueError(f"Unknown failure reason: {reason!r}")
        self._session.add(
            FailedRow(
                import_session_id=import_id,
                attempt=attempt,
                row_number=row_number,
                raw_fields=raw_fields,
                reason=reason,
                column_name=column,
                message=message,
            )
        )

    def record_many(
        self,
        import_id: uuid.UUID,
        *,
        attempt: int,
        rows: Sequence[InvalidRow],
        batch_size: int = _DEFAULT_BATCH_SIZE,
    ) -> int:
        if not rows:
            return 0

        payloads: list[dict[str, Any]] = [
            {
                "import_session_id": import_id,
                "attempt": attempt,
                "row_number": row.row_number,
                "raw_fields": row.raw_fields,
                "reason": row.reason,
                "column_name": row.column,
                "message": row.message,
            }
            for row in rows
        ]

        size = max(1, batch_size)
        for start in range(0, len(payloads), size):
            self._session.execute(insert(FailedRow), payloads[start : start + size])
        return len(payloads)

    def latest_attempt(self, import_id: uuid.UUID) -> int | None:
        stmt = select(func.max(FailedRow.attempt)).where(FailedRow.import_session_id == import_id)
        return self._session.scalar(stmt)

    def list_for_import(
        self,
        import_id: uuid.UUID,
        *,
        attempt: int | None = None,
    ) -> list[FailedRow]:
        """
        Failed rows of one attempt ordered by row number; defaults to the latest attempt.
        """

        if attempt is None:
            attempt = self.latest_attempt(import_id)
            if attempt is None:
                return []

        stmt = (
            select(FailedRow)
            .where(FailedRow.import_session_id == import_id, FailedRow.attempt == attempt)
            .order_by(FailedRow.row_number, FailedRow.id)
        )
        return list(self._session.scalars(stmt).all())

    def breakdown(self, import_id: uuid.UUID, *, attempt: int | None = None) -> dict[str, int]:
        """
        Count of failed rows per failure reason; every reason is present.
        """

        counts = {reason: 0 for reason in FailureReason.ALL}
        if attempt is None:
            attempt = self.latest_attempt(import_id)
            if attempt is None:
                return counts

        stmt = (
            select(FailedRow.reason, func.count())
            .where(FailedRow.import_session_id == import_id, FailedRow.attempt == attempt)
            .group_by(FailedRow.reason)
        )
        for reason, count in self._session.execute(stmt).all():
            counts[reason] = int(count)
        return counts

    def export_csv(
        self,
        import_id: uuid.UUID,
        *,
        source_headers: Sequence[str] | None = None,
    ) -> str | None:
        """
        Render the latest attempt's failed rows as CSV text, or None when there are none.

        Columns: ``Row Number``, the original columns in file order, then
        ``Failure Reason``, ``Failure Column`` and ``Failure Message``.
        """

        rows = self.list_for_import(import_id)
        if not rows:
            return None

        original_columns: list[str] = list(source_headers or [])
        if not original_columns:
            for row in rows:
                for header in row.raw_fields:
                    if header not in original_columns:
                        original_columns.append(header)

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow([*REPORT_LEADING_COLUMNS, *original_columns, *REPORT_TRAILING_COLUMNS])
        for row in rows:
            writer.writerow(
                [
                    row.row_number,
                    *(row.raw_fields.get(header, "") for header in original_columns),
                    row.reason,
                    row.column_name or "",
                    row.message,
                ]
            )
        return buffer.getvalue()

    def purge(self, import_id: uuid.UUID) -> int:
        result = self._session.execute(
            delete(FailedRow)
            .where(FailedRow.import_session_id == import_id)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)
