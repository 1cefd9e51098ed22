"""
app/services/promotion_engine.py

Copies an import's staged rows into production data points, and reverts
a promotion from the per-key history it recorded.

The engine only issues writes on the caller's session; the caller owns the
transaction. Either every row lands and the staged rows are cleared, or the
caller rolls back and production is untouched.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.imports import PromotionOutcome, RollbackOutcome
from app.errors import PromotionError
from app.repositories.data_point_repository import DataPointRepository
from app.repositories.promotion_history_repository import PromotionHistoryRepository
from app.repositories.staging_repository import StagingRepository
from app.resolvers.reference_resolver import ReferenceResolver
from db.models.import_rows import StagedRow
from db.models.import_session import ImportSession
from db.models.reference import ReferenceKind

logger = logging.getLogger(__name__)


class PromotionEngine:
    """
    Upserts staged rows keyed on (state, statistic, year).

    Within one import the highest row number wins for a repeated key.
    """

    def __init__(self, db: Session) -> None:
        self._db = db
        self._staging = StagingRepository(db)
        self._data_points = DataPointRepository(db)
        self._history = PromotionHistoryRepository(db)

    def promote(self, import_session: ImportSession) -> PromotionOutcome:
        staged_rows = self._staging.list_by_import(import_session.id)
        if not staged_rows:
            raise PromotionError(f"Import {import_session.id} has no staged rows to publish.")
        resolver = ReferenceResolver.from_session(self._db)

        for row in staged_rows:
            self._check_references(row, resolver)

        # Rows are ordered by row number, so later rows replace earlier ones.
        winners: dict[tuple[int, int, int], StagedRow] = {}
        for row in staged_rows:
            winners[(row.state_id, row.statistic_id, row.year)] = row

        existing = self._data_points.existing_points(winners.keys())
        for row in sorted(winners.values(), key=lambda item: item.row_number):
            try:
                self._write_row(import_session, row)
            except PromotionError:
                raise
            except SQLAlchemyError as exc:
                raise PromotionError(
                    f"Failed to write row {row.row_number}: {exc.__class__.__name__}.",
                    row_number=row.row_number,
                ) from exc

        try:
            self._db.flush()
        except SQLAlchemyError as exc:
            raise PromotionError(f"Failed to flush promoted rows: {exc.__class__.__name__}.") from exc

        self._history.record_many(import_session.id, {key: existing.get(key) for key in winners})
        self._staging.discard(import_session.id)

        updated_rows = len(existing)
        outcome = PromotionOutcome(
            import_id=import_session.id,
            published_rows=len(winners),
            inserted_rows=len(winners) - updated_rows,
            updated_rows=updated_rows,
        )
        logger.info(
            "Promotion writes complete import_id=%s staged=%s published=%s inserted=%s updated=%s",
            import_session.id,
            len(staged_rows),
            outcome.published_rows,
            outcome.inserted_rows,
            outcome.updated_rows,
        )
        return outcome

    def rollback(self, import_session: ImportSession) -> RollbackOutcome:
        """
        Put back what the promotion of ``import_session`` replaced.

        Keys a later import has since overwritten are left alone; that
        import's history is relinked so its own rollback skips this one.
        """

        entries = self._history.list_for_import(import_session.id)
        current = self._data_points.existing_points(
            (entry.state_id, entry.statistic_id, entry.year) for entry in entries
        )

        restored = deleted = skipped = 0
        for entry in entries:
            key = (entry.state_id, entry.statistic_id, entry.year)
            self._history.relink(entry)
            point = current.get(key)
            if point is None or point.import_id != import_session.id:
                skipped += 1
                continue
            if entry.previous_value is None:
                self._data_points.delete(key)
                deleted += 1
            else:
                self._data_points.restore(
                    key,
                    value=entry.previous_value,
                    import_id=entry.previous_import_session_id,
                )
                restored += 1

        self._history.purge(import_session.id)
        logger.info(
            "Rollback writes complete import_id=%s restored=%s deleted=%s skipped=%s",
            import_session.id,
            restored,
            deleted,
            skipped,
        )
        return RollbackOutcome(
            import_id=import_session.id,
            restored_rows=restored,
            deleted_rows=deleted,
            skipped_rows=skipped,
        )

    def _write_row(self, import_session: ImportSession, row: StagedRow) -> None:
        self._data_points.upsert(
            state_id=row.state_id,
            statistic_id=row.statistic_id,
            year=row.year,
            value=row.value,
            import_id=import_session.id,
        )

    @staticmethod
    def _check_references(row: StagedRow, resolver: ReferenceResolver) -> None:
        checks = (
            (ReferenceKind.STATE, row.state_id),
            (ReferenceKind.CATEGORY, row.category_id),
            (ReferenceKind.STATISTIC, row.statistic_id),
        )
        for kind, entity_id in checks:
            if not resolver.is_active(kind, entity_id):
                raise PromotionError(
                    f"Row {row.row_number} references inactive or unknown {kind} #{entity_id}.",
                    row_number=row.row_number,
                )
        if resolver.statistic_category(row.statistic_id) != row.category_id:
            raise PromotionError(
                f"Row {row.row_number}: statistic #{row.statistic_id} does not belong "
                f"to category #{row.category_id}.",
                row_number=row.row_number,
            )
