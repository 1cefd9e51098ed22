"""
Orchestrator service for the CSV import lifecycle.

    uploaded -> staging -> staged -> validating -> validated | validation_failed
    staged | validated -> promoting -> promoted | promotion_failed
    validation_failed | promotion_failed -> retrying -> staging -> staged
    promoted -> rolled_back
    any non-terminal -> discarded

Every call loads its session by id and moves it with a compare-and-set
status update, so two operations on the same import cannot interleave.
"""

from __future__ import annotations

import logging
import math
import uuid
from collections.abc import Callable, Mapping
from functools import lru_cache
from typing import Any, NoReturn

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import ImportSettings, get_import_settings
from app.domain.imports import (
    InvalidRow,
    ParsedRow,
    PromotionOutcome,
    RollbackOutcome,
    StagingStats,
    UploadResult,
    ValidationIssue,
    ValidationReport,
    ValidRow,
)
from app.errors import (
    BadRequest,
    DuplicateImport,
    ImportPipelineError,
    InvalidStateTransition,
    NotFound,
    PromotionError,
    UnknownTemplate,
)
from app.mappers.column_mapper import ColumnMapper, ColumnResolution
from app.parsing.csv_source import CSVRowReader, load_csv_source
from app.repositories.data_point_repository import DataPointRepository
from app.repositories.failure_log_repository import FailureLogRepository
from app.repositories.import_event_repository import ImportEventRepository
from app.repositories.promotion_history_repository import PromotionHistoryRepository
from app.repositories.staging_repository import StagingRepository
from app.resolvers.reference_resolver import ReferenceResolver
from app.schemas.import_metadata import (
    MultiCategoryMetadata,
    SingleCategoryMetadata,
    parse_import_metadata,
)
from app.services.promotion_engine import PromotionEngine
from app.validators.row_validator import RowValidator
from db.base import utcnow
from db.models.data_point import DataPoint
from db.models.import_history import ImportEvent, ImportEventLevel
from db.models.import_rows import FailureReason, StagedRow
from db.models.import_session import ImportSession, ImportStatus
from db.models.import_template import ImportTemplate
from db.models.reference import ReferenceKind
from db.repositories.import_session_repository import ImportSessionRepository
from db.repositories.reference_repository import ReferenceRepository

logger = logging.getLogger(__name__)

ImportMetadataModel = MultiCategoryMetadata | SingleCategoryMetadata

VALIDATE_FROM = frozenset({ImportStatus.STAGED, ImportStatus.VALIDATED})
PROMOTE_FROM = frozenset({ImportStatus.STAGED, ImportStatus.VALIDATED})
ROLLBACK_FROM = frozenset({ImportStatus.PROMOTED})
RETRY_FROM = ImportStatus.FAILED
DISCARD_FROM = ImportStatus.ALL - ImportStatus.TERMINAL
PURGE_FROM = ImportStatus.ALL - ImportStatus.IN_FLIGHT


class ImportOrchestratorService:
    """
    Coordinates parsing, staging, validation, promotion, rollback and retry of CSV imports.

    Methods take the caller's ``db`` session and commit the status changes
    they make; a failed operation rolls back its row writes and persists a
    failure status before re-raising.
    """

    def __init__(
        self,
        *,
        settings: ImportSettings | None = None,
        column_mapper: ColumnMapper | None = None,
        promotion_engine_factory: Callable[[Session], PromotionEngine] | None = None,
    ) -> None:
        self._settings = settings or get_import_settings()
        self._column_mapper = column_mapper or ColumnMapper()
        self._row_validator = RowValidator(
            year_min=self._settings.year_min,
            year_max=self._settings.year_max,
        )
        self._promotion_engine_factory = promotion_engine_factory or PromotionEngine

    # ── Upload ─────────────────────────────────────────────────────────────────

    def upload(
        self,
        *,
        db: Session,
        content: bytes,
        file_name: str | None,
        template_id: int | None,
        user_id: int | None,
        metadata: str | Mapping[str, Any] | None = None,
    ) -> UploadResult:
        """
        Create an import session from uploaded CSV bytes and stage its rows.

        Content identical to an already promoted import is recorded as a
        discarded duplicate and nothing is staged.
        """

        if template_id is None:
            raise BadRequest("template_id is required.")
        self._require_user(user_id)
        if not content:
            raise BadRequest("Uploaded file is empty.")
        if len(content) > self._settings.max_file_bytes:
            raise BadRequest(
                f"Uploaded file exceeds the {self._settings.max_file_bytes} byte limit."
            )

        template = ReferenceRepository(db).get_template(template_id)
        if template is None:
            raise UnknownTemplate(f"Import template not found or inactive: {template_id}")

        parsed_metadata = parse_import_metadata(metadata, default_kind=template.layout)
        if parsed_metadata.kind != template.layout:
            raise BadRequest(
                f"Metadata kind {parsed_metadata.kind!r} does not match template "
                f"{template.name!r} ({template.layout})."
            )
        self._check_metadata_references(db, parsed_metadata)

        source = load_csv_source(content)
        resolution, parsed_rows = self._parse(source.text, layout=template.layout)

        repository = ImportSessionRepository(db)
        earlier = repository.find_by_content_hash(source.content_hash)
        duplicate_of = earlier[0].id if earlier else None
        promoted_original = next(
            (item for item in earlier if item.status == ImportStatus.PROMOTED),
            None,
        )

        try:
            import_session = repository.create_session(
                name=parsed_metadata.name or (file_name or "upload.csv"),
                description=parsed_metadata.description,
                file_name=file_name or "upload.csv",
                file_size_bytes=source.size_bytes,
                content_hash=source.content_hash,
                source_content=source.text,
                template_id=template.id,
                uploaded_by=int(user_id),
                metadata_json=parsed_metadata.model_dump(mode="json"),
                duplicate_of=duplicate_of,
            )
            import_id = import_session.id

            if promoted_original is not None:
                notice = DuplicateImport(
                    original_import_id=promoted_original.id,
                    content_hash=source.content_hash,
                )
                repository.transition(
                    import_id,
                    from_statuses={ImportStatus.UPLOADED},
                    to_status=ImportStatus.DISCARDED,
                    values={
                        "duplicate_of": promoted_original.id,
                        "source_headers": list(resolution.source_headers),
                        "error_message": notice.message,
                    },
                )
                ImportEventRepository(db).record(
                    import_id,
                    event="duplicate_discarded",
                    level=ImportEventLevel.WARNING,
                    message=notice.message,
                    details={"duplicate_of": str(promoted_original.id), "content_hash": source.content_hash},
                )
                db.commit()
                logger.info(
                    "Duplicate upload discarded import_id=%s duplicate_of=%s content_hash=%s",
                    import_id,
                    promoted_original.id,
                    source.content_hash,
                )
                return UploadResult(
                    import_id=import_id,
                    status=ImportStatus.DISCARDED,
                    stats=StagingStats(total_rows=0, valid_rows=0, failed_rows=0),
                    duplicate_of=promoted_original.id,
                    duplicate=notice,
                )

            repository.transition(
                import_id,
                from_statuses={ImportStatus.UPLOADED},
                to_status=ImportStatus.STAGING,
                values={"source_headers": list(resolution.source_headers)},
            )
            ImportEventRepository(db).record(
                import_id,
                event="uploaded",
                message=f"Uploaded {file_name or 'upload.csv'} with {len(parsed_rows)} data row(s).",
                details={
                    "uploaded_by": int(user_id),
                    "template_id": template.id,
                    "duplicate_of": str(duplicate_of) if duplicate_of else None,
                },
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

        logger.info(
            "Import uploaded import_id=%s template_id=%s file_name=%s rows=%s duplicate_of=%s",
            import_id,
            template.id,
            file_name,
            len(parsed_rows),
            duplicate_of,
        )
        stats = self._stage(
            db=db,
            import_id=import_id,
            attempt=1,
            parsed_rows=parsed_rows,
            metadata=parsed_metadata,
        )
        return UploadResult(
            import_id=import_id,
            status=ImportStatus.STAGED,
            stats=stats,
            duplicate_of=duplicate_of,
        )

    # ── Validation ─────────────────────────────────────────────────────────────

    def validate_import(self, *, db: Session, import_id: uuid.UUID) -> ValidationReport:
        """
        Re-check staged rows against current reference data and bounds.

        Staged rows are not modified. Ends in ``validated`` or
        ``validation_failed``.
        """

        repository = ImportSessionRepository(db)
        self._get_or_raise(repository, import_id)
        if not repository.transition(
            import_id,
            from_statuses=VALIDATE_FROM,
            to_status=ImportStatus.VALIDATING,
        ):
            db.rollback()
            self._reject(repository, import_id, operation="validate", allowed=VALIDATE_FROM)
        db.commit()

        try:
            import_session = self._get_or_raise(repository, import_id, refresh=True)
            report = self._build_report(db, import_session)
            to_status = ImportStatus.VALIDATED if report.is_valid else ImportStatus.VALIDATION_FAILED
            error_message = None
            if not report.is_valid:
                error_message = (
                    "No rows are staged for promotion."
                    if report.staged_rows == 0
                    else f"{len(report.errors)} staged row(s) no longer pass validation."
                )
            repository.transition(
                import_id,
                from_statuses={ImportStatus.VALIDATING},
                to_status=to_status,
                values={
                    "validation_summary": {
                        **report.stats_dict(),
                        "is_valid": report.is_valid,
                        "warnings": report.warnings,
                        "errors": [issue.to_dict() for issue in report.errors],
                    },
                    "validated_at": utcnow(),
                    "error_message": error_message,
                },
            )
            ImportEventRepository(db).record(
                import_id,
                event=to_status,
                level=ImportEventLevel.INFO if report.is_valid else ImportEventLevel.WARNING,
                message=error_message or f"{report.staged_rows} staged row(s) passed validation.",
                details={**report.stats_dict(), "errors": len(report.errors)},
            )
            db.commit()
        except Exception as exc:
            db.rollback()
            logger.exception("Validation failed import_id=%s", import_id)
            self._mark_failed(
                db,
                repository,
                import_id,
                from_statuses={ImportStatus.VALIDATING},
                to_status=ImportStatus.VALIDATION_FAILED,
                exc=exc,
            )
            raise

        logger.info(
            "Import validated import_id=%s is_valid=%s staged=%s errors=%s warnings=%s",
            import_id,
            report.is_valid,
            report.staged_rows,
            len(report.errors),
            len(report.warnings),
        )
        return report

    # ── Promotion ──────────────────────────────────────────────────────────────

    def promote_to_production(
        self,
        *,
        db: Session,
        import_id: uuid.UUID,
        user_id: int | None,
    ) -> PromotionOutcome:
        """
        Copy staged rows into production in a single transaction.

        On any failure no production rows from this import remain and the
        session is left in ``promotion_failed``.
        """

        self._require_user(user_id)
        repository = ImportSessionRepository(db)
        self._get_or_raise(repository, import_id)
        if not repository.transition(
            import_id,
            from_statuses=PROMOTE_FROM,
            to_status=ImportStatus.PROMOTING,
            values={"promoted_by": int(user_id), "error_message": None},
        ):
            db.rollback()
            self._reject(repository, import_id, operation="promote", allowed=PROMOTE_FROM)
        db.commit()
        logger.info("Promotion started import_id=%s user_id=%s", import_id, user_id)

        try:
            import_session = self._get_or_raise(repository, import_id, refresh=True)
            outcome = self._promotion_engine_factory(db).promote(import_session)
            if not repository.transition(
                import_id,
                from_statuses={ImportStatus.PROMOTING},
                to_status=ImportStatus.PROMOTED,
                values={
                    "published_rows": outcome.published_rows,
                    "promoted_at": utcnow(),
                },
            ):
                raise PromotionError(f"Import {import_id} left the promoting state during promotion.")
            ImportEventRepository(db).record(
                import_id,
                event=ImportStatus.PROMOTED,
                message=f"Published {outcome.published_rows} row(s) to production.",
                details={
                    "promoted_by": int(user_id),
                    "published_rows": outcome.published_rows,
                    "inserted_rows": outcome.inserted_rows,
                    "updated_rows": outcome.updated_rows,
                },
            )
            db.commit()
        except Exception as exc:
            db.rollback()
            logger.exception("Promotion failed import_id=%s", import_id)
            self._mark_failed(
                db,
                repository,
                import_id,
                from_statuses={ImportStatus.PROMOTING},
                to_status=ImportStatus.PROMOTION_FAILED,
                exc=exc,
            )
            if isinstance(exc, PromotionError):
                raise
            raise PromotionError(f"Promotion failed: {exc}") from exc

        logger.info(
            "Import promoted import_id=%s published_rows=%s",
            import_id,
            outcome.published_rows,
        )
        return outcome

    def rollback_promotion(
        self,
        *,
        db: Session,
        import_id: uuid.UUID,
        user_id: int | None,
    ) -> RollbackOutcome:
        """
        Revert a promoted import's production writes and mark it ``rolled_back``.

        Inserted data points are deleted and overwritten ones get their
        previous value back, in one transaction with the status change.
        """

        self._require_user(user_id)
        repository = ImportSessionRepository(db)
        import_session = self._get_or_raise(repository, import_id)
        if import_session.status not in ROLLBACK_FROM:
            self._reject(repository, import_id, operation="roll back", allowed=ROLLBACK_FROM)

        try:
            outcome = self._promotion_engine_factory(db).rollback(import_session)
            rolled_back_at = utcnow()
            message = f"Rolled back by user {int(user_id)} on {rolled_back_at.isoformat()}"
            moved = repository.transition(
                import_id,
                from_statuses=ROLLBACK_FROM,
                to_status=ImportStatus.ROLLED_BACK,
                values={
                    "rolled_back_by": int(user_id),
                    "rolled_back_at": rolled_back_at,
                    "error_message": message,
                },
            )
            if moved:
                ImportEventRepository(db).record(
                    import_id,
                    event=ImportStatus.ROLLED_BACK,
                    level=ImportEventLevel.WARNING,
                    message=message,
                    details={
                        "restored_rows": outcome.restored_rows,
                        "deleted_rows": outcome.deleted_rows,
                        "skipped_rows": outcome.skipped_rows,
                    },
                )
                db.commit()
        except Exception:
            db.rollback()
            logger.exception("Rollback failed import_id=%s", import_id)
            raise
        if not moved:
            db.rollback()
            self._reject(repository, import_id, operation="roll back", allowed=ROLLBACK_FROM)

        logger.info(
            "Import rolled back import_id=%s user_id=%s restored=%s deleted=%s skipped=%s",
            import_id,
            user_id,
            outcome.restored_rows,
            outcome.deleted_rows,
            outcome.skipped_rows,
        )
        return outcome

    # ── Retry ──────────────────────────────────────────────────────────────────

    def retry_import(
        self,
        *,
        db: Session,
        import_id: uuid.UUID,
        user_id: int | None,
    ) -> UploadResult:
        """
        Clear staged rows and re-stage the stored file content under a new attempt.

        The content hash is unchanged. Returns the same import id.
        """

        self._require_user(user_id)
        repository = ImportSessionRepository(db)
        self._get_or_raise(repository, import_id)
        if not repository.transition(
            import_id,
            from_statuses=RETRY_FROM,
            to_status=ImportStatus.RETRYING,
            values={
                "attempt": ImportSession.attempt + 1,
                "error_message": None,
                "validation_summary": None,
                "validated_at": None,
                "published_rows": None,
            },
        ):
            db.rollback()
            self._reject(repository, import_id, operation="retry", allowed=RETRY_FROM)
        StagingRepository(db).discard(import_id)
        db.commit()

        import_session = self._get_or_raise(repository, import_id, refresh=True)
        attempt = import_session.attempt
        logger.info(
            "Import retry started import_id=%s attempt=%s user_id=%s",
            import_id,
            attempt,
            user_id,
        )

        try:
            template = ReferenceRepository(db).get_template(import_session.template_id, active_only=False)
            if template is None:
                raise UnknownTemplate(f"Import template not found: {import_session.template_id}")
            metadata = parse_import_metadata(import_session.metadata_json, default_kind=template.layout)
            resolution, parsed_rows = self._parse(import_session.source_content, layout=template.layout)
            repository.transition(
                import_id,
                from_statuses={ImportStatus.RETRYING},
                to_status=ImportStatus.STAGING,
                values={"source_headers": list(resolution.source_headers)},
            )
            ImportEventRepository(db).record(
                import_id,
                event=ImportStatus.RETRYING,
                message=f"Retry attempt {attempt} started by user {int(user_id)}.",
                details={"attempt": attempt, "rows": len(parsed_rows)},
            )
            db.commit()
        except Exception as exc:
            db.rollback()
            self._mark_failed(
                db,
                repository,
                import_id,
                from_statuses={ImportStatus.RETRYING},
                to_status=ImportStatus.VALIDATION_FAILED,
                exc=exc,
            )
            raise

        stats = self._stage(
            db=db,
            import_id=import_id,
            attempt=attempt,
            parsed_rows=parsed_rows,
            metadata=metadata,
        )
        return UploadResult(
            import_id=import_id,
            status=ImportStatus.STAGED,
            stats=stats,
            duplicate_of=import_session.duplicate_of,
        )

    # ── Discard / purge ────────────────────────────────────────────────────────

    def discard_import(self, *, db: Session, import_id: uuid.UUID) -> ImportSession:
        repository = ImportSessionRepository(db)
        self._get_or_raise(repository, import_id)
        if not repository.transition(
            import_id,
            from_statuses=DISCARD_FROM,
            to_status=ImportStatus.DISCARDED,
        ):
            db.rollback()
            self._reject(repository, import_id, operation="discard", allowed=DISCARD_FROM)
        removed = StagingRepository(db).discard(import_id)
        ImportEventRepository(db).record(
            import_id,
            event=ImportStatus.DISCARDED,
            message=f"Discarded; {removed} staged row(s) removed.",
            details={"staged_rows_removed": removed},
        )
        db.commit()
        logger.info("Import discarded import_id=%s staged_rows_removed=%s", import_id, removed)
        return self._get_or_raise(repository, import_id, refresh=True)

    def purge_import(self, *, db: Session, import_id: uuid.UUID) -> None:
        """
        Delete the session with its staged rows, failed rows, events and history.

        Published data points stay; they only lose the link to this import,
        and a later promotion that replaced its values can no longer name it.
        """

        repository = ImportSessionRepository(db)
        import_session = self._get_or_raise(repository, import_id)
        if import_session.status not in PURGE_FROM:
            self._reject(repository, import_id, operation="delete", allowed=PURGE_FROM)

        try:
            StagingRepository(db).discard(import_id)
            FailureLogRepository(db).purge(import_id)
            ImportEventRepository(db).purge(import_id)
            PromotionHistoryRepository(db).forget_import(import_id)
            db.execute(
                update(DataPoint)
                .where(DataPoint.import_session_id == import_id)
                .values(import_session_id=None)
                .execution_options(synchronize_session=False)
            )
            db.execute(
                update(ImportSession)
                .where(ImportSession.duplicate_of == import_id)
                .values(duplicate_of=None)
                .execution_options(synchronize_session=False)
            )
            db.expunge(import_session)
            repository.delete_session(import_id)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        logger.info("Import deleted import_id=%s", import_id)

    # ── Reads ──────────────────────────────────────────────────────────────────

    def get_import(self, *, db: Session, import_id: uuid.UUID) -> ImportSession:
        return self._get_or_raise(ImportSessionRepository(db), import_id)

    def list_events(
        self,
        *,
        db: Session,
        import_id: uuid.UUID,
        level: str | None = None,
        limit: int | None = None,
    ) -> list[ImportEvent]:
        self._get_or_raise(ImportSessionRepository(db), import_id)
        if level is not None and level not in ImportEventLevel.ALL:
            raise BadRequest(f"Unknown event level: {level!r}")
        return ImportEventRepository(db).list_for_import(import_id, level=level, limit=limit)

    def failure_breakdown(self, *, db: Session, import_id: uuid.UUID) -> dict[str, int]:
        self._get_or_raise(ImportSessionRepository(db), import_id)
        return FailureLogRepository(db).breakdown(import_id)

    def list_imports(
        self,
        *,
        db: Session,
        limit: int = 100,
        status: str | None = None,
    ) -> list[ImportSession]:
        if status is not None and status not in ImportStatus.ALL:
            raise BadRequest(f"Unknown import status: {status!r}")
        return ImportSessionRepository(db).list_sessions(limit=limit, status=status)

    def list_staged_rows(
        self,
        *,
        db: Session,
        import_id: uuid.UUID,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[int, list[StagedRow]]:
        self._get_or_raise(ImportSessionRepository(db), import_id)
        staging = StagingRepository(db)
        return staging.count(import_id), staging.list_by_import(import_id, limit=limit, offset=offset)

    def export_failed_rows(self, *, db: Session, import_id: uuid.UUID) -> str | None:
        import_session = self._get_or_raise(ImportSessionRepository(db), import_id)
        return FailureLogRepository(db).export_csv(
            import_id,
            source_headers=import_session.source_headers,
        )

    def list_templates(self, *, db: Session) -> list[ImportTemplate]:
        return ReferenceRepository(db).list_templates()

    # ── Startup recovery ───────────────────────────────────────────────────────

    def recover_interrupted_imports(self, *, db: Session) -> int:
        """
        Move sessions stuck in a transient status to a retryable failure status.
        """

        repository = ImportSessionRepository(db)
        recovered = 0
        for import_session in repository.list_in_flight():
            previous_status = import_session.status
            to_status = (
                ImportStatus.PROMOTION_FAILED
                if previous_status == ImportStatus.PROMOTING
                else ImportStatus.VALIDATION_FAILED
            )
            if repository.transition(
                import_session.id,
                from_statuses={previous_status},
                to_status=to_status,
                values={"error_message": f"Interrupted while {previous_status}; retry the import."},
            ):
                recovered += 1
                ImportEventRepository(db).record(
                    import_session.id,
                    event="recovered",
                    level=ImportEventLevel.WARNING,
                    message=f"Interrupted while {previous_status}; moved to {to_status}.",
                    details={"from": previous_status, "to": to_status},
                )
                logger.warning(
                    "Recovered interrupted import import_id=%s from=%s to=%s",
                    import_session.id,
                    previous_status,
                    to_status,
                )
        db.commit()
        return recovered

    # ── Internals ──────────────────────────────────────────────────────────────

    def _parse(self, text: str, *, layout: str) -> tuple[ColumnResolution, list[ParsedRow]]:
        reader = CSVRowReader(text)
        resolution = self._column_mapper.resolve_columns(reader.headers, layout=layout)
        parsed_rows = [
            self._column_mapper.map_row(raw_row=raw_row, row_number=row_number, resolution=resolution)
            for row_number, raw_row in reader
        ]
        return resolution, parsed_rows

    def _stage(
        self,
        *,
        db: Session,
        import_id: uuid.UUID,
        attempt: int,
        parsed_rows: list[ParsedRow],
        metadata: ImportMetadataModel,
    ) -> StagingStats:
        repository = ImportSessionRepository(db)
        try:
            resolver = ReferenceResolver.from_session(db)
            valid_rows: list[ValidRow] = []
            invalid_rows: list[InvalidRow] = []
            for row in parsed_rows:
                verdict = self._row_validator.validate(row, resolver, metadata)
                if isinstance(verdict, ValidRow):
                    valid_rows.append(verdict)
                else:
                    invalid_rows.append(verdict)
                    if self._settings.log_row_failures:
                        logger.warning(
                            "Row rejected import_id=%s row=%s reason=%s column=%s message=%s",
                            import_id,
                            verdict.row_number,
                            verdict.reason,
                            verdict.column,
                            verdict.message,
                        )

            batch_size = self._settings.staging_batch_size
            StagingRepository(db).stage(import_id, valid_rows, batch_size=batch_size)
            FailureLogRepository(db).record_many(
                import_id,
                attempt=attempt,
                rows=invalid_rows,
                batch_size=batch_size,
            )

            stats = StagingStats(
                total_rows=len(parsed_rows),
                valid_rows=len(valid_rows),
                failed_rows=len(invalid_rows),
            )
            if not repository.transition(
                import_id,
                from_statuses={ImportStatus.STAGING},
                to_status=ImportStatus.STAGED,
                values=stats.to_dict(),
            ):
                raise ImportPipelineError(f"Import {import_id} left the staging state while staging.")
            ImportEventRepository(db).record(
                import_id,
                event=ImportStatus.STAGED,
                level=ImportEventLevel.WARNING if invalid_rows else ImportEventLevel.INFO,
                message=(
                    f"Attempt {attempt}: staged {stats.valid_rows} of {stats.total_rows} row(s); "
                    f"{stats.failed_rows} failed."
                ),
                details={**stats.to_dict(), "attempt": attempt},
            )
            db.commit()
        except Exception as exc:
            db.rollback()
            logger.exception("Staging failed import_id=%s", import_id)
            self._mark_failed(
                db,
                repository,
                import_id,
                from_statuses={ImportStatus.STAGING},
                to_status=ImportStatus.VALIDATION_FAILED,
                exc=exc,
            )
            raise

        logger.info(
            "Import staged import_id=%s attempt=%s total=%s valid=%s failed=%s",
            import_id,
            attempt,
            stats.total_rows,
            stats.valid_rows,
            stats.failed_rows,
        )
        return stats

    def _build_report(self, db: Session, import_session: ImportSession) -> ValidationReport:
        staged_rows = StagingRepository(db).list_by_import(import_session.id)
        resolver = ReferenceResolver.from_session(db)
        breakdown = FailureLogRepository(db).breakdown(import_session.id, attempt=import_session.attempt)

        errors: list[ValidationIssue] = []
        for row in staged_rows:
            issue = self._revalidate(row, resolver)
            if issue is not None:
                errors.append(issue)
                breakdown[issue.reason] = breakdown.get(issue.reason, 0) + 1

        warnings = self._collect_warnings(db, staged_rows)
        failed_staged = len({issue.row_number for issue in errors})
        return ValidationReport(
            import_id=import_session.id,
            is_valid=bool(staged_rows) and not errors,
            total_rows=import_session.total_rows,
            staged_rows=len(staged_rows),
            valid_rows=len(staged_rows) - failed_staged,
            failed_rows=import_session.failed_rows + failed_staged,
            failure_breakdown=breakdown,
            warnings=warnings,
            errors=errors,
        )

    def _revalidate(self, row: StagedRow, resolver: ReferenceResolver) -> ValidationIssue | None:
        for kind, entity_id, column in (
            (ReferenceKind.STATE, row.state_id, "State"),
            (ReferenceKind.CATEGORY, row.category_id, "Category"),
            (ReferenceKind.STATISTIC, row.statistic_id, "Measure"),
        ):
            if not resolver.is_active(kind, entity_id):
                return ValidationIssue(
                    row_number=row.row_number,
                    reason=FailureReason.UNRESOLVED_REFERENCE,
                    message=f"{kind.capitalize()} #{entity_id} is no longer active.",
                    column=column,
                )
        if resolver.statistic_category(row.statistic_id) != row.category_id:
            return ValidationIssue(
                row_number=row.row_number,
                reason=FailureReason.UNRESOLVED_REFERENCE,
                message=f"Statistic #{row.statistic_id} no longer belongs to category #{row.category_id}.",
                column="Measure",
            )
        if not self._settings.year_min <= row.year <= self._settings.year_max:
            return ValidationIssue(
                row_number=row.row_number,
                reason=FailureReason.YEAR_OUT_OF_RANGE,
                message=(
                    f"Year {row.year} is outside the allowed range "
                    f"{self._settings.year_min}-{self._settings.year_max}."
                ),
                column="Year",
            )
        if row.value is None or not math.isfinite(row.value):
            return ValidationIssue(
                row_number=row.row_number,
                reason=FailureReason.NON_NUMERIC_VALUE,
                message="Value is not a finite number.",
                column="Value",
            )
        return None

    def _collect_warnings(self, db: Session, staged_rows: list[StagedRow]) -> list[str]:
        warnings: list[str] = []
        first_row_for_key: dict[tuple[int, int, int], int] = {}
        for row in staged_rows:
            key = (row.state_id, row.statistic_id, row.year)
            if key in first_row_for_key:
                warnings.append(
                    f"Row {row.row_number}: repeats the state/statistic/year of row "
                    f"{first_row_for_key[key]}; the later row wins."
                )
            else:
                first_row_for_key[key] = row.row_number

        existing = DataPointRepository(db).existing_values(first_row_for_key.keys())
        ratio = self._settings.jump_ratio_warning
        for row in staged_rows:
            value = row.value
            current = existing.get((row.state_id, row.statistic_id, row.year))
            if current is not None:
                warnings.append(
                    f"Row {row.row_number}: replaces existing production value {current:g} with {value:g}."
                )
                if current != 0 and value != 0:
                    change = abs(value / current)
                    if change >= ratio or change <= 1 / ratio:
                        warnings.append(
                            f"Row {row.row_number}: value {value:g} differs from production "
                            f"value {current:g} by a factor of {ratio:g} or more."
                        )
            if value < 0:
                warnings.append(f"Row {row.row_number}: value {value:g} is negative.")
            if abs(value) >= self._settings.large_value_threshold:
                warnings.append(f"Row {row.row_number}: value {value:g} is unusually large.")

        limit = self._settings.max_reported_warnings
        if len(warnings) > limit:
            hidden = len(warnings) - limit
            warnings = warnings[:limit] + [f"{hidden} more warning(s) not shown."]
        return warnings

    def _check_metadata_references(self, db: Session, metadata: ImportMetadataModel) -> None:
        if not isinstance(metadata, SingleCategoryMetadata):
            return
        resolver = ReferenceResolver.from_session(db)
        if not resolver.is_active(ReferenceKind.CATEGORY, metadata.category_id):
            raise BadRequest(f"Category {metadata.category_id} does not exist or is inactive.")
        if resolver.statistic_category(metadata.statistic_id) != metadata.category_id:
            raise BadRequest(
                f"Statistic {metadata.statistic_id} is not an active statistic "
                f"of category {metadata.category_id}."
            )

    @staticmethod
    def _require_user(user_id: int | None) -> None:
        if user_id is None or isinstance(user_id, bool) or int(user_id) <= 0:
            raise BadRequest("user_id is required.")

    @staticmethod
    def _get_or_raise(
        repository: ImportSessionRepository,
        import_id: uuid.UUID,
        *,
        refresh: bool = False,
    ) -> ImportSession:
        import_session = repository.reload(import_id) if refresh else repository.get_session(import_id)
        if import_session is None:
            raise NotFound(import_id)
        return import_session

    @staticmethod
    def _reject(
        repository: ImportSessionRepository,
        import_id: uuid.UUID,
        *,
        operation: str,
        allowed: frozenset[str],
    ) -> NoReturn:
        import_session = repository.reload(import_id)
        if import_session is None:
            raise NotFound(import_id)
        raise InvalidStateTransition(
            import_id=import_id,
            operation=operation,
            current_status=import_session.status,
            allowed_statuses=allowed,
        )

    @staticmethod
    def _mark_failed(
        db: Session,
        repository: ImportSessionRepository,
        import_id: uuid.UUID,
        *,
        from_statuses: set[str],
        to_status: str,
        exc: Exception,
    ) -> None:
        message = exc.message if isinstance(exc, ImportPipelineError) else str(exc) or exc.__class__.__name__
        details: dict[str, Any] = {"error": exc.__class__.__name__}
        if isinstance(exc, PromotionError) and exc.row_number is not None:
            details["row_number"] = exc.row_number
        try:
            if repository.transition(
                import_id,
                from_statuses=from_statuses,
                to_status=to_status,
                values={"error_message": message[:2000]},
            ):
                ImportEventRepository(db).record(
                    import_id,
                    event=to_status,
                    level=ImportEventLevel.ERROR,
                    message=message,
                    details=details,
                )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Could not record failure status import_id=%s status=%s", import_id, to_status)


@lru_cache(maxsize=1)
def get_import_orchestrator_service() -> ImportOrchestratorService:
    """
    Return a cached orchestrator service instance.
    """

    return ImportOrchestratorService()
