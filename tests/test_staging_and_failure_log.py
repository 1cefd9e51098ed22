"""
tests/test_staging_and_failure_log.py

Repository tests for the staging store, the failure log and the
compare-and-set status transitions, against in-memory SQLite.
"""

from __future__ import annotations

import csv
import io

import pytest

from app.domain.imports import InvalidRow, ValidRow
from app.repositories.failure_log_repository import FailureLogRepository
from app.repositories.import_event_repository import ImportEventRepository
from app.repositories.staging_repository import StagingRepository
from db.models.import_history import ImportEventLevel
from db.models.import_rows import FailureReason
from db.models.import_session import ImportStatus
from db.repositories.import_session_repository import ImportSessionRepository


@pytest.fixture()
def import_session(db, multi_template_id):
    session = ImportSessionRepository(db).create_session(
        name="test import",
        file_name="test.csv",
        file_size_bytes=10,
        content_hash="a" * 64,
        source_content="State,Year,Category,Measure,Value",
        template_id=multi_template_id,
        uploaded_by=1,
    )
    db.commit()
    return session


def valid_row(row_number: int, refs: dict[str, int], *, year: int = 2023) -> ValidRow:
    return ValidRow(
        row_number=row_number,
        state_id=refs["alabama"],
        category_id=refs["economy"],
        statistic_id=refs["unemployment"],
        year=year,
        value=float(row_number),
        raw_fields={"State": "Alabama"},
    )


def test_stage_lists_rows_in_row_order_and_discards(db, import_session, refs) -> None:
    staging = StagingRepository(db)

    staged = staging.stage(
        import_session.id,
        [valid_row(4, refs), valid_row(2, refs), valid_row(3, refs)],
        batch_size=2,
    )
    db.commit()

    assert staged == 3
    assert staging.count(import_session.id) == 3
    assert [row.row_number for row in staging.list_by_import(import_session.id)] == [2, 3, 4]
    assert [row.row_number for row in staging.list_by_import(import_session.id, limit=1, offset=1)] == [3]

    assert staging.discard(import_session.id) == 3
    db.commit()
    assert staging.count(import_session.id) == 0


def test_failure_log_export_uses_latest_attempt(db, import_session) -> None:
    failure_log = FailureLogRepository(db)
    headers = ["State", "Year", "Value"]
    failure_log.record_many(
        import_session.id,
        attempt=1,
        rows=[
            InvalidRow(
                row_number=2,
                reason=FailureReason.NON_NUMERIC_VALUE,
                message="Value 'N/A' is not a number.",
                raw_fields={"State": "Texas", "Year": "2023", "Value": "N/A"},
                column="Value",
            )
        ],
    )
    failure_log.record(
        import_session.id,
        attempt=2,
        row_number=3,
        raw_fields={"State": "Alabma", "Year": "2023", "Value": "5"},
        reason=FailureReason.UNRESOLVED_REFERENCE,
        column="State",
        message="Unknown state 'Alabma'.",
    )
    db.commit()

    report = failure_log.export_csv(import_session.id, source_headers=headers)

    assert report is not None
    rows = list(csv.reader(io.StringIO(report)))
    assert rows[0] == ["Row Number", "State", "Year", "Value", "Failure Reason", "Failure Column", "Failure Message"]
    assert rows[1] == ["3", "Alabma", "2023", "5", "unresolved_reference", "State", "Unknown state 'Alabma'."]
    assert len(rows) == 2

    breakdown = failure_log.breakdown(import_session.id)
    assert breakdown[FailureReason.UNRESOLVED_REFERENCE] == 1
    assert breakdown[FailureReason.NON_NUMERIC_VALUE] == 0
    assert failure_log.breakdown(import_session.id, attempt=1)[FailureReason.NON_NUMERIC_VALUE] == 1


def test_failure_log_export_is_none_without_failures(db, import_session) -> None:
    assert FailureLogRepository(db).export_csv(import_session.id) is None


def test_failure_log_rejects_unknown_reason(db, import_session) -> None:
    with pytest.raises(ValueError):
        FailureLogRepository(db).record(
            import_session.id,
            attempt=1,
            row_number=2,
            raw_fields={},
            reason="typo",
            column=None,
            message="",
        )


def test_transition_is_compare_and_set(db, import_session) -> None:
    repository = ImportSessionRepository(db)

    assert repository.transition(
        import_session.id,
        from_statuses={ImportStatus.UPLOADED},
        to_status=ImportStatus.STAGING,
    )
    db.commit()

    # A second caller expecting the old status loses the race.
    assert not repository.transition(
        import_session.id,
        from_statuses={ImportStatus.UPLOADED},
        to_status=ImportStatus.DISCARDED,
    )
    db.commit()

    assert repository.reload(import_session.id).status == ImportStatus.STAGING


def test_transition_rejects_unknown_status(db, import_session) -> None:
    with pytest.raises(ValueError):
        ImportSessionRepository(db).transition(
            import_session.id,
            from_statuses={ImportStatus.UPLOADED},
            to_status="finished",
        )


def test_event_log_lists_newest_first_and_filters_by_level(db, import_session) -> None:
    repository = ImportEventRepository(db)
    repository.record(import_session.id, event="uploaded", message="Uploaded.")
    repository.record(
        import_session.id,
        event="staged",
        message="Staged with failures.",
        level=ImportEventLevel.WARNING,
        details={"failed": 1},
    )
    repository.record(import_session.id, event="validated", message="Valid.")
    db.commit()

    events = repository.list_for_import(import_session.id)
    assert [event.event for event in events] == ["validated", "staged", "uploaded"]

    warnings = repository.list_for_import(import_session.id, level=ImportEventLevel.WARNING)
    assert [event.details for event in warnings] == [{"failed": 1}]

    assert len(repository.list_for_import(import_session.id, limit=2)) == 2

    with pytest.raises(ValueError):
        repository.record(import_session.id, event="x", message="", level="debug")
