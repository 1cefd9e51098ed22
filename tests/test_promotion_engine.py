from __future__ import annotations

import pytest

from app.domain.imports import ValidRow
from app.errors import PromotionError
from app.repositories.data_point_repository import DataPointRepository
from app.repositories.promotion_history_repository import PromotionHistoryRepository
from app.repositories.staging_repository import StagingRepository
from app.services.promotion_engine import PromotionEngine
from db.models.reference import Category
from db.repositories.import_session_repository import ImportSessionRepository


@pytest.fixture()
def import_session(db, multi_template_id):
    session = ImportSessionRepository(db).create_session(
        name="engine import",
        file_name="engine.csv",
        file_size_bytes=10,
        content_hash="b" * 64,
        source_content="State,Year,Category,Measure,Value",
        template_id=multi_template_id,
        uploaded_by=1,
    )
    db.commit()
    return session


def stage(db, import_session, refs, *rows: tuple[int, str, int, float]) -> None:
    StagingRepository(db).stage(
        import_session.id,
        [
            ValidRow(
                row_number=row_number,
                state_id=refs[state],
                category_id=refs["economy"],
                statistic_id=refs["unemployment"],
                year=year,
                value=value,
                raw_fields={},
            )
            for row_number, state, year, value in rows
        ],
        batch_size=100,
    )
    db.commit()


def test_counts_inserted_and_updated_rows(db, import_session, refs) -> None:
    data_points = DataPointRepository(db)
    data_points.upsert(
        state_id=refs["texas"],
        statistic_id=refs["unemployment"],
        year=2022,
        value=4.0,
        import_id=import_session.id,
    )
    db.commit()
    stage(
        db,
        import_session,
        refs,
        (2, "alabama", 2022, 3.0),
        (3, "texas", 2022, 4.5),
        (4, "alabama", 2022, 3.3),
    )

    outcome = PromotionEngine(db).promote(import_session)
    db.commit()

    assert (outcome.published_rows, outcome.inserted_rows, outcome.updated_rows) == (2, 1, 1)
    assert StagingRepository(db).count(import_session.id) == 0
    values = data_points.existing_values(
        [
            (refs["alabama"], refs["unemployment"], 2022),
            (refs["texas"], refs["unemployment"], 2022),
        ]
    )
    assert values[(refs["alabama"], refs["unemployment"], 2022)] == pytest.approx(3.3)
    assert values[(refs["texas"], refs["unemployment"], 2022)] == pytest.approx(4.5)


def test_caller_rollback_undoes_everything(db, import_session, refs) -> None:
    stage(db, import_session, refs, (2, "alabama", 2020, 1.0), (3, "texas", 2020, 2.0))

    PromotionEngine(db).promote(import_session)
    db.rollback()

    assert DataPointRepository(db).count_for_import(import_session.id) == 0
    assert StagingRepository(db).count(import_session.id) == 2


def test_inactive_category_stops_promotion_before_any_write(db, import_session, refs) -> None:
    stage(db, import_session, refs, (2, "alabama", 2020, 1.0))
    db.get(Category, refs["economy"]).is_active = False
    db.commit()

    with pytest.raises(PromotionError) as exc_info:
        PromotionEngine(db).promote(import_session)

    assert exc_info.value.row_number == 2
    assert DataPointRepository(db).count_for_import(import_session.id) == 0


def test_nothing_staged_is_rejected_before_any_write(db, import_session) -> None:
    with pytest.raises(PromotionError, match="no staged rows"):
        PromotionEngine(db).promote(import_session)

    assert DataPointRepository(db).count_for_import(import_session.id) == 0


def test_history_records_replaced_values_and_rollback_restores_them(db, import_session, refs, multi_template_id) -> None:
    earlier = ImportSessionRepository(db).create_session(
        name="earlier import",
        file_name="earlier.csv",
        file_size_bytes=10,
        content_hash="c" * 64,
        source_content="State,Year,Category,Measure,Value",
        template_id=multi_template_id,
        uploaded_by=1,
    )
    data_points = DataPointRepository(db)
    data_points.upsert(
        state_id=refs["texas"],
        statistic_id=refs["unemployment"],
        year=2021,
        value=6.0,
        import_id=earlier.id,
    )
    db.commit()
    stage(db, import_session, refs, (2, "alabama", 2021, 1.0), (3, "texas", 2021, 7.0))
    engine = PromotionEngine(db)
    engine.promote(import_session)
    db.commit()

    history = {
        entry.state_id: (entry.previous_value, entry.previous_import_session_id)
        for entry in PromotionHistoryRepository(db).list_for_import(import_session.id)
    }
    assert history == {refs["alabama"]: (None, None), refs["texas"]: (6.0, earlier.id)}

    outcome = engine.rollback(import_session)
    db.commit()

    assert (outcome.restored_rows, outcome.deleted_rows, outcome.skipped_rows) == (1, 1, 0)
    texas = data_points.get(state_id=refs["texas"], statistic_id=refs["unemployment"], year=2021)
    assert (texas.value, texas.import_session_id) == (6.0, earlier.id)
    assert data_points.get(state_id=refs["alabama"], statistic_id=refs["unemployment"], year=2021) is None
    assert PromotionHistoryRepository(db).list_for_import(import_session.id) == []
