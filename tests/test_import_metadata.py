from __future__ import annotations

import json

import pytest

from app.errors import BadRequest
from app.schemas.import_metadata import (
    MultiCategoryMetadata,
    SingleCategoryMetadata,
    parse_import_metadata,
)
from db.models.import_template import ImportLayout


def test_parses_single_category_json_with_camel_case_ids() -> None:
    metadata = parse_import_metadata(
        json.dumps({"kind": "single-category", "categoryId": 3, "statisticId": 12, "name": " Q1 "})
    )

    assert isinstance(metadata, SingleCategoryMetadata)
    assert (metadata.category_id, metadata.statistic_id) == (3, 12)
    assert metadata.name == "Q1"


def test_missing_kind_falls_back_to_default() -> None:
    metadata = parse_import_metadata(None, default_kind=ImportLayout.MULTI_CATEGORY)

    assert isinstance(metadata, MultiCategoryMetadata)
    assert metadata.kind == "multi-category"


def test_single_category_requires_ids() -> None:
    with pytest.raises(BadRequest) as exc_info:
        parse_import_metadata({"kind": "single-category", "category_id": 3})

    assert exc_info.value.errors
    assert any(error.code == "missing" for error in exc_info.value.errors)


@pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"kind": "spreadsheet"}'])
def test_invalid_metadata_is_bad_request(raw: str) -> None:
    with pytest.raises(BadRequest):
        parse_import_metadata(raw)


def test_round_trips_through_model_dump() -> None:
    metadata = SingleCategoryMetadata(category_id=1, statistic_id=2)

    restored = parse_import_metadata(metadata.model_dump(mode="json"))

    assert restored == metadata
