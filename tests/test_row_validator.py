"""
tests/test_row_validator.py

Pure unit tests for RowValidator: no database, a hand-built resolver.
"""

from __future__ import annotations

import pytest

from app.domain.imports import InvalidRow, ParsedRow, ValidRow
from app.resolvers.reference_resolver import ReferenceEntry, ReferenceResolver
from app.schemas.import_metadata import MultiCategoryMetadata, SingleCategoryMetadata
from app.validators.row_validator import RowValidator
from db.models.import_rows import FailureReason


@pytest.fixture()
def resolver() -> ReferenceResolver:
    return ReferenceResolver(
        states=[ReferenceEntry(id=1, name="Alabama", abbreviation="AL")],
        categories=[ReferenceEntry(id=10, name="Economy"), ReferenceEntry(id=11, name="Health")],
        statistics=[
            ReferenceEntry(id=100, name="Unemployment Rate", category_id=10),
            ReferenceEntry(id=101, name="Obesity Rate", category_id=11),
        ],
    )


@pytest.fixture()
def validator() -> RowValidator:
    return RowValidator(year_min=1900, year_max=2030)


def multi_row(
    *,
    state: str | None = "Alabama",
    year: str | None = "2023",
    category: str | None = "Economy",
    measure: str | None = "Unemployment Rate",
    value: str | None = "3.4",
    row_number: int = 2,
) -> ParsedRow:
    raw = {"State": state or "", "Year": year or "", "Category": category or "", "Measure": measure or "", "Value": value or ""}
    return ParsedRow(
        row_number=row_number,
        raw_fields=raw,
        state=state,
        year=year,
        value=value,
        category=category,
        measure=measure,
    )


MULTI = MultiCategoryMetadata()


def test_valid_multi_category_row(validator, resolver) -> None:
    verdict = validator.validate(multi_row(value="1,234.5"), resolver, MULTI)

    assert isinstance(verdict, ValidRow)
    assert (verdict.state_id, verdict.category_id, verdict.statistic_id) == (1, 10, 100)
    assert verdict.year == 2023
    assert verdict.value == pytest.approx(1234.5)
    assert verdict.raw_fields["State"] == "Alabama"


@pytest.mark.parametrize(
    "value",
    ["N/A", "nan", "inf", "-Infinity", "abc", "1e999", "1,5", "12,34,5", "1,2345", ",123", "1,234,56", "1,234.5,6"],
)
def test_non_numeric_values_are_rejected(validator, resolver, value) -> None:
    verdict = validator.validate(multi_row(value=value), resolver, MULTI)

    assert isinstance(verdict, InvalidRow)
    assert verdict.reason == FailureReason.NON_NUMERIC_VALUE
    assert verdict.column == "Value"


@pytest.mark.parametrize(
    ("value", "expected"),
    [("1,234", 1234.0), ("-12,345,678.25", -12345678.25), ("+999", 999.0), ("0.5", 0.5)],
)
def test_grouped_thousands_are_accepted(validator, resolver, value, expected) -> None:
    verdict = validator.validate(multi_row(value=value), resolver, MULTI)

    assert isinstance(verdict, ValidRow)
    assert verdict.value == pytest.approx(expected)


def test_missing_field_is_reported_first(validator, resolver) -> None:
    verdict = validator.validate(multi_row(state="Nowhere", measure="  "), resolver, MULTI)

    assert isinstance(verdict, InvalidRow)
    assert verdict.reason == FailureReason.MISSING_FIELD
    assert verdict.column == "Measure"


def test_unknown_measure_is_unresolved_reference(validator, resolver) -> None:
    verdict = validator.validate(multi_row(measure="GDP", value="200000"), resolver, MULTI)

    assert isinstance(verdict, InvalidRow)
    assert verdict.reason == FailureReason.UNRESOLVED_REFERENCE
    assert verdict.column == "Measure"
    assert "GDP" in verdict.message


def test_measure_from_another_category_is_unresolved(validator, resolver) -> None:
    verdict = validator.validate(multi_row(measure="Obesity Rate"), resolver, MULTI)

    assert isinstance(verdict, InvalidRow)
    assert verdict.reason == FailureReason.UNRESOLVED_REFERENCE


def test_reference_check_runs_before_year_check(validator, resolver) -> None:
    verdict = validator.validate(multi_row(state="Alabma", year="1700"), resolver, MULTI)

    assert isinstance(verdict, InvalidRow)
    assert verdict.reason == FailureReason.UNRESOLVED_REFERENCE
    assert verdict.column == "State"


@pytest.mark.parametrize("year", ["1899", "2031"])
def test_year_out_of_range(validator, resolver, year) -> None:
    verdict = validator.validate(multi_row(year=year), resolver, MULTI)

    assert isinstance(verdict, InvalidRow)
    assert verdict.reason == FailureReason.YEAR_OUT_OF_RANGE
    assert verdict.column == "Year"


@pytest.mark.parametrize("year", ["1900", "2030", "2023.0"])
def test_year_bounds_are_inclusive(validator, resolver, year) -> None:
    assert isinstance(validator.validate(multi_row(year=year), resolver, MULTI), ValidRow)


@pytest.mark.parametrize("year", ["twenty", "2023.5"])
def test_non_integer_year_is_non_numeric(validator, resolver, year) -> None:
    verdict = validator.validate(multi_row(year=year), resolver, MULTI)

    assert isinstance(verdict, InvalidRow)
    assert verdict.reason == FailureReason.NON_NUMERIC_VALUE
    assert verdict.column == "Year"


def test_single_category_row_uses_metadata_references(validator, resolver) -> None:
    metadata = SingleCategoryMetadata(category_id=11, statistic_id=101)
    row = ParsedRow(
        row_number=5,
        raw_fields={"State": "AL", "Year": "2022", "Value": "-4"},
        state="AL",
        year="2022",
        value="-4",
    )

    verdict = validator.validate(row, resolver, metadata)

    assert isinstance(verdict, ValidRow)
    assert (verdict.category_id, verdict.statistic_id) == (11, 101)
    assert verdict.value == -4.0


def test_single_category_with_mismatched_statistic_fails_row(validator, resolver) -> None:
    metadata = SingleCategoryMetadata(category_id=10, statistic_id=101)
    row = ParsedRow(
        row_number=2,
        raw_fields={"State": "AL", "Year": "2022", "Value": "1"},
        state="AL",
        year="2022",
        value="1",
    )

    verdict = validator.validate(row, resolver, metadata)

    assert isinstance(verdict, InvalidRow)
    assert verdict.reason == FailureReason.UNRESOLVED_REFERENCE


def test_rejects_inverted_year_bounds() -> None:
    with pytest.raises(ValueError):
        RowValidator(year_min=2030, year_max=1900)
