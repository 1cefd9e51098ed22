"""
app/validators/row_validator.py

Turns one parsed CSV row into exactly one verdict: a ValidRow ready for
staging or an InvalidRow carrying a single failure reason.

Checks run in a fixed order and stop at the first failure:

    1. required fields are present
    2. state / category / statistic resolve to active reference entities
    3. year is an integer inside the configured range
    4. value is a finite number
"""

from __future__ import annotations

import math
import re
from decimal import Decimal, InvalidOperation
from typing import Any

from app.domain.imports import InvalidRow, ParsedRow, RowVerdict, ValidRow
from app.errors import UnresolvedReference
from app.mappers.column_mapper import FIELD_LABELS, LAYOUT_FIELDS
from app.resolvers.reference_resolver import ReferenceResolver
from app.schemas.import_metadata import MultiCategoryMetadata, SingleCategoryMetadata
from db.models.import_rows import FailureReason
from db.models.reference import ReferenceKind

# Commas are accepted only as thousands grouping: 1,234 or 12,345,678.9
_GROUPED_NUMBER = re.compile(r"[+-]?\d{1,3}(,\d{3})+(\.\d+)?")


class RowValidator:
    """
    Validates parsed rows against reference data and configured bounds.

    ``validate`` never raises for row content.
    """

    def __init__(self, *, year_min: int, year_max: int) -> None:
        if year_max < year_min:
            raise ValueError("year_max must be greater than or equal to year_min.")
        self.year_min = year_min
        self.year_max = year_max

    def validate(
        self,
        row: ParsedRow,
        resolver: ReferenceResolver,
        metadata: MultiCategoryMetadata | SingleCategoryMetadata,
    ) -> RowVerdict:
        for field in LAYOUT_FIELDS[metadata.kind]:
            if self._is_blank(getattr(row, field)):
                return self._invalid(
                    row,
                    FailureReason.MISSING_FIELD,
                    f"Required value for {FIELD_LABELS[field]!r} is missing.",
                    column=FIELD_LABELS[field],
                )

        column = FIELD_LABELS["state"]
        try:
            state_id = resolver.resolve(str(row.state), ReferenceKind.STATE)
            if isinstance(metadata, SingleCategoryMetadata):
                column = None
                category_id, statistic_id = self._metadata_references(resolver, metadata)
            else:
                column = FIELD_LABELS["category"]
                category_id = resolver.resolve(str(row.category), ReferenceKind.CATEGORY)
                column = FIELD_LABELS["measure"]
                statistic_id = resolver.resolve(
                    str(row.measure),
                    ReferenceKind.STATISTIC,
                    category_id=category_id,
                )
        except UnresolvedReference as exc:
            return self._invalid(row, FailureReason.UNRESOLVED_REFERENCE, str(exc), column=column)

        year = self._parse_year(row.year)
        if year is None:
            return self._invalid(
                row,
                FailureReason.NON_NUMERIC_VALUE,
                f"Year {str(row.year).strip()!r} is not a whole number.",
                column=FIELD_LABELS["year"],
            )
        if not self.year_min <= year <= self.year_max:
            return self._invalid(
                row,
                FailureReason.YEAR_OUT_OF_RANGE,
                f"Year {year} is outside the allowed range {self.year_min}-{self.year_max}.",
                column=FIELD_LABELS["year"],
            )

        value = self._parse_value(row.value)
        if value is None:
            return self._invalid(
                row,
                FailureReason.NON_NUMERIC_VALUE,
                f"Value {str(row.value).strip()!r} is not a number.",
                column=FIELD_LABELS["value"],
            )

        return ValidRow(
            row_number=row.row_number,
            state_id=state_id,
            category_id=category_id,
            statistic_id=statistic_id,
            year=year,
            value=value,
            raw_fields=dict(row.raw_fields),
        )

    @staticmethod
    def _metadata_references(
        resolver: ReferenceResolver,
        metadata: SingleCategoryMetadata,
    ) -> tuple[int, int]:
        if not resolver.is_active(ReferenceKind.CATEGORY, metadata.category_id):
            raise UnresolvedReference(kind=ReferenceKind.CATEGORY, label=f"#{metadata.category_id}")
        if resolver.statistic_category(metadata.statistic_id) != metadata.category_id:
            raise UnresolvedReference(
                kind=ReferenceKind.STATISTIC,
                label=f"#{metadata.statistic_id}",
                scope=f"category #{metadata.category_id}",
            )
        return metadata.category_id, metadata.statistic_id

    @staticmethod
    def _parse_year(value: str | None) -> int | None:
        try:
            parsed = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return None
        if not parsed.is_finite() or parsed != parsed.to_integral_value():
            return None
        return int(parsed)

    @staticmethod
    def _parse_value(value: str | None) -> float | None:
        raw_value = str(value).strip()
        if "," in raw_value:
            if _GROUPED_NUMBER.fullmatch(raw_value) is None:
                return None
            raw_value = raw_value.replace(",", "")
        try:
            parsed = Decimal(raw_value)
        except (InvalidOperation, ValueError):
            return None
        if not parsed.is_finite():
            return None
        result = float(parsed)
        if not math.isfinite(result):
            return None
        return result

    @staticmethod
    def _is_blank(value: Any) -> bool:
        return value is None or str(value).strip() == ""

    @staticmethod
    def _invalid(row: ParsedRow, reason: str, message: str, *, column: str | None) -> InvalidRow:
        return InvalidRow(
            row_number=row.row_number,
            reason=reason,
            message=message,
            raw_fields=dict(row.raw_fields),
            column=column,
        )
