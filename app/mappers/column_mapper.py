"""
app/mappers/column_mapper.py

Maps CSV headers onto the fields a template layout expects.

Two layouts are accepted:

    multi-category   State,Year,Category,Measure,Value
    single-category  State,Year,Value   (category/statistic come from metadata)

Header matching ignores case, spacing and punctuation, and accepts a few
aliases seen in exported spreadsheets ("Statistic", "Measure Name").
Extra columns are carried through in ``raw_fields`` but otherwise ignored.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from app.domain.imports import ParsedRow
from app.errors import ErrorDetail, ParseError
from db.models.import_template import ImportLayout

LAYOUT_FIELDS: dict[str, tuple[str, ...]] = {
    ImportLayout.MULTI_CATEGORY: ("state", "year", "category", "measure", "value"),
    ImportLayout.SINGLE_CATEGORY: ("state", "year", "value"),
}

# Display names used in error messages and failure reports.
FIELD_LABELS: dict[str, str] = {
    "state": "State",
    "year": "Year",
    "category": "Category",
    "measure": "Measure",
    "value": "Value",
}

DEFAULT_COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "state": ("state", "state name", "state_name"),
    "year": ("year", "data year"),
    "category": ("category", "category name"),
    "measure": ("measure", "measure name", "statistic", "statistic name"),
    "value": ("value",),
}


def normalize_header(header: str) -> str:
    """
    Normalize a column name for flexible matching.
    """

    return "".join(ch for ch in header.strip().lower() if ch.isalnum())


@dataclass(frozen=True)
class ColumnResolution:
    """
    Resolved field-to-header mapping for one file.
    """

    layout: str
    field_to_header: dict[str, str]
    source_headers: tuple[str, ...]


class ColumnMapper:
    """
    Resolves CSV headers against a layout and lifts rows into ParsedRow objects.
    """

    def __init__(self, *, aliases: Mapping[str, Sequence[str]] | None = None) -> None:
        self._aliases: dict[str, frozenset[str]] = {
            field: frozenset(normalize_header(alias) for alias in values)
            for field, values in (aliases or DEFAULT_COLUMN_ALIASES).items()
        }

    def resolve_columns(self, headers: Sequence[str], *, layout: str) -> ColumnResolution:
        """
        Match every required field of ``layout`` to exactly one header.

        Raises ParseError listing every missing or ambiguous column at once.
        """

        expected_fields = LAYOUT_FIELDS.get(layout)
        if expected_fields is None:
            raise ParseError(f"Unsupported import layout: {layout!r}.")

        # Original spelling is kept: csv.DictReader keys rows by the raw header text.
        source_headers = tuple(header for header in headers if header and header.strip())
        if not source_headers:
            raise ParseError("CSV header row is missing.")

        errors: list[ErrorDetail] = []
        seen: dict[str, str] = {}
        for header in source_headers:
            key = normalize_header(header)
            if key in seen:
                errors.append(
                    ErrorDetail(
                        code="duplicate_column",
                        message=f"Column {header.strip()!r} appears more than once.",
                        column=header.strip(),
                    )
                )
            seen.setdefault(key, header)

        resolved: dict[str, str] = {}
        for field in expected_fields:
            matches = [header for header in source_headers if normalize_header(header) in self._aliases[field]]
            if not matches:
                errors.append(
                    ErrorDetail(
                        code="missing_column",
                        message=f"Required column {FIELD_LABELS[field]!r} was not found.",
                        column=FIELD_LABELS[field],
                        context={"headers": list(source_headers)},
                    )
                )
                continue
            if len(set(matches)) > 1:
                errors.append(
                    ErrorDetail(
                        code="ambiguous_column",
                        message=f"Several columns match {FIELD_LABELS[field]!r}: {', '.join(matches)}.",
                        column=FIELD_LABELS[field],
                    )
                )
                continue
            resolved[field] = matches[0]

        if errors:
            expected = ",".join(FIELD_LABELS[field] for field in expected_fields)
            raise ParseError(
                f"CSV columns do not match the {layout} layout (expected {expected}).",
                errors=errors,
            )

        return ColumnResolution(
            layout=layout,
            field_to_header=resolved,
            source_headers=source_headers,
        )

    def map_row(
        self,
        *,
        raw_row: Mapping[Any, Any],
        row_number: int,
        resolution: ColumnResolution,
    ) -> ParsedRow:
        """
        Build a ParsedRow from one csv.DictReader row.

        Overflow cells (DictReader's ``None`` key) are dropped; short rows
        yield None for the missing cells.
        """

        raw_fields = {
            header: self._cell(raw_row.get(header))
            for header in resolution.source_headers
        }

        def pick(field: str) -> str | None:
            header = resolution.field_to_header.get(field)
            if header is None:
                return None
            value = raw_row.get(header)
            return None if value is None else str(value)

        return ParsedRow(
            row_number=row_number,
            raw_fields=raw_fields,
            state=pick("state"),
            year=pick("year"),
            value=pick("value"),
            category=pick("category"),
            measure=pick("measure"),
        )

    @staticmethod
    def _cell(value: Any) -> str:
        if value is None:
            return ""
        return str(value)
