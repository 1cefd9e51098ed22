"""
app/domain/imports.py

Domain models passed between the import pipeline stages.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

from app.errors import DuplicateImport


@dataclass(frozen=True)
class ParsedRow:
    """
    One data row lifted out of the CSV, before resolution or validation.

    ``state``/``year``/``category``/``measure``/``value`` hold the raw text of
    the mapped columns; ``category`` and ``measure`` are None for the
    single-category layout. ``raw_fields`` keeps every original column.
    """

    row_number: int
    raw_fields: dict[str, str]
    state: str | None
    year: str | None
    value: str | None
    category: str | None = None
    measure: str | None = None


@dataclass(frozen=True)
class ValidRow:
    """
    A fully resolved and type-checked row, ready for the staging store.
    """

    row_number: int
    state_id: int
    category_id: int
    statistic_id: int
    year: int
    value: float
    raw_fields: dict[str, str]


@dataclass(frozen=True)
class InvalidRow:
    """
    Verdict for a row that failed resolution or validation.
    """

    row_number: int
    reason: str
    message: str
    raw_fields: dict[str, str]
    column: str | None = None


RowVerdict = ValidRow | InvalidRow


@dataclass(frozen=True)
class StagingStats:
    total_rows: int
    valid_rows: int
    failed_rows: int

    def to_dict(self) -> dict[str, int]:
        return {
            "total_rows": self.total_rows,
            "valid_rows": self.valid_rows,
            "failed_rows": self.failed_rows,
        }


@dataclass(frozen=True)
class UploadResult:
    """
    Outcome of one upload call.

    ``duplicate`` is set when the content matches an already promoted import;
    in that case nothing was staged.
    """

    import_id: uuid.UUID
    status: str
    stats: StagingStats
    duplicate_of: uuid.UUID | None = None
    duplicate: DuplicateImport | None = None


@dataclass(frozen=True)
class ValidationIssue:
    row_number: int
    reason: str
    message: str
    column: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "row_number": self.row_number,
            "reason": self.reason,
            "message": self.message,
            "column": self.column,
        }


@dataclass(frozen=True)
class ValidationReport:
    """
    Result of re-validating an import's staged rows.
    """

    import_id: uuid.UUID
    is_valid: bool
    total_rows: int
    staged_rows: int
    valid_rows: int
    failed_rows: int
    failure_breakdown: dict[str, int] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    errors: list[ValidationIssue] = field(default_factory=list)

    def stats_dict(self) -> dict[str, Any]:
        return {
            "total_rows": self.total_rows,
            "staged_rows": self.staged_rows,
            "valid_rows": self.valid_rows,
            "failed_rows": self.failed_rows,
            "warnings": len(self.warnings),
            "failure_breakdown": dict(self.failure_breakdown),
        }


@dataclass(frozen=True)
class PromotionOutcome:
    import_id: uuid.UUID
    published_rows: int
    inserted_rows: int
    updated_rows: int


@dataclass(frozen=True)
class RollbackOutcome:
    """
    Result of reverting one promotion.

    ``skipped_rows`` counts keys a later import has overwritten since; those
    keep the newer value.
    """

    import_id: uuid.UUID
    restored_rows: int
    deleted_rows: int
    skipped_rows: int
