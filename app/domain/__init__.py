"""
app/domain package marker.
"""

from app.domain.imports import (
    InvalidRow,
    ParsedRow,
    PromotionOutcome,
    RowVerdict,
    StagingStats,
    UploadResult,
    ValidationIssue,
    ValidationReport,
    ValidRow,
)

__all__ = [
    "InvalidRow",
    "ParsedRow",
    "PromotionOutcome",
    "RowVerdict",
    "StagingStats",
    "UploadResult",
    "ValidationIssue",
    "ValidationReport",
    "ValidRow",
]
