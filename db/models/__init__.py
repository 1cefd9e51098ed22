"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.data_point import DataPoint
from db.models.import_history import ImportEvent, ImportEventLevel, PromotionHistoryEntry
from db.models.import_rows import FailedRow, FailureReason, StagedRow
from db.models.import_session import ImportSession, ImportStatus
from db.models.import_template import ImportLayout, ImportTemplate
from db.models.reference import Category, ReferenceKind, State, Statistic

__all__ = [
    "Category",
    "DataPoint",
    "FailedRow",
    "FailureReason",
    "ImportEvent",
    "ImportEventLevel",
    "ImportLayout",
    "ImportSession",
    "ImportStatus",
    "ImportTemplate",
    "PromotionHistoryEntry",
    "ReferenceKind",
    "StagedRow",
    "State",
    "Statistic",
]
