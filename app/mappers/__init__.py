"""
app/mappers package marker.
"""

from app.mappers.column_mapper import (
    DEFAULT_COLUMN_ALIASES,
    FIELD_LABELS,
    LAYOUT_FIELDS,
    ColumnMapper,
    ColumnResolution,
    normalize_header,
)

__all__ = [
    "DEFAULT_COLUMN_ALIASES",
    "FIELD_LABELS",
    "LAYOUT_FIELDS",
    "ColumnMapper",
    "ColumnResolution",
    "normalize_header",
]
