"""
app/validators package marker.
"""

from app.validators.row_validator import RowValidator

__all__ = [
    "RowValidator",
]
