"""
Repository layer exports.
"""

from db.repositories.import_session_repository import ImportSessionRepository
from db.repositories.reference_repository import ReferenceRepository

__all__ = [
    "ImportSessionRepository",
    "ReferenceRepository",
]
