"""
app/resolvers package marker.
"""

from app.resolvers.reference_resolver import ReferenceEntry, ReferenceResolver, normalize_label

__all__ = [
    "ReferenceEntry",
    "ReferenceResolver",
    "normalize_label",
]
