"""
app/resolvers/reference_resolver.py

Maps human-entered labels to reference-data ids.

Matching is exact after normalisation (trim, collapse inner whitespace,
casefold). There is no typo correction: "Alabma" does not resolve.
Only active entities are considered.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.errors import UnresolvedReference
from db.models.reference import ReferenceKind
from db.repositories.reference_repository import ReferenceRepository


def normalize_label(label: str) -> str:
    return " ".join(label.split()).casefold()


@dataclass(frozen=True)
class ReferenceEntry:
    """
    Minimal snapshot of one reference entity.
    """

    id: int
    name: str
    abbreviation: str | None = None
    category_id: int | None = None


class ReferenceResolver:
    """
    Pure lookup over a snapshot of active reference entities.

    Build one per staging or validation pass with ``from_session``; the
    snapshot does not see reference changes made afterwards.
    """

    def __init__(
        self,
        *,
        states: Iterable[ReferenceEntry],
        categories: Iterable[ReferenceEntry],
        statistics: Iterable[ReferenceEntry],
    ) -> None:
        self._state_ids: dict[str, int] = {}
        self._category_ids: dict[str, int] = {}
        self._category_names: dict[int, str] = {}
        self._statistic_ids: dict[tuple[int, str], int] = {}
        self._statistic_categories: dict[int, int] = {}
        self._active: dict[str, set[int]] = {
            ReferenceKind.STATE: set(),
            ReferenceKind.CATEGORY: set(),
            ReferenceKind.STATISTIC: set(),
        }

        for state in states:
            self._state_ids[normalize_label(state.name)] = state.id
            if state.abbreviation:
                self._state_ids.setdefault(normalize_label(state.abbreviation), state.id)
            self._active[ReferenceKind.STATE].add(state.id)

        for category in categories:
            self._category_ids[normalize_label(category.name)] = category.id
            self._category_names[category.id] = category.name
            self._active[ReferenceKind.CATEGORY].add(category.id)

        for statistic in statistics:
            if statistic.category_id is None:
                continue
            self._statistic_ids[(statistic.category_id, normalize_label(statistic.name))] = statistic.id
            self._statistic_categories[statistic.id] = statistic.category_id
            self._active[ReferenceKind.STATISTIC].add(statistic.id)

    @classmethod
    def from_session(cls, db: Session) -> "ReferenceResolver":
        repository = ReferenceRepository(db)
        return cls(
            states=[
                ReferenceEntry(id=state.id, name=state.name, abbreviation=state.abbreviation)
                for state in repository.list_active_states()
            ],
            categories=[
                ReferenceEntry(id=category.id, name=category.name)
                for category in repository.list_active_categories()
            ],
            statistics=[
                ReferenceEntry(id=statistic.id, name=statistic.name, category_id=statistic.category_id)
                for statistic in repository.list_active_statistics()
            ],
        )

    def resolve(self, label: str, kind: str, *, category_id: int | None = None) -> int:
        """
        Return the id of the active ``kind`` entity named ``label``.

        Statistics are scoped to a category, so ``category_id`` is required
        for ``ReferenceKind.STATISTIC``. Raises UnresolvedReference.
        """

        key = normalize_label(label or "")
        if kind == ReferenceKind.STATE:
            found = self._state_ids.get(key)
            scope = None
        elif kind == ReferenceKind.CATEGORY:
            found = self._category_ids.get(key)
            scope = None
        elif kind == ReferenceKind.STATISTIC:
            if category_id is None:
                raise ValueError("category_id is required to resolve a statistic.")
            found = self._statistic_ids.get((category_id, key))
            category_name = self._category_names.get(category_id)
            scope = f"category {category_name!r}" if category_name else f"category {category_id}"
        else:
            raise ValueError(f"Unknown reference kind: {kind!r}")

        if found is None:
            raise UnresolvedReference(kind=kind, label=label.strip() if label else "", scope=scope)
        return found

    def is_active(self, kind: str, entity_id: int) -> bool:
        return entity_id in self._active.get(kind, set())

    def statistic_category(self, statistic_id: int) -> int | None:
        return self._statistic_categories.get(statistic_id)
