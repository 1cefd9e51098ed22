from __future__ import annotations

import unittest

import pytest
from sqlalchemy import select

from app.errors import UnresolvedReference
from app.resolvers.reference_resolver import ReferenceEntry, ReferenceResolver, normalize_label
from db.models.reference import Category, ReferenceKind, State


def build_resolver() -> ReferenceResolver:
    return ReferenceResolver(
        states=[
            ReferenceEntry(id=1, name="Alabama", abbreviation="AL"),
            ReferenceEntry(id=2, name="New York", abbreviation="NY"),
        ],
        categories=[
            ReferenceEntry(id=10, name="Economy"),
            ReferenceEntry(id=11, name="Health"),
        ],
        statistics=[
            ReferenceEntry(id=100, name="Unemployment Rate", category_id=10),
            ReferenceEntry(id=101, name="Obesity Rate", category_id=11),
            ReferenceEntry(id=102, name="Growth", category_id=10),
            ReferenceEntry(id=103, name="Growth", category_id=11),
        ],
    )


class TestReferenceResolver(unittest.TestCase):
    def setUp(self) -> None:
        self.resolver = build_resolver()

    def test_normalize_label_collapses_whitespace_and_case(self) -> None:
        self.assertEqual(normalize_label("  New   YORK "), "new york")

    def test_resolves_state_name_case_and_whitespace_insensitive(self) -> None:
        self.assertEqual(self.resolver.resolve(" new  york ", ReferenceKind.STATE), 2)
        self.assertEqual(self.resolver.resolve("ALABAMA", ReferenceKind.STATE), 1)

    def test_resolves_state_abbreviation(self) -> None:
        self.assertEqual(self.resolver.resolve("al", ReferenceKind.STATE), 1)

    def test_typo_does_not_resolve(self) -> None:
        with self.assertRaises(UnresolvedReference) as ctx:
            self.resolver.resolve("Alabma", ReferenceKind.STATE)

        self.assertEqual(ctx.exception.kind, ReferenceKind.STATE)
        self.assertEqual(ctx.exception.label, "Alabma")

    def test_statistics_resolve_within_their_category(self) -> None:
        self.assertEqual(self.resolver.resolve("growth", ReferenceKind.STATISTIC, category_id=10), 102)
        self.assertEqual(self.resolver.resolve("growth", ReferenceKind.STATISTIC, category_id=11), 103)

        with self.assertRaises(UnresolvedReference):
            self.resolver.resolve("Obesity Rate", ReferenceKind.STATISTIC, category_id=10)

    def test_statistic_requires_category(self) -> None:
        with self.assertRaises(ValueError):
            self.resolver.resolve("Growth", ReferenceKind.STATISTIC)

    def test_is_active_and_statistic_category(self) -> None:
        self.assertTrue(self.resolver.is_active(ReferenceKind.CATEGORY, 10))
        self.assertFalse(self.resolver.is_active(ReferenceKind.CATEGORY, 99))
        self.assertEqual(self.resolver.statistic_category(101), 11)
        self.assertIsNone(self.resolver.statistic_category(999))


def test_from_session_ignores_inactive_entities(db) -> None:
    texas = db.scalars(select(State).where(State.name == "Texas")).one()
    texas.is_active = False
    health = db.scalars(select(Category).where(Category.name == "Health")).one()
    health.is_active = False
    db.commit()

    resolver = ReferenceResolver.from_session(db)

    assert resolver.resolve("Alabama", ReferenceKind.STATE) > 0
    with pytest.raises(UnresolvedReference):
        resolver.resolve("Texas", ReferenceKind.STATE)
    # Statistics of an inactive category are not active either.
    assert not any(
        resolver.statistic_category(statistic.id) is not None for statistic in health.statistics
    )
