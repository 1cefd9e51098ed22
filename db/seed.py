"""
db/seed.py

Reference data and import templates every environment starts with.

Seeding is idempotent: existing rows (matched by natural key) are left alone.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.import_template import ImportLayout, ImportTemplate
from db.models.reference import Category, State, Statistic

logger = logging.getLogger(__name__)

STATES: tuple[tuple[str, str], ...] = (
    ("Alabama", "AL"),
    ("Alaska", "AK"),
    ("Arizona", "AZ"),
    ("Arkansas", "AR"),
    ("California", "CA"),
    ("Colorado", "CO"),
    ("Connecticut", "CT"),
    ("Delaware", "DE"),
    ("District of Columbia", "DC"),
    ("Florida", "FL"),
    ("Georgia", "GA"),
    ("Hawaii", "HI"),
    ("Idaho", "ID"),
    ("Illinois", "IL"),
    ("Indiana", "IN"),
    ("Iowa", "IA"),
    ("Kansas", "KS"),
    ("Kentucky", "KY"),
    ("Louisiana", "LA"),
    ("Maine", "ME"),
    ("Maryland", "MD"),
    ("Massachusetts", "MA"),
    ("Michigan", "MI"),
    ("Minnesota", "MN"),
    ("Mississippi", "MS"),
    ("Missouri", "MO"),
    ("Montana", "MT"),
    ("Nation", "US"),
    ("Nebraska", "NE"),
    ("Nevada", "NV"),
    ("New Hampshire", "NH"),
    ("New Jersey", "NJ"),
    ("New Mexico", "NM"),
    ("New York", "NY"),
    ("North Carolina", "NC"),
    ("North Dakota", "ND"),
    ("Ohio", "OH"),
    ("Oklahoma", "OK"),
    ("Oregon", "OR"),
    ("Pennsylvania", "PA"),
    ("Rhode Island", "RI"),
    ("South Carolina", "SC"),
    ("South Dakota", "SD"),
    ("Tennessee", "TN"),
    ("Texas", "TX"),
    ("Utah", "UT"),
    ("Vermont", "VT"),
    ("Virginia", "VA"),
    ("Washington", "WA"),
    ("West Virginia", "WV"),
    ("Wisconsin", "WI"),
    ("Wyoming", "WY"),
)

CATEGORIES: tuple[tuple[str, str], ...] = (
    ("Education", "K-12 and higher education metrics"),
    ("Economy", "Economic indicators and employment"),
    ("Public Safety", "Crime, corrections and public safety metrics"),
    ("Health", "Health outcomes and access metrics"),
    ("Environment", "Environmental quality and sustainability"),
    ("Infrastructure", "Infrastructure quality and development"),
    ("Government", "Government efficiency and transparency"),
)

# (category, statistic, unit)
STATISTICS: tuple[tuple[str, str, str], ...] = (
    ("Education", "High School Graduation Rate", "percentage"),
    ("Education", "College Enrollment Rate", "percentage"),
    ("Education", "Student-Teacher Ratio", "ratio"),
    ("Economy", "Unemployment Rate", "percentage"),
    ("Economy", "GDP per Capita", "dollars"),
    ("Economy", "Median Household Income", "dollars"),
    ("Economy", "Net Job Growth", "jobs"),
    ("Health", "Life Expectancy", "years"),
    ("Health", "Infant Mortality Rate", "per 1,000"),
    ("Health", "Obesity Rate", "percentage"),
)

TEMPLATES: tuple[tuple[str, str, str], ...] = (
    (
        "Multi-Category Data Import",
        ImportLayout.MULTI_CATEGORY,
        "State,Year,Category,Measure,Value. Each row names its own category and measure.",
    ),
    (
        "Single-Category Data Import",
        ImportLayout.SINGLE_CATEGORY,
        "State,Year,Value. Category and statistic are chosen in the upload metadata.",
    ),
    (
        "Multi Year Export",
        ImportLayout.MULTI_CATEGORY,
        "Legacy export with ID and foreign key columns, which are ignored.",
    ),
)


def seed_reference_data(db: Session) -> dict[str, int]:
    """
    Insert missing states, categories, statistics and templates.

    Returns the number of rows inserted per table. The caller commits.
    """

    inserted = {"states": 0, "categories": 0, "statistics": 0, "import_templates": 0}

    existing_states = set(db.scalars(select(State.abbreviation)).all())
    for name, abbreviation in STATES:
        if abbreviation not in existing_states:
            db.add(State(name=name, abbreviation=abbreviation, is_active=True))
            inserted["states"] += 1

    categories = {category.name: category for category in db.scalars(select(Category)).all()}
    for sort_order, (name, description) in enumerate(CATEGORIES, start=1):
        if name not in categories:
            category = Category(name=name, description=description, sort_order=sort_order, is_active=True)
            db.add(category)
            categories[name] = category
            inserted["categories"] += 1
    db.flush()

    existing_statistics = {
        (category_id, name) for category_id, name in db.execute(select(Statistic.category_id, Statistic.name)).all()
    }
    for category_name, name, unit in STATISTICS:
        category = categories[category_name]
        if (category.id, name) not in existing_statistics:
            db.add(Statistic(category_id=category.id, name=name, unit=unit, is_active=True))
            inserted["statistics"] += 1

    existing_templates = set(db.scalars(select(ImportTemplate.name)).all())
    for name, layout, description in TEMPLATES:
        if name not in existing_templates:
            db.add(ImportTemplate(name=name, layout=layout, description=description, is_active=True))
            inserted["import_templates"] += 1

    db.flush()
    logger.info("Reference data seeded %s", inserted)
    return inserted
