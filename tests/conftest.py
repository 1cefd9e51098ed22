"""
tests/conftest.py

Shared fixtures: an in-memory SQLite database with the full schema and the
seeded reference data, plus helpers for building CSV uploads.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import db.models  # noqa: F401  registers all ORM models on Base.metadata
from app.config import ImportSettings
from app.services.import_orchestrator_service import ImportOrchestratorService
from db.base import Base
from db.models.import_template import ImportTemplate
from db.models.reference import Category, State, Statistic
from db.seed import seed_reference_data


def _make_csv(header: str, *rows: str) -> bytes:
    return ("\n".join((header, *rows)) + "\n").encode("utf-8")


@pytest.fixture()
def make_csv():
    """Build CSV upload bytes from a header line and data lines."""
    return _make_csv


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite+pysqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, class_=Session, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    with session_factory() as session:
        seed_reference_data(session)
        session.commit()
        yield session


@pytest.fixture()
def import_settings() -> ImportSettings:
    return ImportSettings()


@pytest.fixture()
def service(import_settings: ImportSettings) -> ImportOrchestratorService:
    return ImportOrchestratorService(settings=import_settings)


@pytest.fixture()
def templates(db: Session) -> dict[str, int]:
    """Template ids keyed by template name."""
    return {template.name: template.id for template in db.scalars(select(ImportTemplate)).all()}


@pytest.fixture()
def multi_template_id(templates: dict[str, int]) -> int:
    return templates["Multi-Category Data Import"]


@pytest.fixture()
def single_template_id(templates: dict[str, int]) -> int:
    return templates["Single-Category Data Import"]


@pytest.fixture()
def refs(db: Session) -> dict[str, int]:
    """A handful of reference ids used across tests."""
    economy = db.scalars(select(Category).where(Category.name == "Economy")).one()
    health = db.scalars(select(Category).where(Category.name == "Health")).one()
    unemployment = db.scalars(
        select(Statistic).where(Statistic.name == "Unemployment Rate")
    ).one()
    life_expectancy = db.scalars(
        select(Statistic).where(Statistic.name == "Life Expectancy")
    ).one()
    alabama = db.scalars(select(State).where(State.name == "Alabama")).one()
    texas = db.scalars(select(State).where(State.name == "Texas")).one()
    return {
        "economy": economy.id,
        "health": health.id,
        "unemployment": unemployment.id,
        "life_expectancy": life_expectancy.id,
        "alabama": alabama.id,
        "texas": texas.id,
    }
