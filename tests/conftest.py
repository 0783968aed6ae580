from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fitplanner.catalog import CatalogCache
from fitplanner.config import Settings
from fitplanner.database import engine_options
from fitplanner.fitness_analyzer import summarize_sets
from fitplanner.init_test_data import seed_catalog
from fitplanner.models import Base, Exercise, WorkoutHistory
from fitplanner.repositories import Repositories

NOW = datetime(2024, 6, 15, 18, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", poolclass=StaticPool, **engine_options("sqlite://"))
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def repos(db):
    return Repositories.for_session(db)


@pytest.fixture
def seeded(db):
    seed_catalog(db)
    return {ex.name: ex for ex in db.query(Exercise).all()}


@pytest.fixture
def catalog(db, seeded):
    return CatalogCache.load(db)


@pytest.fixture
def settings():
    return Settings()


def add_history(db, user_id, exercise, sets=None, created_at=None, feedback=None,
                pain="none", form="good", session_id=None, average_rpe=None):
    sets = sets if sets is not None else [{"reps": 10, "weight": 10, "rpe": 6, "completed": True}]
    performance = {"sets": sets, **summarize_sets(sets), "form": form, "pain": pain}
    if average_rpe is not None:
        performance["average_rpe"] = average_rpe
    entry = WorkoutHistory(
        user_id=user_id,
        exercise_id=exercise.id,
        session_id=session_id,
        performance=performance,
        feedback=feedback or {},
        created_at=(created_at or NOW).replace(tzinfo=None),
    )
    db.add(entry)
    db.commit()
    return entry


def days_ago(days, hours=0):
    return NOW - timedelta(days=days, hours=hours)
