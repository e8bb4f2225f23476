"""
Shared fixtures: in-memory database, settings and dates.
"""
import os
import tempfile

# Keep the app's own engine and log files away from the working tree
os.environ.setdefault("HABIT_TRACKER_DATABASE_URL", "sqlite://")
os.environ.setdefault("HABIT_TRACKER_LOG_DIR", tempfile.gettempdir())

import pytest
from datetime import date, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from habit_tracker.database import Base
from habit_tracker.models import Habit, HabitCheckIn, Settings
from habit_tracker.schemas import HabitRecord, HistoryEntry


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def default_settings(db_session):
    settings = Settings()
    db_session.add(settings)
    db_session.commit()
    db_session.refresh(settings)
    return settings


@pytest.fixture
def today():
    return date(2026, 3, 15)


@pytest.fixture
def yesterday(today):
    return today - timedelta(days=1)


def build_record(
    habit_id="habit-1",
    name="Read",
    category="Mind",
    frequency="daily",
    mode="flexible",
    points=0,
    history=None
) -> HabitRecord:
    """HabitRecord whose streak and last_completed follow its history"""
    history = history or []
    entries = [HistoryEntry(date=day, streak=streak) for day, streak in history]
    return HabitRecord(
        id=habit_id,
        name=name,
        category=category,
        frequency=frequency,
        mode=mode,
        streak=entries[-1].streak if entries else 0,
        points=points,
        last_completed=entries[-1].date if entries else None,
        history=entries
    )


@pytest.fixture
def make_record():
    return build_record


@pytest.fixture
def make_habit(db_session):
    """Store a habit row with check-ins given as (date, streak) pairs"""
    positions = iter(range(1000))

    def _make(name="Read", category="Mind", frequency="daily", mode="flexible",
              points=0, history=None):
        history = history or []
        habit = Habit(
            name=name,
            category=category,
            frequency=frequency,
            mode=mode,
            streak=history[-1][1] if history else 0,
            points=points,
            last_completed=history[-1][0] if history else None,
            position=next(positions),
            check_ins=[HabitCheckIn(date=day, streak=streak) for day, streak in history]
        )
        db_session.add(habit)
        db_session.commit()
        db_session.refresh(habit)
        return habit

    return _make
