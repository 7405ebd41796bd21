"""Pytest configuration and shared fixtures for MicroHabits tests.

This module provides database fixtures, a hand-driven clock, and habit factories
for testing the streak engine without touching a real application database.
"""

from __future__ import annotations

import logging
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

import pytest
from sqlmodel import Session, SQLModel, create_engine

from microhabits.infra.database import create_session_factory
from microhabits.infra.repositories import SQLModelHabitRepository, SQLModelUserRepository
from microhabits.models import Habit, User
from microhabits.services.clock import ManualClock
from microhabits.services.habits import HabitService

# A fixed UTC-5 zone keeps "local midnight" distinct from UTC midnight.
LOCAL_TZ = timezone(timedelta(hours=-5), name="EST")

_ENV_VARS = (
    "MICROHABITS_DATABASE_URL",
    "MICROHABITS_DEV_MODE",
    "MICROHABITS_RECONCILE_INTERVAL",
    "MICROHABITS_TIMEZONE",
    "MICROHABITS_USER",
)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point the data directory at a temp folder and clear config overrides."""
    monkeypatch.setenv("MICROHABITS_DATA_DIR", str(tmp_path / "instance"))
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield
    # Drop handlers installed by setup_logging so they don't outlive the test's streams
    pkg_logger = logging.getLogger("microhabits")
    for handler in list(pkg_logger.handlers):
        pkg_logger.removeHandler(handler)
        handler.close()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(scope="function")
def db_engine():
    """Create an isolated SQLite database file for each test.

    Yields:
        Engine: SQLModel engine connected to test database
    """
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    engine = create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(engine)

    yield engine

    engine.dispose()
    db_path.unlink(missing_ok=True)


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Session factory matching the one the application wires up."""
    return create_session_factory(db_engine)


@pytest.fixture
def db_session(db_engine):
    """A plain session for arranging and inspecting rows directly."""
    session = Session(db_engine, expire_on_commit=False)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user_repo(session_factory) -> SQLModelUserRepository:
    return SQLModelUserRepository(session_factory)


@pytest.fixture
def habit_repo(session_factory) -> SQLModelHabitRepository:
    return SQLModelHabitRepository(session_factory)


@pytest.fixture
def user(user_repo) -> User:
    """Default free-plan user for scoping data."""
    return user_repo.create(User(username="tester"))


@pytest.fixture
def other_user(user_repo) -> User:
    """A second user whose habits must stay invisible to ``user``."""
    return user_repo.create(User(username="someone-else"))


@pytest.fixture
def clock() -> ManualClock:
    """Clock parked at 2024-01-10 09:00 local time."""
    return ManualClock(datetime(2024, 1, 10, 9, 0, tzinfo=LOCAL_TZ))


@pytest.fixture
def service(habit_repo, user_repo, clock) -> HabitService:
    return HabitService(habit_repo, user_repo, clock=clock, habit_limit=3)


# =============================================================================
# Test Data Factories
# =============================================================================


@pytest.fixture
def habit_factory(db_session, user):
    """Factory for inserting habits in an arbitrary state.

    Returns:
        Callable: Function that creates and persists Habit instances
    """

    def _create_habit(
        name: str = "Drink water",
        emoji: Optional[str] = None,
        completed: bool = False,
        streak: int = 0,
        last_completed_at: Optional[datetime] = None,
        owner: Optional[User] = None,
    ) -> Habit:
        owner = owner or user
        habit = Habit(
            user_id=owner.id,
            name=name,
            emoji=emoji,
            completed=completed,
            streak=streak,
            last_completed_at=last_completed_at,
        )
        db_session.add(habit)
        db_session.commit()
        db_session.refresh(habit)
        db_session.expunge(habit)
        return habit

    return _create_habit


@pytest.fixture
def load_habit(db_session):
    """Read a habit straight from the database, bypassing repositories."""

    def _load(habit_id: int) -> Optional[Habit]:
        db_session.expunge_all()
        return db_session.get(Habit, habit_id)

    return _load


@pytest.fixture
def host_in_los_angeles(monkeypatch):
    """Make the host's own zone America/Los_Angeles, DST rules included."""
    zone = ZoneInfo("America/Los_Angeles")
    monkeypatch.setattr("microhabits.services.clock.get_localzone", lambda: zone)
    return zone
