"""Shared pytest fixtures."""

from datetime import date, time
from unittest.mock import AsyncMock

import pytest

from adept.calendar.client import GoogleCalendarClient
from adept.core.config import get_settings
from adept.data import (
    ClassInfo,
    ClassRepository,
    Database,
    LessonPlan,
    LessonPlanRepository,
    SettingsStore,
)
from adept.data.database import IN_MEMORY


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Make each test read settings from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set mock environment variables for testing."""
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "test-client-id")
    monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "test-client-secret")


@pytest.fixture
async def db():
    """In-memory database with the schema created."""
    async with Database(IN_MEMORY) as database:
        yield database


@pytest.fixture
def settings_store(db):
    """Settings store over the in-memory database."""
    return SettingsStore(db)


@pytest.fixture
def lesson_repo(db):
    """Lesson plan repository over the in-memory database."""
    return LessonPlanRepository(db)


@pytest.fixture
def class_repo(db):
    """Class repository over the in-memory database."""
    return ClassRepository(db)


@pytest.fixture
def physics_class():
    """A 50 minute class starting at 09:00."""
    return ClassInfo(
        id="class-1",
        name="Year 10 Physics",
        subject="Physics 101",
        location="Lab 2",
        start_time=time(9, 0),
        duration_minutes=50,
    )


@pytest.fixture
def forces_plan():
    """An unlinked lesson plan for the physics class."""
    return LessonPlan(
        id="lesson-1",
        class_id="class-1",
        date=date(2024, 3, 1),
        time_slot=1,
        title="Forces",
        learning_objectives="Describe balanced and unbalanced forces",
    )


@pytest.fixture
async def seeded_store(class_repo, lesson_repo, physics_class, forces_plan):
    """Database seeded with the physics class and its lesson plan."""
    await class_repo.add(physics_class)
    await lesson_repo.add(forces_plan)
    return forces_plan


@pytest.fixture
def mock_calendar_client():
    """Authenticated calendar client double."""
    client = AsyncMock(spec=GoogleCalendarClient)
    client.initialize.return_value = True
    client.is_authenticated.return_value = True
    client.create_event.return_value = "evt-1"
    client.update_event.return_value = True
    client.delete_event.return_value = True
    return client
