"""Repositories for classes and lesson plans."""

import logging
from datetime import UTC, date, datetime, time

import aiosqlite

from adept.data.database import Database
from adept.data.models import ClassInfo, LessonPlan

logger = logging.getLogger(__name__)


def _row_to_class(row: aiosqlite.Row) -> ClassInfo:
    return ClassInfo(
        id=row["class_id"],
        name=row["name"] or "",
        subject=row["subject"] or "",
        location=row["location"] or "",
        start_time=time.fromisoformat(row["start_time"]),
        duration_minutes=row["duration_minutes"],
    )


def _row_to_lesson_plan(row: aiosqlite.Row) -> LessonPlan:
    return LessonPlan(
        id=row["lesson_id"],
        class_id=row["class_id"],
        date=date.fromisoformat(row["date"]),
        time_slot=row["time_slot"],
        title=row["title"],
        learning_objectives=row["learning_objectives"] or "",
        description=row["description"] or "",
        calendar_event_id=row["calendar_event_id"] or None,
        components_json=row["components_json"] or "{}",
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


class ClassRepository:
    """Read access to classes (plus ``add`` for seeding)."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def get_all(self) -> list[ClassInfo]:
        """Get every class ordered by name."""
        rows = await self.db.fetch_all("SELECT * FROM Classes ORDER BY name")
        return [_row_to_class(row) for row in rows]

    async def get_by_id(self, class_id: str) -> ClassInfo | None:
        """Get a class by ID, or None if it does not exist."""
        row = await self.db.fetch_one("SELECT * FROM Classes WHERE class_id = ?", (class_id,))
        return _row_to_class(row) if row else None

    async def add(self, class_info: ClassInfo) -> ClassInfo:
        """Insert a class."""
        await self.db.execute(
            "INSERT INTO Classes (class_id, name, subject, location, start_time, duration_minutes)"
            " VALUES (?, ?, ?, ?, ?, ?)",
            (
                class_info.id,
                class_info.name,
                class_info.subject,
                class_info.location,
                class_info.start_time.strftime("%H:%M"),
                class_info.duration_minutes,
            ),
        )
        logger.debug(f"Added class {class_info.id}")
        return class_info


class LessonPlanRepository:
    """Lesson plan storage used by the calendar sync."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def get_all(self) -> list[LessonPlan]:
        """Get every lesson plan ordered by date and slot."""
        rows = await self.db.fetch_all("SELECT * FROM LessonPlans ORDER BY date, time_slot")
        return [_row_to_lesson_plan(row) for row in rows]

    async def get_by_id(self, lesson_id: str) -> LessonPlan | None:
        """Get a lesson plan by ID, or None if it does not exist."""
        row = await self.db.fetch_one(
            "SELECT * FROM LessonPlans WHERE lesson_id = ?", (lesson_id,)
        )
        return _row_to_lesson_plan(row) if row else None

    async def add(self, plan: LessonPlan) -> LessonPlan:
        """Insert a lesson plan."""
        await self.db.execute(
            "INSERT INTO LessonPlans (lesson_id, class_id, date, time_slot, title,"
            " learning_objectives, description, calendar_event_id, components_json,"
            " created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                plan.id,
                plan.class_id,
                plan.date.isoformat(),
                plan.time_slot,
                plan.title,
                plan.learning_objectives,
                plan.description,
                plan.calendar_event_id,
                plan.components_json,
                plan.created_at.isoformat(),
                plan.updated_at.isoformat(),
            ),
        )
        logger.debug(f"Added lesson plan {plan.id}")
        return plan

    async def update(self, plan: LessonPlan) -> bool:
        """Write a lesson plan back, bumping ``updated_at``.

        Returns:
            True if a row was updated
        """
        plan.updated_at = datetime.now(UTC)
        count = await self.db.execute(
            "UPDATE LessonPlans SET class_id = ?, date = ?, time_slot = ?, title = ?,"
            " learning_objectives = ?, description = ?, calendar_event_id = ?,"
            " components_json = ?, updated_at = ? WHERE lesson_id = ?",
            (
                plan.class_id,
                plan.date.isoformat(),
                plan.time_slot,
                plan.title,
                plan.learning_objectives,
                plan.description,
                plan.calendar_event_id,
                plan.components_json,
                plan.updated_at.isoformat(),
                plan.id,
            ),
        )
        if not count:
            logger.warning(f"Lesson plan {plan.id} not found for update")
        return count > 0
