"""Tests for adept.data (database, repositories and settings store)."""

import json
from datetime import date, time

import pytest

from adept.data import (
    ClassInfo,
    Database,
    LessonComponents,
    LessonPlan,
    QuestionAnswer,
)


class TestDatabase:
    """Tests for the Database context manager."""

    async def test_conn_requires_context_manager(self):
        db = Database(":memory:")
        with pytest.raises(RuntimeError, match="context manager"):
            _ = db.conn

    async def test_creates_file_and_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "adept.db"

        async with Database(path) as db:
            await db.execute("INSERT INTO Settings (key, value) VALUES ('a', 'b')")

        assert path.exists()

    async def test_schema_survives_reopen(self, tmp_path):
        path = tmp_path / "adept.db"
        async with Database(path) as db:
            await db.execute("INSERT INTO Settings (key, value) VALUES ('a', 'b')")

        async with Database(path) as db:
            row = await db.fetch_one("SELECT value FROM Settings WHERE key = 'a'")

        assert row["value"] == "b"


class TestClassRepository:
    """Tests for ClassRepository."""

    async def test_add_and_get_by_id(self, class_repo, physics_class):
        await class_repo.add(physics_class)

        loaded = await class_repo.get_by_id("class-1")

        assert loaded == physics_class
        assert loaded.start_time == time(9, 0)

    async def test_get_by_id_missing(self, class_repo):
        assert await class_repo.get_by_id("nope") is None

    async def test_get_all_ordered_by_name(self, class_repo):
        await class_repo.add(ClassInfo(id="b", name="Zoology"))
        await class_repo.add(ClassInfo(id="a", name="Algebra"))

        classes = await class_repo.get_all()

        assert [c.name for c in classes] == ["Algebra", "Zoology"]


class TestLessonPlanRepository:
    """Tests for LessonPlanRepository."""

    async def test_add_and_get_by_id(self, seeded_store, lesson_repo):
        loaded = await lesson_repo.get_by_id("lesson-1")

        assert loaded.title == "Forces"
        assert loaded.date == date(2024, 3, 1)
        assert loaded.calendar_event_id is None

    async def test_update_writes_event_id(self, seeded_store, lesson_repo):
        plan = await lesson_repo.get_by_id("lesson-1")
        before = plan.updated_at
        plan.calendar_event_id = "evt-1"

        assert await lesson_repo.update(plan) is True

        reloaded = await lesson_repo.get_by_id("lesson-1")
        assert reloaded.calendar_event_id == "evt-1"
        assert reloaded.updated_at >= before

    async def test_update_missing_returns_false(self, lesson_repo):
        plan = LessonPlan(id="ghost", class_id="class-1", date=date(2024, 1, 1), title="x")
        assert await lesson_repo.update(plan) is False

    async def test_get_all_ordered_by_date_and_slot(self, class_repo, lesson_repo, physics_class):
        await class_repo.add(physics_class)
        for lesson_id, day, slot in [("c", 2, 0), ("b", 1, 3), ("a", 1, 1)]:
            await lesson_repo.add(
                LessonPlan(
                    id=lesson_id,
                    class_id="class-1",
                    date=date(2024, 3, day),
                    time_slot=slot,
                    title=lesson_id,
                )
            )

        plans = await lesson_repo.get_all()

        assert [p.id for p in plans] == ["a", "b", "c"]


class TestSettingsStore:
    """Tests for SettingsStore."""

    async def test_get_missing_returns_none(self, settings_store):
        assert await settings_store.get("missing") is None
        assert await settings_store.exists("missing") is False

    async def test_set_overwrites(self, settings_store):
        await settings_store.set("k", "one")
        await settings_store.set("k", "two")

        assert await settings_store.get("k") == "two"

    async def test_delete(self, settings_store):
        await settings_store.set("k", "v")
        await settings_store.delete("k")
        await settings_store.delete("k")

        assert await settings_store.exists("k") is False


class TestLessonComponents:
    """Tests for lesson components parsing and formatting."""

    def test_invalid_json_gives_empty_components(self):
        plan = LessonPlan(
            id="1", class_id="c", date=date(2024, 1, 1), title="t", components_json="{not json"
        )
        assert plan.components.is_empty()

    def test_round_trip_through_plan(self):
        plan = LessonPlan(id="1", class_id="c", date=date(2024, 1, 1), title="t")
        plan.set_components(
            LessonComponents(
                big_question="Why do things fall?",
                retrieval_questions=[QuestionAnswer(question="What is mass?", answer="kg")],
            )
        )

        assert json.loads(plan.components_json)["big_question"] == "Why do things fall?"
        assert plan.components.retrieval_questions[0].answer == "kg"

    def test_format_text(self):
        components = LessonComponents(
            big_question="Why do things fall?",
            retrieval_questions=[
                QuestionAnswer(question="What is mass?"),
                QuestionAnswer(question="What is weight?"),
            ],
            challenge_question=QuestionAnswer(question="Is weight constant?"),
            starter_activity="Drop test",
            main_activity="Newton meters",
            plenary_activity="Exit ticket",
        )

        assert components.format_text() == (
            "Big Question: Why do things fall?\n"
            "Retrieval Questions:\n"
            "  1. What is mass?\n"
            "  2. What is weight?\n"
            "Challenge Question: Is weight constant?\n"
            "Starter: Drop test\n"
            "Main Activity: Newton meters\n"
            "Plenary: Exit ticket"
        )
