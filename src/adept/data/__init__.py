"""Local SQLite storage for classes, lesson plans and settings."""

from adept.data.database import Database
from adept.data.models import ClassInfo, LessonComponents, LessonPlan, QuestionAnswer
from adept.data.repositories import ClassRepository, LessonPlanRepository
from adept.data.settings_store import SettingsStore

__all__ = [
    "ClassInfo",
    "ClassRepository",
    "Database",
    "LessonComponents",
    "LessonPlan",
    "LessonPlanRepository",
    "QuestionAnswer",
    "SettingsStore",
]
