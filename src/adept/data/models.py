"""Local entities read and written by the calendar sync."""

import json
import logging
from datetime import UTC, date, datetime, time

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class ClassInfo(BaseModel):
    """A taught class with its regular timetable slot."""

    id: str
    name: str = ""
    subject: str = ""
    location: str = ""
    start_time: time = time(9, 0)
    duration_minutes: int = Field(default=60, ge=0)


class QuestionAnswer(BaseModel):
    """A question and its expected answer."""

    question: str = ""
    answer: str = ""


class LessonComponents(BaseModel):
    """Structured content of a lesson, stored as a JSON blob on the plan."""

    retrieval_questions: list[QuestionAnswer] = []
    challenge_question: QuestionAnswer | None = None
    big_question: str | None = None
    starter_activity: str | None = None
    main_activity: str | None = None
    plenary_activity: str | None = None

    def is_empty(self) -> bool:
        """True when no component has any content."""
        return not (
            self.retrieval_questions
            or self.challenge_question
            or self.big_question
            or self.starter_activity
            or self.main_activity
            or self.plenary_activity
        )

    def format_text(self) -> str:
        """Format as plain text for an event description."""
        lines = []
        if self.big_question:
            lines.append(f"Big Question: {self.big_question}")
        if self.retrieval_questions:
            lines.append("Retrieval Questions:")
            for i, qa in enumerate(self.retrieval_questions, start=1):
                lines.append(f"  {i}. {qa.question}")
        if self.challenge_question:
            lines.append(f"Challenge Question: {self.challenge_question.question}")
        if self.starter_activity:
            lines.append(f"Starter: {self.starter_activity}")
        if self.main_activity:
            lines.append(f"Main Activity: {self.main_activity}")
        if self.plenary_activity:
            lines.append(f"Plenary: {self.plenary_activity}")
        return "\n".join(lines)


class LessonPlan(BaseModel):
    """A planned lesson for one class on one date.

    ``calendar_event_id`` links the plan to at most one Google Calendar event.
    """

    id: str
    class_id: str
    date: date
    time_slot: int = Field(default=0, ge=0, le=4)
    title: str = ""
    learning_objectives: str = ""
    description: str = ""
    calendar_event_id: str | None = None
    components_json: str = "{}"
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def components(self) -> LessonComponents:
        """Parsed lesson components; empty when the blob is missing or invalid."""
        if not self.components_json or self.components_json == "{}":
            return LessonComponents()
        try:
            return LessonComponents.model_validate(json.loads(self.components_json))
        except (ValueError, ValidationError):
            logger.warning(f"Invalid components JSON on lesson plan {self.id}")
            return LessonComponents()

    def set_components(self, components: LessonComponents) -> None:
        """Serialize components back into the JSON blob."""
        self.components_json = components.model_dump_json(exclude_none=True)
