"""Progress metric & progress-log schemas."""

import uuid
from datetime import date as date_type
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class TopicProgress(BaseModel):
    """Aggregated counts and accuracy of one student on one topic.

    ``accuracy`` is ``None`` when nothing has been attempted yet, which is
    distinct from 0% accuracy.
    """

    topic_id: uuid.UUID
    topic_name: str
    accuracy: float | None = None
    total_questions: int = 0
    total_attempted: int = 0
    right_count: int = 0
    wrong_count: int = 0
    empty_count: int = 0
    bonus_count: int = 0
    last_updated: datetime


class LessonProgress(BaseModel):
    """Same formula as ``TopicProgress``, summed over every topic in the lesson."""

    lesson_id: uuid.UUID
    lesson_name: str
    accuracy: float | None = None
    total_questions: int = 0
    total_attempted: int = 0
    right_count: int = 0
    wrong_count: int = 0
    empty_count: int = 0
    bonus_count: int = 0
    topic_count: int = 0
    topics: list[TopicProgress] = []
    last_updated: datetime


class DualMetrics(BaseModel):
    """Student-wide program progress (pacing) and concept mastery (correctness)."""

    program_progress: float = 0.0
    concept_mastery: float | None = None
    total_solved: int = 0
    total_assigned: int = 0
    total_right: int = 0
    total_attempted: int = 0
    last_updated: datetime


class ProgressIndicator(BaseModel):
    """Traffic-light colour for an accuracy value against a threshold."""

    color: Literal["green", "yellow", "red"]
    status: str


class TopicProgressResponse(BaseModel):
    success: bool = True
    data: TopicProgress
    threshold: float
    indicator: ProgressIndicator


class LessonProgressResponse(BaseModel):
    success: bool = True
    data: LessonProgress
    threshold: float
    indicator: ProgressIndicator


class DualMetricsResponse(BaseModel):
    success: bool = True
    data: DualMetrics


# ── Progress logs ─────────────────────────────────────────────────────────────


class ProgressLogCreate(BaseModel):
    """POST /api/student/progress: create or overwrite the log for one day."""

    assignment_id: uuid.UUID
    right_count: int = Field(ge=0)
    wrong_count: int = Field(ge=0)
    empty_count: int = Field(ge=0)
    bonus_count: int = Field(default=0, ge=0)
    date: date_type | None = None  # defaults to today

    @property
    def total_questions(self) -> int:
        return self.right_count + self.wrong_count + self.empty_count + self.bonus_count


class ProgressLogRead(BaseModel):
    id: uuid.UUID
    assignment_id: uuid.UUID
    date: date_type
    right_count: int
    wrong_count: int
    empty_count: int
    bonus_count: int

    model_config = {"from_attributes": True}


class DailyProgressRead(BaseModel):
    """GET /api/student/progress: the day's active assignment and its log."""

    assignment_id: uuid.UUID
    date: date_type
    log: ProgressLogRead | None = None
