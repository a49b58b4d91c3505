"""Assignment schemas."""

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field, model_validator


class AssignmentCreate(BaseModel):
    """POST /api/teacher/assignments"""

    student_id: uuid.UUID
    topic_id: uuid.UUID
    question_count: int = Field(gt=0)
    daily_target: int = Field(gt=0)
    start_date: date
    end_date: date
    notes: str | None = None

    @model_validator(mode="after")
    def _check_dates(self) -> "AssignmentCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class AssignmentUpdate(BaseModel):
    """PATCH /api/teacher/assignments/{id}: every field optional."""

    question_count: int | None = Field(default=None, gt=0)
    daily_target: int | None = Field(default=None, gt=0)
    start_date: date | None = None
    end_date: date | None = None
    notes: str | None = None


class AssignmentRead(BaseModel):
    id: uuid.UUID
    student_id: uuid.UUID
    topic_id: uuid.UUID
    question_count: int
    daily_target: int
    start_date: date
    end_date: date
    notes: str | None = None
    is_past: bool
    created_at: datetime

    model_config = {"from_attributes": True}
