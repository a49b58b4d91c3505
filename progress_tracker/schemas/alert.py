"""Accuracy alert & threshold preference schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from progress_tracker.schemas.common import NamedRef


class AlertStudent(BaseModel):
    id: uuid.UUID
    full_name: str

    model_config = {"from_attributes": True}


class AlertRead(BaseModel):
    """Alert as returned to teachers, with student / topic / lesson names."""

    id: uuid.UUID
    student_id: uuid.UUID
    topic_id: uuid.UUID | None = None
    lesson_id: uuid.UUID | None = None
    accuracy: float
    threshold: float
    resolved: bool
    resolved_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    student: AlertStudent
    topic: NamedRef | None = None
    lesson: NamedRef | None = None

    model_config = {"from_attributes": True}


class ThresholdRead(BaseModel):
    threshold: float


class ThresholdUpdate(BaseModel):
    """PUT /api/teacher/preferences/threshold"""

    threshold: float = Field(ge=0, le=100)
