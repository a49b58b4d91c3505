"""Assignment create / update / delete.

Assignment question counts feed ``total_assigned`` and deleting one cascades
its logs, so every write invalidates the student's cached metrics.
"""

import logging
import uuid

from progress_tracker.core.errors import AccessDenied, InvalidInput, NotFound
from progress_tracker.db.models import Assignment
from progress_tracker.schemas.assignment import AssignmentCreate, AssignmentUpdate
from progress_tracker.services.metric_cache import (
    MetricCache,
    invalidate_student_progress_caches,
)
from progress_tracker.services.progress_calculator import authorize_student, authorize_topic
from progress_tracker.services.store import ProgressStore

logger = logging.getLogger(__name__)


def _owned_assignment(
    store: ProgressStore, assignment_id: uuid.UUID, teacher_id: uuid.UUID
) -> Assignment:
    assignment = store.get_assignment(assignment_id)
    if assignment is None:
        raise NotFound(f"Assignment not found: {assignment_id}")
    if assignment.student.teacher_id != teacher_id:
        raise AccessDenied(f"Assignment {assignment_id} does not belong to teacher {teacher_id}")
    return assignment


def create_assignment(
    store: ProgressStore, cache: MetricCache, teacher_id: uuid.UUID, body: AssignmentCreate
) -> Assignment:
    authorize_student(store, body.student_id, teacher_id)
    authorize_topic(store, body.topic_id, teacher_id)

    assignment = store.add_assignment(
        Assignment(
            student_id=body.student_id,
            topic_id=body.topic_id,
            question_count=body.question_count,
            daily_target=body.daily_target,
            start_date=body.start_date,
            end_date=body.end_date,
            notes=body.notes,
        )
    )
    logger.info(
        "Assignment %s created for student %s (%d questions)",
        assignment.id,
        body.student_id,
        body.question_count,
    )
    invalidate_student_progress_caches(cache, body.student_id)
    return assignment


def update_assignment(
    store: ProgressStore,
    cache: MetricCache,
    teacher_id: uuid.UUID,
    assignment_id: uuid.UUID,
    body: AssignmentUpdate,
) -> Assignment:
    assignment = _owned_assignment(store, assignment_id, teacher_id)
    for field, value in body.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(assignment, field, value)
    if assignment.end_date < assignment.start_date:
        store.rollback()
        raise InvalidInput("end_date must not be before start_date")

    assignment = store.save_assignment(assignment)
    invalidate_student_progress_caches(cache, assignment.student_id)
    return assignment


def delete_assignment(
    store: ProgressStore, cache: MetricCache, teacher_id: uuid.UUID, assignment_id: uuid.UUID
) -> None:
    assignment = _owned_assignment(store, assignment_id, teacher_id)
    student_id = assignment.student_id
    store.delete_assignment(assignment)
    logger.info("Assignment %s deleted", assignment_id)
    invalidate_student_progress_caches(cache, student_id)


def list_assignments(
    store: ProgressStore, teacher_id: uuid.UUID, student_id: uuid.UUID | None = None
) -> list[Assignment]:
    return store.list_assignments(teacher_id, student_id=student_id)
