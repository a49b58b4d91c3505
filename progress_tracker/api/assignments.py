"""Teacher assignment routes."""

import uuid

from fastapi import APIRouter, Depends, Query, Response, status

from progress_tracker.api.deps import get_metric_cache, get_store, require_teacher
from progress_tracker.db.models import User
from progress_tracker.schemas.assignment import AssignmentCreate, AssignmentRead, AssignmentUpdate
from progress_tracker.services import assignment_service
from progress_tracker.services.metric_cache import MetricCache
from progress_tracker.services.store import ProgressStore

router = APIRouter()


@router.get("/", response_model=list[AssignmentRead])
def list_assignments(
    student_id: uuid.UUID | None = Query(default=None),
    teacher: User = Depends(require_teacher),
    store: ProgressStore = Depends(get_store),
):
    return assignment_service.list_assignments(store, teacher.id, student_id)


@router.post("/", response_model=AssignmentRead, status_code=status.HTTP_201_CREATED)
def create_assignment(
    body: AssignmentCreate,
    teacher: User = Depends(require_teacher),
    store: ProgressStore = Depends(get_store),
    cache: MetricCache = Depends(get_metric_cache),
):
    return assignment_service.create_assignment(store, cache, teacher.id, body)


@router.patch("/{assignment_id}", response_model=AssignmentRead)
def update_assignment(
    assignment_id: uuid.UUID,
    body: AssignmentUpdate,
    teacher: User = Depends(require_teacher),
    store: ProgressStore = Depends(get_store),
    cache: MetricCache = Depends(get_metric_cache),
):
    return assignment_service.update_assignment(store, cache, teacher.id, assignment_id, body)


@router.delete("/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_assignment(
    assignment_id: uuid.UUID,
    teacher: User = Depends(require_teacher),
    store: ProgressStore = Depends(get_store),
    cache: MetricCache = Depends(get_metric_cache),
):
    assignment_service.delete_assignment(store, cache, teacher.id, assignment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
