"""Accuracy alert routes for teachers."""

import uuid

from fastapi import APIRouter, Depends, Query

from progress_tracker.api.deps import get_store, require_teacher
from progress_tracker.db.models import User
from progress_tracker.schemas.alert import AlertRead
from progress_tracker.services.alert_service import get_alerts, resolve_alert
from progress_tracker.services.store import ProgressStore

router = APIRouter()


@router.get("/", response_model=list[AlertRead])
def list_alerts(
    student_id: uuid.UUID | None = Query(default=None),
    resolved: bool = Query(default=False),
    teacher: User = Depends(require_teacher),
    store: ProgressStore = Depends(get_store),
):
    """Alerts of the teacher's students, newest first (unresolved by default)."""
    return get_alerts(store, teacher.id, student_id=student_id, resolved=resolved)


@router.post("/{alert_id}/resolve", response_model=AlertRead)
def resolve(
    alert_id: uuid.UUID,
    teacher: User = Depends(require_teacher),
    store: ProgressStore = Depends(get_store),
):
    """Manually resolve an alert whatever the student's current accuracy."""
    return resolve_alert(store, alert_id, teacher.id)
