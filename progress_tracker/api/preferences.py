"""Teacher preference routes (accuracy threshold)."""

from fastapi import APIRouter, Depends

from progress_tracker.api.deps import get_store, require_teacher
from progress_tracker.db.models import User
from progress_tracker.schemas.alert import ThresholdRead, ThresholdUpdate
from progress_tracker.services.preferences_service import (
    get_accuracy_threshold,
    set_accuracy_threshold,
)
from progress_tracker.services.store import ProgressStore

router = APIRouter()


@router.get("/threshold", response_model=ThresholdRead)
def read_threshold(
    teacher: User = Depends(require_teacher),
    store: ProgressStore = Depends(get_store),
):
    return ThresholdRead(threshold=get_accuracy_threshold(store, teacher.id))


@router.put("/threshold", response_model=ThresholdRead)
def update_threshold(
    body: ThresholdUpdate,
    teacher: User = Depends(require_teacher),
    store: ProgressStore = Depends(get_store),
):
    return ThresholdRead(threshold=set_accuracy_threshold(store, teacher.id, body.threshold))
