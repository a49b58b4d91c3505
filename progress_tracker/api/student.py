"""Student-facing daily progress logging."""

from datetime import date

from fastapi import APIRouter, Depends, Query

from progress_tracker.api.deps import get_metric_cache, get_store, require_student
from progress_tracker.db.models import User
from progress_tracker.schemas.progress import DailyProgressRead, ProgressLogCreate, ProgressLogRead
from progress_tracker.services.metric_cache import MetricCache
from progress_tracker.services.progress_service import get_daily_progress, log_progress
from progress_tracker.services.store import ProgressStore

router = APIRouter()


@router.get("/progress", response_model=DailyProgressRead)
def read_daily_progress(
    on_date: date | None = Query(default=None, alias="date"),
    student: User = Depends(require_student),
    store: ProgressStore = Depends(get_store),
):
    """Active assignment for the day (default today) and any saved log."""
    return get_daily_progress(store, student.id, on_date)


@router.post("/progress", response_model=ProgressLogRead)
def save_daily_progress(
    body: ProgressLogCreate,
    student: User = Depends(require_student),
    store: ProgressStore = Depends(get_store),
    cache: MetricCache = Depends(get_metric_cache),
):
    """Create or overwrite the log for (assignment, day)."""
    return log_progress(store, cache, student.id, body)
