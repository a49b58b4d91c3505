"""Teacher-facing progress routes: topic, lesson and student-wide metrics.

The topic and lesson routes resolve the accuracy threshold once per request
and use it for both the alert check and the colour indicator.
"""

import uuid

from fastapi import APIRouter, Depends, Query

from progress_tracker.api.deps import get_metric_cache, get_store, require_teacher
from progress_tracker.db.models import User
from progress_tracker.schemas.progress import (
    DualMetricsResponse,
    LessonProgressResponse,
    TopicProgressResponse,
)
from progress_tracker.services.alert_service import check_and_generate_alert
from progress_tracker.services.metric_cache import MetricCache
from progress_tracker.services.preferences_service import resolve_accuracy_threshold
from progress_tracker.services.progress_helpers import get_progress_color
from progress_tracker.services.progress_service import (
    get_dual_metrics,
    get_lesson_progress,
    get_topic_progress,
)
from progress_tracker.services.store import ProgressStore

router = APIRouter()


@router.get("/topic/{topic_id}", response_model=TopicProgressResponse)
def topic_progress(
    topic_id: uuid.UUID,
    student_id: uuid.UUID = Query(...),
    threshold: float | None = Query(default=None),
    teacher: User = Depends(require_teacher),
    store: ProgressStore = Depends(get_store),
    cache: MetricCache = Depends(get_metric_cache),
):
    """Accuracy of one of the teacher's students on a topic."""
    resolved = resolve_accuracy_threshold(store, teacher.id, threshold)
    progress = get_topic_progress(store, cache, student_id, topic_id, teacher.id)
    check_and_generate_alert(store, student_id, progress.accuracy, resolved, topic_id=topic_id)
    return TopicProgressResponse(
        data=progress,
        threshold=resolved,
        indicator=get_progress_color(progress.accuracy, resolved),
    )


@router.get("/lesson/{lesson_id}", response_model=LessonProgressResponse)
def lesson_progress(
    lesson_id: uuid.UUID,
    student_id: uuid.UUID = Query(...),
    threshold: float | None = Query(default=None),
    teacher: User = Depends(require_teacher),
    store: ProgressStore = Depends(get_store),
    cache: MetricCache = Depends(get_metric_cache),
):
    """Accuracy of one of the teacher's students across a whole lesson."""
    resolved = resolve_accuracy_threshold(store, teacher.id, threshold)
    progress = get_lesson_progress(store, cache, student_id, lesson_id, teacher.id)
    check_and_generate_alert(store, student_id, progress.accuracy, resolved, lesson_id=lesson_id)
    return LessonProgressResponse(
        data=progress,
        threshold=resolved,
        indicator=get_progress_color(progress.accuracy, resolved),
    )


@router.get("/student/{student_id}/metrics", response_model=DualMetricsResponse)
def student_metrics(
    student_id: uuid.UUID,
    teacher: User = Depends(require_teacher),
    store: ProgressStore = Depends(get_store),
    cache: MetricCache = Depends(get_metric_cache),
):
    """Program progress and concept mastery for one student."""
    return DualMetricsResponse(data=get_dual_metrics(store, cache, student_id, teacher.id))
