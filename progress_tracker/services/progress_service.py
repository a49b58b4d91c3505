"""Cache-checking progress reads and the ProgressLog write path.

Reads authorize first, then consult the cache, so a cached metric is never
served to a caller outside the student's tenant. Writes invalidate every
cache entry the new row can influence once the row is committed.
"""

import logging
import uuid
from datetime import date, timedelta

from progress_tracker.config import settings
from progress_tracker.core.errors import AccessDenied, InvalidInput, NotFound
from progress_tracker.db.models import ProgressLog
from progress_tracker.schemas.progress import (
    DailyProgressRead,
    DualMetrics,
    LessonProgress,
    ProgressLogCreate,
    ProgressLogRead,
    TopicProgress,
)
from progress_tracker.services import progress_calculator as calc
from progress_tracker.services.metric_cache import (
    CacheKey,
    MetricCache,
    invalidate_student_progress_caches,
)
from progress_tracker.services.store import ProgressStore

logger = logging.getLogger(__name__)

# Oldest day a student may look back on
MAX_LOOKBACK = timedelta(days=365)


# ── Reads ─────────────────────────────────────────────────────────────────────


def get_topic_progress(
    store: ProgressStore,
    cache: MetricCache,
    student_id: uuid.UUID,
    topic_id: uuid.UUID,
    teacher_id: uuid.UUID | None = None,
) -> TopicProgress:
    student = calc.authorize_student(store, student_id, teacher_id)
    topic = calc.authorize_topic(store, topic_id, teacher_id or student.teacher_id)

    key = CacheKey.topic(student_id, topic_id)
    cached = cache.get(key)
    if cached is not None:
        return cached  # type: ignore[return-value]

    result = calc.compute_topic_progress(store, student, topic)
    cache.set(key, result)
    return result


def get_lesson_progress(
    store: ProgressStore,
    cache: MetricCache,
    student_id: uuid.UUID,
    lesson_id: uuid.UUID,
    teacher_id: uuid.UUID | None = None,
) -> LessonProgress:
    student = calc.authorize_student(store, student_id, teacher_id)
    lesson = calc.authorize_lesson(store, lesson_id, teacher_id or student.teacher_id)

    key = CacheKey.lesson(student_id, lesson_id)
    cached = cache.get(key)
    if cached is not None:
        return cached  # type: ignore[return-value]

    result = calc.compute_lesson_progress(store, student, lesson)
    cache.set(key, result)
    return result


def get_dual_metrics(
    store: ProgressStore,
    cache: MetricCache,
    student_id: uuid.UUID,
    teacher_id: uuid.UUID | None = None,
) -> DualMetrics:
    student = calc.authorize_student(store, student_id, teacher_id)

    key = CacheKey.dual(student_id)
    cached = cache.get(key)
    if cached is not None:
        return cached  # type: ignore[return-value]

    result = calc.compute_dual_metrics(store, student)
    cache.set(key, result)
    return result


# ── Progress log writes ───────────────────────────────────────────────────────


def log_progress(
    store: ProgressStore,
    cache: MetricCache,
    student_id: uuid.UUID,
    body: ProgressLogCreate,
    today: date | None = None,
) -> ProgressLog:
    """Upsert the student's log for (assignment, day) and invalidate their metrics."""
    today = today or date.today()
    if body.total_questions > settings.MAX_DAILY_QUESTIONS:
        raise InvalidInput(
            f"Total questions cannot exceed {settings.MAX_DAILY_QUESTIONS} per day "
            f"(got {body.total_questions})"
        )

    target = body.date or today
    if target > today:
        raise InvalidInput("Cannot log progress for future dates")

    assignment = store.find_active_assignment(student_id, target, body.assignment_id)
    if assignment is None:
        raise AccessDenied("Assignment not found or access denied")

    log = store.upsert_progress_log(
        student_id,
        assignment.id,
        target,
        right_count=body.right_count,
        wrong_count=body.wrong_count,
        empty_count=body.empty_count,
        bonus_count=body.bonus_count,
    )
    logger.info(
        "Progress logged: student=%s assignment=%s date=%s total=%d",
        student_id,
        assignment.id,
        target,
        body.total_questions,
    )
    invalidate_student_progress_caches(cache, student_id)
    return log


def get_daily_progress(
    store: ProgressStore,
    student_id: uuid.UUID,
    on_date: date | None = None,
    today: date | None = None,
) -> DailyProgressRead:
    """The assignment active on *on_date* and the log already saved for it, if any."""
    today = today or date.today()
    target = on_date or today
    if target > today:
        raise InvalidInput("Cannot retrieve progress for future dates")
    if target < today - MAX_LOOKBACK:
        raise InvalidInput("Cannot retrieve progress for dates more than 1 year ago")

    assignment = store.find_active_assignment(student_id, target)
    if assignment is None:
        raise NotFound("No active assignment found for this date")

    log = store.get_progress_log(student_id, assignment.id, target)
    return DailyProgressRead(
        assignment_id=assignment.id,
        date=target,
        log=ProgressLogRead.model_validate(log) if log else None,
    )
