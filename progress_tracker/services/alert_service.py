"""Accuracy alert lifecycle.

Each (student, topic-or-None, lesson-or-None) key has at most one
unresolved alert. A breach (accuracy < threshold) opens it or refreshes it in
place; a recovery (accuracy >= threshold) resolves it. Once resolved an alert
is never reopened: the next breach opens a new row.
"""

import logging
import uuid

from progress_tracker.core.errors import AccessDenied, NotFound
from progress_tracker.db.models import AccuracyAlert
from progress_tracker.services.store import ProgressStore

logger = logging.getLogger(__name__)


def check_and_generate_alert(
    store: ProgressStore,
    student_id: uuid.UUID,
    accuracy: float | None,
    threshold: float,
    topic_id: uuid.UUID | None = None,
    lesson_id: uuid.UUID | None = None,
) -> AccuracyAlert | None:
    """Create, update or auto-resolve the alert for one key.

    Returns the touched alert, or None when nothing changed. Alerting is a
    side effect of reading progress, so failures are logged and reported as
    None rather than raised.
    """
    if accuracy is None:
        return None

    try:
        if accuracy < threshold:
            alert = store.upsert_alert(
                student_id, accuracy, threshold, topic_id=topic_id, lesson_id=lesson_id
            )
            logger.info(
                "Accuracy alert %s for student %s: %.2f < %.2f",
                alert.id,
                student_id,
                accuracy,
                threshold,
            )
            return alert

        existing = store.find_unresolved_alert(student_id, topic_id, lesson_id)
        if existing is None:
            return None
        logger.info("Auto-resolving alert %s (accuracy %.2f >= %.2f)", existing.id, accuracy, threshold)
        return store.mark_alert_resolved(existing)
    except Exception:
        logger.exception(
            "Failed to check/generate alert for student %s (topic=%s, lesson=%s)",
            student_id,
            topic_id,
            lesson_id,
        )
        return None


def resolve_alert(
    store: ProgressStore, alert_id: uuid.UUID, teacher_id: uuid.UUID
) -> AccuracyAlert:
    """Manually resolve an alert, regardless of the student's current accuracy."""
    alert = store.get_alert(alert_id)
    if alert is None:
        raise NotFound(f"Alert not found: {alert_id}")
    if alert.student.teacher_id != teacher_id:
        raise AccessDenied(f"Alert {alert_id} does not belong to teacher {teacher_id}")
    return store.mark_alert_resolved(alert)


def get_alerts(
    store: ProgressStore,
    teacher_id: uuid.UUID,
    student_id: uuid.UUID | None = None,
    resolved: bool = False,
) -> list[AccuracyAlert]:
    """Alerts of the teacher's students, newest first; unresolved only by default."""
    return store.list_alerts(teacher_id, student_id=student_id, resolved=resolved)
