"""Progress aggregation over raw ProgressLog rows.

One formula serves every scope:

    total_questions = right + wrong + empty + bonus
    total_attempted = right + wrong + empty          (bonus never counts against accuracy)
    accuracy        = round2(right / total_attempted * 100), or None with no attempts

Topic and lesson progress sum the counters first and divide once, so a lesson
is weighted by question volume rather than averaged over its topics. The
student-wide dual metrics add program progress (solved / assigned, uncapped)
next to concept mastery (the same accuracy formula over every log).

The ``calculate_*`` functions authorize and compute; the ``compute_*``
functions only compute, for callers that already resolved the entities.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from progress_tracker.config import settings
from progress_tracker.core.errors import AccessDenied, NotFound
from progress_tracker.db.models import Lesson, ProgressLog, Topic, User
from progress_tracker.schemas.progress import DualMetrics, LessonProgress, TopicProgress
from progress_tracker.services.store import ProgressStore

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


def round2(numerator: int, denominator: int) -> float:
    """``numerator / denominator * 100`` rounded half-up to two decimals."""
    pct = Decimal(numerator) * 100 / Decimal(denominator)
    return float(pct.quantize(_CENT, rounding=ROUND_HALF_UP))


@dataclass
class LogTotals:
    """Summed counters of a set of progress logs."""

    right: int = 0
    wrong: int = 0
    empty: int = 0
    bonus: int = 0
    last_updated: datetime | None = None

    @property
    def total_questions(self) -> int:
        return self.right + self.wrong + self.empty + self.bonus

    @property
    def total_attempted(self) -> int:
        return self.right + self.wrong + self.empty

    @property
    def accuracy(self) -> float | None:
        if self.total_attempted == 0:
            return None
        return round2(self.right, self.total_attempted)

    def add(self, log: ProgressLog) -> None:
        self.right += log.right_count
        self.wrong += log.wrong_count
        self.empty += log.empty_count
        self.bonus += log.bonus_count
        if log.updated_at is not None and (
            self.last_updated is None or log.updated_at > self.last_updated
        ):
            self.last_updated = log.updated_at

    def merge(self, other: LogTotals) -> None:
        self.right += other.right
        self.wrong += other.wrong
        self.empty += other.empty
        self.bonus += other.bonus
        if other.last_updated is not None and (
            self.last_updated is None or other.last_updated > self.last_updated
        ):
            self.last_updated = other.last_updated

    def stamp(self) -> datetime:
        return self.last_updated or datetime.now(timezone.utc)


def summarize_logs(logs: Iterable[ProgressLog]) -> LogTotals:
    totals = LogTotals()
    for log in logs:
        totals.add(log)
    return totals


class _Timer:
    """Logs a warning when a calculation runs past ``SLOW_CALCULATION_MS``."""

    def __init__(self, name: str) -> None:
        self.name = name

    def __enter__(self) -> _Timer:
        self._start = time.perf_counter()
        return self

    def __exit__(self, *exc_info) -> None:
        elapsed_ms = (time.perf_counter() - self._start) * 1000
        if elapsed_ms > settings.SLOW_CALCULATION_MS:
            logger.warning(
                "%s took %.0fms (exceeds %dms)",
                self.name,
                elapsed_ms,
                settings.SLOW_CALCULATION_MS,
            )


# ── Tenant checks ─────────────────────────────────────────────────────────────


def authorize_student(
    store: ProgressStore, student_id: uuid.UUID, teacher_id: uuid.UUID | None
) -> User:
    """Return the student, or raise NotFound / AccessDenied for the caller's tenant."""
    student = store.get_student(student_id)
    if student is None:
        raise NotFound(f"Student not found: {student_id}")
    if teacher_id is not None and student.teacher_id != teacher_id:
        raise AccessDenied(f"Student {student_id} does not belong to teacher {teacher_id}")
    return student


def _tenant_of(student: User, teacher_id: uuid.UUID | None) -> uuid.UUID | None:
    return teacher_id if teacher_id is not None else student.teacher_id


def authorize_topic(
    store: ProgressStore, topic_id: uuid.UUID, tenant_id: uuid.UUID | None
) -> Topic:
    """A topic is visible when its lesson is global or owned by the tenant."""
    topic = store.get_topic(topic_id)
    if topic is None or not (topic.lesson.is_global or topic.lesson.teacher_id == tenant_id):
        raise NotFound(f"Topic not found: {topic_id}")
    return topic


def authorize_lesson(
    store: ProgressStore, lesson_id: uuid.UUID, tenant_id: uuid.UUID | None
) -> Lesson:
    lesson = store.get_lesson(lesson_id)
    if lesson is None or not (lesson.is_global or lesson.teacher_id == tenant_id):
        raise NotFound(f"Lesson not found: {lesson_id}")
    return lesson


# ── Topic ─────────────────────────────────────────────────────────────────────


def _topic_progress(topic: Topic, totals: LogTotals) -> TopicProgress:
    return TopicProgress(
        topic_id=topic.id,
        topic_name=topic.name,
        accuracy=totals.accuracy,
        total_questions=totals.total_questions,
        total_attempted=totals.total_attempted,
        right_count=totals.right,
        wrong_count=totals.wrong,
        empty_count=totals.empty,
        bonus_count=totals.bonus,
        last_updated=totals.stamp(),
    )


def compute_topic_progress(store: ProgressStore, student: User, topic: Topic) -> TopicProgress:
    with _Timer("compute_topic_progress"):
        logs = store.find_progress_logs(student.id, topic_id=topic.id)
        return _topic_progress(topic, summarize_logs(logs))


def calculate_topic_progress(
    store: ProgressStore,
    student_id: uuid.UUID,
    topic_id: uuid.UUID,
    teacher_id: uuid.UUID | None = None,
) -> TopicProgress:
    """Accuracy and volume of one student on one topic.

    Raises:
        NotFound: unknown student, or topic not global and not the tenant's.
        AccessDenied: student belongs to another teacher.
    """
    student = authorize_student(store, student_id, teacher_id)
    topic = authorize_topic(store, topic_id, _tenant_of(student, teacher_id))
    return compute_topic_progress(store, student, topic)


# ── Lesson ────────────────────────────────────────────────────────────────────


def compute_lesson_progress(
    store: ProgressStore, student: User, lesson: Lesson
) -> LessonProgress:
    with _Timer("compute_lesson_progress"):
        topics = store.list_lesson_topics(lesson.id)
        logs = store.find_progress_logs(student.id, lesson_id=lesson.id)

        per_topic: dict[uuid.UUID, LogTotals] = {t.id: LogTotals() for t in topics}
        for log in logs:
            per_topic.setdefault(log.assignment.topic_id, LogTotals()).add(log)

        lesson_totals = LogTotals()
        for totals in per_topic.values():
            lesson_totals.merge(totals)

        return LessonProgress(
            lesson_id=lesson.id,
            lesson_name=lesson.name,
            accuracy=lesson_totals.accuracy,
            total_questions=lesson_totals.total_questions,
            total_attempted=lesson_totals.total_attempted,
            right_count=lesson_totals.right,
            wrong_count=lesson_totals.wrong,
            empty_count=lesson_totals.empty,
            bonus_count=lesson_totals.bonus,
            topic_count=len(topics),
            topics=[_topic_progress(t, per_topic[t.id]) for t in topics],
            last_updated=lesson_totals.stamp(),
        )


def calculate_lesson_progress(
    store: ProgressStore,
    student_id: uuid.UUID,
    lesson_id: uuid.UUID,
    teacher_id: uuid.UUID | None = None,
) -> LessonProgress:
    """Topic formula summed over every topic of the lesson; no attempts → accuracy None."""
    student = authorize_student(store, student_id, teacher_id)
    lesson = authorize_lesson(store, lesson_id, _tenant_of(student, teacher_id))
    return compute_lesson_progress(store, student, lesson)


# ── Dual metrics (student-wide) ───────────────────────────────────────────────


def compute_dual_metrics(store: ProgressStore, student: User) -> DualMetrics:
    with _Timer("compute_dual_metrics"):
        totals = summarize_logs(store.find_progress_logs(student.id))
        total_assigned = store.sum_assignment_question_counts(student.id)
        total_solved = totals.total_questions

        return DualMetrics(
            program_progress=round2(total_solved, total_assigned) if total_assigned > 0 else 0.0,
            concept_mastery=totals.accuracy,
            total_solved=total_solved,
            total_assigned=total_assigned,
            total_right=totals.right,
            total_attempted=totals.total_attempted,
            last_updated=totals.stamp(),
        )


def calculate_dual_metrics(
    store: ProgressStore,
    student_id: uuid.UUID,
    teacher_id: uuid.UUID | None = None,
) -> DualMetrics:
    """Program progress (solved / assigned) and concept mastery (right / attempted)."""
    student = authorize_student(store, student_id, teacher_id)
    return compute_dual_metrics(store, student)
