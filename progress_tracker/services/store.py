"""Relational store adapter used by the progress services.

Every query the aggregator, alert engine and preference glue need goes
through ``ProgressStore`` so those modules never touch SQLAlchemy directly.
Database errors are rolled back and re-raised as ``StorageFailure``.
"""

import logging
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Iterator

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from progress_tracker.core.errors import StorageFailure
from progress_tracker.db.models import (
    AccuracyAlert,
    Assignment,
    Lesson,
    ProgressLog,
    RoleEnum,
    Topic,
    User,
    UserPreference,
    alert_scope_key,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProgressStore:
    """Thin query layer over a SQLAlchemy session."""

    def __init__(self, db: Session) -> None:
        self.db = db

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Store operation %s failed: %s", operation, exc)
            raise StorageFailure(f"Storage error during {operation}") from exc

    def rollback(self) -> None:
        """Discard pending, uncommitted changes on the session."""
        self.db.rollback()

    # ── users / lessons / topics ──────────────────────────────────────────

    def get_user(self, user_id: uuid.UUID) -> User | None:
        with self._guard("get_user"):
            return self.db.query(User).filter(User.id == user_id).first()

    def get_student(self, student_id: uuid.UUID) -> User | None:
        with self._guard("get_student"):
            return (
                self.db.query(User)
                .filter(User.id == student_id, User.role == RoleEnum.STUDENT)
                .first()
            )

    def get_topic(self, topic_id: uuid.UUID) -> Topic | None:
        with self._guard("get_topic"):
            return (
                self.db.query(Topic)
                .options(joinedload(Topic.lesson))
                .filter(Topic.id == topic_id)
                .first()
            )

    def get_lesson(self, lesson_id: uuid.UUID) -> Lesson | None:
        with self._guard("get_lesson"):
            return self.db.query(Lesson).filter(Lesson.id == lesson_id).first()

    def list_lesson_topics(self, lesson_id: uuid.UUID) -> list[Topic]:
        with self._guard("list_lesson_topics"):
            return (
                self.db.query(Topic)
                .filter(Topic.lesson_id == lesson_id)
                .order_by(Topic.name.asc())
                .all()
            )

    # ── progress logs ─────────────────────────────────────────────────────

    def find_progress_logs(
        self,
        student_id: uuid.UUID,
        *,
        assignment_id: uuid.UUID | None = None,
        topic_id: uuid.UUID | None = None,
        lesson_id: uuid.UUID | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[ProgressLog]:
        """Return a student's logs, optionally narrowed to one scope and a date range."""
        with self._guard("find_progress_logs"):
            q = (
                self.db.query(ProgressLog)
                .join(Assignment, ProgressLog.assignment_id == Assignment.id)
                .options(joinedload(ProgressLog.assignment))
                .filter(ProgressLog.student_id == student_id)
            )
            if assignment_id is not None:
                q = q.filter(ProgressLog.assignment_id == assignment_id)
            if topic_id is not None:
                q = q.filter(Assignment.topic_id == topic_id)
            if lesson_id is not None:
                q = q.join(Topic, Assignment.topic_id == Topic.id).filter(
                    Topic.lesson_id == lesson_id
                )
            if date_from is not None:
                q = q.filter(ProgressLog.date >= date_from)
            if date_to is not None:
                q = q.filter(ProgressLog.date <= date_to)
            return q.all()

    def get_progress_log(
        self, student_id: uuid.UUID, assignment_id: uuid.UUID, on_date: date
    ) -> ProgressLog | None:
        with self._guard("get_progress_log"):
            return (
                self.db.query(ProgressLog)
                .filter(
                    ProgressLog.student_id == student_id,
                    ProgressLog.assignment_id == assignment_id,
                    ProgressLog.date == on_date,
                )
                .first()
            )

    def upsert_progress_log(
        self,
        student_id: uuid.UUID,
        assignment_id: uuid.UUID,
        on_date: date,
        *,
        right_count: int,
        wrong_count: int,
        empty_count: int,
        bonus_count: int,
    ) -> ProgressLog:
        """Create or overwrite the single log for (student, assignment, day)."""
        counts = {
            "right_count": right_count,
            "wrong_count": wrong_count,
            "empty_count": empty_count,
            "bonus_count": bonus_count,
        }
        with self._guard("upsert_progress_log"):
            log = self.get_progress_log(student_id, assignment_id, on_date)
            if log is None:
                log = ProgressLog(
                    student_id=student_id,
                    assignment_id=assignment_id,
                    date=on_date,
                    **counts,
                )
                self.db.add(log)
                try:
                    self.db.commit()
                except IntegrityError:
                    # Lost an insert race for the same day: overwrite the winner
                    self.db.rollback()
                    log = self.get_progress_log(student_id, assignment_id, on_date)
                    if log is None:
                        raise
                    self._apply_counts(log, counts)
                    self.db.commit()
            else:
                self._apply_counts(log, counts)
                self.db.commit()
            self.db.refresh(log)
            return log

    @staticmethod
    def _apply_counts(log: ProgressLog, counts: dict[str, int]) -> None:
        for field, value in counts.items():
            setattr(log, field, value)
        log.updated_at = _utcnow()

    # ── assignments ───────────────────────────────────────────────────────

    def sum_assignment_question_counts(self, student_id: uuid.UUID) -> int:
        with self._guard("sum_assignment_question_counts"):
            total = (
                self.db.query(func.coalesce(func.sum(Assignment.question_count), 0))
                .filter(Assignment.student_id == student_id)
                .scalar()
            )
            return int(total or 0)

    def get_assignment(self, assignment_id: uuid.UUID) -> Assignment | None:
        with self._guard("get_assignment"):
            return (
                self.db.query(Assignment)
                .options(joinedload(Assignment.student))
                .filter(Assignment.id == assignment_id)
                .first()
            )

    def find_active_assignment(
        self,
        student_id: uuid.UUID,
        on_date: date,
        assignment_id: uuid.UUID | None = None,
    ) -> Assignment | None:
        """Assignment of the student whose [start_date, end_date] covers *on_date*."""
        with self._guard("find_active_assignment"):
            q = self.db.query(Assignment).filter(
                Assignment.student_id == student_id,
                Assignment.start_date <= on_date,
                Assignment.end_date >= on_date,
            )
            if assignment_id is not None:
                q = q.filter(Assignment.id == assignment_id)
            return q.order_by(Assignment.start_date.asc()).first()

    def list_assignments(
        self, teacher_id: uuid.UUID, student_id: uuid.UUID | None = None
    ) -> list[Assignment]:
        with self._guard("list_assignments"):
            q = (
                self.db.query(Assignment)
                .join(User, Assignment.student_id == User.id)
                .filter(User.teacher_id == teacher_id)
            )
            if student_id is not None:
                q = q.filter(Assignment.student_id == student_id)
            return q.order_by(Assignment.start_date.desc()).all()

    def add_assignment(self, assignment: Assignment) -> Assignment:
        with self._guard("add_assignment"):
            self.db.add(assignment)
            self.db.commit()
            self.db.refresh(assignment)
            return assignment

    def save_assignment(self, assignment: Assignment) -> Assignment:
        with self._guard("save_assignment"):
            assignment.updated_at = _utcnow()
            self.db.commit()
            self.db.refresh(assignment)
            return assignment

    def delete_assignment(self, assignment: Assignment) -> None:
        with self._guard("delete_assignment"):
            self.db.delete(assignment)
            self.db.commit()

    # ── accuracy alerts ───────────────────────────────────────────────────

    def find_unresolved_alert(
        self,
        student_id: uuid.UUID,
        topic_id: uuid.UUID | None = None,
        lesson_id: uuid.UUID | None = None,
    ) -> AccuracyAlert | None:
        with self._guard("find_unresolved_alert"):
            return (
                self.db.query(AccuracyAlert)
                .filter(
                    AccuracyAlert.student_id == student_id,
                    AccuracyAlert.scope_key == alert_scope_key(topic_id, lesson_id),
                    AccuracyAlert.resolved.is_(False),
                )
                .first()
            )

    def upsert_alert(
        self,
        student_id: uuid.UUID,
        accuracy: float,
        threshold: float,
        topic_id: uuid.UUID | None = None,
        lesson_id: uuid.UUID | None = None,
    ) -> AccuracyAlert:
        """Update the unresolved alert for the key in place, or open a new one."""
        alert = self.find_unresolved_alert(student_id, topic_id, lesson_id)
        if alert is not None:
            return self.update_alert(alert, accuracy, threshold)
        try:
            return self.create_alert(student_id, accuracy, threshold, topic_id, lesson_id)
        except StorageFailure as exc:
            if not isinstance(exc.__cause__, IntegrityError):
                raise
            # A concurrent request opened the alert first: update theirs
            alert = self.find_unresolved_alert(student_id, topic_id, lesson_id)
            if alert is None:
                raise
            return self.update_alert(alert, accuracy, threshold)

    def create_alert(
        self,
        student_id: uuid.UUID,
        accuracy: float,
        threshold: float,
        topic_id: uuid.UUID | None = None,
        lesson_id: uuid.UUID | None = None,
    ) -> AccuracyAlert:
        with self._guard("create_alert"):
            alert = AccuracyAlert(
                student_id=student_id,
                topic_id=topic_id,
                lesson_id=lesson_id,
                scope_key=alert_scope_key(topic_id, lesson_id),
                accuracy=accuracy,
                threshold=threshold,
                resolved=False,
            )
            self.db.add(alert)
            self.db.commit()
            self.db.refresh(alert)
            return alert

    def update_alert(
        self, alert: AccuracyAlert, accuracy: float, threshold: float
    ) -> AccuracyAlert:
        """Record a repeated breach; ``created_at`` keeps the first breach time."""
        with self._guard("update_alert"):
            alert.accuracy = accuracy
            alert.threshold = threshold
            alert.updated_at = _utcnow()
            self.db.commit()
            self.db.refresh(alert)
            return alert

    def mark_alert_resolved(self, alert: AccuracyAlert) -> AccuracyAlert:
        with self._guard("mark_alert_resolved"):
            now = _utcnow()
            alert.resolved = True
            alert.resolved_at = now
            alert.updated_at = now
            self.db.commit()
            self.db.refresh(alert)
            return alert

    def get_alert(self, alert_id: uuid.UUID) -> AccuracyAlert | None:
        with self._guard("get_alert"):
            return (
                self.db.query(AccuracyAlert)
                .options(joinedload(AccuracyAlert.student))
                .filter(AccuracyAlert.id == alert_id)
                .first()
            )

    def list_alerts(
        self,
        teacher_id: uuid.UUID,
        student_id: uuid.UUID | None = None,
        resolved: bool = False,
    ) -> list[AccuracyAlert]:
        with self._guard("list_alerts"):
            q = (
                self.db.query(AccuracyAlert)
                .join(User, AccuracyAlert.student_id == User.id)
                .options(
                    joinedload(AccuracyAlert.student),
                    joinedload(AccuracyAlert.topic),
                    joinedload(AccuracyAlert.lesson),
                )
                .filter(User.teacher_id == teacher_id, AccuracyAlert.resolved.is_(resolved))
            )
            if student_id is not None:
                q = q.filter(AccuracyAlert.student_id == student_id)
            return q.order_by(AccuracyAlert.created_at.desc()).all()

    # ── preferences ───────────────────────────────────────────────────────

    def get_preference(self, user_id: uuid.UUID, key: str) -> str | None:
        with self._guard("get_preference"):
            pref = (
                self.db.query(UserPreference)
                .filter(UserPreference.user_id == user_id, UserPreference.key == key)
                .first()
            )
            return pref.value if pref else None

    def set_preference(self, user_id: uuid.UUID, key: str, value: str) -> None:
        with self._guard("set_preference"):
            pref = (
                self.db.query(UserPreference)
                .filter(UserPreference.user_id == user_id, UserPreference.key == key)
                .first()
            )
            if pref is None:
                self.db.add(UserPreference(user_id=user_id, key=key, value=value))
            else:
                pref.value = value
            self.db.commit()

    def delete_preference(self, user_id: uuid.UUID, key: str) -> bool:
        with self._guard("delete_preference"):
            deleted = (
                self.db.query(UserPreference)
                .filter(UserPreference.user_id == user_id, UserPreference.key == key)
                .delete(synchronize_session=False)
            )
            self.db.commit()
            return bool(deleted)
