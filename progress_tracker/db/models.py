"""SQLAlchemy ORM models for the progress tracker.

Tables
------
- users             – teachers, their students, admins
- lessons           – global (teacher_id NULL) or custom (owned by one teacher)
- topics            – belong to one lesson, inherit its visibility
- assignments       – student × topic work package with a question budget
- progress_logs     – one row per (student, assignment, calendar day)
- accuracy_alerts   – low-accuracy alerts per (student, topic-or-lesson)
- user_preferences  – per-user key/value settings (e.g. accuracy_threshold)
"""

import enum
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from progress_tracker.db.session import Base


# ── helpers ───────────────────────────────────────────────────────────────────


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


def alert_scope_key(topic_id: uuid.UUID | None, lesson_id: uuid.UUID | None) -> str:
    """Collapse the nullable (topic, lesson) pair into one indexable string.

    NULLs never collide in a unique index, so the pair is folded into a
    non-null key before it reaches the partial unique index below.
    """
    return f"{topic_id or '-'}:{lesson_id or '-'}"


# ── Enums (stored as VARCHAR via SQLAlchemy Enum) ─────────────────────────────


class RoleEnum(str, enum.Enum):
    TEACHER = "teacher"
    STUDENT = "student"
    ADMIN = "admin"


# ── Users ─────────────────────────────────────────────────────────────────────


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    full_name: Mapped[str] = mapped_column(String(255))
    role: Mapped[RoleEnum] = mapped_column(
        Enum(RoleEnum, name="role_enum"), default=RoleEnum.STUDENT
    )
    # Tenant owner: set for students, NULL for teachers and admins
    teacher_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    # relationships
    teacher: Mapped["User | None"] = relationship(
        "User", remote_side="User.id", back_populates="students"
    )
    students: Mapped[list["User"]] = relationship("User", back_populates="teacher")
    assignments: Mapped[list["Assignment"]] = relationship(
        back_populates="student", cascade="all, delete-orphan"
    )
    progress_logs: Mapped[list["ProgressLog"]] = relationship(
        back_populates="student", cascade="all, delete-orphan"
    )
    alerts: Mapped[list["AccuracyAlert"]] = relationship(
        back_populates="student", cascade="all, delete-orphan"
    )
    preferences: Mapped[list["UserPreference"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )


# ── Lessons & Topics ──────────────────────────────────────────────────────────


class Lesson(Base):
    __tablename__ = "lessons"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    name: Mapped[str] = mapped_column(String(200))
    # NULL = global lesson visible to every teacher
    teacher_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    topics: Mapped[list["Topic"]] = relationship(
        back_populates="lesson", cascade="all, delete-orphan", order_by="Topic.name"
    )

    @property
    def is_global(self) -> bool:
        return self.teacher_id is None


class Topic(Base):
    __tablename__ = "topics"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    name: Mapped[str] = mapped_column(String(200))
    lesson_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("lessons.id"), index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    lesson: Mapped["Lesson"] = relationship(back_populates="topics")

    __table_args__ = (
        UniqueConstraint("lesson_id", "name", name="uq_topic_lesson_name"),
    )


# ── Assignments ───────────────────────────────────────────────────────────────


class Assignment(Base):
    __tablename__ = "assignments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    topic_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("topics.id"), index=True
    )
    question_count: Mapped[int] = mapped_column(Integer)
    daily_target: Mapped[int] = mapped_column(Integer)
    start_date: Mapped[date] = mapped_column(Date)
    end_date: Mapped[date] = mapped_column(Date)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    student: Mapped["User"] = relationship(back_populates="assignments")
    topic: Mapped["Topic"] = relationship("Topic")
    progress_logs: Mapped[list["ProgressLog"]] = relationship(
        back_populates="assignment", cascade="all, delete-orphan"
    )

    @property
    def is_past(self) -> bool:
        return self.end_date < date.today()


# ── Progress logs (one row per student × assignment × day) ────────────────────


class ProgressLog(Base):
    __tablename__ = "progress_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    assignment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("assignments.id", ondelete="CASCADE"), index=True
    )
    date: Mapped[date] = mapped_column(Date)
    right_count: Mapped[int] = mapped_column(Integer, default=0)
    wrong_count: Mapped[int] = mapped_column(Integer, default=0)
    empty_count: Mapped[int] = mapped_column(Integer, default=0)
    bonus_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    student: Mapped["User"] = relationship(back_populates="progress_logs")
    assignment: Mapped["Assignment"] = relationship(back_populates="progress_logs")

    __table_args__ = (
        UniqueConstraint(
            "student_id", "assignment_id", "date", name="uq_progress_log_student_assignment_date"
        ),
    )


# ── Accuracy alerts ───────────────────────────────────────────────────────────


class AccuracyAlert(Base):
    __tablename__ = "accuracy_alerts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    topic_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("topics.id"), nullable=True
    )
    lesson_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("lessons.id"), nullable=True
    )
    scope_key: Mapped[str] = mapped_column(String(80))
    accuracy: Mapped[float] = mapped_column(Float)
    threshold: Mapped[float] = mapped_column(Float)
    resolved: Mapped[bool] = mapped_column(Boolean, default=False)
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    student: Mapped["User"] = relationship(back_populates="alerts")
    topic: Mapped["Topic | None"] = relationship("Topic")
    lesson: Mapped["Lesson | None"] = relationship("Lesson")

    __table_args__ = (
        # At most one unresolved alert per (student, topic-or-null, lesson-or-null)
        Index(
            "uq_accuracy_alert_unresolved",
            "student_id",
            "scope_key",
            unique=True,
            postgresql_where=text("NOT resolved"),
            sqlite_where=text("NOT resolved"),
        ),
    )


# ── User preferences ──────────────────────────────────────────────────────────


class UserPreference(Base):
    __tablename__ = "user_preferences"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE")
    )
    key: Mapped[str] = mapped_column(String(100))
    value: Mapped[str] = mapped_column(String(500))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    user: Mapped["User"] = relationship(back_populates="preferences")

    __table_args__ = (UniqueConstraint("user_id", "key", name="uq_user_preference_key"),)
