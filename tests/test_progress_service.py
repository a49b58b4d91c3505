"""Tests for cached progress reads, progress logging and assignment writes."""

import uuid
from datetime import date, timedelta
from unittest.mock import MagicMock, patch

import pytest

from progress_tracker.core.errors import AccessDenied, InvalidInput, NotFound
from progress_tracker.db.models import ProgressLog
from progress_tracker.schemas.assignment import AssignmentCreate, AssignmentUpdate
from progress_tracker.schemas.progress import ProgressLogCreate
from progress_tracker.services import assignment_service
from progress_tracker.services import progress_calculator as calc
from progress_tracker.services.metric_cache import CacheKey
from progress_tracker.services.progress_service import (
    get_daily_progress,
    get_dual_metrics,
    get_lesson_progress,
    get_topic_progress,
    log_progress,
)

TODAY = date.today()


@pytest.fixture
def world(factory):
    teacher = factory.teacher()
    student = factory.student(teacher)
    lesson = factory.lesson()
    topic = factory.topic(lesson)
    assignment = factory.assignment(student, topic, question_count=250)
    return teacher, student, lesson, topic, assignment


def _entry(assignment, right=0, wrong=0, empty=0, bonus=0, day=None) -> ProgressLogCreate:
    return ProgressLogCreate(
        assignment_id=assignment.id,
        right_count=right,
        wrong_count=wrong,
        empty_count=empty,
        bonus_count=bonus,
        date=day,
    )


# ── Cached reads ───────────────────────────────────────────────────────────────


def test_cache_hit_skips_recomputation(store, cache, world):
    teacher, student, _, topic, _ = world

    with patch.object(calc, "compute_topic_progress", wraps=calc.compute_topic_progress) as spy:
        first = get_topic_progress(store, cache, student.id, topic.id, teacher.id)
        second = get_topic_progress(store, cache, student.id, topic.id, teacher.id)

    assert spy.call_count == 1
    assert second == first
    assert cache.get(CacheKey.topic(student.id, topic.id)) == first


def test_logging_progress_refreshes_cached_metrics(store, cache, world):
    teacher, student, lesson, topic, assignment = world
    assert get_topic_progress(store, cache, student.id, topic.id, teacher.id).accuracy is None
    assert get_lesson_progress(store, cache, student.id, lesson.id, teacher.id).accuracy is None
    assert get_dual_metrics(store, cache, student.id, teacher.id).total_solved == 0

    log_progress(store, cache, student.id, _entry(assignment, right=3, wrong=1))

    assert get_topic_progress(store, cache, student.id, topic.id, teacher.id).accuracy == 75.0
    assert get_lesson_progress(store, cache, student.id, lesson.id, teacher.id).accuracy == 75.0
    assert get_dual_metrics(store, cache, student.id, teacher.id).total_solved == 4


def test_cached_metric_is_not_served_to_another_teacher(store, cache, factory, world):
    teacher, student, _, topic, _ = world
    stranger = factory.teacher()
    get_topic_progress(store, cache, student.id, topic.id, teacher.id)
    get_dual_metrics(store, cache, student.id, teacher.id)

    with pytest.raises(AccessDenied):
        get_topic_progress(store, cache, student.id, topic.id, stranger.id)
    with pytest.raises(AccessDenied):
        get_dual_metrics(store, cache, student.id, stranger.id)


# ── Progress logging ───────────────────────────────────────────────────────────


def test_log_progress_upserts_one_row_per_day(db, store, cache, world):
    _, student, _, _, assignment = world

    first = log_progress(store, cache, student.id, _entry(assignment, right=5, wrong=5))
    second = log_progress(store, cache, student.id, _entry(assignment, right=8, wrong=1, bonus=2))

    assert second.id == first.id
    rows = db.query(ProgressLog).filter(ProgressLog.student_id == student.id).all()
    assert len(rows) == 1
    assert (rows[0].right_count, rows[0].wrong_count, rows[0].bonus_count) == (8, 1, 2)
    assert rows[0].date == TODAY


def test_log_progress_accepts_past_day_in_window(store, cache, world):
    _, student, _, _, assignment = world
    yesterday = TODAY - timedelta(days=1)

    log = log_progress(store, cache, student.id, _entry(assignment, right=1, day=yesterday))

    assert log.date == yesterday


def test_log_progress_daily_cap(store, cache, world):
    _, student, _, _, assignment = world

    log_progress(store, cache, student.id, _entry(assignment, right=1000))
    with pytest.raises(InvalidInput):
        log_progress(store, cache, student.id, _entry(assignment, right=900, bonus=101))


def test_log_progress_rejects_future_dates(store, cache, world):
    _, student, _, _, assignment = world

    with pytest.raises(InvalidInput):
        log_progress(store, cache, student.id, _entry(assignment, right=1, day=TODAY + timedelta(days=1)))


def test_log_progress_outside_assignment_window_is_denied(store, cache, world):
    _, student, _, _, assignment = world

    with pytest.raises(AccessDenied):
        log_progress(store, cache, student.id, _entry(assignment, right=1, day=TODAY - timedelta(days=30)))


def test_log_progress_on_someone_elses_assignment_is_denied(store, cache, factory, world):
    teacher, _, _, _, assignment = world
    other = factory.student(teacher)

    with pytest.raises(AccessDenied):
        log_progress(store, cache, other.id, _entry(assignment, right=1))


def test_cache_failure_does_not_fail_the_write(db, store, world):
    _, student, _, _, assignment = world
    broken = MagicMock()
    broken.invalidate_student_topic_progress.side_effect = RuntimeError("cache down")
    broken.invalidate_dual_metrics.side_effect = RuntimeError("cache down")

    log = log_progress(store, broken, student.id, _entry(assignment, right=2))

    assert log.right_count == 2
    assert db.query(ProgressLog).count() == 1


# ── Daily progress ─────────────────────────────────────────────────────────────


def test_daily_progress_returns_assignment_and_log(store, cache, world):
    _, student, _, _, assignment = world
    log_progress(store, cache, student.id, _entry(assignment, right=4, empty=1))

    daily = get_daily_progress(store, student.id)

    assert daily.assignment_id == assignment.id
    assert daily.date == TODAY
    assert daily.log.right_count == 4
    assert daily.log.empty_count == 1


def test_daily_progress_without_log(store, world):
    _, student, _, _, assignment = world

    daily = get_daily_progress(store, student.id, TODAY - timedelta(days=3))

    assert daily.assignment_id == assignment.id
    assert daily.log is None


def test_daily_progress_date_limits(store, world):
    _, student, _, _, _ = world

    with pytest.raises(InvalidInput):
        get_daily_progress(store, student.id, TODAY + timedelta(days=1))
    with pytest.raises(InvalidInput):
        get_daily_progress(store, student.id, TODAY - timedelta(days=366))
    with pytest.raises(NotFound):
        get_daily_progress(store, student.id, TODAY - timedelta(days=60))


# ── Assignment writes ──────────────────────────────────────────────────────────


def test_new_assignment_updates_cached_total_assigned(store, cache, factory, world):
    teacher, student, lesson, _, _ = world
    assert get_dual_metrics(store, cache, student.id, teacher.id).total_assigned == 250

    assignment_service.create_assignment(
        store,
        cache,
        teacher.id,
        AssignmentCreate(
            student_id=student.id,
            topic_id=factory.topic(lesson).id,
            question_count=400,
            daily_target=50,
            start_date=TODAY,
            end_date=TODAY + timedelta(days=8),
        ),
    )

    assert get_dual_metrics(store, cache, student.id, teacher.id).total_assigned == 650


def test_create_assignment_checks_tenancy(store, cache, factory, world):
    teacher, student, _, topic, _ = world
    stranger = factory.teacher()
    foreign_topic = factory.topic(factory.lesson(teacher=stranger))

    def body(**overrides):
        values = dict(
            student_id=student.id,
            topic_id=topic.id,
            question_count=10,
            daily_target=5,
            start_date=TODAY,
            end_date=TODAY,
        )
        values.update(overrides)
        return AssignmentCreate(**values)

    with pytest.raises(AccessDenied):
        assignment_service.create_assignment(store, cache, stranger.id, body())
    with pytest.raises(NotFound):
        assignment_service.create_assignment(store, cache, teacher.id, body(topic_id=foreign_topic.id))


def test_update_assignment(store, cache, world):
    teacher, student, _, _, assignment = world
    get_dual_metrics(store, cache, student.id, teacher.id)

    updated = assignment_service.update_assignment(
        store, cache, teacher.id, assignment.id, AssignmentUpdate(question_count=300, notes="extra")
    )

    assert updated.question_count == 300
    assert updated.notes == "extra"
    assert get_dual_metrics(store, cache, student.id, teacher.id).total_assigned == 300


def test_update_assignment_rejects_inverted_dates(store, cache, world):
    teacher, _, _, _, assignment = world
    original_end = assignment.end_date

    with pytest.raises(InvalidInput):
        assignment_service.update_assignment(
            store,
            cache,
            teacher.id,
            assignment.id,
            AssignmentUpdate(end_date=assignment.start_date - timedelta(days=1)),
        )
    assert store.get_assignment(assignment.id).end_date == original_end


def test_delete_assignment_cascades_logs(db, store, cache, factory, world):
    teacher, student, _, topic, assignment = world
    log_progress(store, cache, student.id, _entry(assignment, right=5))
    assert get_topic_progress(store, cache, student.id, topic.id, teacher.id).accuracy == 100.0

    assignment_service.delete_assignment(store, cache, teacher.id, assignment.id)

    assert db.query(ProgressLog).count() == 0
    assert get_topic_progress(store, cache, student.id, topic.id, teacher.id).accuracy is None
    assert get_dual_metrics(store, cache, student.id, teacher.id).total_assigned == 0


def test_assignment_ownership(store, cache, factory, world):
    _, _, _, _, assignment = world
    stranger = factory.teacher()

    with pytest.raises(AccessDenied):
        assignment_service.delete_assignment(store, cache, stranger.id, assignment.id)
    with pytest.raises(NotFound):
        assignment_service.delete_assignment(store, cache, stranger.id, uuid.uuid4())
