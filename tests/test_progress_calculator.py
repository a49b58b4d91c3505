"""Unit tests for the progress aggregator (topic, lesson, dual metrics)."""

import uuid
from datetime import date, timedelta

import pytest

from progress_tracker.core.errors import AccessDenied, NotFound
from progress_tracker.services.progress_calculator import (
    calculate_dual_metrics,
    calculate_lesson_progress,
    calculate_topic_progress,
    round2,
)


# ── round2 ─────────────────────────────────────────────────────────────────────


def test_round2_two_decimals():
    assert round2(10, 13) == 76.92
    assert round2(2, 3) == 66.67
    assert round2(300, 650) == 46.15


def test_round2_rounds_half_up():
    # 1/800 * 100 == 0.125 exactly; banker's rounding would give 0.12
    assert round2(1, 800) == 0.13


# ── Topic progress ─────────────────────────────────────────────────────────────


def test_topic_accuracy_excludes_bonus_from_denominator(store, factory):
    teacher = factory.teacher()
    student = factory.student(teacher)
    topic = factory.topic(factory.lesson())
    assignment = factory.assignment(student, topic)
    factory.log(assignment, right=6, wrong=1, empty=1, bonus=2, day=date.today() - timedelta(days=1))
    factory.log(assignment, right=4, wrong=1, empty=0, bonus=1)

    progress = calculate_topic_progress(store, student.id, topic.id, teacher.id)

    assert progress.right_count == 10
    assert progress.wrong_count == 2
    assert progress.empty_count == 1
    assert progress.bonus_count == 3
    assert progress.total_attempted == 13
    assert progress.total_questions == 16
    assert progress.accuracy == 76.92
    assert progress.topic_name == topic.name


def test_topic_without_logs_has_null_accuracy(store, factory):
    teacher = factory.teacher()
    student = factory.student(teacher)
    topic = factory.topic(factory.lesson())
    factory.assignment(student, topic)

    progress = calculate_topic_progress(store, student.id, topic.id, teacher.id)

    assert progress.accuracy is None
    assert progress.total_questions == 0
    assert progress.last_updated is not None


def test_bonus_only_logs_have_null_accuracy(store, factory):
    teacher = factory.teacher()
    student = factory.student(teacher)
    topic = factory.topic(factory.lesson())
    factory.log(factory.assignment(student, topic), bonus=5)

    progress = calculate_topic_progress(store, student.id, topic.id, teacher.id)

    assert progress.accuracy is None
    assert progress.total_questions == 5


def test_topic_ignores_other_topics_and_students(store, factory):
    teacher = factory.teacher()
    student = factory.student(teacher)
    other = factory.student(teacher)
    lesson = factory.lesson()
    topic, sibling = factory.topic(lesson), factory.topic(lesson)
    factory.log(factory.assignment(student, topic), right=3, wrong=1)
    factory.log(factory.assignment(student, sibling), right=0, wrong=9)
    factory.log(factory.assignment(other, topic), right=0, wrong=9)

    progress = calculate_topic_progress(store, student.id, topic.id, teacher.id)

    assert progress.accuracy == 75.0
    assert progress.total_questions == 4


def test_custom_topic_of_another_teacher_is_not_found(store, factory):
    teacher, stranger = factory.teacher(), factory.teacher()
    student = factory.student(teacher)
    foreign_topic = factory.topic(factory.lesson(teacher=stranger))

    with pytest.raises(NotFound):
        calculate_topic_progress(store, student.id, foreign_topic.id, teacher.id)


def test_own_custom_topic_is_visible(store, factory):
    teacher = factory.teacher()
    student = factory.student(teacher)
    topic = factory.topic(factory.lesson(teacher=teacher))
    factory.log(factory.assignment(student, topic), right=1, wrong=1)

    assert calculate_topic_progress(store, student.id, topic.id, teacher.id).accuracy == 50.0


def test_without_caller_the_students_teacher_is_the_tenant(store, factory):
    teacher, stranger = factory.teacher(), factory.teacher()
    student = factory.student(teacher)
    own = factory.topic(factory.lesson(teacher=teacher))
    foreign = factory.topic(factory.lesson(teacher=stranger))

    assert calculate_topic_progress(store, student.id, own.id).accuracy is None
    with pytest.raises(NotFound):
        calculate_topic_progress(store, student.id, foreign.id)


def test_student_of_another_teacher_is_denied(store, factory):
    teacher, stranger = factory.teacher(), factory.teacher()
    student = factory.student(teacher)
    topic = factory.topic(factory.lesson())

    with pytest.raises(AccessDenied):
        calculate_topic_progress(store, student.id, topic.id, stranger.id)


def test_unknown_student_and_topic_are_not_found(store, factory):
    teacher = factory.teacher()
    student = factory.student(teacher)

    with pytest.raises(NotFound):
        calculate_topic_progress(store, uuid.uuid4(), uuid.uuid4(), teacher.id)
    with pytest.raises(NotFound):
        calculate_topic_progress(store, student.id, uuid.uuid4(), teacher.id)


# ── Lesson progress ────────────────────────────────────────────────────────────


def test_lesson_sums_counts_instead_of_averaging_topics(store, factory):
    teacher = factory.teacher()
    student = factory.student(teacher)
    lesson = factory.lesson(name="Algebra")
    strong = factory.topic(lesson, name="A - Linear")
    weak = factory.topic(lesson, name="B - Quadratic")
    factory.log(factory.assignment(student, strong), right=9, wrong=1)
    factory.log(factory.assignment(student, weak), right=1, wrong=29, bonus=4)

    progress = calculate_lesson_progress(store, student.id, lesson.id, teacher.id)

    # 10 right of 40 attempted, not the (90 + 3.33) / 2 average
    assert progress.accuracy == 25.0
    assert progress.total_attempted == 40
    assert progress.total_questions == 44
    assert progress.topic_count == 2
    assert [t.topic_name for t in progress.topics] == ["A - Linear", "B - Quadratic"]
    assert progress.topics[0].accuracy == 90.0
    assert progress.topics[1].accuracy == 3.33


def test_lesson_without_attempts_has_null_accuracy(store, factory):
    teacher = factory.teacher()
    student = factory.student(teacher)
    lesson = factory.lesson()
    factory.topic(lesson)

    progress = calculate_lesson_progress(store, student.id, lesson.id, teacher.id)

    assert progress.accuracy is None
    assert progress.topic_count == 1
    assert progress.topics[0].accuracy is None


def test_lesson_of_another_teacher_is_not_found(store, factory):
    teacher, stranger = factory.teacher(), factory.teacher()
    student = factory.student(teacher)
    lesson = factory.lesson(teacher=stranger)

    with pytest.raises(NotFound):
        calculate_lesson_progress(store, student.id, lesson.id, teacher.id)


# ── Dual metrics ───────────────────────────────────────────────────────────────


def test_dual_metrics_scenario(store, factory):
    teacher = factory.teacher()
    student = factory.student(teacher)
    lesson = factory.lesson()
    first = factory.assignment(student, factory.topic(lesson), question_count=250, daily_target=100)
    second = factory.assignment(student, factory.topic(lesson), question_count=400, daily_target=100)
    factory.log(first, right=120, wrong=30, empty=10, bonus=20, day=date.today() - timedelta(days=1))
    factory.log(second, right=80, wrong=20, empty=10, bonus=10)

    metrics = calculate_dual_metrics(store, student.id, teacher.id)

    assert metrics.total_assigned == 650
    assert metrics.total_solved == 300
    assert metrics.program_progress == 46.15
    assert metrics.total_right == 200
    assert metrics.total_attempted == 270
    assert metrics.concept_mastery == 74.07


def test_program_progress_is_uncapped(store, factory):
    teacher = factory.teacher()
    student = factory.student(teacher)
    assignment = factory.assignment(student, factory.topic(factory.lesson()), question_count=10)
    factory.log(assignment, right=8, wrong=2, bonus=5)

    metrics = calculate_dual_metrics(store, student.id, teacher.id)

    assert metrics.program_progress == 150.0
    assert metrics.concept_mastery == 80.0


def test_dual_metrics_without_data(store, factory):
    teacher = factory.teacher()
    student = factory.student(teacher)

    metrics = calculate_dual_metrics(store, student.id, teacher.id)

    assert metrics.program_progress == 0.0
    assert metrics.concept_mastery is None
    assert metrics.total_assigned == 0


def test_last_updated_tracks_newest_log(store, factory):
    teacher = factory.teacher()
    student = factory.student(teacher)
    topic = factory.topic(factory.lesson())
    assignment = factory.assignment(student, topic)
    factory.log(assignment, right=1, day=date.today() - timedelta(days=2))
    newest = factory.log(assignment, right=1)

    progress = calculate_topic_progress(store, student.id, topic.id, teacher.id)

    assert progress.last_updated == newest.updated_at
