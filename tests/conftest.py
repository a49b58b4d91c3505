"""Shared pytest fixtures for the progress tracker tests."""

import uuid
from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from progress_tracker.config import settings
from progress_tracker.db import models  # noqa: F401  (registers tables on Base)
from progress_tracker.db.models import (
    Assignment,
    Lesson,
    ProgressLog,
    RoleEnum,
    Topic,
    User,
)
from progress_tracker.db.session import Base, get_db
from progress_tracker.main import app
from progress_tracker.services.metric_cache import InMemoryMetricCache
from progress_tracker.services.store import ProgressStore


# Use an in-memory SQLite database for testing with static pool
SQLALCHEMY_TEST_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_TEST_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # Use StaticPool to keep connection alive
    echo=False,
)
TestSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)

TODAY = date.today()


@pytest.fixture(scope="function")
def db():
    """Fresh schema and session for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def store(db: Session) -> ProgressStore:
    return ProgressStore(db)


@pytest.fixture
def cache() -> InMemoryMetricCache:
    return InMemoryMetricCache(ttl_seconds=300, max_entries=1000)


@pytest.fixture(scope="function")
def client(db: Session, cache: InMemoryMetricCache):
    """FastAPI test client with overridden DB dependency and an isolated cache."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.state.metric_cache = cache

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class Factory:
    """Inserts fully-committed rows for tests."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def teacher(self, name: str = "Teacher") -> User:
        uid = uuid.uuid4().hex[:8]
        return self._save(
            User(email=f"teacher_{uid}@ex.com", full_name=name, role=RoleEnum.TEACHER)
        )

    def student(self, teacher: User, name: str = "Student") -> User:
        uid = uuid.uuid4().hex[:8]
        return self._save(
            User(
                email=f"student_{uid}@ex.com",
                full_name=name,
                role=RoleEnum.STUDENT,
                teacher_id=teacher.id,
            )
        )

    def lesson(self, teacher: User | None = None, name: str = "Mathematics") -> Lesson:
        return self._save(Lesson(name=name, teacher_id=teacher.id if teacher else None))

    def topic(self, lesson: Lesson, name: str | None = None) -> Topic:
        return self._save(Topic(name=name or f"Topic {uuid.uuid4().hex[:6]}", lesson_id=lesson.id))

    def assignment(
        self,
        student: User,
        topic: Topic,
        question_count: int = 250,
        daily_target: int = 100,
        start: date | None = None,
        end: date | None = None,
    ) -> Assignment:
        return self._save(
            Assignment(
                student_id=student.id,
                topic_id=topic.id,
                question_count=question_count,
                daily_target=daily_target,
                start_date=start or TODAY - timedelta(days=10),
                end_date=end or TODAY + timedelta(days=10),
            )
        )

    def log(
        self,
        assignment: Assignment,
        right: int = 0,
        wrong: int = 0,
        empty: int = 0,
        bonus: int = 0,
        day: date | None = None,
    ) -> ProgressLog:
        return self._save(
            ProgressLog(
                student_id=assignment.student_id,
                assignment_id=assignment.id,
                date=day or TODAY,
                right_count=right,
                wrong_count=wrong,
                empty_count=empty,
                bonus_count=bonus,
            )
        )


@pytest.fixture
def factory(db: Session) -> Factory:
    return Factory(db)


def _mint_token(claims: dict) -> str:
    """Sign *claims* the way the account service does."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return jwt.encode({**claims, "exp": expire}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def _auth_headers(user: User) -> dict:
    """Bearer header for *user*."""
    token = _mint_token({"sub": str(user.id), "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}

@pytest.fixture
def auth():
    return _auth_headers


@pytest.fixture
def mint_token():
    return _mint_token
