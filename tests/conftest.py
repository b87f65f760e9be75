from __future__ import annotations

import json
import os
import sys
from collections.abc import Iterator
from pathlib import Path
from typing import Dict, List, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
BACKEND = ROOT / "backend"
if str(BACKEND) not in sys.path:
    sys.path.insert(0, str(BACKEND))

# Must be set before the app's engine is created at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from l2rr2l import models  # noqa: E402
from l2rr2l.db import Base, enable_sqlite_foreign_keys, get_db  # noqa: E402
from l2rr2l.main import app  # noqa: E402
from l2rr2l.routers.auth import open_session  # noqa: E402
from l2rr2l.schemas import CatalogLesson, LearnerProfile, Lesson, ProgressRecord  # noqa: E402


class FakeLessonRepository:
    """In-memory stand-in for the SQL repository."""

    def __init__(
        self,
        profiles: Optional[List[LearnerProfile]] = None,
        lessons: Optional[List[CatalogLesson]] = None,
        progress: Optional[Dict[str, List[ProgressRecord]]] = None,
    ) -> None:
        self.profiles = {p.id: p for p in profiles or []}
        self.lessons = list(lessons or [])
        self.progress = progress or {}
        self.catalog_calls: List[Optional[str]] = []

    def get_learner_profile(self, learner_id: str) -> Optional[LearnerProfile]:
        return self.profiles.get(learner_id)

    def get_learner_basics(self, learner_id: str) -> Optional[LearnerProfile]:
        profile = self.profiles.get(learner_id)
        if profile is None:
            return None
        return LearnerProfile(id=profile.id, age=profile.age, learning_style=profile.learning_style)

    def list_completed_progress(self, learner_id: str) -> List[ProgressRecord]:
        return list(self.progress.get(learner_id, []))

    def list_candidate_lessons(self, subject: Optional[str] = None) -> List[CatalogLesson]:
        self.catalog_calls.append(subject)
        return [
            lesson for lesson in self.lessons
            if lesson.is_published and (not subject or lesson.subject == subject)
        ]

    def get_lesson(self, lesson_id: str) -> Optional[Lesson]:
        for lesson in self.lessons:
            if lesson.id == lesson_id:
                return lesson
        return None

    def list_related_lessons(self, lesson: Lesson) -> List[Lesson]:
        return [
            other for other in self.lessons
            if other.is_published
            and other.id != lesson.id
            and (other.subject == lesson.subject or (lesson.grade_level and other.grade_level == lesson.grade_level))
        ]


def make_lesson(lesson_id: str = "lesson-1", **overrides) -> CatalogLesson:
    fields = {"id": lesson_id, "title": f"Lesson {lesson_id}", "subject": "reading"}
    fields.update(overrides)
    return CatalogLesson(**fields)


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(test_engine)
    Base.metadata.create_all(bind=test_engine)
    try:
        yield test_engine
    finally:
        test_engine.dispose()


@pytest.fixture
def db_session(engine) -> Iterator[Session]:
    TestSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(engine) -> Iterator[TestClient]:
    TestSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def _override_get_db():
        db = TestSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def add_user(db: Session, username: str) -> Dict[str, str]:
    """Create a user and return bearer headers for a fresh session."""
    db.add(models.AuthUser(username=username, password_hash="not-a-real-hash"))
    db.commit()
    return {"Authorization": f"Bearer {open_session(db, username)}"}


def add_lesson_row(db: Session, lesson_id: str, **overrides) -> models.Lesson:
    values = {"id": lesson_id, "title": f"Lesson {lesson_id}", "subject": "reading", "is_published": True}
    for key in ("learning_styles", "interests", "tags"):
        if key in overrides and isinstance(overrides[key], list):
            overrides[key] = json.dumps(overrides[key])
    values.update(overrides)
    row = models.Lesson(**values)
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def auth_headers(db_session) -> Dict[str, str]:
    return add_user(db_session, "parent")
