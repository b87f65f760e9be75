"""
Read-side data access for the lesson matching engine.

`LessonRepository` is the seam the matcher depends on; `SqlLessonRepository`
implements it over a SQLAlchemy session. Raw rows are validated here, once,
so that the scorers only ever see structured records.
"""

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional, Protocol

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .errors import InternalError
from .schemas import (
    CatalogLesson,
    Difficulty,
    GradeLevel,
    LearnerProfile,
    LearningStyle,
    Lesson,
    ProgressRecord,
)

logger = logging.getLogger(__name__)

# Ratings are stored on a 1..5 scale
MAX_RATING = 5.0


class LessonRepository(Protocol):
    def get_learner_profile(self, learner_id: str) -> Optional[LearnerProfile]:
        ...

    def get_learner_basics(self, learner_id: str) -> Optional[LearnerProfile]:
        """Age and learning style only; interests and grade are left unset."""
        ...

    def list_completed_progress(self, learner_id: str) -> List[ProgressRecord]:
        ...

    def list_candidate_lessons(self, subject: Optional[str] = None) -> List[CatalogLesson]:
        ...

    def get_lesson(self, lesson_id: str) -> Optional[Lesson]:
        ...

    def list_related_lessons(self, lesson: Lesson) -> List[Lesson]:
        """Published lessons other than `lesson` sharing its subject or grade level."""
        ...


def parse_string_list(raw: Optional[str], *, column: str) -> List[str]:
    if raw is None or raw == "":
        return []
    try:
        value = json.loads(raw)
    except ValueError as exc:
        raise InternalError(f"Malformed JSON in {column}: {raw!r}") from exc
    if not isinstance(value, list):
        raise InternalError(f"Expected a JSON array in {column}, got {type(value).__name__}")
    return [str(item).strip() for item in value if str(item).strip()]


def parse_learning_styles(raw: Optional[str], *, column: str) -> List[LearningStyle]:
    styles: List[LearningStyle] = []
    for value in parse_string_list(raw, column=column):
        style = coerce_learning_style(value, column=column)
        if style is not None and style not in styles:
            styles.append(style)
    return styles


def coerce_learning_style(value: Optional[str], *, column: str) -> Optional[LearningStyle]:
    if not value:
        return None
    try:
        return LearningStyle(value.strip().lower())
    except ValueError:
        logger.warning("Dropping unknown learning style %r in %s", value, column)
        return None


def coerce_grade_level(value: Optional[str]) -> Optional[GradeLevel]:
    if not value:
        return None
    try:
        return GradeLevel(value)
    except ValueError:
        logger.warning("Ignoring unknown grade level %r", value)
        return None


def coerce_difficulty(value: Optional[str], *, lesson_id: str) -> Optional[Difficulty]:
    if not value:
        return None
    try:
        return Difficulty(value)
    except ValueError as exc:
        raise InternalError(f"Lesson {lesson_id} has unknown difficulty {value!r}") from exc


def learner_from_row(row: models.Child) -> LearnerProfile:
    return LearnerProfile(
        id=row.id,
        age=row.age,
        grade_level=coerce_grade_level(row.grade_level),
        learning_style=coerce_learning_style(row.learning_style, column="children.learning_style"),
        interests=tuple(parse_string_list(row.interests, column="children.interests")),
    )


def clamp_rating(value: Optional[float]) -> Optional[float]:
    if not value:
        return None
    return min(max(float(value), 0.0), MAX_RATING)


def lesson_fields(row: models.Lesson) -> dict[str, Any]:
    return {
        "id": row.id,
        "title": row.title,
        "subject": row.subject,
        "description": row.description,
        "grade_level": row.grade_level,
        "difficulty": coerce_difficulty(row.difficulty, lesson_id=row.id),
        "duration_minutes": row.duration_minutes,
        "age_min": row.age_min,
        "age_max": row.age_max,
        "learning_styles": parse_learning_styles(row.learning_styles, column="lessons.learning_styles"),
        "interests": parse_string_list(row.interests, column="lessons.interests"),
        "tags": parse_string_list(row.tags, column="lessons.tags"),
        "is_published": bool(row.is_published),
    }


def lesson_from_row(row: models.Lesson) -> Lesson:
    return Lesson(**lesson_fields(row))


class SqlLessonRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def _execute(self, stmt):
        try:
            return self.db.execute(stmt)
        except SQLAlchemyError as exc:
            logger.error("Lesson store query failed: %s", exc)
            raise InternalError("Lesson store query failed") from exc

    def get_learner_profile(self, learner_id: str) -> Optional[LearnerProfile]:
        row = self._execute(select(models.Child).where(models.Child.id == learner_id)).scalar_one_or_none()
        if row is None:
            return None
        return learner_from_row(row)

    def get_learner_basics(self, learner_id: str) -> Optional[LearnerProfile]:
        stmt = select(models.Child.age, models.Child.learning_style).where(models.Child.id == learner_id)
        row = self._execute(stmt).one_or_none()
        if row is None:
            return None
        age, learning_style = row
        return LearnerProfile(
            id=learner_id,
            age=age,
            learning_style=coerce_learning_style(learning_style, column="children.learning_style"),
        )

    def list_completed_progress(self, learner_id: str) -> List[ProgressRecord]:
        stmt = (
            select(models.Progress.lesson_id, models.Progress.score, models.Lesson.difficulty, models.Lesson.subject)
            .join(models.Lesson, models.Progress.lesson_id == models.Lesson.id)
            .where(models.Progress.child_id == learner_id, models.Progress.status == "completed")
        )
        return [
            ProgressRecord(
                lesson_id=lesson_id,
                subject=subject,
                score=score,
                difficulty=coerce_difficulty(difficulty, lesson_id=lesson_id),
            )
            for lesson_id, score, difficulty, subject in self._execute(stmt).all()
        ]

    def list_candidate_lessons(self, subject: Optional[str] = None) -> List[CatalogLesson]:
        # Aggregate each signal table separately so their row counts never multiply
        ratings = (
            select(
                models.LessonRating.lesson_id.label("lesson_id"),
                func.avg(models.LessonRating.rating).label("avg_rating"),
                func.count(models.LessonRating.id).label("rating_count"),
            )
            .group_by(models.LessonRating.lesson_id)
            .subquery()
        )
        engagement = (
            select(
                models.LessonEngagement.lesson_id.label("lesson_id"),
                func.sum(models.LessonEngagement.completion_count).label("total_completions"),
            )
            .group_by(models.LessonEngagement.lesson_id)
            .subquery()
        )
        stmt = (
            select(models.Lesson, ratings.c.avg_rating, ratings.c.rating_count, engagement.c.total_completions)
            .outerjoin(ratings, ratings.c.lesson_id == models.Lesson.id)
            .outerjoin(engagement, engagement.c.lesson_id == models.Lesson.id)
            .where(models.Lesson.is_published.is_(True))
        )
        if subject:
            stmt = stmt.where(models.Lesson.subject == subject)

        candidates: List[CatalogLesson] = []
        for row, avg_rating, rating_count, total_completions in self._execute(stmt).all():
            candidates.append(
                CatalogLesson(
                    **lesson_fields(row),
                    avg_rating=clamp_rating(avg_rating),
                    rating_count=int(rating_count or 0),
                    total_completions=int(total_completions or 0),
                )
            )
        return candidates

    def get_lesson(self, lesson_id: str) -> Optional[Lesson]:
        row = self._execute(select(models.Lesson).where(models.Lesson.id == lesson_id)).scalar_one_or_none()
        if row is None:
            return None
        return lesson_from_row(row)

    def list_related_lessons(self, lesson: Lesson) -> List[Lesson]:
        related = models.Lesson.subject == lesson.subject
        if lesson.grade_level:
            related = or_(related, models.Lesson.grade_level == lesson.grade_level)
        stmt = select(models.Lesson).where(
            models.Lesson.id != lesson.id,
            models.Lesson.is_published.is_(True),
            related,
        )
        return [lesson_from_row(row) for row in self._execute(stmt).scalars().all()]
