from __future__ import annotations

import json
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..db import get_db
from ..matcher import get_quick_recommendations
from ..models import Child, Lesson
from ..repository import SqlLessonRepository, lesson_from_row
from ..schemas import Difficulty, GradeLevel, LearningStyle
from ..settings import settings
from .auth import User, get_current_user


router = APIRouter(prefix="/lessons", tags=["lessons"])

_LIST_COLUMNS = ("learning_styles", "interests", "tags")


class LessonCreate(BaseModel):
    title: str = Field(min_length=1, max_length=256)
    subject: str = Field(min_length=1, max_length=64)
    description: Optional[str] = None
    grade_level: Optional[GradeLevel] = None
    difficulty: Optional[Difficulty] = None
    duration_minutes: Optional[int] = Field(default=None, ge=1)
    age_min: Optional[int] = Field(default=None, ge=0, le=18)
    age_max: Optional[int] = Field(default=None, ge=0, le=18)
    learning_styles: List[LearningStyle] = Field(default_factory=list)
    interests: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    is_published: bool = True

    @model_validator(mode="after")
    def _check_age_bounds(self):
        if self.age_min is not None and self.age_max is not None and self.age_min > self.age_max:
            raise ValueError("age_min must not exceed age_max")
        return self


class LessonUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=256)
    subject: Optional[str] = Field(default=None, min_length=1, max_length=64)
    description: Optional[str] = None
    grade_level: Optional[GradeLevel] = None
    difficulty: Optional[Difficulty] = None
    duration_minutes: Optional[int] = Field(default=None, ge=1)
    age_min: Optional[int] = Field(default=None, ge=0, le=18)
    age_max: Optional[int] = Field(default=None, ge=0, le=18)
    learning_styles: Optional[List[LearningStyle]] = None
    interests: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    is_published: Optional[bool] = None

    @field_validator("title", "subject", "is_published")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("field cannot be null")
        return value


def _column_value(field: str, value: Any) -> Any:
    if value is None:
        return None
    if field == "learning_styles":
        styles: List[str] = []
        for style in value:
            if style.value not in styles:
                styles.append(style.value)
        return json.dumps(styles)
    if field in _LIST_COLUMNS:
        return json.dumps([item.strip() for item in value if item.strip()])
    if isinstance(value, (Difficulty, GradeLevel)):
        return value.value
    return value


def _require_lesson_row(db: Session, lesson_id: str) -> Lesson:
    row = db.get(Lesson, lesson_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Lesson not found")
    return row


@router.get("")
def list_lessons(
    subject: Optional[str] = None,
    grade_level: Optional[str] = None,
    difficulty: Optional[Difficulty] = None,
    limit: int = Query(default=20, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    query = db.query(Lesson).filter(Lesson.is_published.is_(True))
    if subject:
        query = query.filter(Lesson.subject == subject)
    if grade_level:
        query = query.filter(Lesson.grade_level == grade_level)
    if difficulty is not None:
        query = query.filter(Lesson.difficulty == difficulty.value)

    total = query.with_entities(func.count(Lesson.id)).scalar() or 0
    rows = query.order_by(Lesson.created_at.desc()).limit(limit).offset(offset).all()
    return {
        "lessons": [lesson_from_row(row).model_dump(mode="json") for row in rows],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.get("/subjects")
def list_subjects(db: Session = Depends(get_db)):
    rows = db.query(Lesson.subject).filter(Lesson.is_published.is_(True)).distinct().order_by(Lesson.subject).all()
    return {"subjects": [subject for (subject,) in rows]}


@router.get("/{lesson_id}")
def get_lesson(lesson_id: str, db: Session = Depends(get_db)):
    lesson = SqlLessonRepository(db).get_lesson(lesson_id)
    if lesson is None:
        raise HTTPException(status_code=404, detail="Lesson not found")
    return {"lesson": lesson.model_dump(mode="json")}


@router.get("/{lesson_id}/recommendations")
def get_recommendations(
    lesson_id: str,
    child_id: str,
    limit: Optional[int] = Query(default=None, ge=1, le=50),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    # Advisory endpoint: unknown or foreign children get an empty shelf, not an error
    owned = db.query(Child.id).filter(Child.id == child_id, Child.username == user.username).first()
    if owned is None:
        return {"recommendations": []}
    lessons = get_quick_recommendations(
        SqlLessonRepository(db),
        child_id,
        lesson_id,
        limit or settings.quick_recommendation_limit,
    )
    return {"recommendations": [lesson.model_dump(mode="json") for lesson in lessons]}


@router.post("", status_code=201)
def create_lesson(req: LessonCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    row = Lesson()
    for field, value in req.model_dump().items():
        setattr(row, field, _column_value(field, value))
    db.add(row)
    db.commit()
    db.refresh(row)
    return {"lesson": lesson_from_row(row).model_dump(mode="json")}


@router.put("/{lesson_id}")
def update_lesson(
    lesson_id: str,
    req: LessonUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    row = _require_lesson_row(db, lesson_id)
    for field, value in req.model_dump(exclude_unset=True).items():
        setattr(row, field, _column_value(field, value))
    if row.age_min is not None and row.age_max is not None and row.age_min > row.age_max:
        db.rollback()
        raise HTTPException(status_code=422, detail="age_min must not exceed age_max")
    db.add(row)
    db.commit()
    db.refresh(row)
    return {"lesson": lesson_from_row(row).model_dump(mode="json")}


@router.delete("/{lesson_id}", status_code=204)
def delete_lesson(lesson_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    # Progress, ratings and engagement rows cascade with the lesson
    db.delete(_require_lesson_row(db, lesson_id))
    db.commit()
