from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from ..db import get_db
from ..matcher import match_lessons_for_child
from ..models import Child
from ..repository import SqlLessonRepository, parse_string_list
from ..schemas import GradeLevel, LearningStyle, MatchOptions
from ..settings import settings
from .auth import User, get_current_user


router = APIRouter(prefix="/children", tags=["children"])


class ChildCreate(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    age: Optional[int] = Field(default=None, ge=1, le=18)
    grade_level: Optional[GradeLevel] = None
    learning_style: Optional[LearningStyle] = None
    interests: List[str] = Field(default_factory=list)


class ChildUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=128)
    age: Optional[int] = Field(default=None, ge=1, le=18)
    grade_level: Optional[GradeLevel] = None
    learning_style: Optional[LearningStyle] = None
    interests: Optional[List[str]] = None

    @field_validator("name")
    @classmethod
    def _name_required(cls, value: Optional[str]) -> str:
        # Omit the field to keep the current name
        if value is None:
            raise ValueError("name cannot be null")
        return value


def require_child(db: Session, child_id: str, user: User) -> Child:
    """Load a child owned by `user`; anything else is reported as not found."""
    child = db.query(Child).filter(Child.id == child_id, Child.username == user.username).first()
    if child is None:
        raise HTTPException(status_code=404, detail="Child not found")
    return child


def _child_payload(child: Child) -> Dict[str, Any]:
    return {
        "id": child.id,
        "name": child.name,
        "age": child.age,
        "grade_level": child.grade_level,
        "learning_style": child.learning_style,
        "interests": parse_string_list(child.interests, column="children.interests"),
        "created_at": child.created_at.isoformat() if child.created_at else None,
        "updated_at": child.updated_at.isoformat() if child.updated_at else None,
    }


def _column_value(field: str, value: Any) -> Any:
    if field == "interests":
        return json.dumps([item.strip() for item in value if item.strip()])
    if isinstance(value, (GradeLevel, LearningStyle)):
        return value.value
    return value


@router.get("")
def list_children(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    rows = db.query(Child).filter(Child.username == user.username).order_by(Child.created_at).all()
    return {"children": [_child_payload(row) for row in rows]}


@router.post("", status_code=201)
def create_child(req: ChildCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    child = Child(username=user.username)
    for field, value in req.model_dump().items():
        setattr(child, field, _column_value(field, value) if value is not None else None)
    db.add(child)
    db.commit()
    db.refresh(child)
    return {"child": _child_payload(child)}


@router.get("/{child_id}")
def get_child(child_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"child": _child_payload(require_child(db, child_id, user))}


@router.put("/{child_id}")
def update_child(child_id: str, req: ChildUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    child = require_child(db, child_id, user)
    for field, value in req.model_dump(exclude_unset=True).items():
        setattr(child, field, _column_value(field, value) if value is not None else None)
    db.add(child)
    db.commit()
    db.refresh(child)
    return {"child": _child_payload(child)}


@router.delete("/{child_id}", status_code=204)
def delete_child(child_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    # Progress and engagement rows cascade with the child
    db.delete(require_child(db, child_id, user))
    db.commit()


@router.get("/{child_id}/matches")
def get_matches(
    child_id: str,
    limit: Optional[int] = Query(default=None, ge=1, le=200),
    exclude_completed: bool = True,
    subject: Optional[str] = None,
    min_score: int = Query(default=0, ge=0, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_child(db, child_id, user)
    options = MatchOptions(
        limit=limit or settings.match_default_limit,
        exclude_completed=exclude_completed,
        subject_filter=subject,
        min_score=min_score,
    )
    lessons = match_lessons_for_child(SqlLessonRepository(db), child_id, options)
    return {"lessons": [lesson.model_dump(mode="json") for lesson in lessons]}
