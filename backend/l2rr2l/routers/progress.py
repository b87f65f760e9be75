from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import case, func
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import Lesson, Progress
from ..progress import summarize_progress
from ..repository import SqlLessonRepository
from .auth import User, get_current_user
from .children import require_child


router = APIRouter(prefix="/progress", tags=["progress"])


class CompleteRequest(BaseModel):
    score: Optional[int] = Field(default=None, ge=0, le=100)
    time_spent: Optional[int] = Field(default=None, ge=0)


class ProgressUpdate(BaseModel):
    status: Optional[Literal["not_started", "in_progress", "completed"]] = None
    score: Optional[int] = Field(default=None, ge=0, le=100)
    time_spent: Optional[int] = Field(default=None, ge=0)

    @field_validator("status", "time_spent")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("field cannot be null")
        return value


def _progress_payload(row: Progress) -> Dict[str, Any]:
    return {
        "id": row.id,
        "child_id": row.child_id,
        "lesson_id": row.lesson_id,
        "status": row.status,
        "score": row.score,
        "time_spent": row.time_spent,
        "started_at": row.started_at.isoformat() if row.started_at else None,
        "completed_at": row.completed_at.isoformat() if row.completed_at else None,
    }


def _require_lesson(db: Session, lesson_id: str) -> None:
    if db.get(Lesson, lesson_id) is None:
        raise HTTPException(status_code=404, detail="Lesson not found")


def _get_or_create(db: Session, child_id: str, lesson_id: str) -> Progress:
    row = db.query(Progress).filter(Progress.child_id == child_id, Progress.lesson_id == lesson_id).first()
    if row is None:
        row = Progress(child_id=child_id, lesson_id=lesson_id, status="not_started", time_spent=0)
    return row


@router.get("/child/{child_id}")
def list_progress(child_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    require_child(db, child_id, user)
    rows = (
        db.query(Progress, Lesson.title, Lesson.subject)
        .outerjoin(Lesson, Progress.lesson_id == Lesson.id)
        .filter(Progress.child_id == child_id)
        .order_by(Progress.updated_at.desc())
        .all()
    )
    return {
        "progress": [
            {**_progress_payload(row), "lesson_title": title, "subject": subject}
            for row, title, subject in rows
        ]
    }


@router.get("/child/{child_id}/lesson/{lesson_id}")
def get_lesson_progress(child_id: str, lesson_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    require_child(db, child_id, user)
    row = db.query(Progress).filter(Progress.child_id == child_id, Progress.lesson_id == lesson_id).first()
    if row is None:
        return {
            "progress": {
                "child_id": child_id,
                "lesson_id": lesson_id,
                "status": "not_started",
                "score": None,
                "time_spent": 0,
            }
        }
    return {"progress": _progress_payload(row)}


@router.post("/child/{child_id}/lesson/{lesson_id}/start")
def start_lesson(child_id: str, lesson_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    require_child(db, child_id, user)
    _require_lesson(db, lesson_id)
    row = _get_or_create(db, child_id, lesson_id)
    # Restarting a finished lesson reopens it, so matching offers it again
    row.status = "in_progress"
    row.started_at = row.started_at or datetime.utcnow()
    db.add(row)
    db.commit()
    db.refresh(row)
    return {"progress": _progress_payload(row)}


@router.post("/child/{child_id}/lesson/{lesson_id}/complete")
def complete_lesson(
    child_id: str,
    lesson_id: str,
    req: CompleteRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_child(db, child_id, user)
    _require_lesson(db, lesson_id)
    row = _get_or_create(db, child_id, lesson_id)
    now = datetime.utcnow()
    row.status = "completed"
    if req.score is not None:
        row.score = req.score
    if req.time_spent is not None:
        row.time_spent = req.time_spent
    row.started_at = row.started_at or now
    row.completed_at = now
    db.add(row)
    db.commit()
    db.refresh(row)
    return {"progress": _progress_payload(row)}


@router.put("/child/{child_id}/lesson/{lesson_id}")
def update_lesson_progress(
    child_id: str,
    lesson_id: str,
    req: ProgressUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_child(db, child_id, user)
    row = db.query(Progress).filter(Progress.child_id == child_id, Progress.lesson_id == lesson_id).first()
    if row is None:
        raise HTTPException(status_code=404, detail="Progress record not found")
    for field, value in req.model_dump(exclude_unset=True).items():
        setattr(row, field, value)
    if row.status == "completed" and row.completed_at is None:
        row.completed_at = datetime.utcnow()
    db.add(row)
    db.commit()
    db.refresh(row)
    return {"progress": _progress_payload(row)}


@router.get("/child/{child_id}/summary")
def progress_summary(child_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    require_child(db, child_id, user)
    total, completed, in_progress, average, time_spent = (
        db.query(
            func.count(Progress.id),
            func.sum(case((Progress.status == "completed", 1), else_=0)),
            func.sum(case((Progress.status == "in_progress", 1), else_=0)),
            func.avg(Progress.score),
            func.sum(Progress.time_spent),
        )
        .filter(Progress.child_id == child_id)
        .one()
    )
    derived = summarize_progress(SqlLessonRepository(db).list_completed_progress(child_id))
    return {
        "summary": {
            "total_lessons": total or 0,
            "completed_lessons": int(completed or 0),
            "in_progress_lessons": int(in_progress or 0),
            "average_score": float(average) if average is not None else None,
            "total_time_spent": int(time_spent or 0),
            "completed_difficulties": [d.value for d in sorted(derived.completed_difficulties, key=lambda d: d.rank)],
            "subjects": {
                subject: {"completed": item.completed, "avg_score": item.avg_score}
                for subject, item in derived.subject_progress.items()
            },
        }
    }
