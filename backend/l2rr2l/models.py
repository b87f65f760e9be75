from __future__ import annotations
from datetime import datetime
import uuid
from sqlalchemy import Column, String, DateTime, Integer, Float, Text, Boolean, ForeignKey, UniqueConstraint, Index
from .db import Base


def _uuid() -> str:
	return uuid.uuid4().hex


class AuthUser(Base):
	__tablename__ = "auth_users"
	# Primary key is username
	username = Column(String(128), primary_key=True, index=True)
	password_hash = Column(String(256), nullable=False)
	email = Column(String(256), nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class AuthSession(Base):
	__tablename__ = "auth_sessions"
	# jti of the issued token
	session_id = Column(String(64), primary_key=True)
	username = Column(String(128), ForeignKey("auth_users.username", ondelete="CASCADE"), nullable=False, index=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	last_activity_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Child(Base):
	__tablename__ = "children"
	id = Column(String(64), primary_key=True, default=_uuid)
	username = Column(String(128), ForeignKey("auth_users.username", ondelete="CASCADE"), nullable=False, index=True)
	name = Column(String(128), nullable=False)
	age = Column(Integer, nullable=True)
	sex = Column(String(16), nullable=True)
	avatar = Column(String(64), nullable=True)
	grade_level = Column(String(32), nullable=True)
	learning_style = Column(String(32), nullable=True)
	interests = Column(Text, nullable=True)  # JSON array of strings
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Lesson(Base):
	__tablename__ = "lessons"
	id = Column(String(64), primary_key=True, default=_uuid)
	title = Column(String(256), nullable=False)
	subject = Column(String(64), nullable=False, index=True)
	description = Column(Text, nullable=True)
	grade_level = Column(String(32), nullable=True)
	difficulty = Column(String(16), nullable=True, index=True)
	duration_minutes = Column(Integer, nullable=True)
	age_min = Column(Integer, nullable=True)
	age_max = Column(Integer, nullable=True)
	learning_styles = Column(Text, nullable=True)  # JSON array, first entry is the primary style
	interests = Column(Text, nullable=True)  # JSON array
	tags = Column(Text, nullable=True)  # JSON array
	is_published = Column(Boolean, default=True, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

	__table_args__ = (
		Index("idx_lessons_age", "age_min", "age_max"),
	)


class Progress(Base):
	__tablename__ = "progress"
	id = Column(String(64), primary_key=True, default=_uuid)
	child_id = Column(String(64), ForeignKey("children.id", ondelete="CASCADE"), nullable=False, index=True)
	lesson_id = Column(String(64), ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False, index=True)
	# not_started | in_progress | completed
	status = Column(String(16), default="not_started", nullable=False)
	score = Column(Integer, nullable=True)
	time_spent = Column(Integer, default=0, nullable=False)
	started_at = Column(DateTime, nullable=True)
	completed_at = Column(DateTime, nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

	__table_args__ = (
		UniqueConstraint("child_id", "lesson_id", name="uq_progress_child_lesson"),
	)


class LessonRating(Base):
	__tablename__ = "lesson_ratings"
	id = Column(String(64), primary_key=True, default=_uuid)
	lesson_id = Column(String(64), ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False, index=True)
	username = Column(String(128), ForeignKey("auth_users.username", ondelete="CASCADE"), nullable=False)
	child_id = Column(String(64), ForeignKey("children.id", ondelete="SET NULL"), nullable=True)
	rating = Column(Float, nullable=False)  # 1..5
	feedback = Column(Text, nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

	__table_args__ = (
		UniqueConstraint("lesson_id", "username", "child_id", name="uq_rating_lesson_user_child"),
	)


class LessonEngagement(Base):
	__tablename__ = "lesson_engagement"
	id = Column(String(64), primary_key=True, default=_uuid)
	lesson_id = Column(String(64), ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False, index=True)
	child_id = Column(String(64), ForeignKey("children.id", ondelete="CASCADE"), nullable=False, index=True)
	view_count = Column(Integer, default=0, nullable=False)
	start_count = Column(Integer, default=0, nullable=False)
	completion_count = Column(Integer, default=0, nullable=False)
	total_time_seconds = Column(Integer, default=0, nullable=False)
	last_accessed_at = Column(DateTime, nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

	__table_args__ = (
		UniqueConstraint("lesson_id", "child_id", name="uq_engagement_lesson_child"),
	)
