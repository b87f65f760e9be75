"""
Domain records shared by the repository, the scorers and the HTTP layer.

Every optional field here is a "missing signal": the scorers map its absence
to a neutral default instead of failing.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    ADVANCED = "advanced"

    @property
    def rank(self) -> int:
        return DIFFICULTY_ORDER.index(self)


# Fixed total order used for every difficulty comparison and distance
DIFFICULTY_ORDER: List[Difficulty] = [
    Difficulty.BEGINNER,
    Difficulty.EASY,
    Difficulty.MEDIUM,
    Difficulty.HARD,
    Difficulty.ADVANCED,
]


class LearningStyle(str, Enum):
    VISUAL = "visual"
    AUDITORY = "auditory"
    KINESTHETIC = "kinesthetic"


class GradeLevel(str, Enum):
    PRE_K = "Pre-K"
    KINDERGARTEN = "Kindergarten"
    FIRST = "1st grade"
    SECOND = "2nd grade"
    THIRD = "3rd grade"
    FOURTH = "4th grade"
    FIFTH = "5th grade"

    @property
    def age_range(self) -> Tuple[int, int]:
        return GRADE_AGE_RANGES[self]


# Inclusive (min, max) ages per grade band
GRADE_AGE_RANGES: Dict[GradeLevel, Tuple[int, int]] = {
    GradeLevel.PRE_K: (3, 4),
    GradeLevel.KINDERGARTEN: (5, 6),
    GradeLevel.FIRST: (6, 7),
    GradeLevel.SECOND: (7, 8),
    GradeLevel.THIRD: (8, 9),
    GradeLevel.FOURTH: (9, 10),
    GradeLevel.FIFTH: (10, 11),
}


class LearnerProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    age: Optional[int] = None
    grade_level: Optional[GradeLevel] = None
    learning_style: Optional[LearningStyle] = None
    interests: Tuple[str, ...] = ()


class SubjectProgress(BaseModel):
    model_config = ConfigDict(frozen=True)

    completed: int = 0
    avg_score: float = 0.0


class ProgressRecord(BaseModel):
    """One completed progress row joined with its lesson's subject and difficulty."""

    model_config = ConfigDict(frozen=True)

    lesson_id: str
    subject: str
    score: Optional[int] = None
    difficulty: Optional[Difficulty] = None


class ProgressSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    completed_lesson_ids: FrozenSet[str] = frozenset()
    completed_difficulties: FrozenSet[Difficulty] = frozenset()
    subject_progress: Dict[str, SubjectProgress] = Field(default_factory=dict)


class Lesson(BaseModel):
    id: str
    title: str
    subject: str
    description: Optional[str] = None
    grade_level: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    duration_minutes: Optional[int] = None
    age_min: Optional[int] = None
    age_max: Optional[int] = None
    learning_styles: List[LearningStyle] = Field(default_factory=list)
    interests: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    is_published: bool = True


class CatalogLesson(Lesson):
    """A lesson annotated with popularity signals aggregated over all learners."""

    avg_rating: Optional[float] = None
    rating_count: int = 0
    total_completions: int = 0


class ScoreBreakdown(BaseModel):
    age_score: float
    interest_score: float
    learning_style_score: float
    difficulty_score: float
    popularity_score: float


class ScoredLesson(Lesson):
    match_score: int = Field(ge=0, le=100)
    score_breakdown: ScoreBreakdown


class MatchOptions(BaseModel):
    limit: int = Field(default=20, ge=0)
    exclude_completed: bool = True
    subject_filter: Optional[str] = None
    min_score: int = 0
