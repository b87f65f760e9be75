"""
Dimension scorers for lesson matching.

Each scorer is a pure function returning a value in [0, 100]. A missing
signal maps to a neutral default rather than a penalty.
"""

from __future__ import annotations

import math
from typing import Dict, Optional

from .schemas import (
    DIFFICULTY_ORDER,
    CatalogLesson,
    Difficulty,
    LearnerProfile,
    Lesson,
    ProgressSummary,
    ScoreBreakdown,
)

NEUTRAL_SCORE = 50

# Composite weights; must sum to 1.0
WEIGHTS: Dict[str, float] = {
    "age_score": 0.30,
    "interest_score": 0.25,
    "learning_style_score": 0.20,
    "difficulty_score": 0.15,
    "popularity_score": 0.10,
}

# Absent lesson age bounds are read as these limits
_OPEN_AGE_MIN = 0
_OPEN_AGE_MAX = 100

# A subject average at or above this unlocks one extra difficulty level
STRONG_SUBJECT_SCORE = 80


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def effective_age(profile: LearnerProfile) -> Optional[int]:
    if profile.age is not None:
        return profile.age
    if profile.grade_level is not None:
        low, high = profile.grade_level.age_range
        return round_half_up((low + high) / 2)
    return None


def age_score(lesson: Lesson, profile: LearnerProfile) -> float:
    age = effective_age(profile)
    if age is None:
        return NEUTRAL_SCORE
    if lesson.age_min is None and lesson.age_max is None:
        return 60

    low = lesson.age_min if lesson.age_min is not None else _OPEN_AGE_MIN
    high = lesson.age_max if lesson.age_max is not None else _OPEN_AGE_MAX

    if low <= age <= high:
        width = high - low
        if width == 0:
            return 100
        center = (low + high) / 2
        return 100 - (abs(age - center) / (width / 2)) * 20

    distance = low - age if age < low else age - high
    return max(0, 50 - distance * 15)


def interest_score(lesson: Lesson, profile: LearnerProfile) -> float:
    if not profile.interests:
        return NEUTRAL_SCORE

    keywords = {item.lower() for item in lesson.interests}
    keywords.update(tag.lower() for tag in lesson.tags)
    if lesson.subject:
        keywords.add(lesson.subject.lower())
    if not keywords:
        return 40

    matched = 0
    for interest in (item.lower() for item in profile.interests):
        if any(kw == interest or interest in kw or kw in interest for kw in keywords):
            matched += 1

    return round_half_up(40 + matched / len(profile.interests) * 60)


def learning_style_score(lesson: Lesson, profile: LearnerProfile) -> float:
    preferred = profile.learning_style
    if preferred is None or not lesson.learning_styles:
        return NEUTRAL_SCORE
    if lesson.learning_styles[0] == preferred:
        return 100
    if preferred in lesson.learning_styles:
        return 85
    return 30


def ideal_difficulty(subject: str, progress: ProgressSummary) -> Difficulty:
    """The level one step above the learner's mastery, adjusted for strong subjects."""
    top = len(DIFFICULTY_ORDER) - 1
    mastery = max((d.rank for d in progress.completed_difficulties), default=-1)

    subject_progress = progress.subject_progress.get(subject)
    if subject_progress is not None and subject_progress.avg_score >= STRONG_SUBJECT_SCORE:
        mastery = min(mastery + 1, top)

    if mastery < 0:
        return Difficulty.BEGINNER
    return DIFFICULTY_ORDER[min(mastery + 1, top)]


def difficulty_score(lesson: Lesson, progress: ProgressSummary) -> float:
    if lesson.difficulty is None:
        return NEUTRAL_SCORE

    ideal = ideal_difficulty(lesson.subject, progress)
    if lesson.difficulty == ideal:
        return 100

    distance = abs(lesson.difficulty.rank - ideal.rank)
    if lesson.difficulty.rank < ideal.rank:
        # review material is fine
        return max(50, 100 - distance * 20)
    return max(20, 100 - distance * 30)


def popularity_score(avg_rating: Optional[float], total_completions: int) -> float:
    score = 50.0
    if avg_rating:
        score += (avg_rating / 5) * 30
    score += min(20, math.log10(max(total_completions, 0) + 1) * 10)
    return round_half_up(score)


def score_lesson(lesson: CatalogLesson, profile: LearnerProfile, progress: ProgressSummary) -> ScoreBreakdown:
    return ScoreBreakdown(
        age_score=age_score(lesson, profile),
        interest_score=interest_score(lesson, profile),
        learning_style_score=learning_style_score(lesson, profile),
        difficulty_score=difficulty_score(lesson, progress),
        popularity_score=popularity_score(lesson.avg_rating, lesson.total_completions),
    )


def composite_score(breakdown: ScoreBreakdown) -> int:
    total = sum(getattr(breakdown, name) * weight for name, weight in WEIGHTS.items())
    return max(0, min(100, round_half_up(total)))
