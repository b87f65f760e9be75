"""
Lesson matching entry points.

`match_lessons_for_child` scores the published catalog for one learner and
returns a ranked list; `get_quick_recommendations` is the cheap, unscored
"more like this" path used next to a lesson the learner is viewing.
"""

from __future__ import annotations

import logging
import random
from typing import Iterable, List, Optional

from .errors import LearnerNotFound
from .progress import summarize_progress
from .repository import LessonRepository
from .schemas import (
    CatalogLesson,
    LearnerProfile,
    Lesson,
    MatchOptions,
    ProgressSummary,
    ScoredLesson,
)
from .scoring import composite_score, score_lesson

logger = logging.getLogger(__name__)

_LESSON_FIELDS = set(Lesson.model_fields)


def rank_candidates(
    candidates: Iterable[CatalogLesson],
    profile: LearnerProfile,
    progress: ProgressSummary,
    options: MatchOptions,
) -> List[ScoredLesson]:
    scored: List[ScoredLesson] = []
    for lesson in candidates:
        if options.exclude_completed and lesson.id in progress.completed_lesson_ids:
            continue
        breakdown = score_lesson(lesson, profile, progress)
        match_score = composite_score(breakdown)
        if match_score < options.min_score:
            continue
        scored.append(
            ScoredLesson(
                **lesson.model_dump(include=_LESSON_FIELDS),
                match_score=match_score,
                score_breakdown=breakdown,
            )
        )

    # sorted() is stable: equal scores keep catalog order
    scored = sorted(scored, key=lambda item: item.match_score, reverse=True)
    return scored[: options.limit]


def match_lessons_for_child(
    repo: LessonRepository,
    learner_id: str,
    options: Optional[MatchOptions] = None,
) -> List[ScoredLesson]:
    options = options or MatchOptions()

    profile = repo.get_learner_profile(learner_id)
    if profile is None:
        logger.info("Match requested for unknown child %s", learner_id)
        raise LearnerNotFound(learner_id)

    progress = summarize_progress(repo.list_completed_progress(learner_id))
    candidates = repo.list_candidate_lessons(options.subject_filter)
    ranked = rank_candidates(candidates, profile, progress, options)
    logger.debug(
        "Matched child %s: %d candidates, %d completed, %d returned",
        learner_id,
        len(candidates),
        len(progress.completed_lesson_ids),
        len(ranked),
    )
    return ranked


def _fits_learner(lesson: Lesson, profile: LearnerProfile) -> bool:
    if profile.age is not None:
        if lesson.age_min is not None and lesson.age_min > profile.age:
            return False
        if lesson.age_max is not None and lesson.age_max < profile.age:
            return False
    if profile.learning_style is not None and lesson.learning_styles:
        return profile.learning_style in lesson.learning_styles
    return True


def get_quick_recommendations(
    repo: LessonRepository,
    learner_id: str,
    current_lesson_id: str,
    limit: int = 5,
    rng: Optional[random.Random] = None,
) -> List[Lesson]:
    profile = repo.get_learner_basics(learner_id)
    if profile is None:
        return []
    current = repo.get_lesson(current_lesson_id)
    if current is None:
        return []

    pool = [lesson for lesson in repo.list_related_lessons(current) if _fits_learner(lesson, profile)]
    if limit <= 0 or not pool:
        return []
    return (rng or random).sample(pool, min(limit, len(pool)))
