import pytest

from conftest import make_lesson
from l2rr2l.schemas import (
    Difficulty,
    GradeLevel,
    LearnerProfile,
    LearningStyle,
    ProgressSummary,
    ScoreBreakdown,
    SubjectProgress,
)
from l2rr2l.scoring import (
    WEIGHTS,
    age_score,
    composite_score,
    difficulty_score,
    effective_age,
    ideal_difficulty,
    interest_score,
    learning_style_score,
    popularity_score,
    round_half_up,
    score_lesson,
)


def _profile(**fields) -> LearnerProfile:
    return LearnerProfile(id="child-1", **fields)


def _progress(difficulties=(), subjects=None) -> ProgressSummary:
    return ProgressSummary(
        completed_lesson_ids=frozenset(),
        completed_difficulties=frozenset(difficulties),
        subject_progress=subjects or {},
    )


def test_round_half_up_rounds_halves_away_from_even() -> None:
    assert round_half_up(2.5) == 3
    assert round_half_up(0.5) == 1
    assert round_half_up(84.49) == 84


def test_age_centered_in_range_scores_full() -> None:
    assert age_score(make_lesson(age_min=5, age_max=9), _profile(age=7)) == 100


def test_age_outside_range_loses_fifteen_per_year() -> None:
    assert age_score(make_lesson(age_min=10, age_max=12), _profile(age=7)) == 5
    assert age_score(make_lesson(age_min=3, age_max=5), _profile(age=7)) == 20
    assert age_score(make_lesson(age_min=10, age_max=12), _profile(age=3)) == 0


def test_age_at_range_edge_scores_eighty() -> None:
    assert age_score(make_lesson(age_min=5, age_max=9), _profile(age=5)) == pytest.approx(80)
    assert age_score(make_lesson(age_min=5, age_max=9), _profile(age=9)) == pytest.approx(80)


def test_age_zero_width_range_scores_full() -> None:
    assert age_score(make_lesson(age_min=7, age_max=7), _profile(age=7)) == 100


def test_age_open_upper_bound_treated_as_hundred() -> None:
    score = age_score(make_lesson(age_min=5), _profile(age=7))
    assert score == pytest.approx(100 - (45.5 / 47.5) * 20)


def test_age_without_bounds_is_slightly_favorable() -> None:
    assert age_score(make_lesson(), _profile(age=7)) == 60


def test_age_unknown_learner_is_neutral() -> None:
    assert age_score(make_lesson(age_min=5, age_max=9), _profile()) == 50


def test_age_falls_back_to_grade_midpoint() -> None:
    profile = _profile(grade_level=GradeLevel.SECOND)
    assert effective_age(profile) == 8
    # center 7, one year off, half width 2
    assert age_score(make_lesson(age_min=5, age_max=9), profile) == pytest.approx(90)


def test_stated_age_wins_over_grade() -> None:
    assert effective_age(_profile(age=4, grade_level=GradeLevel.FIFTH)) == 4


def test_interest_full_match() -> None:
    lesson = make_lesson(tags=["dinosaurs", "reading"])
    assert interest_score(lesson, _profile(interests=("dinosaurs",))) == 100


def test_interest_no_match_scores_floor() -> None:
    lesson = make_lesson(subject="science", tags=["space"])
    assert interest_score(lesson, _profile(interests=("dinosaurs",))) == 40


def test_interest_partial_and_substring_matches() -> None:
    lesson = make_lesson(subject="reading", interests=["Dinosaurs"], tags=["space"])
    assert interest_score(lesson, _profile(interests=("dino", "cooking"))) == 70
    assert interest_score(lesson, _profile(interests=("space exploration",))) == 100


def test_interest_matches_subject_name() -> None:
    lesson = make_lesson(subject="Math")
    assert interest_score(lesson, _profile(interests=("math",))) == 100


def test_interest_without_learner_interests_is_neutral() -> None:
    assert interest_score(make_lesson(tags=["space"]), _profile()) == 50


def test_interest_lesson_without_metadata_is_penalized() -> None:
    assert interest_score(make_lesson(subject=""), _profile(interests=("space",))) == 40


@pytest.mark.parametrize(
    ("styles", "preferred", "expected"),
    [
        ([LearningStyle.VISUAL, LearningStyle.AUDITORY], LearningStyle.VISUAL, 100),
        ([LearningStyle.AUDITORY, LearningStyle.VISUAL], LearningStyle.VISUAL, 85),
        ([LearningStyle.KINESTHETIC], LearningStyle.VISUAL, 30),
        ([], LearningStyle.VISUAL, 50),
        ([LearningStyle.VISUAL], None, 50),
    ],
)
def test_learning_style_score(styles, preferred, expected) -> None:
    lesson = make_lesson(learning_styles=styles)
    assert learning_style_score(lesson, _profile(learning_style=preferred)) == expected


def test_ideal_difficulty_starts_at_beginner() -> None:
    assert ideal_difficulty("reading", _progress()) == Difficulty.BEGINNER


def test_difficulty_after_beginner_targets_easy() -> None:
    progress = _progress([Difficulty.BEGINNER])
    assert ideal_difficulty("reading", progress) == Difficulty.EASY
    assert difficulty_score(make_lesson(difficulty=Difficulty.EASY), progress) == 100
    assert difficulty_score(make_lesson(difficulty=Difficulty.ADVANCED), progress) == 20
    assert difficulty_score(make_lesson(difficulty=Difficulty.MEDIUM), progress) == 70
    assert difficulty_score(make_lesson(difficulty=Difficulty.BEGINNER), progress) == 80


def test_difficulty_easier_penalty_floors_at_fifty() -> None:
    progress = _progress([Difficulty.HARD])
    assert ideal_difficulty("reading", progress) == Difficulty.ADVANCED
    assert difficulty_score(make_lesson(difficulty=Difficulty.BEGINNER), progress) == 50


def test_difficulty_ideal_is_capped_at_top() -> None:
    progress = _progress([Difficulty.ADVANCED])
    assert ideal_difficulty("reading", progress) == Difficulty.ADVANCED
    assert difficulty_score(make_lesson(difficulty=Difficulty.HARD), progress) == 80


def test_strong_subject_unlocks_next_level_only_for_that_subject() -> None:
    progress = _progress(
        [Difficulty.BEGINNER],
        {"reading": SubjectProgress(completed=2, avg_score=85.0)},
    )
    assert ideal_difficulty("reading", progress) == Difficulty.MEDIUM
    assert ideal_difficulty("math", progress) == Difficulty.EASY
    assert difficulty_score(make_lesson(subject="reading", difficulty=Difficulty.MEDIUM), progress) == 100
    assert difficulty_score(make_lesson(subject="math", difficulty=Difficulty.MEDIUM), progress) == 70


def test_subject_average_just_below_threshold_does_not_unlock() -> None:
    progress = _progress(
        [Difficulty.BEGINNER],
        {"reading": SubjectProgress(completed=1, avg_score=79.9)},
    )
    assert ideal_difficulty("reading", progress) == Difficulty.EASY


def test_difficulty_missing_on_lesson_is_neutral() -> None:
    assert difficulty_score(make_lesson(), _progress([Difficulty.EASY])) == 50


@pytest.mark.parametrize(
    ("rating", "completions", "expected"),
    [
        (None, 0, 50),
        (0.0, 0, 50),
        (5.0, 0, 80),
        (4.0, 9, 84),
        (2.5, 0, 65),
        (5.0, 99, 100),
        (5.0, 10_000_000, 100),
    ],
)
def test_popularity_score(rating, completions, expected) -> None:
    assert popularity_score(rating, completions) == expected


def test_weights_sum_to_one() -> None:
    assert sum(WEIGHTS.values()) == pytest.approx(1.0)
    assert set(WEIGHTS) == set(ScoreBreakdown.model_fields)


def test_composite_is_weighted_and_rounded() -> None:
    breakdown = ScoreBreakdown(
        age_score=100,
        interest_score=40,
        learning_style_score=50,
        difficulty_score=20,
        popularity_score=70,
    )
    # 30 + 10 + 10 + 3 + 7
    assert composite_score(breakdown) == 60


def test_heavier_dimension_dominates_composite() -> None:
    age_strong = ScoreBreakdown(
        age_score=100, interest_score=50, learning_style_score=50, difficulty_score=50, popularity_score=50
    )
    popularity_strong = ScoreBreakdown(
        age_score=50, interest_score=50, learning_style_score=50, difficulty_score=50, popularity_score=100
    )
    assert composite_score(age_strong) > composite_score(popularity_strong)


def test_all_scores_stay_in_bounds() -> None:
    profiles = [
        _profile(),
        _profile(age=3, interests=("space", "dinosaurs"), learning_style=LearningStyle.AUDITORY),
        _profile(age=17, grade_level=GradeLevel.PRE_K, learning_style=LearningStyle.VISUAL),
        _profile(grade_level=GradeLevel.FIFTH, interests=("x",)),
    ]
    lessons = [
        make_lesson(),
        make_lesson(subject="", age_min=0, age_max=0, difficulty=Difficulty.ADVANCED, avg_rating=5.0, total_completions=10**9),
        make_lesson(age_max=4, tags=["space"], learning_styles=[LearningStyle.VISUAL], difficulty=Difficulty.BEGINNER),
        make_lesson(age_min=12, interests=["dinosaurs"], avg_rating=1.0, total_completions=3),
    ]
    progresses = [
        _progress(),
        _progress([Difficulty.ADVANCED], {"reading": SubjectProgress(completed=3, avg_score=100.0)}),
    ]
    for profile in profiles:
        for lesson in lessons:
            for progress in progresses:
                breakdown = score_lesson(lesson, profile, progress)
                for value in breakdown.model_dump().values():
                    assert 0 <= value <= 100
                assert 0 <= composite_score(breakdown) <= 100
