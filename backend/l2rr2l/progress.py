from __future__ import annotations

from typing import Dict, Iterable, Set

from .schemas import Difficulty, ProgressRecord, ProgressSummary, SubjectProgress


def summarize_progress(records: Iterable[ProgressRecord]) -> ProgressSummary:
    """
    Derive a learner's progress summary from their completed progress log.

    Built fresh on every call and never stored. Per-subject averages use a
    running update, with a missing score counted as 0.
    """
    completed_ids: Set[str] = set()
    difficulties: Set[Difficulty] = set()
    subjects: Dict[str, SubjectProgress] = {}

    for record in records:
        completed_ids.add(record.lesson_id)
        if record.difficulty is not None:
            difficulties.add(record.difficulty)

        existing = subjects.get(record.subject, SubjectProgress())
        count = existing.completed + 1
        avg = (existing.avg_score * existing.completed + (record.score or 0)) / count
        subjects[record.subject] = SubjectProgress(completed=count, avg_score=avg)

    return ProgressSummary(
        completed_lesson_ids=frozenset(completed_ids),
        completed_difficulties=frozenset(difficulties),
        subject_progress=subjects,
    )
