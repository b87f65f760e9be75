from __future__ import annotations


class MatchingError(Exception):
    """Base class for failures surfaced by the lesson matching engine."""


class LearnerNotFound(MatchingError):
    def __init__(self, learner_id: str) -> None:
        super().__init__(f"Child not found: {learner_id}")
        self.learner_id = learner_id


class InternalError(MatchingError):
    """Persistence failure or malformed stored data. Never retried here."""
