"""
Exception taxonomy for the scoring & analytics engine.

An empty score computation is not an error: compute_scores returns None.
"""
from typing import Optional


class EvaluationError(Exception):
    """Base class for all engine errors."""


class ValidationError(EvaluationError, ValueError):
    """A submitted answer cannot be normalized, or a submission is incomplete."""

    def __init__(self, message: str, question_code: Optional[str] = None):
        super().__init__(message)
        self.question_code = question_code


class NotFoundError(EvaluationError, LookupError):
    """A referenced Question, Project, Questionnaire, Assignment or Response does not exist."""
