"""Domain-specific exceptions for the project evaluation service.

These exceptions let the API layer distinguish "no evaluation exists yet"
from "couldn't check", and a rejected draft from a failed write, and map
each one to an appropriate HTTP error.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for evaluation/progress errors."""


class ValidationError(ServiceError):
    """The caller supplied incomplete or out-of-range input.

    Raised for a draft missing ``project_id``/``teacher_id`` on save, an
    invalid criterion index, a non-finite score, or a malformed rubric.
    Callers re-prompt; it is never silently ignored.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class LoadError(ServiceError):
    """A read from the document store failed.

    The underlying cause is chained via ``raise ... from``.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(ServiceError):
    """A referenced entity (project, evaluation) does not exist."""

    def __init__(self, entity_type: str, entity_id: str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} '{entity_id}' not found")


class PersistenceError(ServiceError):
    """Saving an evaluation failed.

    ``stage`` is ``"evaluation"`` when the evaluation write itself failed and
    ``"project_sync"`` when the follow-up project update failed.
    ``evaluation_saved`` is True only when the evaluation record is still
    written but the project's ``progress``/``rating`` are stale (compensation
    failed); the user should simply save again.
    """

    def __init__(
        self,
        message: str,
        stage: str = "evaluation",
        evaluation_saved: bool = False,
    ) -> None:
        self.message = message
        self.stage = stage
        self.evaluation_saved = evaluation_saved
        super().__init__(message)
