"""Evaluation models — rubric criteria and the per-teacher evaluation draft.

An ``Evaluation`` is both the in-memory draft a teacher edits and the
deserialised form of the persisted ``project_evaluations`` document.  Drafts
are immutable: ``set_criterion_score`` and ``set_feedback`` return a new
draft with its aggregates already recomputed, so the
``(criteria, total_score, percentage)`` triple is always consistent.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any

from pydantic import Field, ValidationInfo, field_validator, model_validator

from errors.exceptions import ValidationError
from models.base import FrozenCamelModel
from services.scoring import aggregate, clamp_score, grade_label


class Criterion(FrozenCamelModel):
    """One rubric entry; ``score`` is clamped into ``[0, max_score]``."""

    name: str
    max_score: float = Field(default=10, ge=0)
    score: float = Field(default=0, allow_inf_nan=False)
    weight: float = Field(default=0, ge=0, le=1)
    comments: str = ""

    @model_validator(mode="before")
    @classmethod
    def _fill_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("score") is None:
            data["score"] = 0
        if data.get("comments") is None:
            data.pop("comments", None)
        return data

    @field_validator("score")
    @classmethod
    def _clamp_score(cls, value: float, info: ValidationInfo) -> float:
        # max_score is validated first; absent here only if it failed
        max_score = info.data.get("max_score")
        if max_score is None:
            return value
        return clamp_score(value, max_score)


class Evaluation(FrozenCamelModel):
    """A teacher's evaluation of one project.

    ``id`` is empty while the draft is unsaved.  ``max_total_score`` is the
    legacy unweighted ``Σ max_score`` and is NOT the denominator of
    ``percentage``; ``percentage`` is the authoritative summary figure.
    """

    id: str = ""
    project_id: str = ""
    teacher_id: str = ""
    criteria: list[Criterion] = Field(default_factory=list)
    total_score: float = 0
    max_total_score: float = 0
    percentage: int = 0
    feedback: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("criteria", mode="before")
    @classmethod
    def _criteria_default(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("feedback", mode="before")
    @classmethod
    def _feedback_default(cls, value: Any) -> Any:
        return "" if value is None else value

    # -- construction --------------------------------------------------------

    @classmethod
    def new_draft(
        cls,
        project_id: str,
        teacher_id: str,
        criteria: list[Criterion],
    ) -> Evaluation:
        """Fresh, unsaved draft seeded with *criteria*."""
        result = aggregate(criteria)
        return cls(
            project_id=project_id,
            teacher_id=teacher_id,
            criteria=list(criteria),
            total_score=result.weighted_total,
            max_total_score=sum(c.max_score for c in criteria),
            percentage=result.percentage,
        )

    @classmethod
    def from_record(cls, record_id: str, data: dict[str, Any]) -> Evaluation:
        """Deserialise a stored document (camelCase keys) into a saved draft."""
        payload = {k: v for k, v in data.items() if k != "id"}
        return cls.model_validate({**payload, "id": record_id})

    def to_record(self) -> dict[str, Any]:
        """Document body without id/timestamps (the store owns those)."""
        return self.model_dump(
            by_alias=True,
            exclude={"id", "created_at", "updated_at"},
        )

    # -- state ---------------------------------------------------------------

    @property
    def is_saved(self) -> bool:
        return bool(self.id)

    @property
    def grade(self) -> str:
        return grade_label(self.percentage)

    # -- mutators (return a new draft) --------------------------------------

    def set_criterion_score(
        self,
        index: int,
        new_score: float,
        comments: str | None = None,
    ) -> Evaluation:
        """Return a copy with criterion *index* re-scored.

        The score is clamped to the criterion's range.  ``comments=None``
        keeps the existing comments; any string (including ``""``) replaces
        them.
        """
        if isinstance(index, bool) or not isinstance(index, int):
            raise ValidationError(f"Criterion index must be an integer, got {index!r}")
        if not 0 <= index < len(self.criteria):
            raise ValidationError(
                f"Criterion index {index} out of range (0..{len(self.criteria) - 1})"
            )
        if not _is_number(new_score) or not math.isfinite(new_score):
            raise ValidationError(f"Score must be a finite number, got {new_score!r}")

        current = self.criteria[index]
        updated = current.model_copy(update={
            "score": clamp_score(new_score, current.max_score),
            "comments": current.comments if comments is None else comments,
        })
        criteria = [*self.criteria[:index], updated, *self.criteria[index + 1:]]
        return self.with_criteria(criteria)

    def set_feedback(self, text: str) -> Evaluation:
        """Return a copy with the overall feedback replaced verbatim."""
        return self.model_copy(update={"feedback": text})

    def with_criteria(self, criteria: list[Criterion]) -> Evaluation:
        """Return a copy carrying *criteria* and freshly computed aggregates."""
        result = aggregate(criteria)
        return self.model_copy(update={
            "criteria": criteria,
            "total_score": result.weighted_total,
            "percentage": result.percentage,
        })


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
