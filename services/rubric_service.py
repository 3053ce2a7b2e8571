"""Project evaluation rubric.

Every project is evaluated against the same fixed, ordered rubric.  Order
is significant: the first criterion is the completion criterion whose raw
score becomes the project's ``progress``.
"""

from __future__ import annotations

import math
from typing import Sequence

from errors.exceptions import ValidationError
from models.evaluation import Criterion
from services.scoring import COMPLETION_CRITERION_NAME


DEFAULT_MAX_SCORE = 10

# (name, weight); weights sum to 1
DEFAULT_RUBRIC: list[tuple[str, float]] = [
    (COMPLETION_CRITERION_NAME, 0.2),
    ("Work Quality", 0.25),
    ("Communication & Collaboration", 0.15),
    ("Creativity & Innovation", 0.2),
    ("Presentation & Documentation", 0.2),
]

WEIGHT_TOLERANCE = 1e-6


def default_criteria() -> list[Criterion]:
    """Fresh zero-scored criteria for a new evaluation draft."""
    return [
        Criterion(
            name=name,
            score=0,
            max_score=DEFAULT_MAX_SCORE,
            weight=weight,
            comments="",
        )
        for name, weight in DEFAULT_RUBRIC
    ]


def validate_rubric(criteria: Sequence[Criterion]) -> None:
    """Check that *criteria* form a usable rubric.

    Raises:
        ValidationError: empty rubric, duplicate names, or weights that do
            not sum to 1.
    """
    if not criteria:
        raise ValidationError("Rubric must contain at least one criterion")

    names = [c.name for c in criteria]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ValidationError(f"Duplicate criterion names: {', '.join(duplicates)}")

    total_weight = math.fsum(c.weight for c in criteria)
    if abs(total_weight - 1.0) > WEIGHT_TOLERANCE:
        raise ValidationError(f"Criterion weights must sum to 1, got {total_weight:.4f}")


def rubric_summary() -> list[dict[str, float | str]]:
    """Rubric description for clients rendering the evaluation form."""
    return [
        {"name": c.name, "maxScore": c.max_score, "weight": c.weight}
        for c in default_criteria()
    ]


validate_rubric(default_criteria())
