"""Evaluation scoring — weighted aggregation and derived project figures.

Pure functions with no I/O.  ``aggregate`` is called after every draft
mutation and again immediately before a save, so the stored
``totalScore``/``percentage`` can never drift from the criteria.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from models.evaluation import Criterion

COMPLETION_CRITERION_NAME = "Completion"

# Percentage → 0-5 rating scale
RATING_DIVISOR = 20

# (lower bound, label), checked top-down
GRADE_BANDS: list[tuple[int, str]] = [
    (90, "excellent"),
    (80, "very_good"),
    (70, "good"),
    (60, "acceptable"),
]

SCORE_BANDS: list[tuple[float, str]] = [
    (90, "high"),
    (75, "good"),
    (60, "fair"),
]


@dataclass(frozen=True)
class AggregateResult:
    weighted_total: float
    weighted_max: float
    percentage: int


def clamp_score(score: float, max_score: float) -> float:
    """Clamp *score* into ``[0, max_score]``."""
    return max(0.0, min(float(score), float(max_score)))


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives.

    Float noise is normalised to 9 decimals first so that e.g. a ratio that
    should be exactly 72.5 rounds to 73 even if it lands on 72.49999999.
    """
    return int(math.floor(round(value, 9) + 0.5))


def aggregate(criteria: Sequence[Criterion]) -> AggregateResult:
    """Compute the weighted total and percentage for a list of criteria.

    - ``weighted_total = Σ score * weight``
    - ``weighted_max   = Σ max_score * weight``
    - ``percentage     = round_half_up(100 * weighted_total / weighted_max)``,
      or ``0`` when ``weighted_max`` is not positive.
    """
    weighted_total = 0.0
    weighted_max = 0.0
    for criterion in criteria:
        weighted_total += criterion.score * criterion.weight
        weighted_max += criterion.max_score * criterion.weight

    percentage = (
        round_half_up(100 * weighted_total / weighted_max)
        if weighted_max > 0
        else 0
    )
    return AggregateResult(
        weighted_total=weighted_total,
        weighted_max=weighted_max,
        percentage=percentage,
    )


def completion_score(criteria: Sequence[Criterion]) -> float:
    """Raw (unweighted) score of the completion criterion.

    Matched by name first, falling back to the first rubric position.
    Returns 0 for an empty rubric.  This is a 0-10 figure, never a percentage.
    """
    if not criteria:
        return 0.0
    match = next(
        (c for c in criteria if c.name == COMPLETION_CRITERION_NAME),
        criteria[0],
    )
    return clamp_score(match.score, match.max_score)


def rating_from_percentage(percentage: float) -> float:
    """Map a 0-100 percentage onto the project's 0-5 rating scale."""
    return percentage / RATING_DIVISOR


def grade_label(percentage: float) -> str:
    """Verbal grade for an overall percentage."""
    for threshold, label in GRADE_BANDS:
        if percentage >= threshold:
            return label
    return "weak"


def score_band(score: float, max_score: float) -> str:
    """Display band for a single criterion score."""
    if max_score <= 0:
        return "low"
    ratio = score / max_score * 100
    for threshold, label in SCORE_BANDS:
        if ratio >= threshold:
            return label
    return "low"
