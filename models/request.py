"""API request / response models."""

from __future__ import annotations

from models.base import CamelModel
from models.evaluation import Evaluation
from services.scoring import score_band


class CriterionScoreRequest(CamelModel):
    """POST /api/evaluations/score — request body."""

    evaluation: Evaluation
    index: int
    score: float
    comments: str | None = None


class FeedbackRequest(CamelModel):
    """POST /api/evaluations/feedback — request body."""

    evaluation: Evaluation
    feedback: str = ""


class EvaluationView(CamelModel):
    """An evaluation plus its verbal grade, for summary panels.

    ``bands`` lines up with ``evaluation.criteria``: one display band per
    criterion score.
    """

    evaluation: Evaluation
    grade: str
    bands: list[str]

    @classmethod
    def of(cls, evaluation: Evaluation) -> EvaluationView:
        return cls(
            evaluation=evaluation,
            grade=evaluation.grade,
            bands=[score_band(c.score, c.max_score) for c in evaluation.criteria],
        )


class EvaluationListResponse(CamelModel):
    """GET /api/projects/{id}/evaluations — response body."""

    project_id: str
    evaluations: list[EvaluationView]
