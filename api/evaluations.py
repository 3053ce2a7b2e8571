"""Evaluation API — draft loading, draft edits and saving.

Drafts live on the client: edit endpoints take the current draft and return
the updated one with recomputed aggregates.  Only ``POST /api/evaluations``
writes.

Endpoints:
- ``GET  /api/rubric``
- ``GET  /api/projects/{project_id}/evaluations``
- ``GET  /api/projects/{project_id}/evaluations/draft?teacherId=``
- ``POST /api/evaluations/score``
- ``POST /api/evaluations/feedback``
- ``POST /api/evaluations``
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query

from errors.exceptions import (
    LoadError,
    NotFoundError,
    PersistenceError,
    ServiceError,
    ValidationError,
)
from models.evaluation import Evaluation
from models.request import (
    CriterionScoreRequest,
    EvaluationListResponse,
    EvaluationView,
    FeedbackRequest,
)
from services.evaluation_store import get_evaluation_store
from services.rubric_service import rubric_summary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["evaluations"])


def to_http_exception(exc: ServiceError) -> HTTPException:
    """Map a domain error onto an HTTP error response."""
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail=exc.message)
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, PersistenceError):
        return HTTPException(status_code=502, detail={
            "message": exc.message,
            "stage": exc.stage,
            "evaluationSaved": exc.evaluation_saved,
        })
    if isinstance(exc, LoadError):
        return HTTPException(status_code=502, detail=exc.message)
    return HTTPException(status_code=500, detail=str(exc))


def _normalize_id(raw: str | None) -> str:
    if raw is None:
        return ""
    value = str(raw).strip()
    if value.lower() in ("", "null", "undefined", "none"):
        return ""
    return value


@router.get("/rubric")
async def get_rubric():
    """The fixed evaluation rubric (names, max scores, weights)."""
    return {"criteria": rubric_summary()}


@router.get("/projects/{project_id}/evaluations", response_model=EvaluationListResponse)
async def list_project_evaluations(project_id: str):
    """All evaluations recorded for a project, each with its grade label."""
    try:
        evaluations = await get_evaluation_store().list_for_project(project_id)
    except ServiceError as exc:
        raise to_http_exception(exc) from exc
    return EvaluationListResponse(
        project_id=project_id,
        evaluations=[EvaluationView.of(e) for e in evaluations],
    )


@router.get("/projects/{project_id}/evaluations/draft", response_model=Evaluation)
async def load_evaluation_draft(project_id: str, teacher_id: str = Query(..., alias="teacherId")):
    """The teacher's saved evaluation, or a fresh draft if none exists."""
    tid = _normalize_id(teacher_id)
    if not tid:
        raise HTTPException(status_code=400, detail="teacherId is required")
    try:
        return await get_evaluation_store().load(project_id, tid)
    except ServiceError as exc:
        raise to_http_exception(exc) from exc


@router.post("/evaluations/score", response_model=Evaluation)
async def update_criterion_score(req: CriterionScoreRequest):
    """Apply one criterion score (and optional comments) to a draft."""
    try:
        return req.evaluation.set_criterion_score(req.index, req.score, req.comments)
    except ServiceError as exc:
        raise to_http_exception(exc) from exc


@router.post("/evaluations/feedback", response_model=Evaluation)
async def update_feedback(req: FeedbackRequest):
    """Replace a draft's overall feedback."""
    return req.evaluation.set_feedback(req.feedback)


@router.post("/evaluations", response_model=Evaluation)
async def save_evaluation(draft: Evaluation):
    """Persist a draft and refresh the project's progress and rating."""
    try:
        return await get_evaluation_store().save(draft)
    except ServiceError as exc:
        logger.warning("Evaluation save rejected: %s", exc)
        raise to_http_exception(exc) from exc
