"""Evaluation persistence — load/save drafts and keep the project in sync.

``save`` performs two writes: the evaluation record, then the project's
derived ``progress``/``rating``.  The document store has no transactions,
so a failed project sync is compensated by undoing the evaluation write
(delete a freshly created record, or restore the previous one).  Only if
that compensation also fails is the evaluation left written with a stale
project, reported as ``PersistenceError(evaluation_saved=True)``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from errors.exceptions import LoadError, PersistenceError, ValidationError
from models.evaluation import Evaluation
from services.document_store import (
    SERVER_TIMESTAMP,
    DocumentStore,
    DocumentStoreError,
)
from services.rubric_service import DEFAULT_RUBRIC, default_criteria, validate_rubric
from services.scoring import aggregate, completion_score, rating_from_percentage

logger = logging.getLogger(__name__)

DEFAULT_EVALUATIONS_COLLECTION = "project_evaluations"
DEFAULT_PROJECTS_COLLECTION = "projects"


class EvaluationStore:
    """Bridge between evaluation drafts and the document store."""

    def __init__(
        self,
        documents: DocumentStore,
        evaluations_collection: str = DEFAULT_EVALUATIONS_COLLECTION,
        projects_collection: str = DEFAULT_PROJECTS_COLLECTION,
    ) -> None:
        self._documents = documents
        self._evaluations = evaluations_collection
        self._projects = projects_collection

    # -- reads ---------------------------------------------------------------

    async def list_for_project(self, project_id: str) -> list[Evaluation]:
        """All evaluations recorded for *project_id*, in backend order.

        Raises:
            LoadError: the query failed or a record could not be decoded.
        """
        try:
            records = await self._documents.query_records(
                self._evaluations, {"projectId": project_id}
            )
        except DocumentStoreError as exc:
            logger.error("Failed to query evaluations for project %s: %s", project_id, exc)
            raise LoadError(f"Could not load evaluations for project '{project_id}'") from exc

        evaluations: list[Evaluation] = []
        for record_id, data in records:
            try:
                evaluations.append(Evaluation.from_record(record_id, data))
            except PydanticValidationError as exc:
                logger.error("Malformed evaluation record %s: %s", record_id, exc)
                raise LoadError(f"Evaluation record '{record_id}' is malformed") from exc
        return evaluations

    async def load(self, project_id: str, teacher_id: str) -> Evaluation:
        """Return the teacher's saved evaluation, or a fresh unsaved draft.

        A failed query raises :class:`LoadError`; it never degrades to an
        empty draft, so "no evaluation yet" and "couldn't check" stay
        distinguishable.
        """
        evaluations = await self.list_for_project(project_id)
        for evaluation in evaluations:
            if evaluation.teacher_id == teacher_id:
                return evaluation

        logger.debug(
            "No evaluation by teacher %s for project %s — new draft",
            teacher_id, project_id,
        )
        return Evaluation.new_draft(project_id, teacher_id, default_criteria())

    # -- writes --------------------------------------------------------------

    async def save(self, draft: Evaluation) -> Evaluation:
        """Persist *draft* (insert or update) and sync the project record.

        Returns the persisted evaluation with its id and fresh aggregates.

        Raises:
            ValidationError: ``project_id`` or ``teacher_id`` missing, or the
                criteria do not form the full rubric.
            PersistenceError: a write failed (see module docstring).
        """
        if not draft.project_id or not draft.teacher_id:
            raise ValidationError("insufficient data to save evaluation")
        if len(draft.criteria) != len(DEFAULT_RUBRIC):
            raise ValidationError(
                f"Evaluation must score all {len(DEFAULT_RUBRIC)} rubric criteria, "
                f"got {len(draft.criteria)}"
            )
        validate_rubric(draft.criteria)

        result = aggregate(draft.criteria)
        max_total_score = sum(c.max_score for c in draft.criteria)
        body: dict[str, Any] = {
            **draft.to_record(),
            "maxTotalScore": max_total_score,
            "totalScore": result.weighted_total,
            "percentage": result.percentage,
            "updatedAt": SERVER_TIMESTAMP,
        }

        previous: dict[str, Any] | None = None
        try:
            if draft.id:
                previous = await self._documents.get_record(self._evaluations, draft.id)
                await self._documents.update_record(self._evaluations, draft.id, body)
                evaluation_id = draft.id
            else:
                body["createdAt"] = SERVER_TIMESTAMP
                evaluation_id = await self._documents.create_record(self._evaluations, body)
        except DocumentStoreError as exc:
            logger.exception("Failed to write evaluation for project %s", draft.project_id)
            raise PersistenceError(
                "Failed to save evaluation", stage="evaluation",
            ) from exc

        progress = completion_score(draft.criteria)
        rating = rating_from_percentage(result.percentage)
        try:
            await self._documents.update_record(self._projects, draft.project_id, {
                "progress": progress,
                "rating": rating,
                "updated_at": SERVER_TIMESTAMP,
            })
        except DocumentStoreError as exc:
            logger.error(
                "Project sync failed for %s after writing evaluation %s: %s",
                draft.project_id, evaluation_id, exc,
            )
            rolled_back = await self._compensate(evaluation_id, created=not draft.id, previous=previous)
            if rolled_back:
                raise PersistenceError(
                    "Failed to update project progress; evaluation was not saved",
                    stage="project_sync",
                    evaluation_saved=False,
                ) from exc
            raise PersistenceError(
                "Evaluation saved but project progress is out of date; try saving again",
                stage="project_sync",
                evaluation_saved=True,
            ) from exc

        logger.info(
            "Saved evaluation %s (project=%s teacher=%s percentage=%d progress=%.1f)",
            evaluation_id, draft.project_id, draft.teacher_id, result.percentage, progress,
        )
        now = datetime.now(timezone.utc)
        return draft.model_copy(update={
            "id": evaluation_id,
            "total_score": result.weighted_total,
            "max_total_score": max_total_score,
            "percentage": result.percentage,
            "created_at": _created_at(draft, previous, now),
            "updated_at": now,
        })

    async def _compensate(
        self,
        evaluation_id: str,
        created: bool,
        previous: dict[str, Any] | None,
    ) -> bool:
        """Undo the evaluation write.  Returns True on success."""
        try:
            if created:
                await self._documents.delete_record(self._evaluations, evaluation_id)
            elif previous is not None:
                await self._documents.update_record(self._evaluations, evaluation_id, previous)
            else:
                return False
        except DocumentStoreError:
            logger.exception("Compensation failed for evaluation %s", evaluation_id)
            return False
        logger.warning("Rolled back evaluation %s after failed project sync", evaluation_id)
        return True


def _created_at(
    draft: Evaluation,
    previous: dict[str, Any] | None,
    now: datetime,
) -> datetime:
    """Creation time to report after a save; new records are stamped *now*."""
    if not draft.id:
        return now
    if draft.created_at:
        return draft.created_at
    stored = (previous or {}).get("createdAt")
    if isinstance(stored, datetime):
        return stored
    if isinstance(stored, str):
        try:
            return datetime.fromisoformat(stored.replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Unparseable createdAt on evaluation %s: %r", draft.id, stored)
    return now


# ── Module-level Accessor ────────────────────────────────────


def get_evaluation_store() -> EvaluationStore:
    """Build an EvaluationStore over the shared document store."""
    from config.settings import get_settings
    from services.document_store import get_document_store

    settings = get_settings()
    return EvaluationStore(
        get_document_store(),
        evaluations_collection=settings.evaluations_collection,
        projects_collection=settings.projects_collection,
    )
