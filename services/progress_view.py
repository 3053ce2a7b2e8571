"""Project progress read path.

Project list and detail screens show a project's progress as the raw
completion score of its first evaluation record.  Every hydration path goes
through :func:`get_displayed_progress` so the query, default and field
extraction are defined exactly once.

The value is a 0-10 score, rendered as ``"6.5/10"``; it is never a
percentage.  The first record wins regardless of which teacher wrote it.
"""

from __future__ import annotations

import logging
from typing import Any

from errors.exceptions import LoadError
from models.project import Project
from services.document_store import DocumentStore, DocumentStoreError
from services.scoring import clamp_score

logger = logging.getLogger(__name__)

DEFAULT_EVALUATIONS_COLLECTION = "project_evaluations"
PROGRESS_SCALE = 10


async def get_displayed_progress(
    documents: DocumentStore,
    project_id: str,
    collection: str = DEFAULT_EVALUATIONS_COLLECTION,
) -> float:
    """Raw completion score of the project's first evaluation, or 0.

    Raises:
        LoadError: the evaluation query failed.
    """
    try:
        records = await documents.query_records(collection, {"projectId": project_id})
    except DocumentStoreError as exc:
        raise LoadError(f"Could not load progress for project '{project_id}'") from exc

    if not records:
        return 0.0
    _, data = records[0]
    return _first_criterion_score(data)


def _first_criterion_score(data: dict[str, Any]) -> float:
    criteria = data.get("criteria") or []
    if not isinstance(criteria, list) or not criteria or not isinstance(criteria[0], dict):
        return 0.0
    first = criteria[0]
    score = first.get("score")
    max_score = first.get("maxScore", PROGRESS_SCALE)
    if not _is_number(score):
        return 0.0
    if not _is_number(max_score):
        max_score = PROGRESS_SCALE
    return clamp_score(score, max_score)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def format_progress(progress: float) -> str:
    """Display string for a progress score, e.g. ``"6.5/10"``."""
    return f"{progress:.1f}/{PROGRESS_SCALE}"


async def hydrate_project(
    documents: DocumentStore,
    project: Project,
    collection: str = DEFAULT_EVALUATIONS_COLLECTION,
) -> Project:
    """Return *project* with ``progress`` overwritten from its evaluation.

    Best-effort: a failed lookup is logged and progress falls back to 0.
    """
    try:
        progress = await get_displayed_progress(documents, project.id, collection)
    except LoadError as exc:
        logger.warning("Progress lookup failed for project %s: %s", project.id, exc.__cause__ or exc)
        progress = 0.0
    return project.model_copy(update={"progress": progress})


async def hydrate_projects(
    documents: DocumentStore,
    projects: list[Project],
    collection: str = DEFAULT_EVALUATIONS_COLLECTION,
) -> list[Project]:
    """Hydrate each project in order; lookups run sequentially."""
    hydrated: list[Project] = []
    for project in projects:
        hydrated.append(await hydrate_project(documents, project, collection))
    return hydrated
