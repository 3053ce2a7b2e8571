"""Project read API — hydrated lists, details and displayed progress."""

from __future__ import annotations

from fastapi import APIRouter, Query

from api.evaluations import to_http_exception
from config.settings import get_settings
from errors.exceptions import ServiceError
from models.project import Project, ProjectProgress
from services.document_store import get_document_store
from services.progress_view import format_progress, get_displayed_progress
from services.project_service import get_project_service

router = APIRouter(prefix="/api/projects", tags=["projects"])


@router.get("", response_model=list[Project])
async def list_projects(
    user_id: str = Query(..., alias="userId"),
    role: str = Query(...),
    school_id: str = Query("", alias="schoolId"),
):
    """Projects visible to the user, with progress from their evaluations."""
    try:
        return await get_project_service().list_projects_for_user(user_id, role, school_id)
    except ServiceError as exc:
        raise to_http_exception(exc) from exc


@router.get("/{project_id}", response_model=Project)
async def get_project(project_id: str):
    """One project with its displayed progress."""
    try:
        return await get_project_service().get_project_detail(project_id)
    except ServiceError as exc:
        raise to_http_exception(exc) from exc


@router.get("/{project_id}/progress", response_model=ProjectProgress)
async def get_project_progress(project_id: str):
    """Raw completion score (0-10) shown as the project's progress bar."""
    settings = get_settings()
    try:
        progress = await get_displayed_progress(
            get_document_store(), project_id, settings.evaluations_collection,
        )
    except ServiceError as exc:
        raise to_http_exception(exc) from exc
    return ProjectProgress(
        project_id=project_id,
        progress=progress,
        display=format_progress(progress),
    )
