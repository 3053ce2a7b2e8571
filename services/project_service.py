"""Project read paths — role-scoped listing and detail, with progress.

Both paths hydrate ``progress`` through ``services.progress_view``; neither
queries evaluations itself.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError as PydanticValidationError

from errors.exceptions import LoadError, NotFoundError, ValidationError
from models.project import Project, ProjectRole
from services.document_store import DocumentStore, DocumentStoreError, Record
from services.progress_view import hydrate_project, hydrate_projects

logger = logging.getLogger(__name__)


class ProjectService:
    """Read-only project access for list and detail screens."""

    def __init__(
        self,
        documents: DocumentStore,
        projects_collection: str = "projects",
        project_students_collection: str = "project_students",
        evaluations_collection: str = "project_evaluations",
    ) -> None:
        self._documents = documents
        self._projects = projects_collection
        self._project_students = project_students_collection
        self._evaluations = evaluations_collection

    async def get_project_detail(self, project_id: str) -> Project:
        """Fetch one project with its displayed progress.

        Raises:
            NotFoundError: no such project.
            LoadError: the project read failed.
        """
        try:
            data = await self._documents.get_record(self._projects, project_id)
        except DocumentStoreError as exc:
            raise LoadError(f"Could not load project '{project_id}'") from exc
        if data is None:
            raise NotFoundError("project", project_id)

        project = _to_project((project_id, data))
        return await hydrate_project(self._documents, project, self._evaluations)

    async def list_projects_for_user(
        self,
        user_id: str,
        role: str,
        school_id: str = "",
    ) -> list[Project]:
        """Projects visible to a user, each with its displayed progress.

        - teacher: assigned projects plus the school's draft projects
        - school:  projects of that school (``user_id`` is the school id)
        - student: projects the student is a member of
        - admin:   every project
        """
        if role not in {r.value for r in ProjectRole}:
            raise ValidationError(f"Unknown role: {role!r}")

        try:
            if role == ProjectRole.TEACHER:
                records = await self._teacher_projects(user_id, school_id)
            elif role == ProjectRole.SCHOOL:
                records = await self._documents.query_records(self._projects, {"school_id": user_id})
            elif role == ProjectRole.STUDENT:
                records = await self._student_projects(user_id)
            else:
                records = await self._documents.query_records(self._projects)
        except DocumentStoreError as exc:
            raise LoadError(f"Could not load projects for {role} '{user_id}'") from exc

        logger.info("Fetched %d projects for %s %s", len(records), role, user_id)
        projects = [_to_project(record) for record in records]
        return await hydrate_projects(self._documents, projects, self._evaluations)

    async def _teacher_projects(self, teacher_id: str, school_id: str) -> list[Record]:
        merged: dict[str, Record] = {}
        for record in await self._documents.query_records(
            self._projects, {"teacher_id": teacher_id}
        ):
            merged[record[0]] = record
        if school_id:
            for record in await self._documents.query_records(
                self._projects, {"school_id": school_id, "status": "draft"}
            ):
                merged.setdefault(record[0], record)
        return list(merged.values())

    async def _student_projects(self, student_id: str) -> list[Record]:
        memberships = await self._documents.query_records(
            self._project_students, {"student_id": student_id}
        )
        records: list[Record] = []
        seen: set[str] = set()
        for _, membership in memberships:
            project_id = membership.get("project_id")
            if not project_id or project_id in seen:
                continue
            seen.add(project_id)
            data = await self._documents.get_record(self._projects, project_id)
            if data is None:
                logger.warning("Student %s linked to missing project %s", student_id, project_id)
                continue
            records.append((project_id, data))
        return records


def _to_project(record: Record) -> Project:
    record_id, data = record
    try:
        return Project.from_record(record_id, data)
    except PydanticValidationError as exc:
        raise LoadError(f"Project record '{record_id}' is malformed") from exc


def get_project_service() -> ProjectService:
    """Build a ProjectService over the shared document store."""
    from config.settings import get_settings
    from services.document_store import get_document_store

    settings = get_settings()
    return ProjectService(
        get_document_store(),
        projects_collection=settings.projects_collection,
        project_students_collection=settings.project_students_collection,
        evaluations_collection=settings.evaluations_collection,
    )
