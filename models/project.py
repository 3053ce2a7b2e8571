"""Project models — the read-side view used by list and detail screens.

Project documents are stored with snake_case keys; API output is camelCase.
``progress`` is the completion criterion's raw 0-10 score and ``rating`` is
the latest evaluation percentage on a 0-5 scale.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field

from models.base import CamelModel


class ProjectRole(str, Enum):
    TEACHER = "teacher"
    SCHOOL = "school"
    STUDENT = "student"
    ADMIN = "admin"


class Project(CamelModel):
    """Partial project view; unknown document fields are ignored."""

    id: str
    title: str = ""
    description: str = ""
    category: str = ""
    subject: str = ""
    difficulty: str = ""
    status: str = "draft"
    teacher_id: str | None = None
    school_id: str | None = None
    max_students: int = 0
    progress: float = 0
    rating: float = 0
    objectives: list[str] = Field(default_factory=list)
    due_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, record_id: str, data: dict[str, Any]) -> Project:
        payload = {k: v for k, v in data.items() if k != "id" and v is not None}
        return cls.model_validate({**payload, "id": record_id})


class ProjectProgress(CamelModel):
    """GET /api/projects/{id}/progress — response body."""

    project_id: str
    progress: float
    display: str
