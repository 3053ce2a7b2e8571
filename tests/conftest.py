"""Shared pytest fixtures for evaluation and progress tests.

Provides:
- ``documents``: fresh InMemoryDocumentStore per test
- ``evaluation_store``: EvaluationStore over ``documents``
- ``project_id``: a seeded project record in ``documents``
- ``draft``: a fresh unsaved draft for ``project_id`` by ``TEACHER_ID``
"""

from __future__ import annotations

import pytest

from models.evaluation import Evaluation
from services.document_store import InMemoryDocumentStore
from services.evaluation_store import EvaluationStore
from services.rubric_service import default_criteria
from tests.factories import PROJECT_ID, TEACHER_ID, project_record


@pytest.fixture
def documents() -> InMemoryDocumentStore:
    """Fresh document store — isolated per test."""
    return InMemoryDocumentStore()


@pytest.fixture
def evaluation_store(documents: InMemoryDocumentStore) -> EvaluationStore:
    return EvaluationStore(documents)


@pytest.fixture
def project_id(documents: InMemoryDocumentStore) -> str:
    documents.put("projects", PROJECT_ID, project_record())
    return PROJECT_ID


@pytest.fixture
def draft(project_id: str) -> Evaluation:
    return Evaluation.new_draft(project_id, TEACHER_ID, default_criteria())
