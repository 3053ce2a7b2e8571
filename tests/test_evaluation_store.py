"""Tests for services/evaluation_store.py — load, save and project sync."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from errors.exceptions import LoadError, PersistenceError, ValidationError
from models.evaluation import Evaluation
from services.document_store import DocumentStoreError
from tests.factories import OTHER_TEACHER_ID, TEACHER_ID, evaluation_record


def _score(draft, scores):
    for index, score in enumerate(scores):
        draft = draft.set_criterion_score(index, score)
    return draft


# ---------------------------------------------------------------------------
# load
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_load_returns_fresh_draft_when_none(evaluation_store, project_id):
    draft = await evaluation_store.load(project_id, TEACHER_ID)
    assert not draft.is_saved
    assert draft.project_id == project_id
    assert draft.teacher_id == TEACHER_ID
    assert len(draft.criteria) == 5
    assert draft.max_total_score == 50
    assert draft.feedback == ""


@pytest.mark.asyncio
async def test_load_returns_teachers_record(evaluation_store, documents, project_id):
    documents.put("project_evaluations", "ev-other", evaluation_record(project_id, OTHER_TEACHER_ID, [3]))
    documents.put("project_evaluations", "ev-mine", evaluation_record(project_id, TEACHER_ID, [8]))

    draft = await evaluation_store.load(project_id, TEACHER_ID)
    assert draft.id == "ev-mine"
    assert draft.is_saved
    assert draft.criteria[0].score == 8


@pytest.mark.asyncio
async def test_load_ignores_other_teachers(evaluation_store, documents, project_id):
    documents.put("project_evaluations", "ev-other", evaluation_record(project_id, OTHER_TEACHER_ID, [3]))
    draft = await evaluation_store.load(project_id, TEACHER_ID)
    assert not draft.is_saved


@pytest.mark.asyncio
async def test_load_failure_raises_load_error(evaluation_store, documents, project_id):
    documents.query_records = AsyncMock(side_effect=DocumentStoreError("backend down"))
    with pytest.raises(LoadError) as exc_info:
        await evaluation_store.load(project_id, TEACHER_ID)
    assert isinstance(exc_info.value.__cause__, DocumentStoreError)


@pytest.mark.asyncio
async def test_list_for_project(evaluation_store, documents, project_id):
    documents.put("project_evaluations", "ev-1", evaluation_record(project_id, TEACHER_ID, [8]))
    documents.put("project_evaluations", "ev-2", evaluation_record(project_id, OTHER_TEACHER_ID, [2]))
    documents.put("project_evaluations", "ev-3", evaluation_record("p-elsewhere", TEACHER_ID, [5]))

    evaluations = await evaluation_store.list_for_project(project_id)
    assert [e.id for e in evaluations] == ["ev-1", "ev-2"]


@pytest.mark.asyncio
async def test_list_for_project_malformed_record(evaluation_store, documents, project_id):
    documents.put("project_evaluations", "ev-bad", {
        "projectId": project_id,
        "teacherId": TEACHER_ID,
        "criteria": [{"name": "Completion", "weight": 7}],
    })
    with pytest.raises(LoadError, match="malformed"):
        await evaluation_store.list_for_project(project_id)


# ---------------------------------------------------------------------------
# save
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_save_requires_project_and_teacher(evaluation_store, draft):
    with pytest.raises(ValidationError, match="insufficient data"):
        await evaluation_store.save(draft.model_copy(update={"teacher_id": ""}))
    with pytest.raises(ValidationError, match="insufficient data"):
        await evaluation_store.save(draft.model_copy(update={"project_id": ""}))


@pytest.mark.asyncio
async def test_save_rejects_empty_criteria(evaluation_store, documents, project_id):
    empty = Evaluation(project_id=project_id, teacher_id=TEACHER_ID, criteria=[])
    with pytest.raises(ValidationError, match="rubric criteria"):
        await evaluation_store.save(empty)
    assert documents.count("project_evaluations") == 0


@pytest.mark.asyncio
async def test_save_rejects_partial_rubric(evaluation_store, documents, draft):
    with pytest.raises(ValidationError, match="got 3"):
        await evaluation_store.save(draft.with_criteria(draft.criteria[:3]))
    assert documents.count("project_evaluations") == 0


@pytest.mark.asyncio
async def test_save_rejects_duplicate_criteria(evaluation_store, documents, draft):
    with pytest.raises(ValidationError, match="Duplicate"):
        await evaluation_store.save(draft.with_criteria([draft.criteria[0]] * 5))
    assert documents.count("project_evaluations") == 0


@pytest.mark.asyncio
async def test_save_derives_max_total_score(evaluation_store, documents, draft):
    saved = await evaluation_store.save(draft.model_copy(update={"max_total_score": 0}))
    assert saved.max_total_score == 50
    record = await documents.get_record("project_evaluations", saved.id)
    assert record["maxTotalScore"] == 50


@pytest.mark.asyncio
async def test_save_clamps_string_scores(evaluation_store, documents, project_id, draft):
    record = draft.to_record()
    for criterion in record["criteria"]:
        criterion["score"] = "40"
    posted = Evaluation.model_validate(record)

    saved = await evaluation_store.save(posted)
    assert saved.percentage == 100

    stored = await documents.get_record("project_evaluations", saved.id)
    assert all(c["score"] == 10 for c in stored["criteria"])
    assert stored["percentage"] == 100
    project = await documents.get_record("projects", project_id)
    assert project["progress"] == 10
    assert project["rating"] == 5.0


@pytest.mark.asyncio
async def test_save_creates_id(evaluation_store, documents, draft):
    saved = await evaluation_store.save(_score(draft, [6, 7]))
    assert saved.id
    assert saved.is_saved
    assert saved.created_at is not None
    assert saved.updated_at is not None
    assert documents.count("project_evaluations") == 1

    record = await documents.get_record("project_evaluations", saved.id)
    assert record["createdAt"] is not None
    assert record["updatedAt"] is not None


@pytest.mark.asyncio
async def test_second_save_updates_same_record(evaluation_store, documents, project_id, draft):
    first = await evaluation_store.save(_score(draft, [4]))
    second = await evaluation_store.save(first.set_criterion_score(0, 9).set_feedback("done"))

    assert second.id == first.id
    assert documents.count("project_evaluations") == 1

    evaluations = await evaluation_store.list_for_project(project_id)
    assert len(evaluations) == 1
    reloaded = await evaluation_store.load(project_id, TEACHER_ID)
    assert reloaded.id == first.id
    assert reloaded.criteria[0].score == 9
    assert reloaded.feedback == "done"


@pytest.mark.asyncio
async def test_update_keeps_created_at(evaluation_store, documents, draft):
    first = await evaluation_store.save(draft)
    created = (await documents.get_record("project_evaluations", first.id))["createdAt"]

    reloaded = await evaluation_store.load(first.project_id, TEACHER_ID)
    await evaluation_store.save(reloaded.set_criterion_score(1, 5))

    record = await documents.get_record("project_evaluations", first.id)
    assert record["createdAt"] == created
    assert record["updatedAt"] >= created


@pytest.mark.asyncio
async def test_update_reports_stored_created_at(evaluation_store, documents, draft):
    first = await evaluation_store.save(draft)
    created = (await documents.get_record("project_evaluations", first.id))["createdAt"]

    second = await evaluation_store.save(first.model_copy(update={"created_at": None}))
    assert second.created_at == created


@pytest.mark.asyncio
async def test_save_recomputes_stale_aggregates(evaluation_store, documents, draft):
    scored = _score(draft, [10, 5, 0, 10, 10])
    stale = scored.model_copy(update={"total_score": 1.0, "percentage": 5})

    saved = await evaluation_store.save(stale)
    assert saved.percentage == 73

    record = await documents.get_record("project_evaluations", saved.id)
    assert record["percentage"] == 73
    assert record["totalScore"] == pytest.approx(7.25)
    assert record["maxTotalScore"] == 50


@pytest.mark.asyncio
async def test_save_propagates_progress_and_rating(evaluation_store, documents, project_id, draft):
    # 6.5*.2 + 8*.25 + 10*.15 + 8*.2 + 8*.2 = 1.3 + 2 + 1.5 + 1.6 + 1.6 = 8.0 → 80%
    saved = await evaluation_store.save(_score(draft, [6.5, 8, 10, 8, 8]))
    assert saved.percentage == 80

    project = await documents.get_record("projects", project_id)
    assert project["progress"] == 6.5
    assert project["rating"] == 4.0
    assert project["updated_at"] is not None


@pytest.mark.asyncio
async def test_save_evaluation_write_failure(evaluation_store, documents, draft):
    documents.create_record = AsyncMock(side_effect=DocumentStoreError("write refused"))
    with pytest.raises(PersistenceError) as exc_info:
        await evaluation_store.save(draft)
    assert exc_info.value.stage == "evaluation"
    assert exc_info.value.evaluation_saved is False


@pytest.mark.asyncio
async def test_project_sync_failure_rolls_back_created_record(evaluation_store, documents, draft):
    original_update = documents.update_record

    async def failing_update(collection, record_id, data):
        if collection == "projects":
            raise DocumentStoreError("projects unavailable")
        await original_update(collection, record_id, data)

    documents.update_record = failing_update

    with pytest.raises(PersistenceError) as exc_info:
        await evaluation_store.save(_score(draft, [7]))
    assert exc_info.value.stage == "project_sync"
    assert exc_info.value.evaluation_saved is False
    assert documents.count("project_evaluations") == 0


@pytest.mark.asyncio
async def test_project_sync_failure_restores_previous_record(evaluation_store, documents, project_id, draft):
    first = await evaluation_store.save(_score(draft, [3]))
    original_update = documents.update_record

    async def failing_update(collection, record_id, data):
        if collection == "projects":
            raise DocumentStoreError("projects unavailable")
        await original_update(collection, record_id, data)

    documents.update_record = failing_update

    with pytest.raises(PersistenceError):
        await evaluation_store.save(first.set_criterion_score(0, 9))

    record = await documents.get_record("project_evaluations", first.id)
    assert record["criteria"][0]["score"] == 3
    project = await documents.get_record("projects", project_id)
    assert project["progress"] == 3


@pytest.mark.asyncio
async def test_project_sync_failure_with_failed_compensation(evaluation_store, documents, project_id, draft):
    documents.update_record = AsyncMock(side_effect=DocumentStoreError("projects unavailable"))
    documents.delete_record = AsyncMock(side_effect=DocumentStoreError("delete refused"))

    with pytest.raises(PersistenceError) as exc_info:
        await evaluation_store.save(draft)
    assert exc_info.value.stage == "project_sync"
    assert exc_info.value.evaluation_saved is True
    assert "try saving again" in exc_info.value.message
    assert documents.count("project_evaluations") == 1


@pytest.mark.asyncio
async def test_missing_project_is_a_sync_failure(evaluation_store, documents, draft):
    saved_draft = draft.model_copy(update={"project_id": "p-missing"})
    with pytest.raises(PersistenceError) as exc_info:
        await evaluation_store.save(saved_draft)
    assert exc_info.value.stage == "project_sync"
    assert documents.count("project_evaluations") == 0
