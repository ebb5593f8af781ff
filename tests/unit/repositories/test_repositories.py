"""Unit tests for repositories against a mocked AsyncSession."""

from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from smeta.core.exceptions import TaskNotFoundError
from smeta.database.models import ExtractedRoomData, GenerationTask, PageClassification
from smeta.repositories.generation_task_repository import GenerationTaskRepository
from smeta.repositories.intermediate_data_repository import IntermediateDataRepository
from smeta.repositories.page_classification_repository import PageClassificationRepository
from smeta.repositories.room_data_repository import RoomDataRepository


def _result(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


class TestPageClassificationRepository:

    @pytest.mark.asyncio
    async def test_upsert_overwrites_existing_row(self, mock_session):
        existing = PageClassification(task_id=uuid4(), page_number=2, page_type="other", room_name=None)
        mock_session.execute.return_value = _result(existing)
        repository = PageClassificationRepository(mock_session)

        row = await repository.save_page(existing.task_id, 2, "wall_layout", room_name="Кухня")

        assert row is existing
        assert row.page_type == "wall_layout"
        assert row.room_name == "Кухня"
        mock_session.add.assert_not_called()
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_upsert_inserts_new_row(self, mock_session):
        mock_session.execute.return_value = _result(None)
        repository = PageClassificationRepository(mock_session)

        row = await repository.save_page(uuid4(), 1, "plan")

        mock_session.add.assert_called_once_with(row)
        assert row.page_type == "plan"

    @pytest.mark.asyncio
    async def test_save_batch_commits_once(self, mock_session):
        mock_session.execute.return_value = _result(None)
        repository = PageClassificationRepository(mock_session)

        rows = await repository.save_batch(uuid4(), [
            {"page_number": 1, "page_type": "plan"},
            {"page_number": 2, "page_type": "other"},
        ])

        assert [row.page_number for row in rows] == [1, 2]
        assert mock_session.add.call_count == 2
        mock_session.commit.assert_awaited_once()


class TestRoomDataRepository:

    @pytest.mark.asyncio
    async def test_upsert_replaces_values(self, mock_session):
        existing = ExtractedRoomData(task_id=uuid4(), room_name="Кухня", area=10.0)
        mock_session.execute.return_value = _result(existing)
        repository = RoomDataRepository(mock_session)

        row = await repository.save_room(existing.task_id, "Кухня", area=12.3, floor_area=12.3, extracted_data={"k": 1})

        assert row is existing
        assert row.area == 12.3
        assert row.extracted_data == {"k": 1}
        mock_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_upsert_inserts(self, mock_session):
        mock_session.execute.return_value = _result(None)
        repository = RoomDataRepository(mock_session)

        row = await repository.save_room(uuid4(), "Спальня", area=None)

        mock_session.add.assert_called_once_with(row)
        assert row.area is None


class TestGenerationTaskRepository:

    @pytest.mark.asyncio
    async def test_get_task_missing(self, mock_session):
        mock_session.execute.return_value = _result(None)
        with pytest.raises(TaskNotFoundError):
            await GenerationTaskRepository(mock_session).get_task(uuid4())

    @pytest.mark.asyncio
    async def test_other_owner_sees_nothing(self, mock_session):
        task = GenerationTask(id=uuid4(), user_id="alice", status="pending", progress_percent=0)
        mock_session.execute.return_value = _result(task)
        with pytest.raises(TaskNotFoundError):
            await GenerationTaskRepository(mock_session).get_for_user(task.id, "bob")

    @pytest.mark.asyncio
    async def test_set_error_keeps_progress(self, mock_session):
        task = GenerationTask(id=uuid4(), user_id="alice", status="processing", progress_percent=50)
        mock_session.execute.return_value = _result(task)

        await GenerationTaskRepository(mock_session).set_error(task.id, "No rooms found")

        assert task.status == "failed"
        assert task.progress_percent == 50
        assert task.error_message == "No rooms found"
        mock_session.commit.assert_awaited()

    @pytest.mark.asyncio
    async def test_update_status_clamps_progress(self, mock_session):
        task = GenerationTask(id=uuid4(), user_id="alice", status="pending", progress_percent=0)
        mock_session.execute.return_value = _result(task)

        await GenerationTaskRepository(mock_session).update_status(task.id, "processing", "stage_2", 140)

        assert task.progress_percent == 100
        assert task.current_stage == "stage_2"


class TestIntermediateDataRepository:

    @pytest.mark.asyncio
    async def test_get_latest_none_when_empty(self, mock_session):
        result = MagicMock()
        result.scalars.return_value.all.return_value = []
        mock_session.execute.return_value = result

        assert await IntermediateDataRepository(mock_session).get_latest(uuid4(), "project_structure") is None

    @pytest.mark.asyncio
    async def test_save_appends_snapshot(self, mock_session):
        task_id = uuid4()
        record = await IntermediateDataRepository(mock_session).save(task_id, "stage_3", "project_structure", {"rooms": []})

        mock_session.add.assert_called_once_with(record)
        assert record.stage == "stage_3"
        assert record.data == {"rooms": []}
