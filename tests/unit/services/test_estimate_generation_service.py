"""Unit tests for the generation orchestrator."""

from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from smeta.core.exceptions import NoRoomsExtractedError, PageRenderError, TaskNotFoundError
from smeta.models.estimate_models import PageClassificationResult, ProjectRoom, ProjectStructure
from smeta.services.estimate_generation_service import (
    EstimateGenerationService,
    select_plan_and_title_pages,
)


@pytest.fixture
def service(mock_session, mock_adapter):
    service = EstimateGenerationService(mock_session, adapter=mock_adapter, renderer=AsyncMock())
    service.task_repository = AsyncMock()
    service.intermediate_repository = AsyncMock()
    service.classifier = AsyncMock()
    service.structure_analyzer = AsyncMock()
    service.room_extractor = AsyncMock()
    return service


def _progress_calls(service):
    return [
        (c.args[1], c.args[2], c.args[3])
        for c in service.task_repository.update_status.call_args_list
    ]


class TestSelectPages:

    def test_plan_and_title_pages(self, page_factory):
        pages = [page_factory(i) for i in range(1, 6)]
        classifications = [
            PageClassificationResult(page_number=1, page_type="other"),
            PageClassificationResult(page_number=2, page_type="plan"),
            PageClassificationResult(page_number=3, page_type="plan"),
            PageClassificationResult(page_number=4, page_type="other"),
            PageClassificationResult(page_number=5, page_type="wall_layout"),
        ]

        plan_pages, title_pages = select_plan_and_title_pages(pages, classifications)

        assert [p.page_number for p in plan_pages] == [2, 3]
        assert [p.page_number for p in title_pages] == [1]


class TestRunGeneration:

    @pytest.mark.asyncio
    async def test_success_walks_every_stage(self, service, page_factory):
        task_id = uuid4()
        service.renderer.render.return_value = [page_factory(1), page_factory(2)]
        service.classifier.classify_pages.return_value = [
            PageClassificationResult(page_number=1, page_type="plan"),
            PageClassificationResult(page_number=2, page_type="wall_layout", room_name="Кухня"),
        ]
        service.structure_analyzer.analyze.return_value = ProjectStructure(
            rooms=[ProjectRoom(name="Кухня", area=12.3, plan_type="original"),
                   ProjectRoom(name="Кухня", area=12.3, plan_type="renovated")],
        )

        async def extract_all(task, names, on_progress):
            for index in range(len(names)):
                await on_progress(index + 1, len(names))
            return {}

        service.room_extractor.extract_all_rooms.side_effect = extract_all

        await service.run_generation(task_id, b"%PDF")

        assert _progress_calls(service) == [
            ("processing", "stage_1", 0),
            ("processing", "stage_2", 20),
            ("processing", "stage_4", 50),
            ("processing", "stage_4", 95),
            ("completed", "stage_4", 100),
        ]
        assert service.room_extractor.extract_all_rooms.call_args.args[1] == ["Кухня"]
        service.task_repository.set_error.assert_not_called()

    @pytest.mark.asyncio
    async def test_room_spelling_variants_are_extracted_once(self, service, page_factory):
        service.renderer.render.return_value = [page_factory(1)]
        service.classifier.classify_pages.return_value = [PageClassificationResult(page_number=1, page_type="plan")]
        service.structure_analyzer.analyze.return_value = ProjectStructure(
            rooms=[ProjectRoom(name="Кухня – гостиная", area=20.1, plan_type="original"),
                   ProjectRoom(name="кухня - гостиная", area=22.4, plan_type="renovated"),
                   ProjectRoom(name="Спальня", area=14.0, plan_type="renovated")],
        )
        service.room_extractor.extract_all_rooms.return_value = {}

        await service.run_generation(uuid4(), b"%PDF")

        assert service.room_extractor.extract_all_rooms.call_args.args[1] == ["Кухня – гостиная", "Спальня"]

    @pytest.mark.asyncio
    async def test_failure_marks_task_failed(self, service, page_factory):
        task_id = uuid4()
        service.renderer.render.return_value = [page_factory(1)]
        service.classifier.classify_pages.return_value = [PageClassificationResult(page_number=1, page_type="plan")]
        service.structure_analyzer.analyze.side_effect = NoRoomsExtractedError("Structure analysis found no rooms")

        await service.run_generation(task_id, b"%PDF")

        service.task_repository.set_error.assert_awaited_once_with(task_id, "Structure analysis found no rooms")
        assert _progress_calls(service)[-1] == ("processing", "stage_2", 20)
        service.room_extractor.extract_all_rooms.assert_not_called()

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, service, mock_session):
        service.renderer.render.side_effect = RuntimeError("boom")

        await service.run_generation(uuid4(), b"%PDF")

        mock_session.rollback.assert_awaited_once()
        message = service.task_repository.set_error.call_args.args[1]
        assert message.startswith("Internal error")


class TestClassifyOnly:

    @pytest.mark.asyncio
    async def test_render_failure_is_recorded(self, service):
        task = MagicMock(id=uuid4())
        service.task_repository.create_task.return_value = task
        service.renderer.render.side_effect = PageRenderError("Cannot open PDF")

        with pytest.raises(PageRenderError):
            await service.classify_only("alice", b"junk")

        service.task_repository.set_error.assert_awaited_once_with(task.id, "Cannot open PDF")

    @pytest.mark.asyncio
    async def test_returns_results(self, service, page_factory):
        task = MagicMock(id=uuid4())
        service.task_repository.create_task.return_value = task
        service.task_repository.update_status.return_value = task
        service.renderer.render.return_value = [page_factory(1)]
        results = [PageClassificationResult(page_number=1, page_type="plan")]
        service.classifier.classify_pages.return_value = results

        returned_task, returned = await service.classify_only("alice", b"%PDF")

        assert returned_task is task
        assert returned == results


class TestQueries:

    @pytest.mark.asyncio
    async def test_classifications_check_ownership_first(self, service):
        service.task_repository.get_for_user.side_effect = TaskNotFoundError("missing")

        with pytest.raises(TaskNotFoundError):
            await service.get_classifications(uuid4(), "mallory")
        service.classifier.get_classifications.assert_not_called()

    @pytest.mark.asyncio
    async def test_rooms_come_from_room_repository(self, service):
        task_id = uuid4()
        service.room_extractor.room_repository.get_by_task.return_value = ["row"]

        assert await service.get_rooms(task_id, "alice") == ["row"]
        service.task_repository.get_for_user.assert_awaited_once_with(task_id, "alice")
