"""Runs the full analysis for one generation task.

Stages run sequentially inside one background job. Progress is committed
after each stage so polling clients see it; any stage failure marks the
task failed and keeps the last reported progress.
"""

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from smeta.core.config import settings
from smeta.core.exceptions import AppError
from smeta.database.models import ExtractedRoomData, GenerationTask, PageClassification
from smeta.models.estimate_models import PageClassificationResult, PageImage, PageType, ProjectStructure
from smeta.repositories.generation_task_repository import GenerationTaskRepository
from smeta.repositories.intermediate_data_repository import IntermediateDataRepository
from smeta.services.pipeline.page_classifier import PageClassifier
from smeta.services.pipeline.room_data_extractor import RoomDataExtractor
from smeta.services.pipeline.structure_analyzer import StructureAnalyzer
from smeta.services.vision.page_renderer import PageRenderer, PyMuPDFPageRenderer
from smeta.services.vision.vision_adapter import VisionModelAdapter, build_vision_adapter
from smeta.utils.logging import get_logger
from smeta.utils.text import normalize_name

LOGGER = get_logger(__name__)

STAGE_CLASSIFICATION = "stage_1"
STAGE_TABLES = "stage_2"
STAGE_ROOMS = "stage_4"

PROGRESS_CLASSIFIED = 20
PROGRESS_STRUCTURE = 50
PROGRESS_ROOMS_DONE = 95

# Leading "other" pages are treated as title pages
TITLE_PAGE_WINDOW = 2


def select_plan_and_title_pages(
    pages: List[PageImage],
    classifications: List[PageClassificationResult],
) -> tuple[List[PageImage], List[PageImage]]:
    """Split rendered pages into plan pages and title pages."""
    plan_pages = []
    title_pages = []
    for page, result in zip(pages, classifications):
        if result.page_type == PageType.PLAN:
            plan_pages.append(page)
        elif result.page_type == PageType.OTHER and result.page_number <= TITLE_PAGE_WINDOW:
            title_pages.append(page)
    return plan_pages, title_pages


class EstimateGenerationService:
    """Creates generation tasks and drives them through all stages."""

    def __init__(
        self,
        session: AsyncSession,
        adapter: Optional[VisionModelAdapter] = None,
        renderer: Optional[PageRenderer] = None,
    ):
        self.session = session
        self.adapter = adapter or build_vision_adapter()
        self.renderer = renderer or PyMuPDFPageRenderer(
            target_width=settings.pipeline.render_width,
            quality=settings.pipeline.render_quality,
            max_pages=settings.pipeline.max_pages,
        )
        self.task_repository = GenerationTaskRepository(session)
        self.intermediate_repository = IntermediateDataRepository(session)
        self.classifier = PageClassifier(session, self.adapter)
        self.structure_analyzer = StructureAnalyzer(session, self.adapter)
        self.room_extractor = RoomDataExtractor(session, self.adapter)

    async def create_task(self, user_id: str, request: Optional[Dict[str, Any]] = None) -> GenerationTask:
        """Create a pending task and store the request inputs with it."""
        task = await self.task_repository.create_task(user_id=user_id)
        if request:
            await self.intermediate_repository.save(task.id, "stage_0", "generation_request", request)
        LOGGER.info(f"Created generation task {task.id}", extra={"user_id": user_id})
        return task

    async def run_generation(self, task_id: uuid.UUID, pdf_bytes: bytes) -> None:
        """Run every stage for a task; never raises on stage failure.

        Args:
            task_id: Existing pending task
            pdf_bytes: Uploaded design PDF
        """
        try:
            await self._run_stages(task_id, pdf_bytes)
        except AppError as e:
            LOGGER.error(
                f"Generation task {task_id} failed",
                exc_info=True,
                extra={"error_type": type(e).__name__}
            )
            await self.task_repository.set_error(task_id, str(e))
        except Exception as e:
            # Background job boundary: the task must not stay "processing"
            LOGGER.error(f"Unexpected error in generation task {task_id}", exc_info=True)
            await self.session.rollback()
            await self.task_repository.set_error(task_id, f"Internal error: {e}")

    async def _run_stages(self, task_id: uuid.UUID, pdf_bytes: bytes) -> None:
        await self.task_repository.update_status(task_id, "processing", STAGE_CLASSIFICATION, 0)
        pages = await self.renderer.render(pdf_bytes)
        classifications = await self.classifier.classify_pages(task_id, pages)

        await self.task_repository.update_status(task_id, "processing", STAGE_TABLES, PROGRESS_CLASSIFIED)
        plan_pages, title_pages = select_plan_and_title_pages(pages, classifications)
        structure = await self.structure_analyzer.analyze(task_id, plan_pages, title_pages)

        await self.task_repository.update_status(task_id, "processing", STAGE_ROOMS, PROGRESS_STRUCTURE)

        # One extraction per stored room row, whichever plan lists it
        room_names: Dict[str, str] = {}
        for room in structure.rooms:
            room_names.setdefault(normalize_name(room.name), room.name)

        async def report_rooms(done: int, total: int) -> None:
            span = PROGRESS_ROOMS_DONE - PROGRESS_STRUCTURE
            progress = PROGRESS_STRUCTURE + (span * done) // max(total, 1)
            await self.task_repository.update_status(task_id, "processing", STAGE_ROOMS, progress)

        await self.room_extractor.extract_all_rooms(task_id, list(room_names.values()), on_progress=report_rooms)

        await self.task_repository.update_status(task_id, "completed", STAGE_ROOMS, 100)
        LOGGER.info(f"Generation task {task_id} completed", extra={"rooms": len(room_names)})

    async def classify_only(self, user_id: str, pdf_bytes: bytes) -> tuple[GenerationTask, List[PageClassificationResult]]:
        """Create a task that only runs page classification.

        Raises:
            AppError: The stage failure, after the task is marked failed
        """
        task = await self.task_repository.create_task(
            user_id=user_id, status="processing", current_stage=STAGE_CLASSIFICATION
        )
        try:
            pages = await self.renderer.render(pdf_bytes)
            results = await self.classifier.classify_pages(task.id, pages)
        except AppError as e:
            await self.task_repository.set_error(task.id, str(e))
            raise

        task = await self.task_repository.update_status(task.id, "completed", STAGE_CLASSIFICATION, 100)
        return task, results

    async def get_task(self, task_id: uuid.UUID, user_id: str) -> GenerationTask:
        return await self.task_repository.get_for_user(task_id, user_id)

    async def list_tasks(self, user_id: str, limit: int = 50) -> List[GenerationTask]:
        return await self.task_repository.list_for_user(user_id, limit)

    async def get_classifications(
        self,
        task_id: uuid.UUID,
        user_id: str,
        page_type: Optional[PageType] = None,
        room_name: Optional[str] = None,
    ) -> List[PageClassification]:
        """Stored page classifications of a task, in page order.

        Args:
            task_id: Generation task ID
            user_id: Caller; other owners' tasks are reported as missing
            page_type: Only pages of this type
            room_name: Only pages tagged with exactly this room name
        """
        await self.task_repository.get_for_user(task_id, user_id)
        if page_type is not None:
            return await self.classifier.get_by_type(task_id, page_type)
        if room_name:
            return await self.classifier.get_by_room(task_id, room_name)
        return await self.classifier.get_classifications(task_id)

    async def get_structure(self, task_id: uuid.UUID, user_id: str) -> Optional[ProjectStructure]:
        await self.task_repository.get_for_user(task_id, user_id)
        return await self.structure_analyzer.get_project_structure(task_id)

    async def get_rooms(self, task_id: uuid.UUID, user_id: str) -> List[ExtractedRoomData]:
        await self.task_repository.get_for_user(task_id, user_id)
        return await self.room_extractor.room_repository.get_by_task(task_id)


async def run_generation_in_background(
    session_factory: async_sessionmaker,
    task_id: uuid.UUID,
    pdf_bytes: bytes,
    adapter: Optional[VisionModelAdapter] = None,
) -> None:
    """Background entry point with its own database session."""
    async with session_factory() as session:
        service = EstimateGenerationService(session, adapter=adapter)
        await service.run_generation(task_id, pdf_bytes)
