"""Stage 3: rooms and areas of the apartment.

The primary path reads cropped area tables. When no table can be located
the fallback path reads whole plan pages with a looser prompt. Both paths
share the same contract: areas come only from printed values.
"""

import uuid
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from smeta.core.exceptions import (
    ModelOutputError,
    NoRoomsExtractedError,
    NoTablesDetectedError,
    StructureAnalysisError,
    ValidationError,
)
from smeta.models.estimate_models import PageImage, PlanType, ProjectRoom, ProjectStructure
from smeta.prompts.system_prompts import STRUCTURE_FROM_PAGES_PROMPT, STRUCTURE_FROM_TABLES_PROMPT
from smeta.repositories.intermediate_data_repository import IntermediateDataRepository
from smeta.repositories.room_data_repository import RoomDataRepository
from smeta.services.pipeline.region_extractor import RegionExtractor
from smeta.services.pipeline.region_geometry import AREA_TABLE_PADDING
from smeta.services.pipeline.region_locator import RegionLocator
from smeta.services.vision.vision_adapter import VisionModelAdapter, image_part, text_part
from smeta.utils.coercion import ensure_list
from smeta.utils.logging import get_logger
from smeta.utils.text import normalize_name

LOGGER = get_logger(__name__)

STAGE = "stage_3"
STRUCTURE_DATA_TYPE = "project_structure"

# Row kept when several plan versions list the same room
_PLAN_TYPE_RANK = {PlanType.BOTH: 0, PlanType.RENOVATED: 1, PlanType.ORIGINAL: 2}


def deduplicate_rooms(rooms: Sequence[ProjectRoom]) -> List[ProjectRoom]:
    """Collapse rooms that share a normalized name and plan type.

    The first occurrence fixes the position. A later duplicate replaces it
    only when the kept record has no area and the duplicate has one.

    Args:
        rooms: Rooms as returned by the model

    Returns:
        Unique rooms in first-seen order
    """
    kept: Dict[tuple, ProjectRoom] = {}
    for room in rooms:
        key = (normalize_name(room.name), room.plan_type)
        if not key[0]:
            continue
        current = kept.get(key)
        if current is None:
            kept[key] = room
            continue

        dropped = room
        if current.area is None and room.area is not None:
            kept[key] = room
            dropped = current
        LOGGER.info(
            f"Collapsed duplicate room '{room.name}'",
            extra={
                "plan_type": room.plan_type.value,
                "kept_area": kept[key].area,
                "dropped_area": dropped.area,
            }
        )
    return list(kept.values())


def merge_structures(replies: Sequence[Dict[str, Any]], table_plan_types: Sequence[PlanType] = ()) -> ProjectStructure:
    """Combine per-table structure replies into one structure.

    Rooms are concatenated; address and total area come from the first
    reply that has them. Rooms without a name are dropped.

    Raises:
        ModelOutputError: If a reply does not fit the structure shape
    """
    rooms: List[ProjectRoom] = []
    address: Optional[str] = None
    total_area: Optional[float] = None

    for reply in replies:
        try:
            partial = ProjectStructure.model_validate(reply)
        except ValueError as e:
            raise ModelOutputError(f"Malformed structure reply: {e}", raw_excerpt=str(reply)[:500], original_error=e) from e
        rooms.extend(room for room in partial.rooms if room.name)
        address = address or partial.address
        if total_area is None:
            total_area = partial.total_area

    plan_types: List[PlanType] = []
    for plan_type in list(table_plan_types) + [room.plan_type for room in rooms]:
        if plan_type not in plan_types:
            plan_types.append(plan_type)

    return ProjectStructure(
        address=address,
        total_area=total_area,
        rooms=rooms,
        room_count=len(rooms),
        plan_types=plan_types,
    )


def _reply_objects(reply: Any) -> List[Dict[str, Any]]:
    objects = [item for item in ensure_list(reply) if isinstance(item, dict)]
    if not objects:
        raise StructureAnalysisError("Structure reply contains no objects")
    # A bare list of rooms instead of structure objects
    if all("rooms" not in item for item in objects) and all("name" in item for item in objects):
        return [{"rooms": objects}]
    return objects


class StructureAnalyzer:
    """Extracts the room list and areas from plan pages."""

    def __init__(
        self,
        session: AsyncSession,
        adapter: VisionModelAdapter,
        locator: Optional[RegionLocator] = None,
        extractor: Optional[RegionExtractor] = None,
    ):
        self.session = session
        self.adapter = adapter
        self.locator = locator or RegionLocator(adapter)
        self.extractor = extractor or RegionExtractor()
        self.intermediate_repository = IntermediateDataRepository(session)
        self.room_repository = RoomDataRepository(session)

    async def analyze(
        self,
        task_id: uuid.UUID,
        plan_pages: Sequence[PageImage],
        title_pages: Sequence[PageImage] = (),
    ) -> ProjectStructure:
        """Run table analysis with page fallback, deduplicate and persist.

        Args:
            task_id: Generation task ID
            plan_pages: Full-resolution plan pages
            title_pages: Optional title pages (address, total area)

        Returns:
            Deduplicated project structure

        Raises:
            ValidationError: If no plan pages are given
            NoRoomsExtractedError: If neither path yields a room
        """
        if not plan_pages:
            raise ValidationError("At least one plan page is required")

        LOGGER.info(
            f"Starting structure analysis for task {task_id}",
            extra={"plan_pages": len(plan_pages), "title_pages": len(title_pages)}
        )

        try:
            structure = await self.analyze_from_tables(plan_pages, title_pages)
        except NoTablesDetectedError:
            LOGGER.info("No area tables detected, falling back to full page analysis")
            structure = await self.analyze_from_pages(plan_pages, title_pages)

        rooms = deduplicate_rooms(structure.rooms)
        if not rooms:
            raise NoRoomsExtractedError("Structure analysis found no rooms")

        structure = structure.model_copy(update={"rooms": rooms, "room_count": len(rooms)})
        await self.save_structure(task_id, structure)

        LOGGER.info(
            f"Structure analysis found {len(rooms)} rooms",
            extra={"task_id": str(task_id), "plan_types": [p.value for p in structure.plan_types]}
        )
        return structure

    async def analyze_from_tables(
        self,
        plan_pages: Sequence[PageImage],
        title_pages: Sequence[PageImage] = (),
    ) -> ProjectStructure:
        """Primary path: read cropped area tables.

        Raises:
            NoTablesDetectedError: If no table is located
            StructureAnalysisError: If tables were located but none could be cropped
        """
        located = await self.locator.locate_tables(plan_pages)
        crops = self.extractor.extract_located(plan_pages, located, AREA_TABLE_PADDING)
        if not crops:
            raise StructureAnalysisError("Area tables were located but none could be cropped")

        table_plan_types: List[PlanType] = []
        parts = []
        for index, table in enumerate(crops):
            plan_type = located[table.region.page_index].plan_type or PlanType.BOTH
            table_plan_types.append(plan_type)
            parts.append(text_part(f"Table {index + 1} (plan_type: {plan_type.value}):"))
            parts.append(image_part(table.image))
        parts.extend(self._title_parts(title_pages))

        LOGGER.info(f"Reading {len(crops)} area tables")
        reply = await self.adapter.call_json(STRUCTURE_FROM_TABLES_PROMPT, parts)
        return merge_structures(_reply_objects(reply), table_plan_types)

    async def analyze_from_pages(
        self,
        plan_pages: Sequence[PageImage],
        title_pages: Sequence[PageImage] = (),
    ) -> ProjectStructure:
        """Fallback path: read whole plan pages."""
        parts = []
        for page in plan_pages:
            parts.append(text_part(f"Plan page {page.page_number}:"))
            parts.append(image_part(page.image))
        parts.extend(self._title_parts(title_pages))

        reply = await self.adapter.call_json(STRUCTURE_FROM_PAGES_PROMPT, parts)
        return merge_structures(_reply_objects(reply))

    @staticmethod
    def _title_parts(title_pages: Sequence[PageImage]) -> List[Dict[str, Any]]:
        parts = []
        for page in title_pages:
            parts.append(text_part(f"Title page {page.page_number}:"))
            parts.append(image_part(page.image))
        return parts

    async def save_structure(self, task_id: uuid.UUID, structure: ProjectStructure) -> None:
        """Persist the structure snapshot and one room row per room name.

        Rooms listed under several plan types share a row; the version with
        an area wins, then the most current plan.
        """
        await self.intermediate_repository.save(
            task_id, STAGE, STRUCTURE_DATA_TYPE, structure.model_dump(mode="json")
        )

        by_name: Dict[str, ProjectRoom] = {}
        for room in structure.rooms:
            key = normalize_name(room.name)
            current = by_name.get(key)
            if current is None or self._prefer(room, current):
                by_name[key] = room

        for room in by_name.values():
            await self.room_repository.save_room(
                task_id=task_id,
                room_name=room.name,
                room_type=room.type,
                area=room.area,
                wall_area=None,
                floor_area=room.area,
                ceiling_area=None,
                extracted_data={"plan_type": room.plan_type.value, "source": room.source},
            )

    @staticmethod
    def _prefer(candidate: ProjectRoom, current: ProjectRoom) -> bool:
        if (candidate.area is None) != (current.area is None):
            return candidate.area is not None
        return _PLAN_TYPE_RANK[candidate.plan_type] < _PLAN_TYPE_RANK[current.plan_type]

    async def get_project_structure(self, task_id: uuid.UUID) -> Optional[ProjectStructure]:
        """Latest stored structure for a task, if any."""
        record = await self.intermediate_repository.get_latest(task_id, STRUCTURE_DATA_TYPE)
        if not record or not record.data:
            return None
        return ProjectStructure.model_validate(record.data)
