"""Stage 4: per-room finishing data and material bills."""

import re
import uuid
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from smeta.core.config import PipelineSettings, settings
from smeta.core.exceptions import (
    AppError,
    ImageProcessingError,
    ModelOutputError,
    RoomExtractionError,
    RoomPagesNotFoundError,
)
from smeta.database.models import ExtractedRoomData, PageClassification
from smeta.models.estimate_models import (
    DetectedRegion,
    MaterialBill,
    PageImage,
    RegionCrop,
    RegionType,
    RoomAreas,
    RoomProfile,
)
from smeta.prompts.system_prompts import ROOM_PROFILE_PROMPT
from smeta.repositories.intermediate_data_repository import IntermediateDataRepository
from smeta.repositories.page_classification_repository import PageClassificationRepository
from smeta.repositories.room_data_repository import RoomDataRepository
from smeta.services.pipeline.material_bill_extractor import MaterialBillExtractor
from smeta.services.pipeline.region_extractor import RegionExtractor
from smeta.services.pipeline.region_geometry import ROOM_DETAIL_PADDING
from smeta.services.pipeline.region_locator import RegionLocator
from smeta.services.vision.image_transform import from_data_url, image_size, resize_to_width
from smeta.services.vision.vision_adapter import VisionModelAdapter, image_part, text_part
from smeta.utils.coercion import ensure_list
from smeta.utils.logging import get_logger
from smeta.utils.text import normalize_name

LOGGER = get_logger(__name__)

STAGE = "stage_4"

_BILL_VOCABULARY = re.compile(
    r"ведомост|материал|спецификац|bill|material|specification|schedule",
    re.IGNORECASE,
)
_BILL_REGION_TYPES = {RegionType.TABLE, RegionType.SPECIFICATION}

ProgressCallback = Callable[[int, int], Awaitable[None]]


def is_bill_candidate(region: DetectedRegion) -> bool:
    """A table or specification region described as a material bill."""
    return region.region_type in _BILL_REGION_TYPES and bool(_BILL_VOCABULARY.search(region.description))


def _to_float(value) -> Optional[float]:
    return float(value) if value is not None else None


def resolve_room_areas(existing: Optional[RoomAreas], profile: RoomProfile) -> RoomAreas:
    """Combine stored table areas with freshly extracted dimensions.

    Values already stored (read from area tables) always win. Floor and
    ceiling default to the resolved room area. The wall area is never
    derived from the profile.
    """
    existing = existing or RoomAreas()
    area = existing.area if existing.area is not None else profile.dimensions.area
    return RoomAreas(
        area=area,
        wall_area=existing.wall_area,
        floor_area=existing.floor_area if existing.floor_area is not None else area,
        ceiling_area=existing.ceiling_area if existing.ceiling_area is not None else area,
    )


def page_image_from_row(row: PageClassification) -> PageImage:
    """Rebuild a full-resolution page from its stored classification row.

    Raises:
        ImageProcessingError: If the row has no decodable image
    """
    if not row.image_data_url:
        raise ImageProcessingError(f"Page {row.page_number} has no stored image")
    data = from_data_url(row.image_data_url)
    width, height = image_size(data)
    return PageImage(page_number=row.page_number, image=data, width=width, height=height)


class RoomDataExtractor:
    """Builds the room profile for each room found by structure analysis."""

    def __init__(
        self,
        session: AsyncSession,
        adapter: VisionModelAdapter,
        locator: Optional[RegionLocator] = None,
        extractor: Optional[RegionExtractor] = None,
        bill_extractor: Optional[MaterialBillExtractor] = None,
        pipeline_settings: Optional[PipelineSettings] = None,
    ):
        config = pipeline_settings or settings.pipeline
        self.session = session
        self.adapter = adapter
        self.locator = locator or RegionLocator(adapter, config)
        self.extractor = extractor or RegionExtractor(config.crop_quality)
        self.bill_extractor = bill_extractor or MaterialBillExtractor(adapter)
        self.thumb_width = config.context_thumb_width
        self.thumb_quality = config.context_thumb_quality
        self.page_repository = PageClassificationRepository(session)
        self.room_repository = RoomDataRepository(session)
        self.intermediate_repository = IntermediateDataRepository(session)

    async def extract_room(self, task_id: uuid.UUID, room_name: str) -> RoomProfile:
        """Extract, merge and persist data for one room.

        Args:
            task_id: Generation task ID
            room_name: Room name as listed by structure analysis

        Returns:
            The extracted room profile

        Raises:
            RoomPagesNotFoundError: If no page is tagged with this room
            ModelOutputError: If the profile reply is unusable
        """
        pages = await self._room_pages(task_id, room_name)
        LOGGER.info(
            f"Extracting room '{room_name}' from {len(pages)} pages",
            extra={"task_id": str(task_id)}
        )

        located = await self.locator.locate_regions(pages)
        bill_crops = self.extractor.extract_located(pages, located, ROOM_DETAIL_PADDING, is_bill_candidate)
        detail_crops = self.extractor.extract_located(
            pages, located, ROOM_DETAIL_PADDING, lambda region: not is_bill_candidate(region)
        )

        bills = await self._extract_bills(task_id, room_name, bill_crops)

        profile = await self._extract_profile(room_name, pages, bill_crops + detail_crops)
        await self._save_room(task_id, room_name, profile, bills)
        return profile

    async def extract_all_rooms(
        self,
        task_id: uuid.UUID,
        room_names: Sequence[str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> Dict[str, RoomProfile]:
        """Extract rooms one after another, skipping rooms that fail.

        Args:
            task_id: Generation task ID
            room_names: Rooms to process, in order
            on_progress: Awaited with (done, total) after each room

        Returns:
            Profiles of the rooms that succeeded, by room name
        """
        profiles: Dict[str, RoomProfile] = {}
        total = len(room_names)
        for index, room_name in enumerate(room_names):
            try:
                profiles[room_name] = await self.extract_room(task_id, room_name)
            except RoomPagesNotFoundError as e:
                LOGGER.info(f"Skipping room '{room_name}': {e}")
            except Exception as e:
                LOGGER.error(
                    f"Room extraction failed for '{room_name}'",
                    exc_info=True,
                    extra={"task_id": str(task_id), "error": str(e)}
                )
            if on_progress:
                await on_progress(index + 1, total)

        LOGGER.info(
            f"Extracted {len(profiles)}/{total} rooms",
            extra={"task_id": str(task_id)}
        )
        return profiles

    async def _room_pages(self, task_id: uuid.UUID, room_name: str) -> List[PageImage]:
        target = normalize_name(room_name)
        rows = [
            row for row in await self.page_repository.get_by_task(task_id)
            if row.room_name and normalize_name(row.room_name) == target
        ]

        pages = []
        for row in rows:
            try:
                pages.append(page_image_from_row(row))
            except ImageProcessingError as e:
                LOGGER.warning(
                    f"Skipping page {row.page_number} of room '{room_name}'",
                    extra={"error": str(e)}
                )

        if not pages:
            raise RoomPagesNotFoundError(f"No pages found for room '{room_name}'")
        return pages

    async def _extract_bills(
        self,
        task_id: uuid.UUID,
        room_name: str,
        bill_crops: List[RegionCrop],
    ) -> List[MaterialBill]:
        """Best-effort bill extraction; failures never stop the room."""
        if not bill_crops:
            return []

        try:
            bills = await self.bill_extractor.extract([crop.image for crop in bill_crops], room_name)
            await self.intermediate_repository.save(
                task_id,
                STAGE,
                "material_bills",
                {
                    "room_name": room_name,
                    "material_bills": [bill.model_dump(mode="json") for bill in bills],
                },
            )
            return bills
        except Exception as e:
            LOGGER.warning(
                f"Material bill extraction failed for '{room_name}', continuing",
                exc_info=not isinstance(e, AppError),
                extra={"task_id": str(task_id), "error": str(e)}
            )
            return []

    async def _extract_profile(
        self,
        room_name: str,
        pages: Sequence[PageImage],
        crops: Sequence[RegionCrop],
    ) -> RoomProfile:
        parts = [text_part(f"Room: {room_name}. Overview pages:")]
        for page in pages:
            parts.append(text_part(f"Page {page.page_number}:"))
            parts.append(image_part(self._thumbnail(page)))

        if crops:
            parts.append(text_part("Detailed regions:"))
        for index, crop in enumerate(crops):
            parts.append(text_part(f"Region {index + 1} (page {crop.page_number}, {crop.label}):"))
            parts.append(image_part(crop.image))

        reply = await self.adapter.call_json(ROOM_PROFILE_PROMPT, parts)
        objects = [item for item in ensure_list(reply) if isinstance(item, dict)]
        if not objects:
            raise ModelOutputError("Room profile reply is not an object", raw_excerpt=str(reply)[:500])

        try:
            profile = RoomProfile.model_validate({**objects[0], "room_name": room_name})
        except ValueError as e:
            raise RoomExtractionError(f"Invalid room profile for '{room_name}': {e}", e) from e
        return profile

    def _thumbnail(self, page: PageImage) -> bytes:
        try:
            return resize_to_width(page.image, self.thumb_width, self.thumb_quality)
        except ImageProcessingError as e:
            LOGGER.warning(
                f"Thumbnail for page {page.page_number} failed, sending original",
                extra={"error": str(e)}
            )
            return page.image

    async def _find_existing(self, task_id: uuid.UUID, room_name: str) -> Optional[ExtractedRoomData]:
        existing = await self.room_repository.get_room(task_id, room_name)
        if existing:
            return existing
        target = normalize_name(room_name)
        for row in await self.room_repository.get_by_task(task_id):
            if normalize_name(row.room_name) == target:
                return row
        return None

    async def _save_room(
        self,
        task_id: uuid.UUID,
        room_name: str,
        profile: RoomProfile,
        bills: List[MaterialBill],
    ) -> None:
        existing = await self._find_existing(task_id, room_name)
        stored = None
        if existing:
            stored = RoomAreas(
                area=_to_float(existing.area),
                wall_area=_to_float(existing.wall_area),
                floor_area=_to_float(existing.floor_area),
                ceiling_area=_to_float(existing.ceiling_area),
            )
        areas = resolve_room_areas(stored, profile)

        extracted_data = dict(existing.extracted_data or {}) if existing else {}
        extracted_data["profile"] = profile.model_dump(mode="json")
        extracted_data["material_bills"] = [bill.model_dump(mode="json") for bill in bills]

        await self.room_repository.save_room(
            task_id=task_id,
            room_name=existing.room_name if existing else room_name,
            room_type=(existing.room_type if existing and existing.room_type else profile.room_type),
            area=areas.area,
            wall_area=areas.wall_area,
            floor_area=areas.floor_area,
            ceiling_area=areas.ceiling_area,
            extracted_data=extracted_data,
        )
        await self.intermediate_repository.save(
            task_id, STAGE, "room_data", {"room_name": room_name, **extracted_data, **areas.model_dump()}
        )
