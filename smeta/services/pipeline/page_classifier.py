"""Stage 1: vision-model page classification.

All pages are sent as small thumbnails in one request. The reply is
aligned to the input positionally, so the page count and numbering never
depend on what the model returned.
"""

import uuid
from typing import Any, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from smeta.core.config import PipelineSettings, settings
from smeta.core.exceptions import ImageProcessingError, ModelOutputError, ValidationError
from smeta.database.models import PageClassification
from smeta.models.estimate_models import PageClassificationResult, PageImage, PageType
from smeta.prompts.system_prompts import PAGE_CLASSIFICATION_PROMPT
from smeta.repositories.page_classification_repository import PageClassificationRepository
from smeta.services.vision.image_transform import resize_to_width, to_data_url
from smeta.services.vision.vision_adapter import VisionModelAdapter, image_part, text_part
from smeta.utils.coercion import ensure_list
from smeta.utils.logging import get_logger

LOGGER = get_logger(__name__)


def align_classifications(reply: Any, page_count: int) -> List[PageClassificationResult]:
    """Align a model reply with the input pages.

    Entry i describes page i + 1 whatever page_number the model wrote.
    Missing tail entries become "other" pages, surplus entries are dropped.

    Raises:
        ModelOutputError: If the reply holds no usable entries at all
    """
    if isinstance(reply, dict):
        lists = [value for value in reply.values() if isinstance(value, list)]
        reply = lists[0] if lists else [reply]

    entries = ensure_list(reply)
    if not any(isinstance(entry, dict) for entry in entries):
        raise ModelOutputError("Classification reply contains no page entries", raw_excerpt=str(reply)[:500])

    if len(entries) != page_count:
        LOGGER.warning(
            f"Model returned {len(entries)} classifications, expected {page_count}"
        )

    results = []
    for index in range(page_count):
        entry = entries[index] if index < len(entries) and isinstance(entries[index], dict) else {}
        results.append(PageClassificationResult(
            page_number=index + 1,
            page_type=entry.get("page_type", entry.get("pageType")),
            room_name=entry.get("room_name", entry.get("roomName")),
        ))
    return results


class PageClassifier:
    """Classifies every page of a design project and stores the result."""

    def __init__(
        self,
        session: AsyncSession,
        adapter: VisionModelAdapter,
        pipeline_settings: Optional[PipelineSettings] = None,
    ):
        config = pipeline_settings or settings.pipeline
        self.session = session
        self.adapter = adapter
        self.thumb_width = config.classification_thumb_width
        self.thumb_quality = config.classification_thumb_quality
        self.repository = PageClassificationRepository(session)

    async def classify_pages(
        self,
        task_id: uuid.UUID,
        pages: Sequence[PageImage],
    ) -> List[PageClassificationResult]:
        """Classify pages and persist one row per page.

        Args:
            task_id: Generation task ID
            pages: Full-resolution pages in document order

        Returns:
            One classification per page, numbered 1..N

        Raises:
            ValidationError: If no pages are given
            ModelOutputError: If the reply cannot be parsed; nothing is stored
        """
        if not pages:
            raise ValidationError("At least one page is required for classification")

        LOGGER.info(f"Starting classification for {len(pages)} pages", extra={"task_id": str(task_id)})

        parts = [text_part(f"Design project pages ({len(pages)} pages):")]
        for page in pages:
            parts.append(text_part(f"Page {page.page_number}:"))
            parts.append(image_part(self._thumbnail(page)))

        reply = await self.adapter.call_json(PAGE_CLASSIFICATION_PROMPT, parts)
        results = align_classifications(reply, len(pages))

        await self.repository.save_batch(task_id, [
            {
                "page_number": result.page_number,
                "page_type": result.page_type.value,
                "room_name": result.room_name,
                "image_data_url": to_data_url(page.image),
            }
            for result, page in zip(results, pages)
        ])

        LOGGER.info(
            f"Saved {len(results)} page classifications",
            extra={
                "task_id": str(task_id),
                "types": {t.value: sum(1 for r in results if r.page_type == t) for t in PageType},
            }
        )
        return results

    def _thumbnail(self, page: PageImage) -> bytes:
        try:
            return resize_to_width(page.image, self.thumb_width, self.thumb_quality)
        except ImageProcessingError as e:
            LOGGER.warning(
                f"Thumbnail for page {page.page_number} failed, sending original",
                extra={"error": str(e)}
            )
            return page.image

    async def get_classifications(self, task_id: uuid.UUID) -> List[PageClassification]:
        return await self.repository.get_by_task(task_id)

    async def get_by_type(self, task_id: uuid.UUID, page_type: PageType) -> List[PageClassification]:
        return await self.repository.get_by_type(task_id, page_type.value)

    async def get_by_room(self, task_id: uuid.UUID, room_name: str) -> List[PageClassification]:
        return await self.repository.get_by_room(task_id, room_name)
