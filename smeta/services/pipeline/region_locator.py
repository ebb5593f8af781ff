"""Locates area tables and informative regions on page images."""

from typing import Any, Dict, List, Optional, Sequence, Tuple

from smeta.core.config import PipelineSettings, settings
from smeta.core.exceptions import ImageProcessingError, NoTablesDetectedError
from smeta.models.estimate_models import (
    DetectedRegion,
    DetectionDimensions,
    LocatedPage,
    PageImage,
    PlanType,
    Rect,
    RegionType,
)
from smeta.prompts.system_prompts import REGION_DETECTION_PROMPT, TABLE_DETECTION_PROMPT
from smeta.services.pipeline.region_geometry import BiasCorrection, to_source_rect
from smeta.services.vision.image_transform import image_size, reencode
from smeta.services.vision.vision_adapter import VisionModelAdapter, image_part, text_part
from smeta.utils.coercion import coerce_int, ensure_list
from smeta.utils.logging import get_logger

LOGGER = get_logger(__name__)


class RegionLocator:
    """Asks the vision model where regions are and maps them to source pixels.

    Two modes share the same mechanics:
    - area tables on plan pages (also reports each plan's provenance)
    - informative regions on the pages of one room
    """

    def __init__(
        self,
        adapter: VisionModelAdapter,
        pipeline_settings: Optional[PipelineSettings] = None,
    ):
        config = pipeline_settings or settings.pipeline
        self.adapter = adapter
        self.detection_quality = config.detection_quality
        self.region_bias = BiasCorrection(config.region_bias_x_ratio, config.region_bias_y_ratio)
        self.table_bias = BiasCorrection(config.table_bias_x_ratio, config.table_bias_y_ratio)

    async def locate_tables(self, pages: Sequence[PageImage]) -> List[LocatedPage]:
        """Find room area tables on plan pages.

        Args:
            pages: Full-resolution plan pages

        Returns:
            One LocatedPage per input page, in input order

        Raises:
            NoTablesDetectedError: If no page has a table
        """
        located = await self._locate(
            pages,
            prompt=TABLE_DETECTION_PROMPT,
            index_key="plan_index",
            items_key="tables",
            bias=self.table_bias,
            default_type=RegionType.TABLE,
        )

        total = sum(len(page.regions) for page in located)
        if total == 0:
            raise NoTablesDetectedError(f"No area tables found on {len(pages)} plan pages")

        LOGGER.info(
            f"Located {total} area tables",
            extra={"plan_pages": len(pages)}
        )
        return located

    async def locate_regions(self, pages: Sequence[PageImage]) -> List[LocatedPage]:
        """Find informative regions on the pages of one room."""
        located = await self._locate(
            pages,
            prompt=REGION_DETECTION_PROMPT,
            index_key="page_index",
            items_key="regions",
            bias=self.region_bias,
            default_type=None,
        )
        LOGGER.info(
            f"Located {sum(len(page.regions) for page in located)} regions",
            extra={"pages": len(pages)}
        )
        return located

    def prepare_detection_image(self, page: PageImage) -> Tuple[bytes, DetectionDimensions]:
        """Recompress a page for detection at its original pixel size.

        Falls back to the original bytes when recompression fails.
        """
        try:
            data = reencode(page.image, self.detection_quality)
            width, height = image_size(data)
        except ImageProcessingError as e:
            LOGGER.warning(
                f"Detection image for page {page.page_number} failed, using original",
                extra={"error": str(e)}
            )
            data, width, height = page.image, page.width, page.height

        dims = DetectionDimensions(
            original_width=page.width,
            original_height=page.height,
            detection_width=width,
            detection_height=height,
        )
        return data, dims

    async def _locate(
        self,
        pages: Sequence[PageImage],
        prompt: str,
        index_key: str,
        items_key: str,
        bias: BiasCorrection,
        default_type: Optional[RegionType],
    ) -> List[LocatedPage]:
        if not pages:
            return []

        parts = []
        dimensions: List[DetectionDimensions] = []
        for index, page in enumerate(pages):
            data, dims = self.prepare_detection_image(page)
            dimensions.append(dims)
            parts.append(image_part(data))
            parts.append(text_part(
                f"Image {index + 1} ({index_key}={index}): "
                f"{dims.detection_width}x{dims.detection_height} px"
            ))

        reply = await self.adapter.call_json(prompt, parts)
        entries = self._reply_entries(reply, items_key)

        located = [LocatedPage(page_index=i) for i in range(len(pages))]
        for position, entry in enumerate(entries):
            target = self._resolve_index(entry.get(index_key), position, len(pages))
            if target is None:
                LOGGER.warning(
                    "Dropping detection entry with no matching page",
                    extra={"position": position, "reported_index": entry.get(index_key)}
                )
                continue

            page = located[target]
            if entry.get("plan_type") is not None and page.plan_type is None:
                page.plan_type = PlanType.coerce(entry.get("plan_type"))

            for raw in ensure_list(entry.get(items_key)):
                region = self._to_region(raw, target, dimensions[target], bias, default_type)
                if region is not None:
                    page.regions.append(region)

        if default_type is RegionType.TABLE:
            for page in located:
                if page.plan_type is None:
                    page.plan_type = PlanType.BOTH

        return located

    @staticmethod
    def _reply_entries(reply: Any, items_key: str) -> List[Dict[str, Any]]:
        """Normalize the reply into a list of per-page dicts."""
        if isinstance(reply, dict):
            if items_key in reply:
                reply = [reply]
            else:
                # {"pages": [...]} / {"plans": [...]} wrappers
                lists = [value for value in reply.values() if isinstance(value, list)]
                reply = lists[0] if lists else []
        return [entry for entry in ensure_list(reply) if isinstance(entry, dict)]

    @staticmethod
    def _resolve_index(reported: Any, position: int, count: int) -> Optional[int]:
        index = coerce_int(reported)
        if index is not None and 0 <= index < count:
            return index
        if position < count:
            return position
        return None

    @staticmethod
    def _to_region(
        raw: Any,
        page_index: int,
        dims: DetectionDimensions,
        bias: BiasCorrection,
        default_type: Optional[RegionType],
    ) -> Optional[DetectedRegion]:
        if not isinstance(raw, dict):
            return None

        reported = Rect(
            x=raw.get("x"),
            y=raw.get("y"),
            width=raw.get("width"),
            height=raw.get("height"),
        )
        if reported.is_empty:
            return None

        rect = to_source_rect(reported, dims, bias)
        if rect.is_empty:
            return None

        return DetectedRegion(
            page_index=page_index,
            rect=rect,
            region_type=default_type or raw.get("type"),
            description=raw.get("description"),
        )
