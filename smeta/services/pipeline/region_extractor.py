"""Cuts padded, high-quality crops of detected regions."""

from typing import List, Optional, Sequence

from smeta.core.config import settings
from smeta.core.exceptions import ImageProcessingError, RegionExtractionError
from smeta.models.estimate_models import DetectedRegion, LocatedPage, PageImage, Rect, RegionCrop
from smeta.services.pipeline.region_geometry import PaddingProfile, pad_rect
from smeta.services.vision.image_transform import crop, open_image
from smeta.utils.logging import get_logger

LOGGER = get_logger(__name__)


class RegionExtractor:
    """Crops regions out of full-resolution page images."""

    def __init__(self, quality: Optional[int] = None):
        self.quality = quality if quality is not None else settings.pipeline.crop_quality

    def extract(self, image: bytes, rect: Rect, profile: PaddingProfile) -> bytes:
        """Pad, clamp and crop one region.

        Args:
            image: Source image bytes
            rect: Region in source-image pixels, already bias corrected
            profile: Padding to add around the region

        Returns:
            JPEG bytes of the crop

        Raises:
            RegionExtractionError: If the source cannot be decoded or the
                padded region falls outside the image
        """
        try:
            source = open_image(image)
            padded = pad_rect(rect, profile, source.width, source.height)
            if padded.is_empty:
                raise RegionExtractionError(f"Region {rect} lies outside a {source.width}x{source.height} image")
            return crop(source, padded, self.quality)
        except ImageProcessingError as e:
            raise RegionExtractionError(f"Cannot crop region {rect}: {e}", e) from e

    def extract_located(
        self,
        pages: Sequence[PageImage],
        located: Sequence[LocatedPage],
        profile: PaddingProfile,
        regions_filter=None,
    ) -> List[RegionCrop]:
        """Crop every region of every located page, skipping failures.

        Args:
            pages: Source pages, indexed by LocatedPage.page_index
            located: Detection results
            profile: Padding profile for all crops
            regions_filter: Optional predicate selecting which regions to crop

        Returns:
            Successful crops in page and region order
        """
        crops: List[RegionCrop] = []
        for located_page in located:
            if located_page.page_index >= len(pages):
                continue
            page = pages[located_page.page_index]
            for region in located_page.regions:
                if regions_filter and not regions_filter(region):
                    continue
                crop_bytes = self._extract_or_skip(page, region, profile)
                if crop_bytes is not None:
                    crops.append(RegionCrop(region=region, page_number=page.page_number, image=crop_bytes))
        return crops

    def _extract_or_skip(self, page: PageImage, region: DetectedRegion, profile: PaddingProfile) -> Optional[bytes]:
        try:
            return self.extract(page.image, region.rect, profile)
        except RegionExtractionError as e:
            LOGGER.warning(
                f"Skipping region on page {page.page_number}",
                extra={"rect": region.rect.model_dump(), "error": str(e)}
            )
            return None
