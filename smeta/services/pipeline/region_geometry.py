"""Pure rectangle transforms between detection and source images.

Coordinates reported by the vision model go through three steps before a
crop is cut: bias correction in detection space, scaling back to the
source image, and clamping to the source bounds. Padding for crops is
applied afterwards by the region extractor.
"""

from dataclasses import dataclass

from smeta.models.estimate_models import DetectionDimensions, Rect


@dataclass(frozen=True)
class BiasCorrection:
    """Systematic offset added to model-reported coordinates.

    The model tends to report regions up and to the left of where they
    are. The offset is a fraction of the detection image size.

    Attributes:
        x_ratio: Horizontal shift as a fraction of image width
        y_ratio: Vertical shift as a fraction of image height
    """

    x_ratio: float = 0.0
    y_ratio: float = 0.0

    def apply(self, rect: Rect, image_width: int, image_height: int) -> Rect:
        """Shift rect by the configured ratios, keeping it inside the image.

        The shifted origin never moves past the point where the rectangle
        would stick out of the image, and never below zero.
        """
        if not self.x_ratio and not self.y_ratio:
            return rect

        x_offset = round(image_width * self.x_ratio)
        y_offset = round(image_height * self.y_ratio)

        x = max(0, min(rect.x + x_offset, image_width - rect.width))
        y = max(0, min(rect.y + y_offset, image_height - rect.height))
        return Rect(x=x, y=y, width=rect.width, height=rect.height)


NO_BIAS = BiasCorrection()


@dataclass(frozen=True)
class PaddingProfile:
    """Margins added around a region before cropping.

    Each side gets max(minimum pixels, ratio * region size). width_factor
    widens the region itself before side padding is added.
    """

    side_ratio: float
    side_min: int
    top_ratio: float
    top_min: int
    bottom_ratio: float
    bottom_min: int
    width_factor: float = 1.0


# Area tables: the area column and the total row tend to fall outside the
# reported box, so the crop extends far to the right and below.
AREA_TABLE_PADDING = PaddingProfile(
    side_ratio=0.08,
    side_min=20,
    top_ratio=0.02,
    top_min=10,
    bottom_ratio=0.5,
    bottom_min=150,
    width_factor=1.5,
)

ROOM_DETAIL_PADDING = PaddingProfile(
    side_ratio=0.1,
    side_min=20,
    top_ratio=0.1,
    top_min=20,
    bottom_ratio=0.1,
    bottom_min=20,
)


def clamp_rect(rect: Rect, image_width: int, image_height: int) -> Rect:
    """Intersect rect with the image bounds.

    Returns:
        A rectangle fully inside the image; empty when there is no overlap
    """
    left = max(0, min(rect.x, image_width))
    top = max(0, min(rect.y, image_height))
    right = max(left, min(rect.right, image_width))
    bottom = max(top, min(rect.bottom, image_height))
    return Rect(x=left, y=top, width=right - left, height=bottom - top)


def scale_rect(rect: Rect, dims: DetectionDimensions) -> Rect:
    """Map a rectangle from detection-image pixels to source-image pixels."""
    if not dims.is_resized:
        return rect
    return Rect(
        x=round(rect.x * dims.scale_x),
        y=round(rect.y * dims.scale_y),
        width=round(rect.width * dims.scale_x),
        height=round(rect.height * dims.scale_y),
    )


def to_source_rect(rect: Rect, dims: DetectionDimensions, bias: BiasCorrection = NO_BIAS) -> Rect:
    """Bias-correct in detection space, scale to the source, clamp."""
    corrected = bias.apply(rect, dims.detection_width, dims.detection_height)
    scaled = scale_rect(corrected, dims)
    return clamp_rect(scaled, dims.original_width, dims.original_height)


def pad_rect(rect: Rect, profile: PaddingProfile, image_width: int, image_height: int) -> Rect:
    """Grow rect by a padding profile and clamp it to the image."""
    side_pad = max(profile.side_min, rect.width * profile.side_ratio)
    top_pad = max(profile.top_min, rect.height * profile.top_ratio)
    bottom_pad = max(profile.bottom_min, rect.height * profile.bottom_ratio)
    expanded_width = rect.width * profile.width_factor

    left = max(0, rect.x - side_pad)
    top = max(0, rect.y - top_pad)
    width = min(image_width - left, expanded_width + side_pad * 2)
    height = min(image_height - top, rect.height + top_pad + bottom_pad)

    padded = Rect(x=round(left), y=round(top), width=round(width), height=round(height))
    return clamp_rect(padded, image_width, image_height)
