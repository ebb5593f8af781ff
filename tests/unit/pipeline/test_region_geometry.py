"""Unit tests for rectangle transforms."""

import pytest

from smeta.models.estimate_models import DetectionDimensions, Rect
from smeta.services.pipeline.region_geometry import (
    AREA_TABLE_PADDING,
    NO_BIAS,
    ROOM_DETAIL_PADDING,
    BiasCorrection,
    clamp_rect,
    pad_rect,
    scale_rect,
    to_source_rect,
)


def _inside(rect: Rect, width: int, height: int) -> bool:
    return rect.x >= 0 and rect.y >= 0 and rect.right <= width and rect.bottom <= height


class TestBiasCorrection:

    def test_default_room_bias_shifts_right_and_down(self):
        bias = BiasCorrection(x_ratio=0.5, y_ratio=0.1)
        rect = bias.apply(Rect(x=100, y=100, width=200, height=100), 1600, 1000)
        assert (rect.x, rect.y) == (900, 200)
        assert (rect.width, rect.height) == (200, 100)

    def test_shift_stops_at_image_edge(self):
        bias = BiasCorrection(x_ratio=0.5, y_ratio=0.1)
        rect = bias.apply(Rect(x=1200, y=950, width=300, height=100), 1600, 1000)
        assert rect.x == 1600 - 300
        assert rect.y == 1000 - 100

    def test_oversized_region_pinned_at_zero(self):
        bias = BiasCorrection(x_ratio=0.5, y_ratio=0.0)
        rect = bias.apply(Rect(x=10, y=0, width=2000, height=50), 1600, 1000)
        assert rect.x == 0

    def test_zero_bias_is_identity(self):
        rect = Rect(x=5, y=6, width=7, height=8)
        assert NO_BIAS.apply(rect, 100, 100) == rect


class TestScaling:

    def test_detection_800_maps_to_original_1600(self):
        dims = DetectionDimensions(
            original_width=1600, original_height=1200, detection_width=800, detection_height=600
        )
        rect = scale_rect(Rect(x=100, y=50, width=200, height=100), dims)
        assert rect == Rect(x=200, y=100, width=400, height=200)

    def test_same_size_is_identity(self):
        dims = DetectionDimensions(
            original_width=800, original_height=600, detection_width=800, detection_height=600
        )
        rect = Rect(x=1, y=2, width=3, height=4)
        assert scale_rect(rect, dims) == rect

    def test_to_source_rect_biases_before_scaling(self):
        dims = DetectionDimensions(
            original_width=1600, original_height=1200, detection_width=800, detection_height=600
        )
        bias = BiasCorrection(x_ratio=0.1, y_ratio=0.0)
        rect = to_source_rect(Rect(x=100, y=0, width=100, height=100), dims, bias)
        # 100 + 80 in detection space, doubled
        assert rect.x == 360


class TestClamp:

    @pytest.mark.parametrize(
        "rect",
        [
            Rect(x=-50, y=-20, width=100, height=100),
            Rect(x=350, y=250, width=200, height=200),
            Rect(x=0, y=0, width=5000, height=5000),
        ],
    )
    def test_clamped_rect_is_inside(self, rect):
        assert _inside(clamp_rect(rect, 400, 300), 400, 300)

    def test_no_overlap_is_empty(self):
        assert clamp_rect(Rect(x=500, y=10, width=10, height=10), 400, 300).is_empty


class TestPadding:

    def test_room_detail_padding_all_sides(self):
        rect = pad_rect(Rect(x=500, y=500, width=100, height=100), ROOM_DETAIL_PADDING, 2000, 2000)
        # max(20, 10%) = 20 on every side
        assert rect == Rect(x=480, y=480, width=140, height=140)

    def test_room_detail_padding_uses_ratio_for_large_regions(self):
        rect = pad_rect(Rect(x=500, y=500, width=400, height=300), ROOM_DETAIL_PADDING, 2000, 2000)
        assert rect == Rect(x=460, y=470, width=480, height=360)

    def test_area_table_padding_extends_right_and_down(self):
        rect = pad_rect(Rect(x=1000, y=400, width=300, height=200), AREA_TABLE_PADDING, 3000, 3000)
        # sides max(20, 24) = 24, top max(10, 4) = 10, bottom max(150, 100) = 150
        assert rect.x == 976
        assert rect.y == 390
        assert rect.width == round(300 * 1.5 + 2 * 24)
        assert rect.height == 200 + 10 + 150

    @pytest.mark.parametrize("profile", [AREA_TABLE_PADDING, ROOM_DETAIL_PADDING])
    def test_padding_never_leaves_image(self, profile):
        rect = pad_rect(Rect(x=350, y=250, width=50, height=50), profile, 400, 300)
        assert _inside(rect, 400, 300)
        assert not rect.is_empty
