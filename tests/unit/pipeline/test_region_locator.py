"""Unit tests for RegionLocator."""

import pytest

from smeta.core.config import PipelineSettings
from smeta.core.exceptions import NoTablesDetectedError
from smeta.models.estimate_models import PlanType, RegionType
from smeta.services.pipeline.region_locator import RegionLocator


@pytest.fixture
def no_bias_settings():
    return PipelineSettings(
        region_bias_x_ratio=0.0,
        region_bias_y_ratio=0.0,
        table_bias_x_ratio=0.0,
        table_bias_y_ratio=0.0,
    )


class TestLocateTables:

    @pytest.mark.asyncio
    async def test_one_located_page_per_input(self, mock_adapter, page_factory, no_bias_settings):
        pages = [page_factory(1, 800, 600), page_factory(2, 800, 600)]
        mock_adapter.call_json.return_value = [
            {"plan_index": 1, "plan_type": "renovated", "tables": [{"x": 10, "y": 20, "width": 100, "height": 50}]},
            {"plan_index": 0, "plan_type": "original", "tables": []},
        ]
        locator = RegionLocator(mock_adapter, no_bias_settings)

        located = await locator.locate_tables(pages)

        assert [page.page_index for page in located] == [0, 1]
        assert located[0].regions == []
        assert located[0].plan_type == PlanType.ORIGINAL
        assert located[1].plan_type == PlanType.RENOVATED
        region = located[1].regions[0]
        assert region.region_type == RegionType.TABLE
        assert (region.rect.x, region.rect.y, region.rect.width, region.rect.height) == (10, 20, 100, 50)

    @pytest.mark.asyncio
    async def test_invalid_index_falls_back_to_position(self, mock_adapter, page_factory, no_bias_settings):
        pages = [page_factory(1, 800, 600), page_factory(2, 800, 600)]
        mock_adapter.call_json.return_value = [
            {"plan_index": 7, "tables": [{"x": 1, "y": 1, "width": 10, "height": 10}]},
            {"plan_index": "abc", "tables": [{"x": 2, "y": 2, "width": 10, "height": 10}]},
        ]
        locator = RegionLocator(mock_adapter, no_bias_settings)

        located = await locator.locate_tables(pages)

        assert located[0].regions[0].rect.x == 1
        assert located[1].regions[0].rect.x == 2
        assert located[0].plan_type == PlanType.BOTH

    @pytest.mark.asyncio
    async def test_zero_tables_raises(self, mock_adapter, page_factory, no_bias_settings):
        mock_adapter.call_json.return_value = [{"plan_index": 0, "tables": []}]
        locator = RegionLocator(mock_adapter, no_bias_settings)

        with pytest.raises(NoTablesDetectedError):
            await locator.locate_tables([page_factory(1)])

    @pytest.mark.asyncio
    async def test_regions_are_clamped_to_image(self, mock_adapter, page_factory, no_bias_settings):
        mock_adapter.call_json.return_value = [
            {"plan_index": 0, "tables": [{"x": 700, "y": 500, "width": 400, "height": 400}]}
        ]
        locator = RegionLocator(mock_adapter, no_bias_settings)

        located = await locator.locate_tables([page_factory(1, 800, 600)])

        rect = located[0].regions[0].rect
        assert rect.right <= 800 and rect.bottom <= 600

    @pytest.mark.asyncio
    async def test_detection_images_follow_each_page(self, mock_adapter, page_factory, no_bias_settings):
        mock_adapter.call_json.return_value = [{"plan_index": 0, "tables": [{"x": 0, "y": 0, "width": 5, "height": 5}]}]
        locator = RegionLocator(mock_adapter, no_bias_settings)

        await locator.locate_tables([page_factory(1, 640, 480)])

        parts = mock_adapter.call_json.call_args.args[1]
        assert "image_url" in parts[0]
        assert "640x480" in parts[1]["text"]


class TestLocateRegions:

    @pytest.mark.asyncio
    async def test_room_bias_is_applied(self, mock_adapter, page_factory):
        settings = PipelineSettings(region_bias_x_ratio=0.5, region_bias_y_ratio=0.1)
        mock_adapter.call_json.return_value = [
            {
                "page_index": 0,
                "regions": [
                    {"x": 100, "y": 100, "width": 200, "height": 100, "type": "table", "description": "Ведомость"}
                ],
            }
        ]
        locator = RegionLocator(mock_adapter, settings)

        located = await locator.locate_regions([page_factory(1, 1600, 1000)])

        region = located[0].regions[0]
        assert (region.rect.x, region.rect.y) == (900, 200)
        assert region.region_type == RegionType.TABLE
        assert region.description == "Ведомость"

    @pytest.mark.asyncio
    async def test_wrapped_reply_and_unknown_type(self, mock_adapter, page_factory, no_bias_settings):
        mock_adapter.call_json.return_value = {
            "pages": [{"page_index": 0, "regions": [{"x": 1, "y": 1, "width": 20, "height": 20, "type": "photo"}]}]
        }
        locator = RegionLocator(mock_adapter, no_bias_settings)

        located = await locator.locate_regions([page_factory(1)])

        assert located[0].regions[0].region_type == RegionType.NOTE

    @pytest.mark.asyncio
    async def test_no_pages_skips_model(self, mock_adapter, no_bias_settings):
        locator = RegionLocator(mock_adapter, no_bias_settings)
        assert await locator.locate_regions([]) == []
        mock_adapter.call_json.assert_not_called()
