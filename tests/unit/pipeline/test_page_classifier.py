"""Unit tests for the vision-model page classifier."""

from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from smeta.core.exceptions import ModelOutputError, ValidationError
from smeta.models.estimate_models import PageImage, PageType
from smeta.services.pipeline.page_classifier import PageClassifier, align_classifications
from smeta.services.vision.image_transform import from_data_url, image_size


class TestAlignClassifications:

    def test_page_numbers_are_positional(self):
        reply = [
            {"page_number": 9, "page_type": "plan", "room_name": None},
            {"page_number": 9, "page_type": "wall_layout", "room_name": "Кухня"},
        ]
        results = align_classifications(reply, 2)
        assert [r.page_number for r in results] == [1, 2]
        assert results[1].room_name == "Кухня"

    def test_missing_entries_are_padded(self):
        results = align_classifications([{"page_type": "plan"}], 3)
        assert len(results) == 3
        assert [r.page_type for r in results] == [PageType.PLAN, PageType.OTHER, PageType.OTHER]
        assert results[2].room_name is None

    def test_surplus_entries_are_dropped(self):
        results = align_classifications([{"page_type": "plan"}] * 5, 2)
        assert len(results) == 2

    def test_unknown_type_becomes_other(self):
        results = align_classifications([{"page_type": "cover"}, {"page_type": "Wall-Layout"}], 2)
        assert results[0].page_type == PageType.OTHER
        assert results[1].page_type == PageType.WALL_LAYOUT

    def test_wrapped_reply(self):
        results = align_classifications({"pages": [{"page_type": "visualization"}]}, 1)
        assert results[0].page_type == PageType.VISUALIZATION

    def test_no_entries_is_error(self):
        with pytest.raises(ModelOutputError):
            align_classifications(["plan", "other"], 2)


class TestPageClassifier:

    @pytest.fixture
    def classifier(self, mock_session, mock_adapter):
        return PageClassifier(mock_session, mock_adapter)

    @pytest.mark.asyncio
    async def test_five_page_project(self, classifier, mock_adapter, page_factory):
        pages = [page_factory(i, 800, 600) for i in range(1, 6)]
        mock_adapter.call_json.return_value = [
            {"page_number": 1, "page_type": "other", "room_name": None},
            {"page_number": 2, "page_type": "plan", "room_name": None},
            {"page_number": 3, "page_type": "wall_layout", "room_name": "Кухня"},
            {"page_number": 4, "page_type": "specification", "room_name": None},
            {"page_number": 5, "page_type": "visualization", "room_name": "Кухня"},
        ]

        with patch.object(classifier.repository, "save_batch", new_callable=AsyncMock) as mock_save:
            results = await classifier.classify_pages(uuid4(), pages)

        assert [r.page_type for r in results] == [
            PageType.OTHER, PageType.PLAN, PageType.WALL_LAYOUT, PageType.SPECIFICATION, PageType.VISUALIZATION,
        ]
        rows = mock_save.call_args.args[1]
        assert [row["page_number"] for row in rows] == [1, 2, 3, 4, 5]
        assert rows[2]["room_name"] == "Кухня"
        assert all(row["image_data_url"].startswith("data:image/jpeg;base64,") for row in rows)

    @pytest.mark.asyncio
    async def test_n_pages_give_n_rows(self, classifier, mock_adapter, page_factory):
        pages = [page_factory(i) for i in range(1, 8)]
        mock_adapter.call_json.return_value = [{"page_type": "plan"}] * 3

        with patch.object(classifier.repository, "save_batch", new_callable=AsyncMock) as mock_save:
            results = await classifier.classify_pages(uuid4(), pages)

        assert [r.page_number for r in results] == list(range(1, 8))
        assert len(mock_save.call_args.args[1]) == 7

    @pytest.mark.asyncio
    async def test_stores_full_resolution_image(self, classifier, mock_adapter, page_factory):
        page = page_factory(1, 1600, 1200)
        mock_adapter.call_json.return_value = [{"page_type": "plan"}]

        with patch.object(classifier.repository, "save_batch", new_callable=AsyncMock) as mock_save:
            await classifier.classify_pages(uuid4(), [page])

        stored = from_data_url(mock_save.call_args.args[1][0]["image_data_url"])
        assert image_size(stored) == (1600, 1200)
        sent = mock_adapter.call_json.call_args.args[1]
        images = [part for part in sent if "image_url" in part]
        assert image_size(from_data_url(images[0]["image_url"]))[0] == 400

    @pytest.mark.asyncio
    async def test_parse_failure_persists_nothing(self, classifier, mock_adapter, page_factory):
        mock_adapter.call_json.side_effect = ModelOutputError("not json")

        with patch.object(classifier.repository, "save_batch", new_callable=AsyncMock) as mock_save:
            with pytest.raises(ModelOutputError):
                await classifier.classify_pages(uuid4(), [page_factory(1)])

        mock_save.assert_not_called()

    @pytest.mark.asyncio
    async def test_zero_pages_rejected_before_model_call(self, classifier, mock_adapter):
        with pytest.raises(ValidationError):
            await classifier.classify_pages(uuid4(), [])
        mock_adapter.call_json.assert_not_called()

    @pytest.mark.asyncio
    async def test_bad_thumbnail_falls_back_to_original(self, classifier, mock_adapter):
        broken = PageImage(page_number=1, image=b"not-a-jpeg", width=10, height=10)
        mock_adapter.call_json.return_value = [{"page_type": "other"}]

        with patch.object(classifier.repository, "save_batch", new_callable=AsyncMock):
            results = await classifier.classify_pages(uuid4(), [broken])

        assert len(results) == 1
        sent = mock_adapter.call_json.call_args.args[1]
        assert any("image_url" in part for part in sent)
