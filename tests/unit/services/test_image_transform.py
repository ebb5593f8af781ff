"""Unit tests for Pillow image helpers."""

import pytest

from smeta.core.exceptions import ImageProcessingError
from smeta.models.estimate_models import Rect
from smeta.services.vision.image_transform import (
    crop,
    from_data_url,
    image_size,
    open_image,
    reencode,
    resize_to_width,
    to_data_url,
)


class TestResize:

    def test_wide_image_is_shrunk_keeping_aspect(self, jpeg_factory):
        thumb = resize_to_width(jpeg_factory(1600, 1200), 400, 60)
        assert image_size(thumb) == (400, 300)

    def test_narrow_image_is_not_enlarged(self, jpeg_factory):
        thumb = resize_to_width(jpeg_factory(300, 200), 400, 60)
        assert image_size(thumb) == (300, 200)

    def test_reencode_keeps_dimensions(self, jpeg_factory):
        assert image_size(reencode(jpeg_factory(640, 480), 70)) == (640, 480)


class TestCrop:

    def test_crop_size(self, jpeg_factory):
        data = crop(jpeg_factory(400, 300), Rect(x=10, y=20, width=100, height=50), 95)
        assert image_size(data) == (100, 50)

    def test_crop_accepts_decoded_image(self, jpeg_factory):
        data = crop(open_image(jpeg_factory(400, 300)), Rect(x=0, y=0, width=40, height=30), 95)
        assert image_size(data) == (40, 30)

    def test_empty_rect_rejected(self, jpeg_factory):
        with pytest.raises(ImageProcessingError):
            crop(jpeg_factory(), Rect(x=0, y=0, width=0, height=10), 95)

    def test_undecodable_bytes(self):
        with pytest.raises(ImageProcessingError):
            crop(b"not an image", Rect(x=0, y=0, width=10, height=10), 95)


class TestDataUrl:

    def test_data_url_prefix(self, jpeg_factory):
        assert to_data_url(jpeg_factory()).startswith("data:image/jpeg;base64,")

    def test_decodes_back(self, jpeg_factory):
        data = jpeg_factory(50, 40)
        assert from_data_url(to_data_url(data)) == data

    def test_rejects_plain_string(self):
        with pytest.raises(ImageProcessingError):
            from_data_url("https://example.com/page.jpg")
