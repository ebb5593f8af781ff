from smeta.services.vision.page_renderer import PageRenderer, PyMuPDFPageRenderer
from smeta.services.vision.vision_adapter import (
    VisionModelAdapter,
    build_vision_adapter,
    image_part,
    text_part,
)

__all__ = [
    "PageRenderer",
    "PyMuPDFPageRenderer",
    "VisionModelAdapter",
    "build_vision_adapter",
    "image_part",
    "text_part",
]
