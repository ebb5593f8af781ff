"""PDF rasterization.

The pipeline only depends on the PageRenderer protocol; the PyMuPDF
renderer below is the default implementation.
"""

import asyncio
from typing import List, Protocol

import fitz
from PIL import Image

from smeta.core.exceptions import PageRenderError
from smeta.models.estimate_models import PageImage
from smeta.services.vision.image_transform import encode_jpeg
from smeta.utils.logging import get_logger

LOGGER = get_logger(__name__)


class PageRenderer(Protocol):
    async def render(self, pdf_bytes: bytes) -> List[PageImage]:
        ...


class PyMuPDFPageRenderer:
    """Renders every PDF page to a JPEG of fixed width."""

    def __init__(self, target_width: int = 1600, quality: int = 85, max_pages: int = 80):
        """Initialize the renderer.

        Args:
            target_width: Output width in pixels; height follows the page aspect
            quality: JPEG quality of the rendered pages
            max_pages: Upper bound on pages accepted in one document
        """
        self.target_width = target_width
        self.quality = quality
        self.max_pages = max_pages

    async def render(self, pdf_bytes: bytes) -> List[PageImage]:
        """Render all pages off the event loop.

        Raises:
            PageRenderError: If the PDF cannot be opened, is empty or too long
        """
        return await asyncio.to_thread(self._render_sync, pdf_bytes)

    def _render_sync(self, pdf_bytes: bytes) -> List[PageImage]:
        try:
            doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        except (fitz.FileDataError, RuntimeError, ValueError) as e:
            raise PageRenderError(f"Cannot open PDF: {e}", e) from e

        try:
            if doc.page_count == 0:
                raise PageRenderError("PDF has no pages")
            if doc.page_count > self.max_pages:
                raise PageRenderError(
                    f"PDF has {doc.page_count} pages, at most {self.max_pages} are supported"
                )

            pages = []
            for index, page in enumerate(doc):
                zoom = self.target_width / page.rect.width if page.rect.width else 1.0
                pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
                image = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
                pages.append(
                    PageImage(
                        page_number=index + 1,
                        image=encode_jpeg(image, self.quality),
                        width=pix.width,
                        height=pix.height,
                    )
                )
        finally:
            doc.close()

        LOGGER.info(
            f"Rendered {len(pages)} PDF pages",
            extra={"target_width": self.target_width}
        )
        return pages
