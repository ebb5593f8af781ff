"""Pillow-based image helpers: resize, crop, re-encode and data URLs."""

import base64
import io
import re
from typing import Tuple, Union

from PIL import Image, UnidentifiedImageError

from smeta.core.exceptions import ImageProcessingError
from smeta.models.estimate_models import Rect

_DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[\w/+.-]+)?(?:;[\w=-]+)*;base64,(?P<data>.*)$", re.DOTALL)


def open_image(data: bytes) -> Image.Image:
    """Decode image bytes into an RGB Pillow image.

    Raises:
        ImageProcessingError: If the bytes are not a decodable image
    """
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageProcessingError(f"Cannot decode image: {e}", e) from e

    if image.mode != "RGB":
        image = image.convert("RGB")
    return image


def encode_jpeg(image: Image.Image, quality: int) -> bytes:
    buffer = io.BytesIO()
    try:
        image.save(buffer, format="JPEG", quality=quality)
    except (OSError, ValueError) as e:
        raise ImageProcessingError(f"Cannot encode JPEG: {e}", e) from e
    return buffer.getvalue()


def image_size(data: bytes) -> Tuple[int, int]:
    """Return (width, height) of encoded image bytes."""
    image = open_image(data)
    return image.width, image.height


def reencode(data: bytes, quality: int) -> bytes:
    """Re-compress an image as JPEG at the same pixel dimensions."""
    return encode_jpeg(open_image(data), quality)


def resize_to_width(data: bytes, max_width: int, quality: int) -> bytes:
    """Shrink an image to at most max_width, keeping the aspect ratio.

    Images already narrower than max_width are only re-encoded.
    """
    image = open_image(data)
    if image.width > max_width:
        new_height = max(1, round(image.height * max_width / image.width))
        image = image.resize((max_width, new_height), Image.Resampling.LANCZOS)
    return encode_jpeg(image, quality)


def crop(data: Union[bytes, Image.Image], rect: Rect, quality: int) -> bytes:
    """Cut rect out of an image and encode it as JPEG.

    Accepts encoded bytes or an image already decoded with open_image.
    The rectangle is expected to be inside the image already; Pillow would
    otherwise pad the outside with black.

    Raises:
        ImageProcessingError: If the image cannot be decoded or rect is empty
    """
    if rect.is_empty:
        raise ImageProcessingError(f"Empty crop rectangle: {rect}")
    image = data if isinstance(data, Image.Image) else open_image(data)
    region = image.crop((rect.x, rect.y, rect.right, rect.bottom))
    return encode_jpeg(region, quality)


def to_data_url(data: bytes, mime_type: str = "image/jpeg") -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def from_data_url(data_url: str) -> bytes:
    """Decode a base64 data URL back into bytes.

    Raises:
        ImageProcessingError: If the string is not a base64 data URL
    """
    match = _DATA_URL_PATTERN.match(data_url or "")
    if not match:
        raise ImageProcessingError("Not a base64 data URL")
    try:
        return base64.b64decode(match.group("data"), validate=False)
    except (ValueError, TypeError) as e:
        raise ImageProcessingError(f"Invalid base64 payload: {e}", e) from e
