"""Resampling of images and masks to the canonical detection resolution."""

import io
import logging
from typing import Optional, Tuple, Union

from PIL import Image, UnidentifiedImageError

from anomalyoverlay.errors import DecodeError
from anomalyoverlay.schemas import ImageBuffer, NormalizedImage

logger = logging.getLogger(__name__)

# Formats the detection service accepts; anything else is re-encoded as PNG.
SUBMITTABLE_FORMATS = {"JPEG": "image/jpeg", "PNG": "image/png"}
JPEG_QUALITY = 95


def open_image(data: bytes) -> Image.Image:
    """Decode encoded bytes into a fully loaded Pillow image."""
    if not data:
        raise DecodeError("Image buffer is empty")
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
        raise DecodeError(f"Unable to decode image: {e}") from e
    return image


def resize_raster(
    image: Image.Image,
    width: int,
    height: int,
    resample: Image.Resampling = Image.Resampling.BILINEAR,
) -> Image.Image:
    """Stretch ``image`` to exactly ``width`` x ``height``.

    Aspect ratio is not preserved. Works for photographs and for single or
    low-channel masks alike; palette and bilevel images are resampled with
    nearest-neighbour by Pillow. Always returns a new image.
    """
    if image.size == (width, height):
        return image.copy()
    return image.resize((width, height), resample=resample)


def encode_image(image: Image.Image, image_format: str) -> Tuple[bytes, str]:
    """Encode ``image`` in ``image_format``, falling back to PNG."""
    fmt = image_format.upper() if image_format and image_format.upper() in SUBMITTABLE_FORMATS else "PNG"
    if fmt == "JPEG" and image.mode not in ("RGB", "L", "CMYK"):
        image = image.convert("RGB")
    out = io.BytesIO()
    if fmt == "JPEG":
        image.save(out, format=fmt, quality=JPEG_QUALITY)
    else:
        image.save(out, format=fmt)
    return out.getvalue(), SUBMITTABLE_FORMATS[fmt]


def normalize(
    buffer: Union[ImageBuffer, bytes],
    target_width: int,
    target_height: int,
    mime_type: Optional[str] = None,
) -> NormalizedImage:
    """Resize an encoded image to the canonical resolution.

    Args:
        buffer: Encoded image, either an ImageBuffer or raw bytes.
        target_width: Canonical width in pixels.
        target_height: Canonical height in pixels.
        mime_type: Declared MIME type when ``buffer`` is raw bytes.

    Returns:
        NormalizedImage re-encoded in the source format (JPEG or PNG).

    Raises:
        DecodeError: If the bytes are not a decodable raster image.
    """
    if isinstance(buffer, ImageBuffer):
        data = buffer.data
    else:
        data = buffer

    image = open_image(data)
    source_format = image.format or ""
    resized = resize_raster(image, target_width, target_height)
    encoded, encoded_mime = encode_image(resized, source_format)

    logger.debug(
        f"Normalized {source_format or 'unknown'} image {image.size[0]}x{image.size[1]} "
        f"-> {target_width}x{target_height} ({encoded_mime})"
    )
    if mime_type and mime_type != encoded_mime:
        logger.debug(f"Declared type {mime_type} re-encoded as {encoded_mime}")

    return NormalizedImage(data=encoded, mime_type=encoded_mime, width=target_width, height=target_height)
