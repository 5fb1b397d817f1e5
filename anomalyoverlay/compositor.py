"""Anomaly mask decoding and overlay compositing.

The detection service returns a per-pixel mask aligned to the canonical
resolution. This module turns that mask into an image, stretches it onto the
normalized original and combines the two with the overlay blend mode:

    overlay(b, o) = 2*b*o / 255                    if b < 128
                    255 - 2*(255-b)*(255-o) / 255  otherwise

applied per 8-bit channel and rounded half-up. When the mask carries an alpha
channel the blended pixel is mixed back with the original by that alpha, so
transparent mask regions leave the original untouched.
"""

import io
import logging
from typing import Optional

import numpy as np
from PIL import Image

from anomalyoverlay.errors import DecodeError, MaskDecodeError
from anomalyoverlay.normalizer import open_image, resize_raster
from anomalyoverlay.schemas import CompositeArtifact, NormalizedImage

logger = logging.getLogger(__name__)

RAW_MODES = {1: "L", 3: "RGB", 4: "RGBA"}
ENCODED_SIGNATURES = (b"\x89PNG\r\n\x1a\n", b"\xff\xd8\xff")


def expected_mask_sizes(width: int, height: int) -> dict:
    """Byte length of a raw mask for each supported channel count."""
    return {channels: width * height * channels for channels in RAW_MODES}


def decode_mask(raw_mask: bytes, width: int, height: int) -> Image.Image:
    """Turn mask bytes into a Pillow image.

    Encoded masks (PNG/JPEG) are decoded as-is. Anything else is read as a raw
    8-bit raster of ``width`` x ``height`` with 1, 3 or 4 channels.

    Raises:
        MaskDecodeError: If the bytes fit neither form.
    """
    if not raw_mask:
        raise MaskDecodeError("Anomaly mask is empty")

    if raw_mask.startswith(ENCODED_SIGNATURES):
        try:
            return open_image(raw_mask)
        except DecodeError as e:
            raise MaskDecodeError(f"Unable to decode anomaly mask: {e.message}") from e

    for channels, size in expected_mask_sizes(width, height).items():
        if len(raw_mask) == size:
            return Image.frombytes(RAW_MODES[channels], (width, height), raw_mask)

    raise MaskDecodeError(
        f"Anomaly mask is {len(raw_mask)} bytes; expected one of "
        f"{sorted(expected_mask_sizes(width, height).values())} for {width}x{height}"
    )


def overlay_blend(base: np.ndarray, overlay: np.ndarray) -> np.ndarray:
    """Per-channel overlay blend of two uint8 arrays of the same shape."""
    if base.shape != overlay.shape:
        raise ValueError(f"Shape mismatch: base {base.shape} vs overlay {overlay.shape}")
    b = base.astype(np.uint32)
    o = overlay.astype(np.uint32)
    multiply = (2 * b * o + 127) // 255
    screen = 255 - (2 * (255 - b) * (255 - o) + 127) // 255
    return np.where(b < 128, multiply, screen).astype(np.uint8)


def _split_mask(mask: Image.Image):
    """Return (rgb array, alpha array or None) for a mask image."""
    has_alpha = mask.mode in ("RGBA", "LA", "PA") or (mask.mode == "P" and "transparency" in mask.info)
    if has_alpha:
        arr = np.asarray(mask.convert("RGBA"))
        return arr[..., :3], arr[..., 3:4].astype(np.float64) / 255.0
    return np.asarray(mask.convert("RGB")), None


def composite(
    original: NormalizedImage,
    raw_mask: bytes,
    mask_width: Optional[int] = None,
    mask_height: Optional[int] = None,
) -> CompositeArtifact:
    """Overlay-blend an anomaly mask onto the normalized original.

    Args:
        original: Image already resized to the canonical resolution.
        raw_mask: Mask bytes returned by the detection service.
        mask_width: Width the raw mask is laid out in. Defaults to the original's.
        mask_height: Height the raw mask is laid out in. Defaults to the original's.

    Returns:
        A new PNG CompositeArtifact with the original's dimensions. Inputs are
        not modified.

    Raises:
        MaskDecodeError: If the mask cannot be decoded.
        DecodeError: If the original cannot be decoded.
    """
    mask_image = decode_mask(raw_mask, mask_width or original.width, mask_height or original.height)

    base_image = open_image(original.data).convert("RGB")
    width, height = base_image.size
    mask_image = resize_raster(mask_image, width, height)

    base = np.asarray(base_image)
    overlay_rgb, alpha = _split_mask(mask_image)
    blended = overlay_blend(base, overlay_rgb)
    if alpha is not None:
        mixed = base.astype(np.float64) * (1.0 - alpha) + blended.astype(np.float64) * alpha
        blended = np.clip(np.floor(mixed + 0.5), 0, 255).astype(np.uint8)

    out = io.BytesIO()
    Image.fromarray(blended).save(out, format="PNG")
    logger.debug(f"Composited {mask_image.mode} mask onto {width}x{height} image")
    return CompositeArtifact(data=out.getvalue(), mime_type="image/png", width=width, height=height)
