"""Tests for mask decoding and overlay compositing."""

import io

import numpy as np
import pytest
from PIL import Image

from anomalyoverlay.compositor import composite, decode_mask, expected_mask_sizes, overlay_blend
from anomalyoverlay.errors import MaskDecodeError
from anomalyoverlay.normalizer import normalize

W, H = 8, 16


def _pixels(artifact) -> np.ndarray:
    return np.asarray(Image.open(io.BytesIO(artifact.data)).convert("RGB"))


@pytest.fixture
def original(solid_image):
    return normalize(solid_image(W, H, value=(100, 100, 100)), W, H)


class TestOverlayBlend:
    """Per-channel overlay formula."""

    @pytest.mark.parametrize(
        "base, over, expected",
        [
            (100, 255, 200),  # dark base: 2*b*o/255
            (200, 255, 255),  # light base: screen
            (200, 0, 145),    # 255 - 2*55*255/255
            (0, 180, 0),
            (255, 10, 255),
            (127, 255, 254),
            (128, 0, 1),
            (64, 128, 64),
        ],
    )
    def test_known_values(self, base, over, expected):
        b = np.full((2, 2, 3), base, dtype=np.uint8)
        o = np.full((2, 2, 3), over, dtype=np.uint8)
        assert np.all(overlay_blend(b, o) == expected)

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            overlay_blend(np.zeros((2, 2, 3), np.uint8), np.zeros((2, 3, 3), np.uint8))

    def test_does_not_mutate_inputs(self):
        b = np.full((2, 2, 3), 90, dtype=np.uint8)
        o = np.full((2, 2, 3), 30, dtype=np.uint8)
        overlay_blend(b, o)
        assert b.max() == 90 and o.max() == 30


class TestDecodeMask:
    """Raw and encoded mask layouts."""

    def test_expected_sizes(self):
        assert expected_mask_sizes(W, H) == {1: 128, 3: 384, 4: 512}

    @pytest.mark.parametrize("channels, mode", [(1, "L"), (3, "RGB"), (4, "RGBA")])
    def test_raw_layouts(self, channels, mode):
        mask = decode_mask(bytes(W * H * channels), W, H)
        assert mask.mode == mode
        assert mask.size == (W, H)

    def test_length_mismatch(self):
        with pytest.raises(MaskDecodeError) as exc:
            decode_mask(bytes(W * H + 1), W, H)
        assert "129 bytes" in exc.value.message

    def test_empty(self):
        with pytest.raises(MaskDecodeError):
            decode_mask(b"", W, H)

    def test_encoded_png(self):
        out = io.BytesIO()
        Image.new("RGB", (3, 5), color=(255, 0, 0)).save(out, format="PNG")
        mask = decode_mask(out.getvalue(), W, H)
        assert mask.size == (3, 5)

    def test_corrupt_png(self):
        with pytest.raises(MaskDecodeError):
            decode_mask(b"\x89PNG\r\n\x1a\n" + b"\x00" * 40, W, H)


class TestComposite:
    """Compositing a mask onto the normalized original."""

    def test_full_intensity_grey_mask(self, original):
        result = composite(original, bytes([255]) * (W * H))
        assert (result.width, result.height) == (W, H)
        assert result.mime_type == "image/png"
        assert np.all(_pixels(result) == 200)

    def test_light_base_uses_screen(self, solid_image):
        light = normalize(solid_image(W, H, value=(200, 200, 200)), W, H)
        result = composite(light, bytes([255]) * (W * H))
        assert np.all(_pixels(result) == 255)

    def test_rgb_mask_per_channel(self, original):
        mask = bytes([255, 0, 128]) * (W * H)
        px = _pixels(composite(original, mask))
        assert tuple(px[0, 0]) == (200, 0, 100)
        assert np.all(px == px[0, 0])

    def test_transparent_mask_leaves_original(self, original):
        mask = bytes([255, 0, 0, 0]) * (W * H)
        assert np.all(_pixels(composite(original, mask)) == 100)

    def test_opaque_rgba_mask_blends(self, original):
        mask = bytes([255, 255, 255, 255]) * (W * H)
        assert np.all(_pixels(composite(original, mask)) == 200)

    def test_mask_in_other_layout_is_resized(self, original):
        small = bytes([255]) * (4 * 8)
        result = composite(original, small, mask_width=4, mask_height=8)
        assert (result.width, result.height) == (W, H)
        assert np.all(_pixels(result) == 200)

    def test_encoded_mask_is_resized(self, original):
        out = io.BytesIO()
        Image.new("L", (2, 2), color=255).save(out, format="PNG")
        result = composite(original, out.getvalue())
        assert np.all(_pixels(result) == 200)

    def test_is_pure(self, original):
        rng = np.random.default_rng(7)
        mask = rng.integers(0, 256, size=W * H * 4, dtype=np.uint8).tobytes()
        before = (original.data, mask)

        first = composite(original, mask)
        second = composite(original, mask)

        assert first.data == second.data
        assert (original.data, mask) == before

    def test_bad_mask_length(self, original):
        with pytest.raises(MaskDecodeError):
            composite(original, bytes(W * H * 2))
