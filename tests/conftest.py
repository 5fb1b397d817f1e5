import io
import sys
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

# Add the repository root to sys.path so tests can import the package without installing it.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Small canonical resolution keeps the compositing tests fast.
CANONICAL_WIDTH = 8
CANONICAL_HEIGHT = 16


def encode(array: np.ndarray, fmt: str = "PNG") -> bytes:
    out = io.BytesIO()
    Image.fromarray(array).save(out, format=fmt)
    return out.getvalue()


@pytest.fixture
def solid_image():
    """Factory for encoded single-colour RGB images."""
    def _make(width: int, height: int, value=(100, 100, 100), fmt: str = "PNG") -> bytes:
        arr = np.empty((height, width, 3), dtype=np.uint8)
        arr[...] = value
        return encode(arr, fmt)
    return _make


@pytest.fixture
def canonical_size():
    return CANONICAL_WIDTH, CANONICAL_HEIGHT
