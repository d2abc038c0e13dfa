"""Alpha compositing of the decoded mask onto the untouched source pixels."""

from __future__ import annotations

from io import BytesIO

import numpy as np
from PIL import Image

from .errors import InternalInvariantViolation

MAX_ALPHA = 255


def composite(original: np.ndarray, mask: np.ndarray) -> Image.Image:
    """
    Build an RGBA image whose colour channels are the original pixels and
    whose alpha is round(mask * 255).

    `original` is an (H, W, 3) uint8 array; `mask` is (H, W) in [0, 1].
    """
    if mask.shape != original.shape[:2]:
        raise InternalInvariantViolation(
            f"Mask shape {mask.shape} does not match image shape {original.shape[:2]}"
        )
    alpha = np.rint(mask * MAX_ALPHA).astype(np.uint8)
    rgba = np.dstack((original, alpha))
    return Image.fromarray(rgba)


def encode_png(result: Image.Image) -> bytes:
    buf = BytesIO()
    result.save(buf, format="PNG")
    return buf.getvalue()
