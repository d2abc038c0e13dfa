"""Mask decoding: raw model confidence -> clamped mask at source resolution."""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
import torch

from .errors import InternalInvariantViolation
from .preprocessing import resize_bilinear

logger = logging.getLogger(__name__)


def clamp_confidence(raw: np.ndarray) -> np.ndarray:
    """Map NaN to 0 and clip to [0, 1]; the model may skip a bounding activation."""
    cleaned = np.nan_to_num(raw.astype(np.float32), nan=0.0, posinf=1.0, neginf=0.0)
    return np.clip(cleaned, 0.0, 1.0)


def decode_mask(
    raw: np.ndarray,
    target_w: int,
    target_h: int,
    expected_side: Optional[int] = None,
) -> np.ndarray:
    """
    Turn a (1, 1, S, S) confidence tensor into an (H, W) float32 mask in
    [0, 1], resampled with the same bilinear policy the encoder used.
    """
    raw = np.asarray(raw)
    if raw.ndim != 4 or raw.shape[:2] != (1, 1) or raw.shape[2] != raw.shape[3]:
        raise InternalInvariantViolation(f"Expected raw output of shape (1, 1, S, S), got {raw.shape}")
    if expected_side is not None and raw.shape[2] != expected_side:
        raise InternalInvariantViolation(
            f"Raw output side {raw.shape[2]} does not match model input side {expected_side}"
        )
    if target_w <= 0 or target_h <= 0:
        raise InternalInvariantViolation(f"Invalid mask target size {target_w}x{target_h}")

    clamped = clamp_confidence(raw)
    with torch.no_grad():
        resized = resize_bilinear(torch.from_numpy(clamped), target_h, target_w)
    mask = resized[0, 0].numpy()

    # Resampling weights can drift a hair outside [0, 1].
    mask = np.clip(mask, 0.0, 1.0).astype(np.float32, copy=False)
    logger.debug(
        "decode: %dx%d -> %dx%d mean=%.4f", raw.shape[3], raw.shape[2], target_w, target_h, float(mask.mean())
    )
    return mask
