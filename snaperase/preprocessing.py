"""
Image loading and tensor encoding.

The encoder squeezes an arbitrary-resolution RGB image into the model's
fixed square input and normalizes each channel with the constants of the
bound model variant. The original resolution is never touched; the caller
keeps the source pixels for compositing.
"""

from __future__ import annotations

from io import BytesIO
import logging
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image
import torch
import torch.nn.functional as F

from .config import ModelProfile
from .errors import InvalidInput

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = {".jpg", ".jpeg", ".png", ".bmp"}

SourceImage = Union[Image.Image, np.ndarray]


def is_supported_image(path: Union[str, Path]) -> bool:
    return Path(path).suffix.lower() in SUPPORTED_SUFFIXES


def load_image_from_bytes(image_bytes: bytes) -> Image.Image:
    """Decode JPEG/PNG/BMP bytes into an RGB image."""
    if not image_bytes:
        raise InvalidInput("Empty image data")
    try:
        image = Image.open(BytesIO(image_bytes))
        image.load()
    except Exception as exc:  # noqa: BLE001
        raise InvalidInput("Invalid image data") from exc
    return image.convert("RGB")


def load_image_from_path(path: Union[str, Path]) -> Image.Image:
    path = Path(path)
    if not path.is_file():
        raise InvalidInput(f"Input file not found: {path}")
    return load_image_from_bytes(path.read_bytes())


def as_rgb_array(image: SourceImage) -> np.ndarray:
    """
    Normalize a PIL image or (H, W, 3|4) uint8 array into a read-only
    (H, W, 3) uint8 array. Any alpha channel is dropped.

    Geometry is checked first so a zero-area image fails before any pixel
    buffer is materialized.
    """
    if isinstance(image, Image.Image):
        width, height = image.size
        _check_geometry(width, height)
        if image.mode != "RGB":
            image = image.convert("RGB")
        rgb = np.asarray(image, dtype=np.uint8)
    elif isinstance(image, np.ndarray):
        if image.ndim != 3 or image.shape[2] not in (3, 4):
            raise InvalidInput(f"Expected an (H, W, 3) or (H, W, 4) array, got shape {image.shape}")
        _check_geometry(image.shape[1], image.shape[0])
        if image.dtype != np.uint8:
            raise InvalidInput(f"Expected 8-bit channels, got dtype {image.dtype}")
        rgb = np.ascontiguousarray(image[..., :3])
    else:
        raise InvalidInput(f"Unsupported image type: {type(image).__name__}")

    rgb = rgb.view()
    rgb.setflags(write=False)
    return rgb


def _check_geometry(width: int, height: int) -> None:
    if width <= 0 or height <= 0:
        raise InvalidInput(f"Image has zero area ({width}x{height})")


def resize_bilinear(planes: torch.Tensor, height: int, width: int) -> torch.Tensor:
    """
    Resample a (N, C, H, W) float tensor with the pipeline's single
    interpolation policy: antialiased bilinear, half-pixel centers.

    Shared by the encoder (downscale to model input) and the mask decoder
    (rescale back to the source resolution).
    """
    if tuple(planes.shape[-2:]) == (height, width):
        return planes
    return F.interpolate(
        planes,
        size=(height, width),
        mode="bilinear",
        align_corners=False,
        antialias=True,
    )


def encode_image(image: SourceImage, profile: ModelProfile) -> np.ndarray:
    """
    Encode a source image into a (1, 3, S, S) float32 channel-major tensor.

    Each resized value v becomes (v / 255 - mean[c]) / std[c].
    """
    rgb = as_rgb_array(image)
    side = profile.input_side

    planes = torch.from_numpy(np.array(rgb, dtype=np.float32)).permute(2, 0, 1).unsqueeze(0)
    with torch.no_grad():
        resized = resize_bilinear(planes, side, side)

    mean = torch.tensor(profile.mean, dtype=torch.float32).view(1, 3, 1, 1)
    std = torch.tensor(profile.std, dtype=torch.float32).view(1, 3, 1, 1)
    tensor = (resized / 255.0 - mean) / std

    logger.debug(
        "encode: %dx%d -> %dx%d profile=%s", rgb.shape[1], rgb.shape[0], side, side, profile.name
    )
    return np.ascontiguousarray(tensor.numpy(), dtype=np.float32)
