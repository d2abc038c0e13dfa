"""
High-level background-removal pipeline.

`BackgroundRemover.remove_background` is the single entry point used by the
HTTP API and the CLI. It keeps orchestration strictly linear:
image -> tensor -> model -> mask -> RGBA image.

Each run owns its intermediates in a `RunBuffers` scope that is emptied on
every exit path. Failures from any stage propagate unchanged.
"""

from __future__ import annotations

from functools import lru_cache
import logging
from pathlib import Path
from threading import Event, Lock
import time
from typing import Dict, Optional

import numpy as np
from PIL import Image

from . import config
from .compositing import composite, encode_png
from .errors import PipelineCancelled
from .inference import InferenceAdapter, build_adapter
from .postprocessing import decode_mask
from .preprocessing import SourceImage, as_rgb_array, encode_image, load_image_from_bytes

logger = logging.getLogger(__name__)


class RunBuffers:
    """Scratch space for one run. Released when the `with` block exits."""

    def __init__(self) -> None:
        self._buffers: Dict[str, np.ndarray] = {}

    def __setitem__(self, name: str, value: np.ndarray) -> None:
        self._buffers[name] = value

    def __getitem__(self, name: str) -> np.ndarray:
        return self._buffers[name]

    def __contains__(self, name: object) -> bool:
        return name in self._buffers

    def __len__(self) -> int:
        return len(self._buffers)

    def release(self) -> None:
        self._buffers.clear()

    def __enter__(self) -> "RunBuffers":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


def _check_cancelled(cancel_event: Optional[Event], next_stage: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        logger.info("Run cancelled before %s", next_stage)
        raise PipelineCancelled(f"Cancelled before {next_stage}")


class BackgroundRemover:
    """
    Sequences encode -> infer -> decode -> composite for one image at a time.

    Runs are serialized when the adapter is not reentrant (or when
    `serialize=True`); otherwise concurrent calls share nothing but the
    adapter.
    """

    def __init__(
        self,
        adapter: InferenceAdapter,
        profile: config.ModelProfile,
        serialize: Optional[bool] = None,
        debug_dir: Optional[Path] = None,
    ):
        if adapter.input_side != profile.input_side:
            raise ValueError(
                f"Adapter input side {adapter.input_side} does not match profile "
                f"'{profile.name}' input side {profile.input_side}"
            )
        if serialize is None:
            serialize = not getattr(adapter, "reentrant", False)
        self.adapter = adapter
        self.profile = profile
        self.debug_dir = debug_dir
        self._run_lock: Optional[Lock] = Lock() if serialize else None

    def remove_background(self, image: SourceImage, cancel_event: Optional[Event] = None) -> Image.Image:
        """Return an RGBA copy of `image` whose alpha is the foreground mask."""
        if self._run_lock is None:
            return self._run(image, cancel_event)
        with self._run_lock:
            return self._run(image, cancel_event)

    def _run(self, image: SourceImage, cancel_event: Optional[Event]) -> Image.Image:
        started = time.perf_counter()
        with RunBuffers() as buffers:
            source = as_rgb_array(image)
            height, width = source.shape[:2]

            _check_cancelled(cancel_event, "encode")
            buffers["input"] = encode_image(source, self.profile)

            _check_cancelled(cancel_event, "inference")
            buffers["raw"] = self.adapter.infer(buffers["input"])

            _check_cancelled(cancel_event, "decode")
            buffers["mask"] = decode_mask(
                buffers["raw"], width, height, expected_side=self.profile.input_side
            )
            if self.debug_dir is not None:
                _maybe_dump_mask(buffers["mask"], self.debug_dir)

            _check_cancelled(cancel_event, "composite")
            result = composite(source, buffers["mask"])

        logger.info(
            "Removed background from %dx%d image in %.3fs (profile=%s)",
            width,
            height,
            time.perf_counter() - started,
            self.profile.name,
        )
        return result


def _maybe_dump_mask(mask: np.ndarray, debug_dir: Path) -> None:
    """Write the decoded mask as a grayscale PNG when DEBUG is enabled."""
    try:
        debug_dir.mkdir(parents=True, exist_ok=True)
        mask_path = debug_dir / "mask.png"
        Image.fromarray(np.rint(mask * 255.0).astype(np.uint8)).save(mask_path)
        logger.debug("pipeline: wrote debug mask to %s", mask_path)
    except OSError as exc:
        logger.warning("pipeline: failed to write debug mask: %s", exc)


@lru_cache()
def get_background_remover() -> BackgroundRemover:
    """
    Return a shared remover built from settings.

    The adapter loads its model on the first run and keeps it for the
    lifetime of the process.
    """
    settings = config.get_settings()
    profile = config.resolve_model_profile(settings)
    adapter = build_adapter(settings, profile)
    return BackgroundRemover(
        adapter,
        profile,
        serialize=True if settings.serialize_runs else None,
        debug_dir=Path(settings.debug_output_dir) if settings.debug else None,
    )


def remove_background(image: SourceImage, cancel_event: Optional[Event] = None) -> Image.Image:
    return get_background_remover().remove_background(image, cancel_event=cancel_event)


def process_image_bytes(image_bytes: bytes) -> bytes:
    """
    Full pipeline from encoded image bytes to RGBA PNG bytes.

    Raises:
        InvalidInput: when the bytes cannot be decoded or the image is empty.
        ModelUnavailable / InferenceFailure: from the inference adapter.
    """
    image = load_image_from_bytes(image_bytes)
    result = remove_background(image)
    return encode_png(result)
