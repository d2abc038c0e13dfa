"""
Command-line entry point: remove the background of a local image and write
an RGBA PNG to disk.
"""

from __future__ import annotations

import argparse
from datetime import datetime
import logging
from pathlib import Path
from typing import List, Optional

from . import config
from .compositing import encode_png
from .errors import BackgroundRemovalError
from .pipeline import remove_background
from .preprocessing import SUPPORTED_SUFFIXES, is_supported_image, load_image_from_path

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Remove the background from an image")
    parser.add_argument("--input", required=True, help="Path to the input image (JPG, PNG or BMP)")
    parser.add_argument(
        "--output",
        help="Path to write the RGBA PNG (default: background_removed_<timestamp>.png next to the input)",
    )
    return parser.parse_args(argv)


def default_output_path(input_path: Path, now: Optional[datetime] = None) -> Path:
    now = now or datetime.now()
    return input_path.with_name(f"background_removed_{now:%Y%m%d_%H%M%S}.png")


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = config.get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))

    input_path = Path(args.input)
    if not is_supported_image(input_path):
        logger.error(
            "Unsupported file type %r; expected one of %s",
            input_path.suffix,
            ", ".join(sorted(SUPPORTED_SUFFIXES)),
        )
        return 2
    output_path = Path(args.output) if args.output else default_output_path(input_path)

    try:
        image = load_image_from_path(input_path)
        result = remove_background(image)
    except BackgroundRemovalError as exc:
        logger.error("Background removal failed: %s", exc)
        return 1

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(encode_png(result))
    print(f"Wrote RGBA output to {output_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
