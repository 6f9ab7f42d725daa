import argparse
import dataclasses
import json
import logging
import sys

import numpy as np
from PIL import Image

from diagnostics import init_diagnostics
from errors import LumascopeError
from overlay.registry import OverlayRegistry
from overlay.render import render_overlay
from overlay.view import Rect
from settings import load_settings
from telemetry import init_telemetry

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="lumascope",
        description="Luminance histogram overlay for a single image.",
    )
    parser.add_argument("image", help="Image file readable by Pillow")
    parser.add_argument("--bins", type=int, help="Histogram bin count")
    parser.add_argument("--quality", type=int, help="Quality value shown in the label")
    parser.add_argument("--svg", help="Write the curve as SVG path data to this file")
    parser.add_argument("--png", help="Write the image with the overlay composited")
    return parser.parse_args(argv)


def run(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = load_settings()
    if args.bins is not None:
        settings = dataclasses.replace(settings, bins=args.bins)

    with Image.open(args.image) as img:
        image = img.copy()

    # Overlay spans the top third of the image
    rect = Rect(0.0, 0.0, float(image.width), image.height / 3.0)
    registry = OverlayRegistry(settings)
    overlay = registry.show(args.image, rect)
    if not overlay.update_image(image, args.quality):
        print(f"error: {overlay.last_error}", file=sys.stderr)
        return 1

    print(json.dumps(overlay.histogram.to_dict()))

    if args.svg:
        with open(args.svg, "w") as f:
            f.write(overlay.path.to_svg())
    if args.png:
        frame = np.asarray(image.convert("RGBA")).copy()
        Image.fromarray(render_overlay(frame, overlay)).save(args.png)

    registry.hide(args.image)
    return 0


def main():
    init_diagnostics(console=True)
    init_telemetry()
    try:
        sys.exit(run())
    except (OSError, LumascopeError) as e:
        logger.error("lumascope failed: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
