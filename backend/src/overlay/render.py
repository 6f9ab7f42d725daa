"""Rasterize an overlay's curve onto an RGBA frame."""

import cv2
import numpy as np

from errors import InvalidInput
from overlay.view import HistogramOverlay

DEFAULT_COLOR = (80, 220, 120)


def render_overlay(
    frame: np.ndarray,
    overlay: HistogramOverlay,
    *,
    color: tuple[int, int, int] = DEFAULT_COLOR,
    fill_alpha: float = 0.35,
    steps: int = 16,
    label: bool = True,
) -> np.ndarray:
    """Draw the smoothed histogram (fill + stroke) over a copy of `frame`.

    Args:
        frame:      (H, W, 4) uint8 RGBA image. Never modified.
        overlay:    Overlay whose last good path is drawn.
        color:      RGB stroke/fill color.
        fill_alpha: Opacity of the area under the curve, 0..1.
        steps:      Samples per curve segment when flattening.
        label:      Draw "Q <quality>" when the overlay has a quality value.

    Returns:
        New (H, W, 4) uint8 frame.
    """
    if frame.ndim != 3 or frame.shape[2] != 4 or frame.dtype != np.uint8:
        raise InvalidInput(f"Expected (H, W, 4) uint8 frame, got {frame.shape} {frame.dtype}")
    if not 0.0 <= fill_alpha <= 1.0:
        raise InvalidInput(f"fill_alpha must be in [0, 1], got {fill_alpha}")

    output = frame.copy()
    if overlay.path is None:
        return output

    rgba = (*color, 255)
    rect = overlay.rect
    for curve in overlay.path.flatten(steps):
        # Hermite overshoot near spikes must stay inside the rect
        curve = np.column_stack(
            [
                np.clip(curve[:, 0], rect.left, rect.right),
                np.clip(curve[:, 1], rect.top, rect.bottom),
            ]
        )
        baseline = [[curve[-1, 0], rect.bottom], [curve[0, 0], rect.bottom]]
        polygon = np.round(np.vstack([curve, baseline])).astype(np.int32)
        if fill_alpha > 0:
            layer = output.copy()
            cv2.fillPoly(layer, [polygon], rgba)
            output = cv2.addWeighted(layer, fill_alpha, output, 1.0 - fill_alpha, 0)
        stroke = np.round(curve).astype(np.int32)
        cv2.polylines(output, [stroke], False, rgba, 1, cv2.LINE_AA)

    if label and overlay.quality is not None:
        origin = (int(rect.left) + 4, int(rect.top) + 12)
        cv2.putText(
            output,
            f"Q {overlay.quality}",
            origin,
            cv2.FONT_HERSHEY_SIMPLEX,
            0.35,
            rgba,
            1,
            cv2.LINE_AA,
        )
    return output
