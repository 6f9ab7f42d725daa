"""Hermite curve generator — smooth path through ordered points.

Tangents are cardinal-spline estimates: T_i = (1 - tension) * (P[i+1] - P[i-1]) / 2
for interior points, and the half-difference of the single adjacent segment
at either end. tension=0 is Catmull-Rom. Each Hermite segment is emitted as
the equivalent cubic Bezier with controls P[i] + T[i]/3 and P[i+1] - T[i+1]/3.
"""

import math

import numpy as np

from errors import InvalidInput
from geometry.path import PathSink, as_point

# Hermite tangent -> Bezier control offset
BEZIER_SCALE = 1.0 / 3.0


def _coerce_points(points) -> np.ndarray:
    if not isinstance(points, np.ndarray):
        points = list(points)
    try:
        arr = np.asarray(points, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"Points must be (x, y) pairs: {e}") from e
    if arr.size == 0:
        return arr.reshape(0, 2)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise InvalidInput(f"Points must have shape (n, 2), got {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise InvalidInput("Point coordinates must be finite")
    return arr


def catmull_rom_tangents(points, tension: float = 0.0) -> np.ndarray:
    """Per-point tangent vectors, shape (n, 2). Zeros for fewer than 2 points."""
    pts = _coerce_points(points)
    if len(pts) < 2:
        return np.zeros_like(pts)

    tangents = np.empty_like(pts)
    tangents[1:-1] = (pts[2:] - pts[:-2]) / 2.0
    tangents[0] = (pts[1] - pts[0]) / 2.0
    tangents[-1] = (pts[-1] - pts[-2]) / 2.0
    return tangents * (1.0 - tension)


def interpolate_hermite(path: PathSink, points, *, tension: float = 0.0) -> PathSink:
    """Append a smooth curve through `points` to `path`, in the given order.

    No points leaves the path untouched; one point adds a single move.
    Otherwise the path moves to P0 and gains one cubic per consecutive pair,
    ending with its current point exactly at the last point. Existing path
    content is kept. Points are neither reordered, deduplicated nor rounded.

    Raises:
        InvalidInput: Malformed or non-finite points, or non-finite tension.
    """
    try:
        tension = float(tension)
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"Tension must be a number, got {tension!r}") from e
    if not math.isfinite(tension):
        raise InvalidInput(f"Tension must be finite, got {tension}")

    pts = _coerce_points(points)
    if len(pts) == 0:
        return path

    path.move_to(as_point(pts[0]))
    if len(pts) == 1:
        return path

    tangents = catmull_rom_tangents(pts, tension)
    control1 = pts[:-1] + tangents[:-1] * BEZIER_SCALE
    control2 = pts[1:] - tangents[1:] * BEZIER_SCALE

    for c1, c2, end in zip(control1, control2, pts[1:]):
        path.curve_to(as_point(c1), as_point(c2), as_point(end))
    return path
