"""Histogram overlay — turns frames into a drawable smoothed histogram path.

A failed update leaves the previous histogram and path in place, so the
last good state stays on screen.
"""

import logging
from dataclasses import dataclass

import numpy as np

from errors import InvalidInput, UnsupportedFormat
from geometry.hermite import interpolate_hermite
from geometry.path import Path
from scope.histogram import Histogram, build_histogram, build_histogram_from_image
from settings import OverlaySettings
from telemetry import capture_with_context

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def left(self) -> float:
        return self.x

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def top(self) -> float:
        return self.y

    @property
    def bottom(self) -> float:
        return self.y + self.height


def histogram_points(
    histogram: Histogram, rect: Rect, *, max_points: int | None = None
) -> np.ndarray:
    """Map bin counts to (x, y) view coordinates inside `rect`.

    Bin 0 sits on the left edge and the last bin on the right edge. Heights
    are relative to the tallest value, with y growing downward. With
    max_points, adjacent bins are summed into at most that many groups,
    each placed at its mean bin position.
    """
    counts = histogram.counts.astype(np.float64)
    n = counts.size
    positions = np.arange(n, dtype=np.float64)

    if max_points is not None:
        if max_points < 1:
            raise InvalidInput(f"max_points must be >= 1, got {max_points}")
        if max_points < n:
            edges = np.linspace(0, n, max_points + 1).astype(np.int64)
            counts = np.add.reduceat(counts, edges[:-1])
            positions = (edges[:-1] + edges[1:] - 1) / 2.0

    peak = counts.max()
    heights = counts / peak if peak > 0 else np.zeros_like(counts)

    if n > 1:
        xs = rect.left + positions * (rect.width / (n - 1))
    else:
        xs = np.full_like(positions, rect.left + rect.width / 2.0)
    ys = rect.bottom - heights * rect.height
    return np.column_stack([xs, ys])


class HistogramOverlay:
    """Overlay state for one view: last histogram, curve path and quality label."""

    def __init__(self, view_id, rect: Rect, settings: OverlaySettings | None = None):
        self.view_id = view_id
        self.rect = rect
        self.settings = settings or OverlaySettings()
        self.updates = 0
        self.failures = 0
        self.last_error: Exception | None = None
        self._histogram: Histogram | None = None
        self._points: np.ndarray | None = None
        self._path: Path | None = None
        self._quality = None

    @property
    def histogram(self) -> Histogram | None:
        return self._histogram

    @property
    def points(self) -> np.ndarray | None:
        return self._points

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def quality(self):
        return self._quality

    def update_with_pixel_buffer(self, buffer) -> bool:
        """Rebuild from a raw pixel buffer. Returns False if the frame was rejected."""
        s = self.settings
        return self._update(
            lambda: build_histogram(buffer, s.bins, sample_budget=s.sample_budget),
            source="pixel_buffer",
        )

    def update_image(self, image, quality) -> bool:
        """Rebuild from a decoded image. `quality` is only kept for the label."""
        s = self.settings
        return self._update(
            lambda: build_histogram_from_image(
                image, s.bins, sample_budget=s.sample_budget
            ),
            source="image",
            quality=quality,
            has_quality=True,
        )

    def _update(self, build, source: str, quality=None, has_quality=False) -> bool:
        self.last_error = None
        try:
            histogram = build()
            points = histogram_points(
                histogram, self.rect, max_points=self.settings.max_points
            )
            path = interpolate_hermite(Path(), points, tension=self.settings.tension)
        except (InvalidInput, UnsupportedFormat) as e:
            self.last_error = e
            self.failures += 1
            capture_with_context(
                e,
                f"overlay.{source}",
                {"view_id": str(self.view_id), "updates": self.updates},
            )
            logger.warning(
                "Overlay %s rejected %s update: %s", self.view_id, source, e
            )
            return False

        self._histogram = histogram
        self._points = points
        self._path = path
        if has_quality:
            self._quality = quality
        self.updates += 1
        return True
