"""Explicit view -> overlay map, owned by whoever manages the views."""

import logging
from typing import Hashable, Iterator

from overlay.view import HistogramOverlay, Rect
from settings import OverlaySettings

logger = logging.getLogger(__name__)


def _view_key(view) -> Hashable:
    # str/int are explicit keys; any other view is keyed by identity
    if isinstance(view, (str, int)):
        return view
    return id(view)


class OverlayRegistry:
    """Create, look up and destroy histogram overlays keyed by view."""

    def __init__(self, settings: OverlaySettings | None = None):
        self.settings = settings or OverlaySettings()
        self._overlays: dict[Hashable, HistogramOverlay] = {}

    def show(self, view, rect: Rect | None = None) -> HistogramOverlay:
        """Return the view's overlay, creating it on first show."""
        key = _view_key(view)
        overlay = self._overlays.get(key)
        if overlay is not None:
            return overlay

        if rect is None:
            rect = Rect(0.0, 0.0, self.settings.width, self.settings.height)
        overlay = HistogramOverlay(key, rect, self.settings)
        self._overlays[key] = overlay
        logger.debug("Overlay created for view %r (%d active)", key, len(self))
        return overlay

    def hide(self, view) -> bool:
        """Destroy the view's overlay. Returns False if it had none."""
        overlay = self._overlays.pop(_view_key(view), None)
        if overlay is None:
            return False
        logger.debug("Overlay destroyed for view %r (%d active)", overlay.view_id, len(self))
        return True

    def get(self, view) -> HistogramOverlay | None:
        return self._overlays.get(_view_key(view))

    def clear(self):
        self._overlays.clear()

    def __contains__(self, view) -> bool:
        return _view_key(view) in self._overlays

    def __len__(self) -> int:
        return len(self._overlays)

    def __iter__(self) -> Iterator[HistogramOverlay]:
        return iter(list(self._overlays.values()))
