"""Append-only vector path for overlay drawing."""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

import numpy as np

from errors import InvalidInput

Point = tuple[float, float]


class ElementKind(str, Enum):
    MOVE = "move"
    LINE = "line"
    CURVE = "curve"
    CLOSE = "close"


@dataclass(frozen=True)
class PathElement:
    kind: ElementKind
    points: tuple[Point, ...] = ()

    @property
    def end(self) -> Point | None:
        return self.points[-1] if self.points else None


class PathSink(Protocol):
    """What the curve generator needs from a path."""

    @property
    def current_point(self) -> Point | None: ...

    def move_to(self, point: Point) -> None: ...

    def curve_to(self, control1: Point, control2: Point, end: Point) -> None: ...


def as_point(value) -> Point:
    """Coerce an (x, y) pair to a float tuple. Raises InvalidInput."""
    try:
        x, y = value
        point = (float(x), float(y))
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"Not a 2D point: {value!r}") from e
    if not (math.isfinite(point[0]) and math.isfinite(point[1])):
        raise InvalidInput(f"Point coordinates must be finite: {value!r}")
    return point


class Path:
    """Mutable list of move/line/curve/close elements.

    Elements are only ever appended. Drawing operations other than
    move_to() need a current point.
    """

    def __init__(self):
        self._elements: list[PathElement] = []
        self._current: Point | None = None
        self._subpath_start: Point | None = None

    @property
    def elements(self) -> tuple[PathElement, ...]:
        return tuple(self._elements)

    @property
    def current_point(self) -> Point | None:
        return self._current

    def is_empty(self) -> bool:
        return not self._elements

    def __len__(self) -> int:
        return len(self._elements)

    def _require_current(self, op: str):
        if self._current is None:
            raise InvalidInput(f"{op} needs a current point; call move_to first")

    def move_to(self, point: Point) -> None:
        p = as_point(point)
        self._elements.append(PathElement(ElementKind.MOVE, (p,)))
        self._current = p
        self._subpath_start = p

    def line_to(self, point: Point) -> None:
        self._require_current("line_to")
        p = as_point(point)
        self._elements.append(PathElement(ElementKind.LINE, (p,)))
        self._current = p

    def curve_to(self, control1: Point, control2: Point, end: Point) -> None:
        self._require_current("curve_to")
        pts = (as_point(control1), as_point(control2), as_point(end))
        self._elements.append(PathElement(ElementKind.CURVE, pts))
        self._current = pts[2]

    def close(self) -> None:
        self._require_current("close")
        self._elements.append(PathElement(ElementKind.CLOSE))
        self._current = self._subpath_start

    def segment_boundaries(self) -> list[Point]:
        """End point of every move/line/curve element, in order."""
        return [e.end for e in self._elements if e.end is not None]

    def to_svg(self, precision: int = 3) -> str:
        """SVG path data ("M x y C ... Z")."""
        letters = {
            ElementKind.MOVE: "M",
            ElementKind.LINE: "L",
            ElementKind.CURVE: "C",
            ElementKind.CLOSE: "Z",
        }
        parts = []
        for element in self._elements:
            coords = " ".join(
                f"{x:.{precision}f} {y:.{precision}f}" for x, y in element.points
            )
            parts.append(f"{letters[element.kind]} {coords}".rstrip())
        return " ".join(parts)

    def flatten(self, steps: int = 16) -> list[np.ndarray]:
        """Sample the path into one (n, 2) float64 polyline per drawn subpath.

        Each cubic contributes `steps` points; lines contribute their end.
        """
        if steps < 1:
            raise InvalidInput(f"steps must be >= 1, got {steps}")

        t = np.linspace(0.0, 1.0, steps + 1)[1:, np.newaxis]
        polylines: list[np.ndarray] = []
        current: list[np.ndarray] = []
        start = last = None

        for element in self._elements:
            if element.kind is ElementKind.MOVE:
                if len(current) > 1:
                    polylines.append(np.vstack(current))
                start = last = np.array(element.points[0])
                current = [last[np.newaxis, :]]
            elif element.kind is ElementKind.LINE:
                last = np.array(element.points[0])
                current.append(last[np.newaxis, :])
            elif element.kind is ElementKind.CURVE:
                c1, c2, end = (np.array(p) for p in element.points)
                u = 1.0 - t
                current.append(
                    u**3 * last + 3 * u**2 * t * c1 + 3 * u * t**2 * c2 + t**3 * end
                )
                last = end
            else:
                current.append(start[np.newaxis, :])
                last = start

        if len(current) > 1:
            polylines.append(np.vstack(current))
        return polylines
