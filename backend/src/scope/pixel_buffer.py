"""Pixel buffer abstraction and per-format luminance rules.

Every supported format maps to exactly one integer luminance rule. Color
formats use BT.601 weights scaled to integers (299/587/114, summing to 1000)
so a gray pixel (v, v, v) lands in the same bin as single-channel v.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol

import numpy as np

from errors import InvalidInput, UnsupportedFormat


class PixelFormat(str, Enum):
    """Supported buffer layouts, keyed by their four-character code."""

    GRAY8 = "L008"
    GRAY16 = "L016"
    BGRA8 = "BGRA"
    RGBA8 = "RGBA"
    RGB8 = "RGB8"
    NV12_FULL = "420f"
    NV12_VIDEO = "420v"


@dataclass(frozen=True)
class LumaRule:
    """How to read one luma code per pixel from a buffer's first plane.

    `extract` maps an (n, channels) sample array to int64 codes in
    [0, max_code].
    """

    channels: int
    dtype: str
    max_code: int
    extract: Callable[[np.ndarray], np.ndarray]
    biplanar: bool = False

    @property
    def bytes_per_pixel(self) -> int:
        return self.channels * np.dtype(self.dtype).itemsize


def _passthrough(samples: np.ndarray) -> np.ndarray:
    return samples[..., 0].astype(np.int64)


def _video_range(samples: np.ndarray) -> np.ndarray:
    # Y in [16, 235] for video-range YpCbCr
    return np.clip(samples[..., 0].astype(np.int64) - 16, 0, 219)


def _bt601(r: int, g: int, b: int) -> Callable[[np.ndarray], np.ndarray]:
    def extract(samples: np.ndarray) -> np.ndarray:
        s = samples.astype(np.int64)
        return 299 * s[..., r] + 587 * s[..., g] + 114 * s[..., b]

    return extract


LUMA_RULES: dict[PixelFormat, LumaRule] = {
    PixelFormat.GRAY8: LumaRule(1, "u1", 255, _passthrough),
    PixelFormat.GRAY16: LumaRule(1, "<u2", 65535, _passthrough),
    PixelFormat.BGRA8: LumaRule(4, "u1", 255 * 1000, _bt601(2, 1, 0)),
    PixelFormat.RGBA8: LumaRule(4, "u1", 255 * 1000, _bt601(0, 1, 2)),
    PixelFormat.RGB8: LumaRule(3, "u1", 255 * 1000, _bt601(0, 1, 2)),
    PixelFormat.NV12_FULL: LumaRule(1, "u1", 255, _passthrough, biplanar=True),
    PixelFormat.NV12_VIDEO: LumaRule(1, "u1", 219, _video_range, biplanar=True),
}


def luminance_rule(pixel_format) -> LumaRule:
    """Look up the luminance rule for a format (enum member or code string)."""
    try:
        fmt = PixelFormat(pixel_format)
    except ValueError:
        raise UnsupportedFormat(
            f"No luminance rule for pixel format {pixel_format!r}"
        ) from None
    return LUMA_RULES[fmt]


class PixelSource(Protocol):
    """Minimal read-only capability the histogram builder needs."""

    width: int
    height: int
    pixel_format: str

    def pixel_at(self, x: int, y: int) -> tuple[int, ...]: ...


class PixelBuffer:
    """Read-only, strided view over raw frame bytes.

    For bi-planar formats the interleaved chroma plane (ceil(height / 2)
    rows) follows the luma plane with the same row stride. Only the luma
    plane is ever read.
    """

    def __init__(
        self,
        width: int,
        height: int,
        pixel_format: PixelFormat | str,
        data,
        row_stride: int | None = None,
    ):
        if width <= 0 or height <= 0:
            raise InvalidInput(f"Buffer must be non-empty, got {width}x{height}")

        self.rule = luminance_rule(pixel_format)
        self.pixel_format = PixelFormat(pixel_format)
        self.width = int(width)
        self.height = int(height)

        row_bytes = self.width * self.rule.bytes_per_pixel
        self.row_stride = row_bytes if row_stride is None else int(row_stride)
        if self.row_stride < row_bytes:
            raise InvalidInput(
                f"Row stride {self.row_stride} is smaller than row size {row_bytes}"
            )

        if isinstance(data, np.ndarray):
            raw = np.ascontiguousarray(data).reshape(-1).view(np.uint8)
        else:
            raw = np.frombuffer(data, dtype=np.uint8)

        needed = self.required_bytes()
        if raw.size < needed:
            raise InvalidInput(
                f"Buffer holds {raw.size} bytes, {self.pixel_format.value} "
                f"{self.width}x{self.height} needs {needed}"
            )
        self._raw = raw

    @classmethod
    def from_array(
        cls, array: np.ndarray, pixel_format: PixelFormat | str
    ) -> "PixelBuffer":
        """Wrap an ndarray laid out as (H, W) or (H, W, C).

        Bi-planar arrays use the usual NV12 layout: H rows of Y followed by
        ceil(H / 2) rows of interleaved CbCr, all W bytes wide. Odd widths are
        padded by one column so each chroma row holds whole CbCr pairs.
        """
        rule = luminance_rule(pixel_format)
        if array.ndim == 2 and rule.channels == 1:
            array = array[:, :, np.newaxis]
        if array.ndim != 3 or array.shape[2] != rule.channels:
            raise InvalidInput(
                f"Array shape {array.shape} does not match "
                f"{rule.channels}-channel format {PixelFormat(pixel_format).value}"
            )
        if array.dtype.itemsize != np.dtype(rule.dtype).itemsize:
            raise InvalidInput(
                f"Array dtype {array.dtype} does not match format sample size"
            )

        rows, width = array.shape[:2]
        # rows == height + ceil(height / 2) for bi-planar layouts
        height = (2 * rows) // 3 if rule.biplanar else rows
        array = np.ascontiguousarray(array, dtype=rule.dtype)
        if rule.biplanar and width % 2:
            array = np.pad(array, ((0, 0), (0, 1), (0, 0)), mode="edge")
            return cls(width, height, pixel_format, array, row_stride=width + 1)
        return cls(width, height, pixel_format, array)

    def required_bytes(self) -> int:
        rule = self.rule
        luma = self.row_stride * (self.height - 1) + self.width * rule.bytes_per_pixel
        if not rule.biplanar:
            return luma
        chroma_rows = (self.height + 1) // 2
        chroma_row = 2 * ((self.width + 1) // 2)
        return self.row_stride * self.height + self.row_stride * (chroma_rows - 1) + chroma_row

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def plane(self) -> np.ndarray:
        """(H, W, C) view over the luma plane. No copy."""
        rule = self.rule
        itemsize = np.dtype(rule.dtype).itemsize
        return np.ndarray(
            shape=(self.height, self.width, rule.channels),
            dtype=rule.dtype,
            buffer=self._raw,
            strides=(self.row_stride, rule.channels * itemsize, itemsize),
        )

    def pixel_at(self, x: int, y: int) -> tuple[int, ...]:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Pixel ({x}, {y}) outside {self.width}x{self.height}")
        return tuple(int(v) for v in self.plane()[y, x])

    def __repr__(self) -> str:
        return (
            f"PixelBuffer({self.width}x{self.height}, "
            f"{self.pixel_format.value}, stride={self.row_stride})"
        )
