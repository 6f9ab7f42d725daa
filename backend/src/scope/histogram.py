"""Histogram builder — luminance distribution from pixel buffers or decoded images.

Large frames are subsampled on a diagonal lattice: with stride k, pixel
(x, y) is visited iff x ≡ y (mod k). Every row and every column keeps at
least one sample while the visit count drops to about w*h/k. The stride
actually used is recorded on the returned Histogram.
"""

import logging
import math
from dataclasses import dataclass

import numpy as np
from PIL import Image

from errors import InvalidInput, UnsupportedFormat
from scope.pixel_buffer import PixelBuffer, luminance_rule

logger = logging.getLogger(__name__)

DEFAULT_BIN_COUNT = 256

# Max pixels visited per frame before the stride kicks in
DEFAULT_SAMPLE_BUDGET = 65_536

# Fixed-point scale for float images in [0, 1]
FLOAT_CODE_SCALE = 1 << 24


@dataclass(frozen=True, eq=False)
class Histogram:
    counts: np.ndarray
    max_count: int
    sampled: int
    stride: int = 1

    @property
    def bin_count(self) -> int:
        return int(self.counts.size)

    @property
    def total(self) -> int:
        return int(self.counts.sum())

    def normalized(self) -> np.ndarray:
        """Counts scaled to [0, 1] by the peak bin (all zeros when empty)."""
        if self.max_count == 0:
            return np.zeros(self.bin_count, dtype=np.float64)
        return self.counts / float(self.max_count)

    def to_dict(self) -> dict:
        return {
            "bins": self.bin_count,
            "counts": self.counts.tolist(),
            "max": self.max_count,
            "sampled": self.sampled,
            "stride": self.stride,
        }


def _validate_bins(bins) -> int:
    if isinstance(bins, bool) or not isinstance(bins, (int, np.integer)) or bins <= 0:
        raise InvalidInput(f"Bin count must be a positive integer, got {bins!r}")
    return int(bins)


def sample_stride(width: int, height: int, sample_budget: int | None) -> int:
    """Lattice stride for a width x height frame. 1 means every pixel."""
    if sample_budget is None:
        return 1
    if sample_budget <= 0:
        raise InvalidInput(f"Sample budget must be positive, got {sample_budget}")
    k = math.ceil(width * height / sample_budget)
    return max(1, min(k, width, height))


def _lattice(plane: np.ndarray, k: int) -> np.ndarray:
    """Flatten (H, W, C) samples where x ≡ y (mod k) to (n, C)."""
    channels = plane.shape[-1]
    if k == 1:
        return plane.reshape(-1, channels)
    # rows p::k intersected with columns p::k is exactly x ≡ y ≡ p (mod k)
    return np.concatenate([plane[p::k, p::k].reshape(-1, channels) for p in range(k)])


def bin_indices(codes: np.ndarray, max_code: int, bins: int) -> np.ndarray:
    """floor(code / max_code * bins) in exact integer arithmetic, clamped."""
    idx = (np.asarray(codes, dtype=np.int64) * bins) // max_code
    return np.clip(idx, 0, bins - 1)


def _count(codes: np.ndarray, max_code: int, bins: int, stride: int) -> Histogram:
    idx = bin_indices(codes, max_code, bins)
    counts = np.bincount(idx, minlength=bins)[:bins].astype(np.int64)
    return Histogram(
        counts=counts,
        max_count=int(counts.max()),
        sampled=int(idx.size),
        stride=stride,
    )


def _generic_samples(source, stride: int, channels: int) -> np.ndarray:
    """Read lattice samples one at a time through pixel_at()."""
    rows = [
        source.pixel_at(x, y)
        for y in range(source.height)
        for x in range(y % stride, source.width, stride)
    ]
    return np.asarray(rows, dtype=np.int64).reshape(-1, channels)


def build_histogram(
    buffer,
    bins: int = DEFAULT_BIN_COUNT,
    *,
    sample_budget: int | None = DEFAULT_SAMPLE_BUDGET,
) -> Histogram:
    """Compute a luminance histogram from a pixel buffer.

    Args:
        buffer:        PixelBuffer, or any object with width, height,
                       pixel_format and pixel_at(x, y).
        bins:          Number of bins N. Luma code v lands in
                       floor(v / max * N), clamped to [0, N-1].
        sample_budget: Approximate max pixels visited. None visits every pixel.

    Returns:
        Histogram with counts, max count, number sampled and the stride used.

    Raises:
        InvalidInput: Empty/malformed buffer or non-positive bin count.
        UnsupportedFormat: Pixel format has no luminance rule.
    """
    bins = _validate_bins(bins)

    if isinstance(buffer, PixelBuffer):
        rule = buffer.rule
        stride = sample_stride(buffer.width, buffer.height, sample_budget)
        samples = _lattice(buffer.plane(), stride)
    else:
        for attr in ("width", "height", "pixel_format", "pixel_at"):
            if not hasattr(buffer, attr):
                raise InvalidInput(
                    f"{type(buffer).__name__} is not a pixel source (missing {attr})"
                )
        if buffer.width <= 0 or buffer.height <= 0:
            raise InvalidInput(
                f"Buffer must be non-empty, got {buffer.width}x{buffer.height}"
            )
        rule = luminance_rule(buffer.pixel_format)
        stride = sample_stride(buffer.width, buffer.height, sample_budget)
        samples = _generic_samples(buffer, stride, rule.channels)

    histogram = _count(rule.extract(samples), rule.max_code, bins, stride)
    logger.debug(
        "Histogram %dx%d: %d bins, stride %d, %d sampled",
        buffer.width,
        buffer.height,
        bins,
        stride,
        histogram.sampled,
    )
    return histogram


def _float_codes(arr: np.ndarray) -> tuple[np.ndarray, int]:
    clipped = np.clip(np.nan_to_num(arr, nan=0.0), 0.0, 1.0)
    return np.floor(clipped * FLOAT_CODE_SCALE).astype(np.int64), FLOAT_CODE_SCALE


def _image_codes(image) -> tuple[np.ndarray, int]:
    """2-D luma codes and their max for a decoded image."""
    if isinstance(image, Image.Image):
        if image.mode == "L":
            return np.asarray(image), 255
        if image.mode.startswith("I;16"):
            return np.asarray(image).astype(np.uint16), 65535
        if image.mode == "I":
            # 32-bit container for 16-bit samples
            return np.clip(np.asarray(image), 0, 65535).astype(np.int64), 65535
        if image.mode == "F":
            return _float_codes(np.asarray(image))
        # PIL's L conversion uses the same ITU-R 601-2 weights
        return np.asarray(image.convert("L")), 255

    arr = np.asarray(image)
    if arr.ndim != 2:
        raise UnsupportedFormat(
            f"Decoded image must be 2-D luminance values, got shape {arr.shape}"
        )
    if arr.dtype == np.uint8:
        return arr, 255
    if arr.dtype == np.uint16:
        return arr, 65535
    if np.issubdtype(arr.dtype, np.floating):
        return _float_codes(arr)
    raise UnsupportedFormat(f"No luminance rule for image dtype {arr.dtype}")


def build_histogram_from_image(
    image,
    bins: int = DEFAULT_BIN_COUNT,
    *,
    sample_budget: int | None = DEFAULT_SAMPLE_BUDGET,
) -> Histogram:
    """Compute a luminance histogram from a decoded image.

    Accepts a PIL image (converted to L unless already L or I;16) or a 2-D
    ndarray of uint8, uint16 or float values in [0, 1]. Sampling and binning
    match build_histogram().
    """
    bins = _validate_bins(bins)
    codes, max_code = _image_codes(image)

    height, width = codes.shape
    if width == 0 or height == 0:
        raise InvalidInput(f"Image must be non-empty, got {width}x{height}")

    stride = sample_stride(width, height, sample_budget)
    samples = _lattice(codes[:, :, np.newaxis], stride)[:, 0]
    return _count(samples, max_code, bins, stride)
