"""Tests for the luminance histogram builder."""

import numpy as np
import pytest
from PIL import Image

from errors import InvalidInput, UnsupportedFormat
from scope.histogram import (
    DEFAULT_BIN_COUNT,
    bin_indices,
    build_histogram,
    build_histogram_from_image,
    sample_stride,
)
from scope.pixel_buffer import PixelBuffer, PixelFormat

pytestmark = pytest.mark.smoke


def _frame(r=128, g=128, b=128, a=255, h=100, w=100):
    frame = np.zeros((h, w, 4), dtype=np.uint8)
    frame[:, :, 0] = r
    frame[:, :, 1] = g
    frame[:, :, 2] = b
    frame[:, :, 3] = a
    return frame


def _gray(value, h=100, w=100, dtype=np.uint8):
    return np.full((h, w), value, dtype=dtype)


class RecordingSource:
    """Bare PixelSource that remembers which pixels were read."""

    def __init__(self, array, pixel_format="L008"):
        self.array = array
        self.height, self.width = array.shape[:2]
        self.pixel_format = pixel_format
        self.visited = set()

    def pixel_at(self, x, y):
        self.visited.add((x, y))
        value = self.array[y, x]
        return tuple(int(v) for v in np.atleast_1d(value))


def test_uniform_gray_single_bin():
    """100x100 gray v=128 puts every sample in bin floor(128/255 * 256)."""
    buf = PixelBuffer.from_array(_frame(128, 128, 128), PixelFormat.RGBA8)
    hist = build_histogram(buf, 256)
    assert hist.counts[128] == 10_000
    assert hist.total == 10_000
    assert hist.max_count == 10_000
    assert np.count_nonzero(hist.counts) == 1


def test_uniform_gray_small_bin_count():
    buf = PixelBuffer.from_array(_gray(128), PixelFormat.GRAY8)
    hist = build_histogram(buf, 16)
    assert hist.bin_count == 16
    assert hist.counts[8] == hist.sampled
    assert hist.total == hist.sampled


def test_gray_color_and_mono_agree():
    for v in (0, 1, 63, 128, 200, 254, 255):
        color = build_histogram(PixelBuffer.from_array(_frame(v, v, v), "RGBA"), 64)
        mono = build_histogram(PixelBuffer.from_array(_gray(v), "L008"), 64)
        np.testing.assert_array_equal(color.counts, mono.counts)


def test_black_and_white_extremes():
    black = build_histogram(PixelBuffer.from_array(_frame(0, 0, 0), "BGRA"))
    white = build_histogram(PixelBuffer.from_array(_frame(255, 255, 255), "BGRA"))
    assert black.counts[0] == black.sampled
    assert white.counts[DEFAULT_BIN_COUNT - 1] == white.sampled


def test_counts_bounded_by_pixel_count():
    rng = np.random.default_rng(42)
    frame = rng.integers(0, 256, (120, 90, 4), dtype=np.uint8)
    hist = build_histogram(PixelBuffer.from_array(frame, "RGBA"), 256)
    assert np.all(hist.counts >= 0)
    assert hist.total == hist.sampled <= 120 * 90


def test_binning_monotonic():
    for bins in (1, 7, 16, 256, 1000):
        idx = bin_indices(np.arange(256), 255, bins)
        assert np.all(np.diff(idx) >= 0)
        assert idx[0] == 0
        assert idx[-1] == bins - 1


def test_full_scale_clamped_to_last_bin():
    assert bin_indices(np.array([255]), 255, 256)[0] == 255
    assert bin_indices(np.array([65535]), 65535, 10)[0] == 9


def test_gray16_binning():
    buf = PixelBuffer.from_array(_gray(32768, dtype=np.uint16), PixelFormat.GRAY16)
    hist = build_histogram(buf, 256)
    assert hist.counts[128] == hist.sampled


def test_nv12_video_range():
    rows = np.zeros((6, 4), dtype=np.uint8)
    rows[:4] = [[16, 235, 126, 0]] * 4
    rows[4:] = 128
    hist = build_histogram(PixelBuffer.from_array(rows, PixelFormat.NV12_VIDEO), 256)
    # 16 and 0 clip to black, 235 is white, 126 -> code 110 -> bin 128
    assert hist.counts[0] == 8
    assert hist.counts[255] == 4
    assert hist.counts[128] == 4


def test_row_padding_ignored():
    width, height, stride = 6, 4, 16
    raw = bytearray([255] * stride * height)
    for y in range(height):
        raw[y * stride : y * stride + width] = bytes([0] * width)
    buf = PixelBuffer(width, height, "L008", bytes(raw), row_stride=stride)
    hist = build_histogram(buf, 4)
    assert hist.counts[0] == 24
    assert hist.total == 24


def test_hd_frame_is_subsampled():
    """1920x1080 with the default budget uses stride 32 and visits each row once."""
    buf = PixelBuffer.from_array(_gray(90, h=1080, w=1920), "L008")
    hist = build_histogram(buf)
    assert hist.stride == 32
    assert hist.sampled == 1080 * 60
    assert hist.total == hist.sampled


def test_sampling_covers_every_row_and_column():
    source = RecordingSource(_gray(50, h=7, w=10))
    hist = build_histogram(source, 8, sample_budget=10)
    assert hist.stride == 7
    assert {y for _, y in source.visited} == set(range(7))
    assert {x for x, _ in source.visited} == set(range(10))
    assert hist.sampled == len(source.visited)


def test_stride_never_exceeds_smaller_side():
    assert sample_stride(1000, 2, 1) == 2
    assert sample_stride(3, 3, 1) == 3
    assert sample_stride(100, 100, 1_000_000) == 1
    assert sample_stride(100, 100, None) == 1


def test_no_budget_visits_everything():
    buf = PixelBuffer.from_array(_gray(10, h=400, w=400), "L008")
    hist = build_histogram(buf, 8, sample_budget=None)
    assert hist.stride == 1
    assert hist.sampled == 160_000


def test_generic_source_matches_buffer():
    rng = np.random.default_rng(7)
    frame = rng.integers(0, 256, (40, 60, 4), dtype=np.uint8)
    fast = build_histogram(PixelBuffer.from_array(frame, "RGBA"), 32, sample_budget=500)
    slow = build_histogram(RecordingSource(frame, "RGBA"), 32, sample_budget=500)
    np.testing.assert_array_equal(fast.counts, slow.counts)
    assert fast.stride == slow.stride


def test_generic_source_unsupported_format():
    with pytest.raises(UnsupportedFormat):
        build_histogram(RecordingSource(_gray(1, h=4, w=4), "v210"))


def test_generic_source_empty_rejected():
    with pytest.raises(InvalidInput):
        build_histogram(RecordingSource(np.zeros((0, 4), dtype=np.uint8)))


def test_non_source_rejected():
    with pytest.raises(InvalidInput):
        build_histogram(object())


@pytest.mark.parametrize("bins", [0, -4, True, 2.5, "256"])
def test_bad_bin_count_rejected(bins):
    buf = PixelBuffer.from_array(_gray(1, h=4, w=4), "L008")
    with pytest.raises(InvalidInput):
        build_histogram(buf, bins)


def test_bad_sample_budget_rejected():
    buf = PixelBuffer.from_array(_gray(1, h=4, w=4), "L008")
    with pytest.raises(InvalidInput):
        build_histogram(buf, 8, sample_budget=0)


def test_deterministic_and_input_untouched():
    rng = np.random.default_rng(3)
    frame = rng.integers(0, 256, (50, 50, 4), dtype=np.uint8)
    before = frame.copy()
    buf = PixelBuffer.from_array(frame, "RGBA")
    a = build_histogram(buf, 64)
    b = build_histogram(buf, 64)
    np.testing.assert_array_equal(a.counts, b.counts)
    np.testing.assert_array_equal(frame, before)


def test_normalized_and_dict():
    hist = build_histogram(PixelBuffer.from_array(_gray(200, h=10, w=10), "L008"), 4)
    norm = hist.normalized()
    assert norm.max() == 1.0
    assert norm.min() == 0.0
    d = hist.to_dict()
    assert d["bins"] == 4
    assert d["counts"] == [0, 0, 0, 100]
    assert d["max"] == 100
    assert d["sampled"] == 100
    assert d["stride"] == 1


# --- Decoded image path ---


def test_image_mode_l():
    hist = build_histogram_from_image(Image.fromarray(_gray(77)), 256)
    assert hist.counts[77] == 10_000


def test_image_rgb_converted_with_same_weights():
    img = Image.fromarray(_frame(128, 128, 128)[:, :, :3])
    hist = build_histogram_from_image(img, 256)
    assert hist.counts[128] == hist.sampled


def test_image_16bit():
    img = Image.fromarray(_gray(65535, h=8, w=8, dtype=np.uint16))
    hist = build_histogram_from_image(img, 16)
    assert hist.counts[15] == 64


def test_float_array():
    values = np.full((10, 10), 0.5, dtype=np.float32)
    hist = build_histogram_from_image(values, 4)
    assert hist.counts[2] == 100


def test_image_mode_f_matches_float_array():
    values = np.full((8, 8), 0.5, dtype=np.float32)
    img = Image.fromarray(values)
    assert img.mode == "F"
    from_image = build_histogram_from_image(img, 256)
    assert from_image.counts[128] == 64
    np.testing.assert_array_equal(
        from_image.counts, build_histogram_from_image(values, 256).counts
    )


def test_image_mode_i_as_16bit_codes():
    img = Image.fromarray(np.full((8, 8), 32768, dtype=np.int32))
    assert img.mode == "I"
    hist = build_histogram_from_image(img, 256)
    assert hist.counts[128] == 64


def test_image_mode_i_clipped_to_16bit():
    values = np.array([[-5, 0, 65535, 1_000_000]], dtype=np.int32)
    hist = build_histogram_from_image(Image.fromarray(values), 4, sample_budget=None)
    assert hist.counts.tolist() == [2, 0, 0, 2]


def test_float_array_clipped():
    values = np.array([[-1.0, 0.0, 1.0, 2.0]])
    hist = build_histogram_from_image(values, 4, sample_budget=None)
    assert hist.counts.tolist() == [2, 0, 0, 2]


def test_image_matches_buffer_path():
    rng = np.random.default_rng(11)
    gray = rng.integers(0, 256, (64, 48), dtype=np.uint8)
    from_image = build_histogram_from_image(gray, 32)
    from_buffer = build_histogram(PixelBuffer.from_array(gray, "L008"), 32)
    np.testing.assert_array_equal(from_image.counts, from_buffer.counts)


def test_image_subsampled():
    hist = build_histogram_from_image(_gray(5, h=1080, w=1920))
    assert hist.stride == 32
    assert hist.sampled == 1080 * 60


def test_color_array_unsupported():
    with pytest.raises(UnsupportedFormat):
        build_histogram_from_image(_frame())


def test_integer_array_unsupported():
    with pytest.raises(UnsupportedFormat):
        build_histogram_from_image(np.zeros((4, 4), dtype=np.int32))


def test_empty_image_rejected():
    with pytest.raises(InvalidInput):
        build_histogram_from_image(np.zeros((0, 5), dtype=np.uint8))
