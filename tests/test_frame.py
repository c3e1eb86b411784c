import numpy as np
import pytest

from motion_vfx.core.frame import FrameDifferencer, PixelFrame, sample_index


def _frame(width=8, height=6, value=0):
    return PixelFrame(np.full((height, width, 3), value, dtype=np.uint8))


def test_pixel_frame_rejects_non_rgb_arrays():
    with pytest.raises(ValueError):
        PixelFrame(np.zeros((4, 4), dtype=np.uint8))


def test_pixel_frame_solid_reports_size():
    frame = PixelFrame.solid(10, 4, (1, 2, 3), timestamp=2.5)
    assert frame.size == (10, 4)
    assert frame.timestamp == 2.5
    assert tuple(frame.pixels[3, 9]) == (1, 2, 3)


def test_gray_uses_integer_average():
    pixels = np.array([[[10, 20, 31], [255, 255, 254]]], dtype=np.uint8)
    gray = FrameDifferencer.gray(pixels)
    assert gray.tolist() == [[20, 254]]


def test_push_returns_previous_frame():
    differencer = FrameDifferencer()
    first, second = _frame(), _frame(value=9)

    assert differencer.push(first) is None
    assert differencer.push(second) is first
    assert differencer.previous is second


def test_push_skips_one_tick_on_resolution_change():
    differencer = FrameDifferencer()
    differencer.push(_frame(8, 6))

    assert differencer.push(_frame(4, 3)) is None
    assert differencer.push(_frame(4, 3)) is not None


def test_reset_forgets_previous_frame():
    differencer = FrameDifferencer()
    differencer.push(_frame())
    differencer.reset()
    assert differencer.push(_frame()) is None


def test_sample_index_prefers_slices_for_regular_grids():
    assert sample_index(np.array([0, 16, 32])) == slice(0, 33, 16)
    irregular = sample_index(np.array([0, 16, 20]))
    assert isinstance(irregular, np.ndarray)


def test_luma_delta_matches_per_pixel_delta():
    rng = np.random.default_rng(3)
    previous = PixelFrame(rng.integers(0, 256, (20, 30, 3), dtype=np.uint8))
    current = PixelFrame(rng.integers(0, 256, (20, 30, 3), dtype=np.uint8))
    differencer = FrameDifferencer()

    ys = np.array([0, 5, 10, 15])
    xs = np.array([1, 2, 29])
    delta = differencer.luma_delta(previous, current, sample_index(ys), xs)

    assert delta.shape == (4, 3)
    for i, y in enumerate(ys):
        for j, x in enumerate(xs):
            assert delta[i, j] == differencer.delta_at(previous, current, y * 30 + x)


def test_luma_delta_reuses_working_buffer():
    differencer = FrameDifferencer()
    a, b = _frame(value=0), _frame(value=90)
    grid = slice(0, 6, 2)

    first = differencer.luma_delta(a, b, grid, grid)
    assert (first == 90).all()
    second = differencer.luma_delta(b, a, grid, grid)
    assert second is first


def test_luma_delta_rejects_mismatched_frames():
    differencer = FrameDifferencer()
    with pytest.raises(ValueError):
        differencer.luma_delta(_frame(8, 6), _frame(4, 3), slice(0, 3), slice(0, 3))
