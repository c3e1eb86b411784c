"""
Pixel frames and frame-to-frame luma differencing.

A PixelFrame is one capture tick worth of RGB samples. The FrameDifferencer
keeps exactly one prior frame and produces integer luma deltas
``|gray(current) - gray(previous)|`` with ``gray = (r + g + b) // 3`` for
any set of sample coordinates.
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np

from motion_vfx.utils.logging import get_logger

logger = get_logger(__name__)

FULL_LUMA_RANGE = 255

# Sample index: either a slice (regular stride, no copy) or an index array
SampleIndex = Union[slice, np.ndarray]


@dataclass(frozen=True)
class PixelFrame:
    """Immutable snapshot of one captured frame.

    ``pixels`` is a ``(height, width, 3+)`` uint8 array in RGB order. The
    frame is treated as read-only once handed to the pipeline.
    """
    pixels: np.ndarray
    timestamp: float = 0.0

    def __post_init__(self):
        if self.pixels.ndim != 3 or self.pixels.shape[2] < 3:
            raise ValueError(
                f"PixelFrame expects a (height, width, 3) array, got shape {self.pixels.shape}"
            )

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height) in pixels."""
        return (self.width, self.height)

    @classmethod
    def solid(cls, width: int, height: int,
              color: Tuple[int, int, int] = (0, 0, 0),
              timestamp: float = 0.0) -> "PixelFrame":
        """Create a frame filled with a single RGB color."""
        pixels = np.empty((height, width, 3), dtype=np.uint8)
        pixels[:, :] = color[:3]
        return cls(pixels, timestamp)


def sample_index(indices: np.ndarray) -> SampleIndex:
    """Return a slice when ``indices`` is a regular progression, else the array.

    Slicing yields a view of the frame, so regular sample grids are read
    without copying the pixel buffer.
    """
    if len(indices) == 0:
        return indices
    if len(indices) == 1:
        start = int(indices[0])
        return slice(start, start + 1)
    steps = np.diff(indices)
    if np.all(steps == steps[0]) and steps[0] > 0:
        start = int(indices[0])
        step = int(steps[0])
        return slice(start, int(indices[-1]) + 1, step)
    return indices


class FrameDifferencer:
    """Luma differencing between the previous and the current frame.

    Working buffers for sampled luma are reused across frames and only
    reallocated when the sample grid shape changes.
    """

    def __init__(self):
        self._previous: Optional[PixelFrame] = None
        self._luma_current: Optional[np.ndarray] = None
        self._luma_previous: Optional[np.ndarray] = None

    @property
    def previous(self) -> Optional[PixelFrame]:
        """The retained prior frame, if any."""
        return self._previous

    def push(self, frame: PixelFrame) -> Optional[PixelFrame]:
        """
        Retain ``frame`` as the new prior frame.

        Args:
            frame: Newly captured frame

        Returns:
            The frame to difference against, or None when there is no prior
            frame or its dimensions differ from ``frame`` (resolution change).
        """
        previous = self._previous
        self._previous = frame

        if previous is None:
            logger.debug("Initializing previous frame")
            return None

        if previous.pixels.shape != frame.pixels.shape:
            logger.info(
                f"Frame size changed {previous.width}x{previous.height} -> "
                f"{frame.width}x{frame.height}; skipping motion for one frame"
            )
            return None

        return previous

    def reset(self):
        """Forget the prior frame (capture restart)."""
        self._previous = None

    @staticmethod
    def gray(pixels: np.ndarray, out: Optional[np.ndarray] = None) -> np.ndarray:
        """Integer luma ``(r + g + b) // 3`` of an RGB array."""
        rgb = pixels[..., :3]
        if out is None:
            out = np.empty(rgb.shape[:2], dtype=np.int32)
        np.sum(rgb, axis=2, dtype=np.int32, out=out)
        np.floor_divide(out, 3, out=out)
        return out

    def _buffer(self, attr: str, shape: Tuple[int, int]) -> np.ndarray:
        buf = getattr(self, attr)
        if buf is None or buf.shape != shape:
            buf = np.empty(shape, dtype=np.int32)
            setattr(self, attr, buf)
        return buf

    def luma_delta(self, previous: PixelFrame, current: PixelFrame,
                   ys: SampleIndex, xs: SampleIndex) -> np.ndarray:
        """
        Absolute luma delta on a grid of sample coordinates.

        Args:
            previous: Prior frame
            current: Current frame (same dimensions as ``previous``)
            ys: Row indices (slice or index array)
            xs: Column indices (slice or index array)

        Returns:
            int32 array of shape (len(ys), len(xs)). The array is a reused
            working buffer, valid until the next call.
        """
        if previous.pixels.shape != current.pixels.shape:
            raise ValueError("Cannot difference frames of different dimensions")

        cur = _select(current.pixels, ys, xs)
        prev = _select(previous.pixels, ys, xs)
        shape = cur.shape[:2]

        cur_luma = self.gray(cur, out=self._buffer("_luma_current", shape))
        prev_luma = self.gray(prev, out=self._buffer("_luma_previous", shape))

        np.subtract(cur_luma, prev_luma, out=cur_luma)
        np.abs(cur_luma, out=cur_luma)
        return cur_luma

    def delta_at(self, previous: PixelFrame, current: PixelFrame, index: int) -> int:
        """Luma delta for a single flat pixel index (row-major)."""
        y, x = divmod(index, current.width)
        cur = current.pixels[y, x, :3].astype(np.int32)
        prev = previous.pixels[y, x, :3].astype(np.int32)
        return abs(int(cur.sum()) // 3 - int(prev.sum()) // 3)


def _select(pixels: np.ndarray, ys: SampleIndex, xs: SampleIndex) -> np.ndarray:
    """Select a sample grid; slices produce views, arrays produce copies."""
    if isinstance(ys, slice) and isinstance(xs, slice):
        return pixels[ys, xs]
    if isinstance(ys, slice) or isinstance(xs, slice):
        return pixels[ys][:, xs]
    return pixels[np.ix_(ys, xs)]
