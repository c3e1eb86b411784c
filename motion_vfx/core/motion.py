"""
Grid-based motion aggregation.

Buckets sampled luma deltas into a coarse grid of square blocks, computes a
per-block motion intensity and a global weighted centroid, and returns a
ranked list of detections under two caps:

- ``max_detections``: hard scan-order cutoff while collecting blocks. Once
  the cap is hit, later blocks (row-major) are dropped even if they are
  stronger. This bounds the per-frame cost, not the quality.
- ``max_displayed_detections``: when more blocks qualified than this, the
  list is sorted by descending intensity and truncated. This is what
  downstream consumers (indicators, effect scheduling) see.

Detections carry no identity across frames.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from motion_vfx.core.frame import (
    FULL_LUMA_RANGE, FrameDifferencer, PixelFrame, SampleIndex, sample_index,
)
from motion_vfx.utils.logging import get_logger

logger = get_logger(__name__)

# Sampling stride inside a block (pixels)
SAMPLE_STEP = 16
DEGRADED_SAMPLE_STEP = 32

# Overall intensity above which a frame counts as "motion detected"
DETECTION_FLOOR = 0.001

# Block intensity is normalized by block area / this divisor
BLOCK_AREA_DIVISOR = 64.0

# Overall intensity is normalized by frame area / this divisor
FRAME_AREA_DIVISOR = 16.0


@dataclass
class MotionDetection:
    """One qualifying block: center in pixel space and its intensity."""
    position: Tuple[float, float]
    intensity: float


@dataclass
class MotionFrameResult:
    """Outcome of one aggregation pass.

    ``centroid`` is None when no sample exceeded the threshold; callers must
    check ``detected`` (or the centroid itself) before using it.
    """
    detections: List[MotionDetection] = field(default_factory=list)
    centroid: Optional[Tuple[float, float]] = None
    overall_intensity: float = 0.0
    detected: bool = False
    qualified_count: int = 0  # blocks collected before display truncation

    @property
    def positions(self) -> List[Tuple[float, float]]:
        return [d.position for d in self.detections]

    @property
    def intensities(self) -> List[float]:
        return [d.intensity for d in self.detections]


@dataclass
class _SampleGrid:
    """Cached sample coordinates and block boundaries for one frame layout."""
    ys: np.ndarray            # sampled row coordinates
    xs: np.ndarray            # sampled column coordinates
    ys_index: SampleIndex
    xs_index: SampleIndex
    row_starts: np.ndarray    # offsets into ys where each block row begins
    col_starts: np.ndarray    # offsets into xs where each block column begins
    block_ys: np.ndarray      # block origin per block row
    block_xs: np.ndarray      # block origin per block column


def _axis_samples(length: int, block: int, step: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Sample coordinates along one axis, restarting at every block origin.

    Returns:
        (samples, starts, origins) where ``starts[i]`` is the offset of the
        first sample of block ``i`` and ``origins[i]`` its pixel origin.
    """
    origins = np.arange(0, length, block)
    parts = [np.arange(o, min(o + block, length), step) for o in origins]
    lengths = np.array([len(p) for p in parts], dtype=np.int64)
    starts = np.concatenate(([0], np.cumsum(lengths)[:-1])) if len(parts) else np.zeros(0, np.int64)
    samples = np.concatenate(parts) if parts else np.zeros(0, np.int64)
    return samples, starts.astype(np.int64), origins


class MotionAggregator:
    """
    Turns consecutive frames into a MotionFrameResult.

    Args:
        threshold: Minimum luma delta as a fraction of the full range (0-1)
        sensitivity: Gain applied to each above-threshold delta
        minimum_block_intensity: Block motion total a block must exceed
        differencer: Shared FrameDifferencer (one is created if omitted)
    """

    def __init__(self, threshold: float = 0.3, sensitivity: float = 6.0,
                 minimum_block_intensity: float = 0.002,
                 differencer: Optional[FrameDifferencer] = None):
        self.threshold = threshold
        self.sensitivity = sensitivity
        self.minimum_block_intensity = minimum_block_intensity
        self.differencer = differencer or FrameDifferencer()

        self._grids: Dict[Tuple[int, int, int, int], _SampleGrid] = {}
        self._motion_buf: Optional[np.ndarray] = None
        self._mask_buf: Optional[np.ndarray] = None
        self._hits_buf: Optional[np.ndarray] = None

    def reset(self):
        """Drop the prior frame and cached working buffers."""
        self.differencer.reset()
        self._grids.clear()
        self._motion_buf = None
        self._mask_buf = None
        self._hits_buf = None

    def update(self, frame: PixelFrame, block_size_px: int,
               max_detections: int, max_displayed_detections: int,
               degraded: bool = False) -> MotionFrameResult:
        """Push ``frame`` through the differencer and aggregate against the prior frame."""
        previous = self.differencer.push(frame)
        return self.aggregate(frame, previous, block_size_px,
                              max_detections, max_displayed_detections, degraded)

    def _grid(self, width: int, height: int, block: int, step: int) -> _SampleGrid:
        key = (width, height, block, step)
        grid = self._grids.get(key)
        if grid is None:
            xs, col_starts, block_xs = _axis_samples(width, block, step)
            ys, row_starts, block_ys = _axis_samples(height, block, step)
            grid = _SampleGrid(
                ys=ys, xs=xs,
                ys_index=sample_index(ys), xs_index=sample_index(xs),
                row_starts=row_starts, col_starts=col_starts,
                block_ys=block_ys, block_xs=block_xs,
            )
            # Layout changes are rare (resolution or block size change)
            if len(self._grids) > 8:
                self._grids.clear()
            self._grids[key] = grid
            logger.debug(f"Sample grid {width}x{height} block={block} step={step}: "
                         f"{len(block_xs)}x{len(block_ys)} blocks, {len(xs)}x{len(ys)} samples")
        return grid

    def _working(self, attr: str, shape: Tuple[int, int], dtype) -> np.ndarray:
        buf = getattr(self, attr)
        if buf is None or buf.shape != shape:
            buf = np.empty(shape, dtype=dtype)
            setattr(self, attr, buf)
        return buf

    def aggregate(self, current: PixelFrame, previous: Optional[PixelFrame],
                  block_size_px: int, max_detections: int,
                  max_displayed_detections: int,
                  degraded: bool = False) -> MotionFrameResult:
        """
        Aggregate motion between ``previous`` and ``current``.

        Args:
            current: Current frame
            previous: Prior frame, or None on the first tick
            block_size_px: Grid block edge length in pixels
            max_detections: Scan-order cap on collected blocks
            max_displayed_detections: Cap on the ranked output list
            degraded: Use the coarser sampling stride

        Returns:
            MotionFrameResult (empty when there is nothing to compare)
        """
        if previous is None or previous.pixels.shape != current.pixels.shape:
            return MotionFrameResult()

        width, height = current.width, current.height
        if width <= 0 or height <= 0 or block_size_px <= 0:
            return MotionFrameResult()

        block = int(block_size_px)
        step = DEGRADED_SAMPLE_STEP if degraded else SAMPLE_STEP
        grid = self._grid(width, height, block, step)

        delta = self.differencer.luma_delta(previous, current, grid.ys_index, grid.xs_index)
        shape = delta.shape

        mask = self._working("_mask_buf", shape, bool)
        np.greater(delta, self.threshold * FULL_LUMA_RANGE, out=mask)

        hits = int(np.count_nonzero(mask))
        if hits == 0:
            return MotionFrameResult()

        motion = self._working("_motion_buf", shape, np.float64)
        motion.fill(0.0)
        np.multiply(delta, self.sensitivity / FULL_LUMA_RANGE, out=motion, where=mask)

        total_motion = float(motion.sum())
        if total_motion <= 0.0:
            return MotionFrameResult()

        # Per-block sums in sample space
        block_motion = np.add.reduceat(
            np.add.reduceat(motion, grid.row_starts, axis=0), grid.col_starts, axis=1)
        hits_map = self._working("_hits_buf", shape, np.int32)
        np.copyto(hits_map, mask)
        block_hits = np.add.reduceat(
            np.add.reduceat(hits_map, grid.row_starts, axis=0), grid.col_starts, axis=1)

        qualifies = (block_hits > 0) & (block_motion > self.minimum_block_intensity)
        rows, cols = np.nonzero(qualifies)  # row-major scan order
        cap = max(0, int(max_detections))
        rows, cols = rows[:cap], cols[:cap]

        half = block * 0.5
        norm = block * block / BLOCK_AREA_DIVISOR
        detections = [
            MotionDetection(
                position=(float(grid.block_xs[c] + half), float(grid.block_ys[r] + half)),
                intensity=float(block_motion[r, c] / norm),
            )
            for r, c in zip(rows, cols)
        ]
        qualified_count = len(detections)

        display_cap = max(0, int(max_displayed_detections))
        if len(detections) > display_cap:
            detections = sorted(detections, key=lambda d: d.intensity, reverse=True)[:display_cap]

        centroid = (
            float(motion.sum(axis=0) @ grid.xs) / total_motion,
            float(motion.sum(axis=1) @ grid.ys) / total_motion,
        )
        overall = total_motion / (width * height / FRAME_AREA_DIVISOR)

        return MotionFrameResult(
            detections=detections,
            centroid=centroid,
            overall_intensity=overall,
            detected=overall > DETECTION_FLOOR,
            qualified_count=qualified_count,
        )
