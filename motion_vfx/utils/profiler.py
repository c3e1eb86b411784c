"""
Stage profiler for the motion VFX pipeline.

Per-frame stage timing that shows where the frame budget goes (motion
detection, indicator update, quality control, effect scheduling). The
profiler only observes; nothing in the pipeline reads its numbers to make
decisions.

Usage:
    profiler = PerformanceProfiler(interval=5.0)

    # In the frame loop:
    profiler.begin_frame()
    detect_motion()
    profiler.mark("motion")
    update_indicators()
    profiler.mark("ui")
    ...
    profiler.end_frame()
"""

import time
from typing import Dict, List, Optional

import numpy as np

from motion_vfx.utils.logging import get_logger

logger = get_logger(__name__)

TOTAL = "total"


class _DurationWindow:
    """Ring buffer of the most recent durations (seconds)."""

    __slots__ = ("_buf", "_next", "_filled")

    def __init__(self, size: int = 300):
        self._buf = np.zeros(size, dtype=np.float64)
        self._next = 0
        self._filled = 0

    def add(self, value: float):
        self._buf[self._next] = value
        self._next = (self._next + 1) % len(self._buf)
        self._filled = min(self._filled + 1, len(self._buf))

    def __len__(self) -> int:
        return self._filled

    def values(self) -> np.ndarray:
        return self._buf[:self._filled]

    def mean(self) -> float:
        return float(self.values().mean()) if self._filled else 0.0

    def percentile(self, q: float) -> float:
        return float(np.percentile(self.values(), q)) if self._filled else 0.0

    def peak(self) -> float:
        return float(self.values().max()) if self._filled else 0.0


def _ms(seconds: float) -> str:
    return f"{seconds * 1000:.2f}ms"


class PerformanceProfiler:
    """Collects per-frame stage timings and logs periodic summaries.

    Stages appear as they are first marked between begin_frame() and
    end_frame(). Durations measured elsewhere can be added with record().

    Args:
        interval: Seconds between summary log outputs (0 disables reporting).
        window: Number of recent frames kept for the statistics.
    """

    def __init__(self, interval: float = 5.0, window: int = 300):
        self._interval = interval
        self._window = window

        self._stages: Dict[str, _DurationWindow] = {}
        self._totals = _DurationWindow(window)

        self._current: Dict[str, float] = {}
        self._last_frame: Dict[str, float] = {}
        self._frame_start: Optional[float] = None
        self._last_mark = 0.0

        self._report_start = time.monotonic()
        self._frames_since_report = 0

    def begin_frame(self):
        now = time.perf_counter()
        self._frame_start = now
        self._last_mark = now
        self._current = {}

    def mark(self, stage: str):
        """Time since the previous mark (or begin_frame) is booked to ``stage``."""
        now = time.perf_counter()
        self.record(stage, now - self._last_mark)
        self._last_mark = now

    def record(self, stage: str, duration: float):
        """Book an externally measured duration in seconds."""
        window = self._stages.get(stage)
        if window is None:
            window = self._stages[stage] = _DurationWindow(self._window)
        window.add(duration)
        self._current[stage] = self._current.get(stage, 0.0) + duration

    def end_frame(self):
        """Close the frame; logs a summary once per interval."""
        if self._frame_start is None:
            return
        total = time.perf_counter() - self._frame_start
        self._frame_start = None

        self._totals.add(total)
        self._current[TOTAL] = total
        self._last_frame, self._current = self._current, {}
        self._frames_since_report += 1

        if self._interval > 0:
            elapsed = time.monotonic() - self._report_start
            if elapsed >= self._interval:
                if len(self._totals):
                    logger.info("\n".join(self.summary_lines(elapsed)))
                self._report_start += elapsed
                self._frames_since_report = 0

    def last_frame(self) -> Dict[str, float]:
        """Stage durations of the last completed frame, plus ``total``."""
        return dict(self._last_frame)

    def stage_average(self, stage: str) -> float:
        window = self._stages.get(stage)
        return window.mean() if window else 0.0

    @property
    def stages(self) -> List[str]:
        """Stage names in first-seen order."""
        return list(self._stages)

    def summary_lines(self, elapsed: Optional[float] = None) -> List[str]:
        """Text table of avg / p95 / max per stage over the rolling window."""
        period = elapsed or self._interval
        fps = self._frames_since_report / period if period else 0.0
        rows = [(name, window) for name, window in self._stages.items() if len(window)]
        rows.append(("TOTAL", self._totals))

        lines = [
            f"=== PROFILE ({len(self._totals)} frames, {fps:.1f} FPS) ===",
            f"  {'stage':<12s} {'avg':>9s} {'p95':>9s} {'max':>9s}",
        ]
        lines.extend(
            f"  {name:<12s} {_ms(w.mean()):>9s} {_ms(w.percentile(95)):>9s} {_ms(w.peak()):>9s}"
            for name, w in rows
        )
        return lines
