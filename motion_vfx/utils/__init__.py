"""Utility components for the motion VFX pipeline."""

from motion_vfx.utils.logging import setup_logging, get_logger
from motion_vfx.utils.color import parse_color, normalize_color, lerp_color
from motion_vfx.utils.profiler import PerformanceProfiler

__all__ = [
    "setup_logging",
    "get_logger",
    "parse_color",
    "normalize_color",
    "lerp_color",
    "PerformanceProfiler",
]
