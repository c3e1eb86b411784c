"""On-screen motion indicators derived from ranked detections."""

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from motion_vfx.core.coordinate_mapper import CoordinateMapper
from motion_vfx.core.motion import MotionFrameResult
from motion_vfx.utils.color import GREEN, RED, Color, clamp01, lerp_color

MIN_INDICATOR_SIZE = 15.0
MAX_INDICATOR_SIZE = 50.0
SIZE_PER_INTENSITY = 30.0
COLOR_PER_INTENSITY = 3.0


@dataclass
class MotionIndicator:
    """A circle drawn over the preview: UI offset from the display center, diameter, RGBA."""
    ui_position: Tuple[float, float]
    size: float
    color: Color


def indicator_size(intensity: float) -> float:
    return max(MIN_INDICATOR_SIZE,
               min(MAX_INDICATOR_SIZE, MIN_INDICATOR_SIZE + intensity * SIZE_PER_INTENSITY))


def indicator_color(intensity: float, low: Color = GREEN, high: Color = RED) -> Color:
    return lerp_color(low, high, clamp01(intensity * COLOR_PER_INTENSITY))


def build_indicators(result: MotionFrameResult, mapper: CoordinateMapper,
                     width: int, height: int, display_size: Sequence[float],
                     visible: bool = True, low_color: Color = GREEN,
                     high_color: Color = RED) -> List[MotionIndicator]:
    """
    Build one indicator per displayed detection.

    Args:
        result: Aggregation result (already capped to the display limit)
        mapper: Maps pixel positions to UI offsets
        width: Frame width in pixels
        height: Frame height in pixels
        display_size: (width, height) of the display area
        visible: When False no indicators are built
        low_color: Color at zero intensity
        high_color: Color at full intensity

    Returns:
        List of MotionIndicator in detection order
    """
    if not visible:
        return []
    return [
        MotionIndicator(
            ui_position=mapper.camera_to_ui(d.position, width, height, display_size),
            size=indicator_size(d.intensity),
            color=indicator_color(d.intensity, low_color, high_color),
        )
        for d in result.detections
    ]
