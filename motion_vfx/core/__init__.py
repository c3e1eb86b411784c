"""Core motion analysis components."""

from motion_vfx.core.frame import PixelFrame, FrameDifferencer
from motion_vfx.core.motion import MotionAggregator, MotionDetection, MotionFrameResult
from motion_vfx.core.coordinate_mapper import CameraModel, CoordinateMapper, MappingConfig
from motion_vfx.core.quality import (
    AdaptiveQualityController,
    EffectsState,
    QualityAdjustment,
    QualityConfig,
)
from motion_vfx.core.trigger_scheduler import (
    EffectParams,
    TriggerCommand,
    TriggerConfig,
    VFXTriggerScheduler,
)
from motion_vfx.core.indicators import MotionIndicator, build_indicators

__all__ = [
    "PixelFrame",
    "FrameDifferencer",
    "MotionAggregator",
    "MotionDetection",
    "MotionFrameResult",
    "CameraModel",
    "CoordinateMapper",
    "MappingConfig",
    "AdaptiveQualityController",
    "EffectsState",
    "QualityAdjustment",
    "QualityConfig",
    "EffectParams",
    "TriggerCommand",
    "TriggerConfig",
    "VFXTriggerScheduler",
    "MotionIndicator",
    "build_indicators",
]
