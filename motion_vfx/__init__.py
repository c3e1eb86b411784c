"""
Motion VFX - turn camera motion into located particle effect triggers.

This package provides a frame-driven pipeline where:
- Consecutive frames are differenced on a coarse block grid
- The strongest motion regions are ranked under a hard output cap
- An adaptive controller trades quality for frame-rate stability
- Motion is mapped to UI and world space and rate-limited into effect triggers
"""

from motion_vfx.core.frame import PixelFrame, FrameDifferencer
from motion_vfx.core.motion import MotionAggregator, MotionDetection, MotionFrameResult
from motion_vfx.core.coordinate_mapper import CameraModel, CoordinateMapper, MappingConfig
from motion_vfx.core.quality import AdaptiveQualityController, EffectsState, QualityConfig
from motion_vfx.core.trigger_scheduler import TriggerCommand, TriggerConfig, VFXTriggerScheduler
from motion_vfx.config import AppConfig, ConfigError, load_config
from motion_vfx.pipeline import FrameReport, MotionPipeline

__version__ = "1.0.0"
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
    "QualityConfig",
    "TriggerCommand",
    "TriggerConfig",
    "VFXTriggerScheduler",
    "AppConfig",
    "ConfigError",
    "load_config",
    "FrameReport",
    "MotionPipeline",
]
