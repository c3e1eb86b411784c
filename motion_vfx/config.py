"""
YAML configuration.

Every section maps onto a dataclass with ``from_dict``/``to_dict``; missing
keys fall back to defaults. Invalid values raise ConfigError when the file
is loaded, never later in the frame loop.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

import yaml

from motion_vfx.capture import CaptureConfig
from motion_vfx.core.coordinate_mapper import CameraModel, MappingConfig
from motion_vfx.core.quality import EffectsState, QualityConfig
from motion_vfx.core.trigger_scheduler import TriggerConfig
from motion_vfx.utils.color import Color, GREEN, RED, parse_color
from motion_vfx.utils.logging import get_logger

logger = get_logger(__name__)

BACKEND_LOG = "log"
BACKEND_SOCKET = "socket"


class ConfigError(ValueError):
    """Raised for unreadable or invalid configuration."""


@dataclass
class DetectionConfig:
    enabled: bool = True
    threshold: float = 0.3
    sensitivity: float = 6.0
    block_size: int = 32
    max_block_size: int = 64
    minimum_block_intensity: float = 0.002
    max_detections: int = 15
    max_displayed_detections: int = 8

    def __post_init__(self):
        if not 0.0 <= self.threshold <= 1.0:
            raise ValueError(f"detection.threshold must be within [0, 1], got {self.threshold}")
        if self.sensitivity <= 0:
            raise ValueError(f"detection.sensitivity must be positive, got {self.sensitivity}")

    @classmethod
    def from_dict(cls, data: dict) -> "DetectionConfig":
        return cls(
            enabled=bool(data.get('enabled', True)),
            threshold=float(data.get('threshold', 0.3)),
            sensitivity=float(data.get('sensitivity', 6.0)),
            block_size=int(data.get('block_size', 32)),
            max_block_size=int(data.get('max_block_size', 64)),
            minimum_block_intensity=float(data.get('minimum_block_intensity', 0.002)),
            max_detections=int(data.get('max_detections', 15)),
            max_displayed_detections=int(data.get('max_displayed_detections', 8)),
        )

    def to_dict(self) -> dict:
        return {
            'enabled': self.enabled,
            'threshold': self.threshold,
            'sensitivity': self.sensitivity,
            'block_size': self.block_size,
            'max_block_size': self.max_block_size,
            'minimum_block_intensity': self.minimum_block_intensity,
            'max_detections': self.max_detections,
            'max_displayed_detections': self.max_displayed_detections,
        }


@dataclass
class EffectsConfig:
    enabled: bool = True
    backend: str = BACKEND_LOG
    host: str = "127.0.0.1"
    port: int = 9999
    auto_reconnect: bool = True
    trigger: TriggerConfig = field(default_factory=TriggerConfig)

    def __post_init__(self):
        if self.backend not in (BACKEND_LOG, BACKEND_SOCKET):
            raise ValueError(f"effects.backend must be '{BACKEND_LOG}' or '{BACKEND_SOCKET}', got '{self.backend}'")
        if not 1 <= self.port <= 65535:
            raise ValueError(f"Invalid port {self.port}: must be between 1 and 65535")

    @classmethod
    def from_dict(cls, data: dict) -> "EffectsConfig":
        return cls(
            enabled=bool(data.get('enabled', True)),
            backend=str(data.get('backend', BACKEND_LOG)),
            host=str(data.get('host', "127.0.0.1")),
            port=int(data.get('port', 9999)),
            auto_reconnect=bool(data.get('auto_reconnect', True)),
            trigger=TriggerConfig.from_dict(data),
        )

    def to_dict(self) -> dict:
        data = {
            'enabled': self.enabled,
            'backend': self.backend,
            'host': self.host,
            'port': self.port,
            'auto_reconnect': self.auto_reconnect,
        }
        data.update(self.trigger.to_dict())
        return data


@dataclass
class PerformanceConfig:
    target_fps: float = 60.0
    adaptive_quality: bool = True
    profile: bool = False
    profile_interval: float = 5.0

    def __post_init__(self):
        if self.target_fps <= 0:
            raise ValueError(f"performance.target_fps must be positive, got {self.target_fps}")

    @classmethod
    def from_dict(cls, data: dict) -> "PerformanceConfig":
        return cls(
            target_fps=float(data.get('target_fps', 60.0)),
            adaptive_quality=bool(data.get('adaptive_quality', True)),
            profile=bool(data.get('profile', False)),
            profile_interval=float(data.get('profile_interval', 5.0)),
        )

    def to_dict(self) -> dict:
        return {
            'target_fps': self.target_fps,
            'adaptive_quality': self.adaptive_quality,
            'profile': self.profile,
            'profile_interval': self.profile_interval,
        }


@dataclass
class DisplayConfig:
    enabled: bool = True
    width: int = 1280
    height: int = 720
    fullscreen: bool = False
    show_indicators: bool = True
    indicator_low_color: Color = GREEN
    indicator_high_color: Color = RED

    @classmethod
    def from_dict(cls, data: dict) -> "DisplayConfig":
        return cls(
            enabled=bool(data.get('enabled', True)),
            width=int(data.get('width', 1280)),
            height=int(data.get('height', 720)),
            fullscreen=bool(data.get('fullscreen', False)),
            show_indicators=bool(data.get('show_indicators', True)),
            indicator_low_color=parse_color(data.get('indicator_low_color', list(GREEN))),
            indicator_high_color=parse_color(data.get('indicator_high_color', list(RED))),
        )

    def to_dict(self) -> dict:
        return {
            'enabled': self.enabled,
            'width': self.width,
            'height': self.height,
            'fullscreen': self.fullscreen,
            'show_indicators': self.show_indicators,
            'indicator_low_color': list(self.indicator_low_color),
            'indicator_high_color': list(self.indicator_high_color),
        }


@dataclass
class DebugConfig:
    show_debug_info: bool = False
    debug_coordinate_conversion: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "DebugConfig":
        return cls(
            show_debug_info=bool(data.get('show_debug_info', False)),
            debug_coordinate_conversion=bool(data.get('debug_coordinate_conversion', False)),
        )

    def to_dict(self) -> dict:
        return {
            'show_debug_info': self.show_debug_info,
            'debug_coordinate_conversion': self.debug_coordinate_conversion,
        }


@dataclass
class AppConfig:
    """Complete application configuration."""
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    effects: EffectsConfig = field(default_factory=EffectsConfig)
    mapping: MappingConfig = field(default_factory=MappingConfig)
    camera: CameraModel = field(default_factory=CameraModel)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    debug: DebugConfig = field(default_factory=DebugConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "AppConfig":
        """
        Build from a parsed YAML document.

        Raises:
            ConfigError: If a section is malformed or a value is invalid
        """
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration root must be a mapping, got {type(data).__name__}")

        def section(name: str) -> dict:
            value = data.get(name) or {}
            if not isinstance(value, dict):
                raise ConfigError(f"Section '{name}' must be a mapping")
            return value

        try:
            return cls(
                capture=CaptureConfig.from_dict(section('capture')),
                detection=DetectionConfig.from_dict(section('detection')),
                effects=EffectsConfig.from_dict(section('effects')),
                mapping=MappingConfig.from_dict(section('mapping')),
                camera=CameraModel.from_dict(section('camera')),
                performance=PerformanceConfig.from_dict(section('performance')),
                display=DisplayConfig.from_dict(section('display')),
                debug=DebugConfig.from_dict(section('debug')),
            )
        except (TypeError, ValueError) as e:
            if isinstance(e, ConfigError):
                raise
            raise ConfigError(str(e)) from e

    def to_dict(self) -> dict:
        return {
            'capture': self.capture.to_dict(),
            'detection': self.detection.to_dict(),
            'effects': self.effects.to_dict(),
            'mapping': self.mapping.to_dict(),
            'camera': self.camera.to_dict(),
            'performance': self.performance.to_dict(),
            'display': self.display.to_dict(),
            'debug': self.debug.to_dict(),
        }

    def quality_config(self) -> QualityConfig:
        """Initial shared quality settings derived from this configuration."""
        det = self.detection
        try:
            return QualityConfig(
                block_size_px=det.block_size,
                max_block_size_px=det.max_block_size,
                max_detections=det.max_detections,
                max_displayed_detections=det.max_displayed_detections,
                effects_state=EffectsState.ENABLED if self.effects.enabled else EffectsState.DISABLED,
                capture_resolution=(self.capture.width, self.capture.height),
            )
        except ValueError as e:
            raise ConfigError(str(e)) from e


def load_config(path: Optional[Union[str, Path]] = None) -> AppConfig:
    """
    Load configuration from a YAML file.

    Args:
        path: Path to the YAML file; None returns the defaults

    Raises:
        ConfigError: If the file is missing, unparsable or invalid
    """
    if path is None:
        logger.info("No config file specified, using defaults")
        return AppConfig()

    config_file = Path(path)
    if not config_file.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(config_file, 'r') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse {path}: {e}") from e

    config = AppConfig.from_dict(data)
    # Validates the detection caps early
    config.quality_config()
    logger.info(
        f"Config loaded: capture={config.capture.width}x{config.capture.height} "
        f"({config.capture.source}), target_fps={config.performance.target_fps}, "
        f"effects={config.effects.backend}"
    )
    return config
