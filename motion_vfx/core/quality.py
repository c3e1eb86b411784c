"""
Adaptive quality control.

Once per measurement window (about one second) the achieved frame rate is
compared against the target and the shared QualityConfig is adjusted:

    fps < 0.8 x target   degrade: double block size (capped), halve the
                         displayed-detection cap (floor 3); below 0.7 x
                         target also request a lower capture resolution;
                         below 0.6 x target suspend effects.
    fps > 1.2 x target   resume effects that were suspended for low FPS.

Effects are resumed at a stricter watermark than the one that suspended
them, so a frame rate hovering around one threshold cannot flap the state.
Block size and the displayed-detection cap are never restored
automatically.

The controller is the only writer of QualityConfig. It never touches
detections that were already computed for the current frame.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from motion_vfx.utils.logging import get_logger

logger = get_logger(__name__)

# FPS / target ratios (watermarks)
DEGRADE_RATIO = 0.8
RESOLUTION_STEP_RATIO = 0.7
EFFECTS_SUSPEND_RATIO = 0.6
RECOVERY_CHECK_RATIO = 1.1
EFFECTS_RESUME_RATIO = 1.2

MIN_DISPLAYED_DETECTIONS = 3
MIN_CAPTURE_WIDTH = 320
DEFAULT_WINDOW = 1.0

# (minimum current width, next resolution)
RESOLUTION_LADDER_16X9: List[Tuple[int, Tuple[int, int]]] = [
    (1280, (854, 480)),
    (854, (640, 360)),
    (640, (480, 270)),
    (480, (320, 180)),
]
RESOLUTION_LADDER_4X3: List[Tuple[int, Tuple[int, int]]] = [
    (1280, (640, 480)),
    (640, (480, 360)),
    (480, (320, 240)),
]

# Named capture presets: (name, width, height)
RESOLUTION_PRESETS_16X9 = [
    ("ultra_light", 320, 180),
    ("light", 480, 270),
    ("standard", 640, 360),
    ("high", 854, 480),
    ("full_hd", 1920, 1080),
]
RESOLUTION_PRESETS_4X3 = [
    ("ultra_light", 320, 240),
    ("light", 480, 360),
    ("standard", 640, 480),
    ("high", 800, 600),
    ("ultra_high", 1024, 768),
]


class EffectsState(Enum):
    """Whether effect triggering is allowed."""
    ENABLED = "enabled"
    SUSPENDED_LOW_FPS = "suspended_low_fps"  # resumed automatically on recovery
    DISABLED = "disabled"                    # manual, never resumed automatically


def next_resolution(width: int, height: int, use_16x9: bool = True) -> Tuple[int, int]:
    """Next step down the capture resolution ladder (unchanged at the bottom)."""
    ladder = RESOLUTION_LADDER_16X9 if use_16x9 else RESOLUTION_LADDER_4X3
    for min_width, target in ladder:
        if width >= min_width:
            return target
    return (width, height)


def resolution_preset(name: str, use_16x9: bool = True) -> Tuple[int, int]:
    """
    Look up a named capture resolution preset.

    Raises:
        ValueError: If the preset name is unknown
    """
    presets = RESOLUTION_PRESETS_16X9 if use_16x9 else RESOLUTION_PRESETS_4X3
    for preset_name, width, height in presets:
        if preset_name == name:
            return (width, height)
    names = ", ".join(p[0] for p in presets)
    raise ValueError(f"Unknown resolution preset '{name}' (available: {names})")


@dataclass
class QualityConfig:
    """Process-wide quality settings shared by all pipeline stages."""
    block_size_px: int = 32
    max_block_size_px: int = 64
    max_detections: int = 15
    max_displayed_detections: int = 8
    effects_state: EffectsState = EffectsState.ENABLED
    capture_resolution: Tuple[int, int] = (640, 360)
    initial_max_displayed_detections: int = field(init=False, default=0)

    def __post_init__(self):
        if self.block_size_px <= 0:
            raise ValueError(f"block_size_px must be positive, got {self.block_size_px}")
        if self.max_block_size_px < self.block_size_px:
            raise ValueError(
                f"max_block_size_px ({self.max_block_size_px}) is smaller than "
                f"block_size_px ({self.block_size_px})"
            )
        if self.max_detections < 1:
            raise ValueError(f"max_detections must be at least 1, got {self.max_detections}")
        if self.max_displayed_detections < 1:
            raise ValueError(
                f"max_displayed_detections must be at least 1, got {self.max_displayed_detections}"
            )
        # The displayed list is a subset of the collected list
        self.max_displayed_detections = min(self.max_displayed_detections, self.max_detections)
        self.initial_max_displayed_detections = self.max_displayed_detections

    @property
    def effects_enabled(self) -> bool:
        return self.effects_state == EffectsState.ENABLED

    def reset_display_cap(self):
        """Restore the configured displayed-detection cap (manual reset)."""
        self.max_displayed_detections = self.initial_max_displayed_detections


@dataclass
class QualityAdjustment:
    """What one measurement window changed."""
    fps: float
    degraded: bool = False
    block_size_changed: bool = False
    display_cap_changed: bool = False
    effects_suspended: bool = False
    effects_resumed: bool = False
    resolution_request: Optional[Tuple[int, int]] = None

    @property
    def changed(self) -> bool:
        return (self.block_size_changed or self.display_cap_changed or
                self.effects_suspended or self.effects_resumed or
                self.resolution_request is not None)


class AdaptiveQualityController:
    """
    Frame-rate feedback loop over a QualityConfig.

    Args:
        config: Shared quality settings (mutated in place)
        target_fps: Frame rate the installation should hold
        adaptive: When False, FPS is still measured but nothing is adjusted
        window: Measurement window length in seconds
        use_16x9: Which capture resolution ladder to step down
    """

    def __init__(self, config: QualityConfig, target_fps: float = 60.0,
                 adaptive: bool = True, window: float = DEFAULT_WINDOW,
                 use_16x9: bool = True):
        if target_fps <= 0:
            raise ValueError(f"target_fps must be positive, got {target_fps}")
        self.config = config
        self.target_fps = float(target_fps)
        self.adaptive = adaptive
        self.window = window
        self.use_16x9 = use_16x9

        self.current_fps: float = self.target_fps
        self._window_start: Optional[float] = None
        self._frame_count = 0

    def is_degraded(self) -> bool:
        """True while the last measured FPS is below the degrade watermark."""
        return self.current_fps < self.target_fps * DEGRADE_RATIO

    def tick(self, now: float) -> Optional[QualityAdjustment]:
        """
        Count one frame; evaluate when the measurement window has elapsed.

        Args:
            now: Monotonic time in seconds

        Returns:
            QualityAdjustment for a completed window, else None
        """
        if self._window_start is None:
            self._window_start = now
            self._frame_count = 0
            return None

        self._frame_count += 1
        elapsed = now - self._window_start
        if elapsed < self.window:
            return None

        self.current_fps = self._frame_count / elapsed
        self._frame_count = 0
        self._window_start = now

        if not self.adaptive:
            return QualityAdjustment(fps=self.current_fps)
        return self.evaluate(self.current_fps)

    def evaluate(self, fps: float) -> QualityAdjustment:
        """Apply one window's policy for an achieved frame rate."""
        self.current_fps = fps
        cfg = self.config
        target = self.target_fps
        result = QualityAdjustment(fps=fps)

        if fps < target * DEGRADE_RATIO:
            result.degraded = True

            width, height = cfg.capture_resolution
            if width > MIN_CAPTURE_WIDTH and fps < target * RESOLUTION_STEP_RATIO:
                new_size = next_resolution(width, height, self.use_16x9)
                if new_size != (width, height):
                    result.resolution_request = new_size
                    logger.warning(
                        f"Requesting capture resolution {width}x{height} -> "
                        f"{new_size[0]}x{new_size[1]} due to low FPS: {fps:.1f}"
                    )

            if cfg.effects_state == EffectsState.ENABLED and fps < target * EFFECTS_SUSPEND_RATIO:
                cfg.effects_state = EffectsState.SUSPENDED_LOW_FPS
                result.effects_suspended = True
                logger.warning(f"Effects suspended due to low FPS: {fps:.1f}")

            if cfg.block_size_px < cfg.max_block_size_px:
                cfg.block_size_px = min(cfg.max_block_size_px, cfg.block_size_px * 2)
                result.block_size_changed = True
                logger.warning(f"Motion detection quality reduced. Block size: {cfg.block_size_px}")

            if cfg.max_displayed_detections > MIN_DISPLAYED_DETECTIONS:
                cfg.max_displayed_detections = max(MIN_DISPLAYED_DETECTIONS,
                                                   cfg.max_displayed_detections // 2)
                result.display_cap_changed = True
                logger.warning(f"Displayed detections reduced to: {cfg.max_displayed_detections}")

        elif fps > target * RECOVERY_CHECK_RATIO:
            if cfg.effects_state == EffectsState.SUSPENDED_LOW_FPS and fps > target * EFFECTS_RESUME_RATIO:
                cfg.effects_state = EffectsState.ENABLED
                result.effects_resumed = True
                logger.info(f"Effects re-enabled due to stable FPS: {fps:.1f}")

        return result

    def set_effects_enabled(self, enabled: bool):
        """Manual effect toggle. A manual disable is never lifted automatically."""
        self.config.effects_state = EffectsState.ENABLED if enabled else EffectsState.DISABLED
        logger.info(f"Effects {'enabled' if enabled else 'disabled'} manually")
