"""
Effect trigger scheduling.

Converts the ranked detection list of a frame into TriggerCommands under a
global per-frame delay, a trailing one-second rate cap (standard mode only)
and per-slot cooldowns. Slots are keyed by ranked-detection index, so a
slot's cooldown belongs to "the n-th strongest region this frame", not to a
physical region of the image.
"""

from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Deque, List, Optional, Sequence, Set, Tuple

import numpy as np

from motion_vfx.core.coordinate_mapper import CameraModel, CoordinateMapper
from motion_vfx.core.motion import MotionDetection
from motion_vfx.utils.logging import get_logger

if TYPE_CHECKING:
    from motion_vfx.effects.base import EffectBackend

logger = get_logger(__name__)

# Trailing window of the global rate cap (seconds)
RATE_WINDOW = 1.0

# Scheduling is skipped entirely below this fraction of the target FPS
MIN_FPS_RATIO = 0.5

CONTINUOUS_DELAY_FACTOR = 0.3
HIGH_INTENSITY_DELAY_FACTOR = 0.5

MAX_CHECKED = 15
MAX_CHECKED_BELOW_TARGET = 8
MAX_FIRED_CONTINUOUS = 3
MAX_FIRED_STANDARD = 1


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass
class TriggerConfig:
    """Trigger policy settings."""
    trigger_delay: float = 0.3
    intensity_threshold: float = 0.05
    low_intensity_threshold: float = 0.02
    high_intensity_threshold: float = 0.15
    max_triggers_per_second: int = 10
    continuous: bool = True

    def __post_init__(self):
        if self.trigger_delay < 0:
            raise ValueError(f"trigger_delay must be non-negative, got {self.trigger_delay}")
        if self.max_triggers_per_second < 1:
            raise ValueError(
                f"max_triggers_per_second must be at least 1, got {self.max_triggers_per_second}"
            )

    @property
    def actual_delay(self) -> float:
        """Global delay between trigger passes for the current mode."""
        if self.continuous:
            return self.trigger_delay * CONTINUOUS_DELAY_FACTOR
        return self.trigger_delay

    @property
    def fire_threshold(self) -> float:
        return self.low_intensity_threshold if self.continuous else self.intensity_threshold

    @property
    def max_fired(self) -> int:
        return MAX_FIRED_CONTINUOUS if self.continuous else MAX_FIRED_STANDARD

    def to_dict(self) -> dict:
        return {
            'trigger_delay': self.trigger_delay,
            'intensity_threshold': self.intensity_threshold,
            'low_intensity_threshold': self.low_intensity_threshold,
            'high_intensity_threshold': self.high_intensity_threshold,
            'max_triggers_per_second': self.max_triggers_per_second,
            'continuous': self.continuous,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TriggerConfig":
        return cls(
            trigger_delay=float(data.get('trigger_delay', 0.3)),
            intensity_threshold=float(data.get('intensity_threshold', 0.05)),
            low_intensity_threshold=float(data.get('low_intensity_threshold', 0.02)),
            high_intensity_threshold=float(data.get('high_intensity_threshold', 0.15)),
            max_triggers_per_second=int(data.get('max_triggers_per_second', 10)),
            continuous=bool(data.get('continuous', True)),
        )


@dataclass
class TriggerSlot:
    """Cooldown state of one ranked-detection index. None means never fired."""
    last_trigger_time: Optional[float] = None

    def ready(self, now: float, required_delay: float) -> bool:
        return self.last_trigger_time is None or now - self.last_trigger_time >= required_delay


class RecentTriggerLog:
    """Trigger timestamps within the trailing rate window, oldest first."""

    def __init__(self, window: float = RATE_WINDOW):
        self.window = window
        self._times: Deque[float] = deque()

    def __len__(self) -> int:
        return len(self._times)

    def prune(self, now: float):
        """Drop entries older than the window."""
        while self._times and now - self._times[0] > self.window:
            self._times.popleft()

    def add(self, now: float):
        self._times.append(now)

    def clear(self):
        self._times.clear()

    @property
    def times(self) -> Tuple[float, ...]:
        return tuple(self._times)


@dataclass
class EffectParams:
    """Per-trigger particle parameters derived from detection intensity."""
    scale: float
    burst_count: int
    max_particles: int


@dataclass
class TriggerCommand:
    """One effect invocation, consumed once by the effect backend."""
    world_position: np.ndarray
    intensity: float
    params: EffectParams
    source_position: Tuple[float, float] = (0.0, 0.0)  # pixel-space detection center


def effect_params(intensity: float, below_target: bool) -> Tuple[float, EffectParams]:
    """
    Map a detection intensity to the normalized intensity and particle parameters.

    Returns:
        (intensity clamped to [0, 1], EffectParams)
    """
    return (
        _clamp(intensity * 2.0, 0.0, 1.0),
        EffectParams(
            scale=_clamp(intensity * 5.0, 0.5, 3.0),
            burst_count=int(_clamp(round(intensity * 50.0), 10, 100)),
            max_particles=50 if below_target else 100,
        ),
    )


class VFXTriggerScheduler:
    """
    Rate-limited, intensity-tiered trigger policy.

    Args:
        config: Trigger policy settings (read on every pass)
        mapper: Coordinate mapper used to place effects in world space
    """

    def __init__(self, config: Optional[TriggerConfig] = None,
                 mapper: Optional[CoordinateMapper] = None,
                 debug: bool = False):
        self.config = config or TriggerConfig()
        self.mapper = mapper or CoordinateMapper()
        self.debug = debug

        self.slots: List[TriggerSlot] = []
        self.recent = RecentTriggerLog()
        self.last_global_trigger: Optional[float] = None
        self._skip_logged: Set[str] = set()

    def reset(self):
        """Clear cooldown slots, the rate log and the global timestamp."""
        self.slots.clear()
        self.recent.clear()
        self.last_global_trigger = None
        logger.debug("Trigger state reset")

    def _log_skip(self, reason: str):
        # Log each missing-collaborator reason once at WARNING, then at DEBUG
        if reason not in self._skip_logged:
            self._skip_logged.add(reason)
            logger.warning(f"Effect scheduling skipped: {reason}")
        else:
            logger.debug(f"Effect scheduling skipped: {reason}")

    def schedule(self, detections: Sequence[MotionDetection],
                 frame_size: Tuple[int, int], now: float,
                 fps: float, target_fps: float, effects_enabled: bool,
                 camera: Optional[CameraModel], screen_height: float,
                 backend: Optional["EffectBackend"] = None) -> List[TriggerCommand]:
        """
        Run one scheduling pass.

        Args:
            detections: Ranked detections of this frame (strongest first)
            frame_size: (width, height) of the frame the detections came from
            now: Monotonic time in seconds
            fps: Last measured frame rate
            target_fps: Frame rate the pipeline aims for
            effects_enabled: Current effect state
            camera: Virtual camera the effects are placed with
            screen_height: Display height used for the spawn distance
            backend: Effect backend receiving the commands

        Returns:
            Commands emitted this pass (already sent to ``backend``)
        """
        if not effects_enabled:
            return []
        if backend is None:
            self._log_skip("no effect backend")
            return []
        if camera is None:
            self._log_skip("no camera model")
            return []
        if fps < target_fps * MIN_FPS_RATIO:
            logger.debug(f"Effects skipped due to very low FPS: {fps:.1f}")
            return []

        cfg = self.config
        self.recent.prune(now)

        if not cfg.continuous and len(self.recent) >= cfg.max_triggers_per_second:
            logger.debug(f"Effects rate limited: {len(self.recent)}/{cfg.max_triggers_per_second} triggers")
            return []

        actual_delay = cfg.actual_delay
        if self.last_global_trigger is not None and now - self.last_global_trigger < actual_delay:
            return []

        while len(self.slots) < len(detections):
            self.slots.append(TriggerSlot())

        below_target = fps < target_fps
        check_count = min(len(detections), MAX_CHECKED_BELOW_TARGET if below_target else MAX_CHECKED)
        threshold = cfg.fire_threshold

        candidates = []
        for i in range(check_count):
            intensity = detections[i].intensity
            if intensity <= threshold:
                continue
            required = actual_delay * HIGH_INTENSITY_DELAY_FACTOR \
                if intensity > cfg.high_intensity_threshold else actual_delay
            if self.slots[i].ready(now, required):
                candidates.append(i)

        width, height = frame_size
        commands = []
        for i in candidates[:cfg.max_fired]:
            if not cfg.continuous and len(self.recent) >= cfg.max_triggers_per_second:
                break
            detection = detections[i]
            world = self.mapper.camera_to_world(detection.position, width, height,
                                                camera, screen_height)
            intensity, params = effect_params(detection.intensity, below_target)
            command = TriggerCommand(world_position=world, intensity=intensity,
                                     params=params, source_position=detection.position)
            backend.trigger(command)
            commands.append(command)

            self.slots[i].last_trigger_time = now
            self.last_global_trigger = now
            self.recent.add(now)

        if commands and self.debug:
            logger.info(
                f"Effects triggered: {len(commands)} of {len(candidates)} candidates "
                f"(mode: {'continuous' if cfg.continuous else 'standard'}, "
                f"triggers this second: {len(self.recent)}/{cfg.max_triggers_per_second}, "
                f"FPS: {fps:.1f})"
            )
        return commands
