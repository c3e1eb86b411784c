"""
Per-frame motion pipeline.

MotionPipeline owns the process-wide state (quality settings, prior frame,
trigger slots) and runs the stages in a fixed order for every new frame:

    motion   -> difference against the prior frame and aggregate blocks
    ui       -> build indicators for the displayed detections
    quality  -> count the frame, adjust quality once per window
    vfx      -> schedule effect triggers

Each stage is timed by the PerformanceProfiler.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from motion_vfx.config import AppConfig
from motion_vfx.core.coordinate_mapper import CoordinateMapper
from motion_vfx.core.frame import FrameDifferencer, PixelFrame
from motion_vfx.core.indicators import MotionIndicator, build_indicators
from motion_vfx.core.motion import MotionAggregator, MotionFrameResult
from motion_vfx.core.quality import AdaptiveQualityController, EffectsState, QualityAdjustment
from motion_vfx.core.trigger_scheduler import TriggerCommand, VFXTriggerScheduler
from motion_vfx.utils.logging import get_logger
from motion_vfx.utils.profiler import PerformanceProfiler

logger = get_logger(__name__)

# Diagnostics are logged every this many processed frames
DIAGNOSTIC_INTERVAL = 60

STAGES = ("motion", "ui", "quality", "vfx")


@dataclass
class FrameReport:
    """Everything one pipeline pass produced."""
    result: MotionFrameResult
    frame_size: Tuple[int, int]
    indicators: List[MotionIndicator] = field(default_factory=list)
    commands: List[TriggerCommand] = field(default_factory=list)
    adjustment: Optional[QualityAdjustment] = None
    timings: Dict[str, float] = field(default_factory=dict)


class MotionPipeline:
    """
    Wires the motion stages together.

    Args:
        config: Application configuration
        capture: Capture source; receives resolution step-down requests
        backend: Effect backend (None skips effect scheduling)
        display_size: (width, height) of the display area for UI mapping
        profiler: Stage profiler (one is created if omitted)
    """

    def __init__(self, config: AppConfig, capture=None, backend=None,
                 display_size: Tuple[int, int] = (1280, 720),
                 profiler: Optional[PerformanceProfiler] = None):
        self.config = config
        self.capture = capture
        self.backend = backend
        self.display_size = display_size

        perf = config.performance
        det = config.detection

        self.quality = config.quality_config()
        self.mapper = CoordinateMapper(config.mapping,
                                       debug_conversion=config.debug.debug_coordinate_conversion)
        self.differencer = FrameDifferencer()
        self.aggregator = MotionAggregator(
            threshold=det.threshold,
            sensitivity=det.sensitivity,
            minimum_block_intensity=det.minimum_block_intensity,
            differencer=self.differencer,
        )
        self.controller = AdaptiveQualityController(
            self.quality,
            target_fps=perf.target_fps,
            adaptive=perf.adaptive_quality,
            use_16x9=config.capture.use_16x9,
        )
        self.scheduler = VFXTriggerScheduler(config.effects.trigger, self.mapper,
                                             debug=config.debug.show_debug_info)
        self.camera = config.camera
        self.show_indicators = config.display.show_indicators
        self.profiler = profiler or PerformanceProfiler(
            interval=perf.profile_interval if perf.profile else 0.0)

        self.frame_count = 0
        self.last_report: Optional[FrameReport] = None

    @property
    def debug(self) -> bool:
        return self.config.debug.show_debug_info

    def process(self, frame: PixelFrame, now: float) -> FrameReport:
        """
        Run every stage for a newly captured frame.

        Args:
            frame: Newly captured frame
            now: Monotonic time in seconds

        Returns:
            FrameReport for this frame
        """
        q = self.quality
        self.profiler.begin_frame()
        self.frame_count += 1
        q.capture_resolution = frame.size

        if self.config.detection.enabled:
            result = self.aggregator.update(
                frame, q.block_size_px, q.max_detections, q.max_displayed_detections,
                degraded=self.controller.is_degraded(),
            )
        else:
            result = MotionFrameResult()
        self.profiler.mark("motion")

        indicators = build_indicators(
            result, self.mapper, frame.width, frame.height, self.display_size,
            visible=self.show_indicators,
            low_color=self.config.display.indicator_low_color,
            high_color=self.config.display.indicator_high_color,
        )
        self.profiler.mark("ui")

        adjustment = self._update_quality(now)
        self.profiler.mark("quality")

        commands = self.scheduler.schedule(
            result.detections, frame.size, now,
            fps=self.controller.current_fps,
            target_fps=self.controller.target_fps,
            effects_enabled=q.effects_enabled,
            camera=self.camera,
            screen_height=self.display_size[1],
            backend=self.backend,
        )
        self.profiler.mark("vfx")
        self.profiler.end_frame()

        report = FrameReport(
            result=result,
            frame_size=frame.size,
            indicators=indicators,
            commands=commands,
            adjustment=adjustment,
            timings=self.profiler.last_frame(),
        )
        self.last_report = report

        if self.debug and self.frame_count % DIAGNOSTIC_INTERVAL == 0:
            self._log_diagnostics(report)
        return report

    def tick(self, now: float) -> Optional[QualityAdjustment]:
        """Count a loop iteration without a new frame so FPS keeps being measured."""
        return self._update_quality(now)

    def _update_quality(self, now: float) -> Optional[QualityAdjustment]:
        adjustment = self.controller.tick(now)
        if adjustment is None:
            return None

        if adjustment.effects_suspended:
            if self.backend is not None:
                self.backend.stop()
            self.scheduler.reset()

        if adjustment.resolution_request is not None:
            width, height = adjustment.resolution_request
            self.restart_capture(width, height)

        if self.debug:
            logger.info(f"FPS: {adjustment.fps:.1f} (target {self.controller.target_fps:.0f})")
        return adjustment

    def restart_capture(self, width: int, height: int, manual: bool = False) -> bool:
        """
        Restart capture at a new resolution and drop frame-coupled state.

        Args:
            width: Requested capture width
            height: Requested capture height
            manual: Operator-initiated (restores the displayed-detection cap)

        Returns:
            True if the capture source accepted the new resolution
        """
        self._reset_frame_state(manual)

        ok = True
        if self.capture is not None:
            ok = self.capture.restart(width, height)
            if not ok:
                logger.error(f"Capture restart at {width}x{height} failed")
        self.quality.capture_resolution = (width, height)
        return ok

    def switch_camera(self, camera_index: int) -> bool:
        """
        Move capture to another device (operator action, restores the display cap).

        Returns:
            True if the new device opened
        """
        self._reset_frame_state(manual=True)
        ok = self.capture.switch_camera(camera_index)
        if ok:
            self.quality.capture_resolution = self.capture.size
        else:
            logger.error(f"Switching to camera {camera_index} failed")
        return ok

    def _reset_frame_state(self, manual: bool):
        self.aggregator.reset()
        self.scheduler.reset()
        if manual:
            self.quality.reset_display_cap()

    def set_effects_enabled(self, enabled: bool):
        """Manual effect toggle from the operator."""
        self.controller.set_effects_enabled(enabled)
        if not enabled:
            if self.backend is not None:
                self.backend.stop()
            self.scheduler.reset()

    def toggle_effects(self) -> bool:
        enabled = self.quality.effects_state != EffectsState.ENABLED
        self.set_effects_enabled(enabled)
        return enabled

    def hud_lines(self) -> List[str]:
        """Status lines for the preview HUD."""
        q = self.quality
        report = self.last_report
        shown = len(report.result.detections) if report else 0
        collected = report.result.qualified_count if report else 0
        return [
            f"FPS {self.controller.current_fps:5.1f} / {self.controller.target_fps:.0f}",
            f"Capture {q.capture_resolution[0]}x{q.capture_resolution[1]}  block {q.block_size_px}px",
            f"Detections {shown}/{collected}  (cap {q.max_displayed_detections}/{q.max_detections})",
            f"Effects {q.effects_state.value}",
        ]

    def _log_diagnostics(self, report: FrameReport):
        result = report.result
        if result.detected and result.centroid is not None:
            logger.info(
                f"Motion at ({result.centroid[0]:.0f}, {result.centroid[1]:.0f}), "
                f"overall intensity {result.overall_intensity:.4f}, "
                f"{len(result.detections)} shown of {result.qualified_count}"
            )
        else:
            logger.info("No motion detected")

        timings = report.timings
        logger.info(
            "Performance: " +
            ", ".join(f"{stage} {timings.get(stage, 0.0) * 1000:.2f}ms" for stage in STAGES) +
            f", total {timings.get('total', 0.0) * 1000:.2f}ms; "
            f"capture {report.frame_size[0]}x{report.frame_size[1]} "
            f"({report.frame_size[0] * report.frame_size[1]:,} pixels), "
            f"block {self.quality.block_size_px}px"
        )
