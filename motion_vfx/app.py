#!/usr/bin/env python3
"""
Motion VFX - camera motion to particle effect triggers.

The app:
1. Loads the YAML configuration (CLI flags override file values)
2. Opens the capture source, the effect backend and the preview window
3. Runs the frame loop, feeding every new frame through the MotionPipeline
"""

import argparse
import os
import signal
import sys
import threading
import time
from typing import List, Optional

from motion_vfx.capture import SOURCE_CAMERA, SOURCE_SYNTHETIC, list_cameras, open_capture
from motion_vfx.config import BACKEND_LOG, BACKEND_SOCKET, AppConfig, ConfigError, load_config
from motion_vfx.core.quality import resolution_preset
from motion_vfx.effects import LoggingEffectBackend, SocketEffectBackend
from motion_vfx.pipeline import MotionPipeline
from motion_vfx.rendering import preview
from motion_vfx.utils.logging import get_logger, setup_logging
from motion_vfx.utils.profiler import PerformanceProfiler


class MotionVFXApp:
    """
    Frame loop around the MotionPipeline.

    Architecture:
        App
        ├── CaptureSource (camera or synthetic)
        ├── MotionPipeline
        │   ├── MotionAggregator / AdaptiveQualityController
        │   └── VFXTriggerScheduler -> EffectBackend
        └── PreviewRenderer (optional)
    """

    def __init__(self, config_path: Optional[str] = None, verbose: bool = False):
        """
        Args:
            config_path: Path to the configuration YAML
            verbose: Enable verbose logging
        """
        self.config_path = config_path
        self.verbose = verbose
        self.config = AppConfig()

        self.capture = None
        self.backend = None
        self.preview: Optional[preview.PreviewRenderer] = None
        self.pipeline: Optional[MotionPipeline] = None
        self.max_frames: Optional[int] = None
        self.cameras: Optional[List[int]] = None  # probed on the first camera switch

        self._running = threading.Event()
        self._running.set()

        self.logger = get_logger(__name__)

        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

    @property
    def running(self) -> bool:
        return self._running.is_set()

    @running.setter
    def running(self, value: bool):
        if value:
            self._running.set()
        else:
            self._running.clear()

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals. Second signal forces immediate exit."""
        signal_names = {signal.SIGTERM: "SIGTERM", signal.SIGINT: "SIGINT (Ctrl+C)"}
        signal_name = signal_names.get(signum, f"signal {signum}")

        if not self._running.is_set():
            self.logger.info(f"Force exit: Received {signal_name} during shutdown")
            os._exit(1)

        self.logger.info(f"Shutdown initiated: Received {signal_name}")
        self._running.clear()

    def load_config(self) -> bool:
        """
        Load configuration from YAML file.

        Returns:
            True if successful
        """
        try:
            self.config = load_config(self.config_path)
        except ConfigError as e:
            self.logger.error(f"Invalid configuration: {e}")
            return False
        return True

    def init(self) -> bool:
        """
        Open capture, effect backend and preview, and build the pipeline.

        Returns:
            True if the app is ready to run
        """
        cfg = self.config

        try:
            self.capture = open_capture(cfg.capture)
        except RuntimeError as e:
            self.logger.error(str(e))
            return False

        self.backend = self._create_backend()

        display_size = (cfg.display.width, cfg.display.height)
        if cfg.display.enabled:
            self.preview = preview.PreviewRenderer(cfg.display.width, cfg.display.height,
                                                   fullscreen=cfg.display.fullscreen)
            self.preview.init()
            display_size = self.preview.get_size()

        profiler = PerformanceProfiler(
            interval=cfg.performance.profile_interval if cfg.performance.profile else 0.0)
        self.pipeline = MotionPipeline(cfg, capture=self.capture, backend=self.backend,
                                       display_size=display_size, profiler=profiler)
        if cfg.performance.profile:
            self.logger.info(f"Profiling enabled (report every {cfg.performance.profile_interval}s)")
        return True

    def _create_backend(self):
        effects = self.config.effects
        if effects.backend == BACKEND_SOCKET:
            backend = SocketEffectBackend(effects.host, effects.port,
                                          auto_reconnect=effects.auto_reconnect)
            if not backend.connect():
                self.logger.warning("Effect server unavailable; triggers are dropped until it connects")
            return backend

        return LoggingEffectBackend()

    def _handle_action(self, action: str):
        mapping = self.config.mapping
        if action == preview.ACTION_QUIT:
            self.running = False
        elif action == preview.ACTION_TOGGLE_MIRROR:
            mapping.mirror = not mapping.mirror
            self.logger.info(f"Mirror {'on' if mapping.mirror else 'off'}")
        elif action == preview.ACTION_TOGGLE_FLIP:
            mapping.flip_vertical = not mapping.flip_vertical
            self.logger.info(f"Vertical flip {'on' if mapping.flip_vertical else 'off'}")
        elif action == preview.ACTION_TOGGLE_INDICATORS:
            self.pipeline.show_indicators = not self.pipeline.show_indicators
        elif action == preview.ACTION_TOGGLE_EFFECTS:
            self.pipeline.toggle_effects()
        elif action == preview.ACTION_NEXT_CAMERA:
            self._next_camera()
        elif action == preview.ACTION_RESTART_CAPTURE:
            capture = self.config.capture
            self.logger.info(f"Restarting capture at {capture.width}x{capture.height}")
            self.pipeline.restart_capture(capture.width, capture.height, manual=True)

    def _next_camera(self):
        """Cycle to the next available camera device."""
        if getattr(self.capture, "switch_camera", None) is None:
            self.logger.info("Camera switching needs a camera capture source")
            return

        current = self.capture.camera_index
        if self.cameras is None:
            # The open device may not probe as available, keep it in the cycle
            self.cameras = sorted(set(list_cameras()) | {current})
        if len(self.cameras) < 2:
            self.logger.info("No other camera available")
            return

        position = self.cameras.index(current) if current in self.cameras else -1
        next_index = self.cameras[(position + 1) % len(self.cameras)]
        self.logger.info(f"Switching camera {current} -> {next_index}")
        if self.pipeline.switch_camera(next_index):
            self.config.capture.camera_index = next_index

    def step(self) -> bool:
        """
        One loop iteration.

        Returns:
            True if a new frame was processed
        """
        if self.preview:
            for action in self.preview.handle_events():
                self._handle_action(action)

        now = time.monotonic()
        frame = self.capture.read()
        report = None
        if frame is None:
            self.pipeline.tick(now)
        else:
            report = self.pipeline.process(frame, now)

        if self.preview:
            mapping = self.config.mapping
            self.preview.draw_frame(frame, mirror=mapping.mirror, flip_vertical=mapping.flip_vertical)
            if self.pipeline.last_report is not None:
                self.preview.draw_indicators(self.pipeline.last_report.indicators)
            self.preview.draw_hud(self.pipeline.hud_lines())
            self.preview.flip()

        return report is not None

    def run(self):
        """Main frame loop."""
        self.logger.info("Starting frame loop...")
        frame_interval = 1.0 / self.config.performance.target_fps

        try:
            while self.running:
                started = time.monotonic()
                self.step()

                if self.max_frames is not None and self.pipeline.frame_count >= self.max_frames:
                    self.logger.info(f"Processed {self.pipeline.frame_count} frames, stopping")
                    break

                if self.preview:
                    self.preview.tick(int(self.config.performance.target_fps))
                else:
                    remaining = frame_interval - (time.monotonic() - started)
                    if remaining > 0:
                        time.sleep(remaining)

        except KeyboardInterrupt:
            self.logger.info("Keyboard interrupt received")
        except Exception as e:
            self.logger.error(f"Frame loop error: {e}")
            raise
        finally:
            self.shutdown()

    def shutdown(self):
        """Clean shutdown."""
        self.logger.info("Shutting down...")
        self._running.clear()

        if self.backend:
            self.backend.stop()
            if isinstance(self.backend, SocketEffectBackend):
                self.backend.disconnect()

        if self.capture:
            self.capture.release()

        if self.preview:
            self.preview.quit()

        if self.pipeline and self.config.performance.profile:
            self.logger.info("\n".join(self.pipeline.profiler.summary_lines()))

        self.logger.info("Shutdown complete")


def apply_overrides(config: AppConfig, args: argparse.Namespace):
    """Apply command line overrides to a loaded configuration."""
    if args.source:
        config.capture.source = args.source
    if args.camera is not None:
        config.capture.camera_index = args.camera
    if args.preset:
        config.capture.width, config.capture.height = resolution_preset(args.preset, config.capture.use_16x9)
    if args.width:
        config.capture.width = args.width
    if args.height:
        config.capture.height = args.height
    if args.target_fps:
        config.performance.target_fps = args.target_fps
    if args.no_display:
        config.display.enabled = False
    if args.backend:
        config.effects.backend = args.backend
    if args.host:
        config.effects.host = args.host
    if args.port:
        config.effects.port = args.port
    if args.no_effects:
        config.effects.enabled = False
    if args.debug:
        config.debug.show_debug_info = True
    if args.profile is not None:
        config.performance.profile = True
        config.performance.profile_interval = args.profile


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Motion VFX - trigger particle effects from camera motion"
    )
    parser.add_argument("-c", "--config", help="Path to configuration YAML")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--source", choices=[SOURCE_CAMERA, SOURCE_SYNTHETIC],
                        help="Frame source (default: camera)")
    parser.add_argument("--camera", type=int, help="Camera index")
    parser.add_argument("--list-cameras", action="store_true", help="List available cameras and exit")
    parser.add_argument("--preset", help="Named capture resolution preset (e.g. standard, light)")
    parser.add_argument("--width", type=int, help="Capture width")
    parser.add_argument("--height", type=int, help="Capture height")
    parser.add_argument("--target-fps", type=float, help="Target frame rate (default: 60)")
    parser.add_argument("--no-display", action="store_true", help="Run without the preview window")
    parser.add_argument("--no-effects", action="store_true", help="Start with effects disabled")
    parser.add_argument("--backend", choices=[BACKEND_LOG, BACKEND_SOCKET], help="Effect backend")
    parser.add_argument("--host", help="Effect server host (socket backend)")
    parser.add_argument("--port", "-p", type=int, help="Effect server port (socket backend)")
    parser.add_argument("--frames", type=int, help="Stop after this many processed frames")
    parser.add_argument("--debug", action="store_true", help="Log motion and performance diagnostics")
    parser.add_argument(
        "--profile",
        nargs="?",
        const=5.0,
        type=float,
        metavar="INTERVAL",
        help="Enable stage profiling (optional: report interval in seconds, default 5)"
    )
    return parser


def main(argv: Optional[List[str]] = None):
    """Entry point for the motion-vfx command."""
    args = build_parser().parse_args(argv)

    setup_logging(verbose=args.verbose)
    logger = get_logger(__name__)

    if args.list_cameras:
        list_cameras()
        return

    app = MotionVFXApp(config_path=args.config, verbose=args.verbose)
    if not app.load_config():
        sys.exit(1)

    try:
        apply_overrides(app.config, args)
        # Re-validate after overrides
        app.config = AppConfig.from_dict(app.config.to_dict())
        app.config.quality_config()
    except (ConfigError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    app.max_frames = args.frames

    if not app.init():
        app.shutdown()
        sys.exit(1)

    app.run()


if __name__ == "__main__":
    main()
