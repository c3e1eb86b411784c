#!/usr/bin/env python3
"""
Headless pipeline example.

This example demonstrates:
1. Building a MotionPipeline from the default configuration
2. Feeding it frames from the synthetic capture source
3. Reading detections and trigger commands from each FrameReport

No camera or display is needed; effects go to the logging backend.
"""

import time

from motion_vfx import AppConfig, MotionPipeline
from motion_vfx.capture import SyntheticCaptureSource
from motion_vfx.effects import LoggingEffectBackend
from motion_vfx.utils.logging import setup_logging


def main():
    setup_logging(file_logging=False)

    config = AppConfig()
    capture = SyntheticCaptureSource(config.capture.width, config.capture.height)
    backend = LoggingEffectBackend()
    pipeline = MotionPipeline(config, capture=capture, backend=backend)

    triggers = 0
    for _ in range(120):
        frame = capture.read()
        report = pipeline.process(frame, time.monotonic())
        triggers += len(report.commands)

        if report.result.detections:
            strongest = report.result.detections[0]
            print(f"frame {pipeline.frame_count:3d}: {len(report.result.detections)} regions, "
                  f"strongest at {strongest.position} ({strongest.intensity:.3f})")

        time.sleep(1.0 / 60)

    print(f"\n{triggers} effects triggered")
    print("\n".join(pipeline.hud_lines()))


if __name__ == "__main__":
    main()
