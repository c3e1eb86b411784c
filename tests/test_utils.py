import logging
import time

import pytest

from motion_vfx.utils.color import lerp_color, normalize_color, parse_color
from motion_vfx.utils.logging import get_logger, setup_logging
from motion_vfx.utils.profiler import PerformanceProfiler


def test_parse_color_formats():
    assert parse_color("#FF8000") == (255, 128, 0, 255)
    assert parse_color("#FF800080") == (255, 128, 0, 128)
    assert parse_color("0, 255, 0") == (0, 255, 0, 255)
    assert parse_color([1.0, 0.0, 0.0]) == (255, 0, 0, 255)
    assert parse_color((10, 20, 300, 40)) == (10, 20, 255, 40)


def test_parse_color_rejects_garbage():
    with pytest.raises(ValueError):
        parse_color("not-a-color")
    with pytest.raises(ValueError):
        parse_color(42)
    with pytest.raises(ValueError):
        normalize_color((1, 2))


def test_lerp_color_clamps_factor():
    start, end = (0, 0, 0, 255), (200, 100, 50, 255)
    assert lerp_color(start, end, 0.5) == (100, 50, 25, 255)
    assert lerp_color(start, end, 4.0) == end
    assert lerp_color(start, end, -1.0) == start


def test_profiler_records_stages_per_frame():
    profiler = PerformanceProfiler(interval=0)

    profiler.begin_frame()
    time.sleep(0.001)
    profiler.mark("motion")
    profiler.mark("vfx")
    profiler.end_frame()

    last = profiler.last_frame()
    assert set(last) == {"motion", "vfx", "total"}
    assert last["motion"] > 0
    assert last["total"] >= last["motion"] + last["vfx"]
    assert profiler.stages == ["motion", "vfx"]
    assert profiler.stage_average("motion") == pytest.approx(last["motion"])
    assert profiler.stage_average("unknown") == 0.0


def test_profiler_summary_lists_stages():
    profiler = PerformanceProfiler(interval=0)
    for _ in range(3):
        profiler.begin_frame()
        profiler.mark("motion")
        profiler.record("ui", 0.002)
        profiler.end_frame()

    lines = profiler.summary_lines(elapsed=1.0)

    assert lines[0].startswith("=== PROFILE (3 frames")
    assert any(line.strip().startswith("ui") and "2.00ms" in line for line in lines)
    assert lines[-1].strip().startswith("TOTAL")


def test_end_frame_without_begin_is_ignored():
    profiler = PerformanceProfiler(interval=0)
    profiler.end_frame()
    assert profiler.last_frame() == {}


def test_setup_logging_writes_to_given_file(tmp_path):
    log_file = tmp_path / "motion.log"
    logger = setup_logging(verbose=True, log_file=str(log_file))

    assert logger.name == "motion_vfx"
    assert logger.level == logging.DEBUG
    assert get_logger("motion_vfx.test").name == "motion_vfx.test"
