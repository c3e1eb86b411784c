from motion_vfx.core.coordinate_mapper import CoordinateMapper
from motion_vfx.core.indicators import build_indicators, indicator_color, indicator_size
from motion_vfx.core.motion import MotionDetection, MotionFrameResult
from motion_vfx.utils.color import GREEN, RED


def _result(*detections):
    return MotionFrameResult(detections=list(detections), centroid=(0.0, 0.0),
                             overall_intensity=0.1, detected=True)


def test_indicator_size_is_clamped():
    assert indicator_size(0.0) == 15.0
    assert indicator_size(0.5) == 30.0
    assert indicator_size(2.0) == 50.0


def test_indicator_color_runs_green_to_red():
    assert indicator_color(0.0) == GREEN
    assert indicator_color(0.5) == RED
    assert indicator_color(0.2 / 3.0) == (51, 204, 0, 255)


def test_build_indicators_maps_to_ui_space():
    result = _result(MotionDetection((80.0, 80.0), 0.5), MotionDetection((0.0, 0.0), 0.0))

    indicators = build_indicators(result, CoordinateMapper(), 160, 160, (1280, 720))

    assert len(indicators) == 2
    assert indicators[0].ui_position == (0.0, 0.0)
    assert indicators[0].size == 30.0
    assert indicators[0].color == RED
    # Top-left pixel maps to the upper-left of the display (y up)
    assert indicators[1].ui_position == (-640.0, 360.0)
    assert indicators[1].color == GREEN


def test_hidden_indicators_build_nothing():
    result = _result(MotionDetection((80.0, 80.0), 0.5))
    assert build_indicators(result, CoordinateMapper(), 160, 160, (1280, 720), visible=False) == []
