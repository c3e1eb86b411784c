import signal

import pytest

from motion_vfx import app as app_module
from motion_vfx.app import MotionVFXApp, apply_overrides, build_parser, main
from motion_vfx.config import AppConfig
from motion_vfx.effects import LoggingEffectBackend
from motion_vfx.pipeline import MotionPipeline


@pytest.fixture(autouse=True)
def no_signal_handlers(monkeypatch):
    monkeypatch.setattr(signal, "signal", lambda *args: None)


def _headless_config(**effects):
    return AppConfig.from_dict({
        'capture': {'source': 'synthetic', 'width': 160, 'height': 90},
        'display': {'enabled': False},
        'effects': dict({'backend': 'log'}, **effects),
        'performance': {'target_fps': 500},
    })


def test_overrides_replace_file_values():
    config = AppConfig()
    args = build_parser().parse_args([
        "--source", "synthetic", "--preset", "light", "--target-fps", "30",
        "--no-display", "--no-effects", "--backend", "socket", "--port", "7000",
        "--profile",
    ])

    apply_overrides(config, args)

    assert config.capture.source == "synthetic"
    assert (config.capture.width, config.capture.height) == (480, 270)
    assert config.performance.target_fps == 30
    assert not config.display.enabled
    assert not config.effects.enabled
    assert config.effects.backend == "socket"
    assert config.effects.port == 7000
    assert config.performance.profile
    assert config.performance.profile_interval == 5.0


def test_explicit_size_wins_over_preset():
    config = AppConfig()
    apply_overrides(config, build_parser().parse_args(["--preset", "light", "--width", "800"]))
    assert (config.capture.width, config.capture.height) == (800, 270)


def test_headless_run_stops_after_max_frames():
    app = MotionVFXApp()
    app.config = _headless_config()
    app.max_frames = 4

    assert app.init()
    assert isinstance(app.backend, LoggingEffectBackend)
    app.run()

    assert app.pipeline.frame_count == 4
    assert not app.running
    assert app.pipeline.last_report.frame_size == (160, 90)


def test_preview_actions_toggle_state():
    app = MotionVFXApp()
    app.config = _headless_config()
    assert app.init()

    app._handle_action(app_module.preview.ACTION_TOGGLE_MIRROR)
    app._handle_action(app_module.preview.ACTION_TOGGLE_INDICATORS)
    app._handle_action(app_module.preview.ACTION_TOGGLE_EFFECTS)

    assert app.config.mapping.mirror
    assert not app.pipeline.show_indicators
    assert not app.pipeline.quality.effects_enabled

    app._handle_action(app_module.preview.ACTION_QUIT)
    assert not app.running
    app.shutdown()


def test_main_headless(tmp_path):
    config_file = tmp_path / "motion.yaml"
    config_file.write_text("effects:\n  backend: log\n")

    main(["-c", str(config_file), "--source", "synthetic", "--width", "160", "--height", "90",
          "--no-display", "--frames", "3", "--target-fps", "500"])


def test_main_exits_on_invalid_override(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        main(["--source", "synthetic", "--no-display", "--target-fps", "-5"])
    assert excinfo.value.code == 1


def test_main_exits_on_missing_config(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        main(["-c", str(tmp_path / "missing.yaml"), "--no-display"])
    assert excinfo.value.code == 1


class _FakeCamera:
    """Camera-like capture source recording switches and restarts."""

    def __init__(self, camera_index=0):
        self.camera_index = camera_index
        self.size = (320, 180)
        self.switched = []
        self.restarts = []

    def read(self):
        return None

    def switch_camera(self, camera_index):
        self.switched.append(camera_index)
        self.camera_index = camera_index
        self.size = (640, 360)
        return True

    def restart(self, width, height):
        self.restarts.append((width, height))
        return True

    def release(self):
        pass


def _app_with_camera(cameras):
    app = MotionVFXApp()
    app.config = _headless_config()
    app.capture = _FakeCamera()
    app.backend = LoggingEffectBackend()
    app.pipeline = MotionPipeline(app.config, capture=app.capture, backend=app.backend)
    app.cameras = cameras
    return app


def test_next_camera_action_cycles_devices_and_restores_display_cap():
    app = _app_with_camera([0, 2])
    app.pipeline.quality.max_displayed_detections = 3

    app._handle_action(app_module.preview.ACTION_NEXT_CAMERA)

    assert app.capture.switched == [2]
    assert app.config.capture.camera_index == 2
    assert app.pipeline.quality.max_displayed_detections == 8
    assert app.pipeline.quality.capture_resolution == (640, 360)

    app._handle_action(app_module.preview.ACTION_NEXT_CAMERA)
    assert app.capture.switched == [2, 0]


def test_next_camera_without_other_devices_keeps_capture():
    app = _app_with_camera([0])
    app._handle_action(app_module.preview.ACTION_NEXT_CAMERA)
    assert app.capture.switched == []


def test_restart_action_uses_configured_resolution():
    app = _app_with_camera([0])
    app.pipeline.quality.max_displayed_detections = 3

    app._handle_action(app_module.preview.ACTION_RESTART_CAPTURE)

    assert app.capture.restarts == [(160, 90)]
    assert app.pipeline.quality.max_displayed_detections == 8
    assert app.pipeline.quality.capture_resolution == (160, 90)


def test_next_camera_ignored_for_synthetic_source():
    app = MotionVFXApp()
    app.config = _headless_config()
    assert app.init()

    app._handle_action(app_module.preview.ACTION_NEXT_CAMERA)

    assert app.cameras is None
    app.shutdown()
