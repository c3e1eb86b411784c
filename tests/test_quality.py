import pytest

from motion_vfx.core.quality import (
    AdaptiveQualityController,
    EffectsState,
    QualityConfig,
    next_resolution,
    resolution_preset,
)


def _controller(target_fps=60.0, **config_kwargs):
    config = QualityConfig(**config_kwargs)
    return AdaptiveQualityController(config, target_fps=target_fps)


def test_current_fps_starts_at_target():
    controller = _controller()
    assert controller.current_fps == 60.0
    assert not controller.is_degraded()


def test_block_size_grows_until_maximum_under_sustained_low_fps():
    controller = _controller(block_size_px=8, max_block_size_px=64)

    sizes = []
    for fps in [30, 30, 30, 30]:
        controller.evaluate(fps)
        sizes.append(controller.config.block_size_px)

    assert sizes == [16, 32, 64, 64]


def test_block_size_capped_when_already_near_maximum():
    controller = _controller(block_size_px=32, max_block_size_px=48)
    controller.evaluate(30)
    assert controller.config.block_size_px == 48


def test_display_cap_halves_with_floor():
    controller = _controller(max_detections=15, max_displayed_detections=8)

    caps = []
    for _ in range(3):
        controller.evaluate(40)
        caps.append(controller.config.max_displayed_detections)

    assert caps == [4, 3, 3]


def test_display_cap_restored_only_by_manual_reset():
    controller = _controller(max_displayed_detections=8)
    controller.evaluate(40)
    controller.evaluate(100)
    assert controller.config.max_displayed_detections == 4

    controller.config.reset_display_cap()
    assert controller.config.max_displayed_detections == 8


def test_effects_resume_only_above_recovery_watermark():
    controller = _controller()

    adjustment = controller.evaluate(30)
    assert adjustment.effects_suspended
    assert controller.config.effects_state == EffectsState.SUSPENDED_LOW_FPS

    # Above 1.1 x target but not above 1.2 x target
    adjustment = controller.evaluate(70)
    assert not adjustment.effects_resumed
    assert not controller.config.effects_enabled

    adjustment = controller.evaluate(73)
    assert adjustment.effects_resumed
    assert controller.config.effects_enabled


def test_effects_stay_enabled_between_watermarks():
    controller = _controller()
    adjustment = controller.evaluate(40)  # degraded, but above 0.6 x target
    assert adjustment.degraded
    assert not adjustment.effects_suspended
    assert controller.config.effects_enabled


def test_manual_disable_is_never_lifted_automatically():
    controller = _controller()
    controller.set_effects_enabled(False)

    controller.evaluate(30)
    controller.evaluate(200)

    assert controller.config.effects_state == EffectsState.DISABLED


def test_resolution_step_down_requested_below_resolution_watermark():
    controller = _controller(capture_resolution=(640, 360))

    assert controller.evaluate(40).resolution_request == (480, 270)
    # Degraded but above 0.7 x target
    assert controller.evaluate(45).resolution_request is None


def test_no_resolution_request_at_minimum_width():
    controller = _controller(capture_resolution=(320, 180))
    assert controller.evaluate(10).resolution_request is None


def test_resolution_ladders():
    assert next_resolution(1920, 1080) == (854, 480)
    assert next_resolution(854, 480) == (640, 360)
    assert next_resolution(480, 270) == (320, 180)
    assert next_resolution(1280, 720, use_16x9=False) == (640, 480)
    assert next_resolution(800, 600, use_16x9=False) == (480, 360)
    assert next_resolution(320, 240, use_16x9=False) == (320, 240)


def test_resolution_presets():
    assert resolution_preset("standard") == (640, 360)
    assert resolution_preset("standard", use_16x9=False) == (640, 480)
    with pytest.raises(ValueError):
        resolution_preset("huge")


def test_tick_measures_fps_over_one_second_window():
    controller = _controller(block_size_px=16)

    assert controller.tick(0.0) is None
    results = [controller.tick(i / 30.0) for i in range(1, 31)]

    assert all(r is None for r in results[:-1])
    adjustment = results[-1]
    assert adjustment.fps == pytest.approx(30.0)
    assert adjustment.degraded
    assert controller.config.block_size_px == 32
    assert controller.is_degraded()


def test_tick_without_adaptive_quality_only_measures():
    config = QualityConfig(block_size_px=16)
    controller = AdaptiveQualityController(config, target_fps=60, adaptive=False)

    controller.tick(0.0)
    adjustment = controller.tick(2.0)

    assert adjustment.fps == pytest.approx(0.5)
    assert not adjustment.changed
    assert config.block_size_px == 16


def test_quality_config_validation():
    with pytest.raises(ValueError):
        QualityConfig(block_size_px=0)
    with pytest.raises(ValueError):
        QualityConfig(block_size_px=64, max_block_size_px=32)

    config = QualityConfig(max_detections=4, max_displayed_detections=8)
    assert config.max_displayed_detections == 4
