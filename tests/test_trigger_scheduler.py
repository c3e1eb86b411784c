import pytest

from motion_vfx.core.coordinate_mapper import CameraModel, CoordinateMapper, MappingConfig
from motion_vfx.core.motion import MotionDetection
from motion_vfx.core.trigger_scheduler import (
    RecentTriggerLog,
    TriggerConfig,
    VFXTriggerScheduler,
    effect_params,
)


class _FakeBackend:
    def __init__(self):
        self.commands = []
        self.stopped = 0

    def capabilities(self):
        return {"Position", "Intensity"}

    def trigger(self, command):
        self.commands.append(command)

    def stop(self):
        self.stopped += 1


def _detections(*intensities):
    return [MotionDetection((16.0 + 32 * i, 16.0), value) for i, value in enumerate(intensities)]


def _schedule(scheduler, detections, now, backend, fps=60.0, effects_enabled=True,
              camera=CameraModel()):
    return scheduler.schedule(detections, (320, 180), now, fps=fps, target_fps=60.0,
                              effects_enabled=effects_enabled, camera=camera,
                              screen_height=720, backend=backend)


def test_continuous_mode_fires_up_to_three_in_ranked_order():
    backend = _FakeBackend()
    scheduler = VFXTriggerScheduler(TriggerConfig(continuous=True))

    commands = _schedule(scheduler, _detections(0.2, 0.2, 0.2, 0.2, 0.2), 1.0, backend)

    assert len(commands) == 3
    assert [c.source_position for c in commands] == [(16.0, 16.0), (48.0, 16.0), (80.0, 16.0)]
    assert backend.commands == commands
    assert len(scheduler.recent) == 3


def test_standard_mode_fires_one_per_frame():
    scheduler = VFXTriggerScheduler(TriggerConfig(continuous=False))
    commands = _schedule(scheduler, _detections(0.2, 0.2), 1.0, _FakeBackend())
    assert len(commands) == 1


def test_skips_when_effects_disabled_or_fps_very_low():
    backend = _FakeBackend()
    scheduler = VFXTriggerScheduler()
    detections = _detections(0.5)

    assert _schedule(scheduler, detections, 1.0, backend, effects_enabled=False) == []
    assert _schedule(scheduler, detections, 1.0, backend, fps=29.0) == []
    assert backend.commands == []


def test_missing_collaborators_skip_without_error():
    scheduler = VFXTriggerScheduler()
    detections = _detections(0.5)

    assert _schedule(scheduler, detections, 1.0, None) == []
    assert _schedule(scheduler, detections, 1.0, _FakeBackend(), camera=None) == []


def test_global_delay_between_passes():
    backend = _FakeBackend()
    scheduler = VFXTriggerScheduler(TriggerConfig(trigger_delay=0.3, continuous=True))
    detections = _detections(0.2)

    assert len(_schedule(scheduler, detections, 1.0, backend)) == 1
    # Continuous mode shortens the global delay to 0.09 s
    assert _schedule(scheduler, detections, 1.05, backend) == []
    assert len(_schedule(scheduler, detections, 1.1, backend)) == 1


def test_slot_cooldown_is_halved_for_high_intensity():
    config = TriggerConfig(trigger_delay=1.0, continuous=False, max_triggers_per_second=100)
    scheduler = VFXTriggerScheduler(config)
    backend = _FakeBackend()

    assert len(_schedule(scheduler, _detections(0.1), 10.0, backend)) == 1
    # Global delay has passed, slot 0 still cools down for a 0.1 intensity
    scheduler.last_global_trigger = None
    assert _schedule(scheduler, _detections(0.1), 10.6, backend) == []
    # The same slot fires after half the delay when intensity is high
    assert len(_schedule(scheduler, _detections(0.5), 10.6, backend)) == 1


def test_intensity_thresholds_per_mode():
    detections = _detections(0.03)
    continuous = VFXTriggerScheduler(TriggerConfig(continuous=True))
    standard = VFXTriggerScheduler(TriggerConfig(continuous=False))

    assert len(_schedule(continuous, detections, 1.0, _FakeBackend())) == 1
    assert _schedule(standard, detections, 1.0, _FakeBackend()) == []


def test_fewer_detections_checked_below_target_fps():
    detections = _detections(*([0.01] * 8 + [0.5]))

    assert _schedule(VFXTriggerScheduler(), detections, 1.0, _FakeBackend(), fps=55.0) == []
    commands = _schedule(VFXTriggerScheduler(), detections, 1.0, _FakeBackend(), fps=60.0)
    assert [c.source_position for c in commands] == [(16.0 + 32 * 8, 16.0)]


def test_rate_cap_in_standard_mode():
    config = TriggerConfig(trigger_delay=0.0, continuous=False, max_triggers_per_second=3)
    scheduler = VFXTriggerScheduler(config)
    backend = _FakeBackend()

    fired = []
    for i in range(10):
        now = 1.0 + i * 0.05
        fired.append(len(_schedule(scheduler, _detections(0.5), now, backend)))
        assert len(scheduler.recent) <= 3

    assert sum(fired) == 3
    # Window has passed for the first triggers
    assert len(_schedule(scheduler, _detections(0.5), 2.2, backend)) == 1


def test_effect_params_scale_with_intensity():
    intensity, params = effect_params(0.2, below_target=False)
    assert intensity == pytest.approx(0.4)
    assert params.scale == pytest.approx(1.0)
    assert params.burst_count == 10
    assert params.max_particles == 100

    intensity, params = effect_params(0.9, below_target=True)
    assert intensity == 1.0
    assert params.scale == 3.0
    assert params.burst_count == 45
    assert params.max_particles == 50

    assert effect_params(3.0, below_target=False)[1].burst_count == 100
    assert effect_params(0.01, below_target=False)[1].scale == 0.5


def test_commands_carry_world_position():
    mapper = CoordinateMapper(MappingConfig(use_custom_distance=True, target_distance=5.0))
    scheduler = VFXTriggerScheduler(mapper=mapper)
    detections = [MotionDetection((160.0, 90.0), 0.3)]

    command = _schedule(scheduler, detections, 1.0, _FakeBackend())[0]

    assert command.world_position == pytest.approx([0.0, 0.0, 5.3])
    assert command.intensity == pytest.approx(0.6)


def test_reset_clears_trigger_state():
    scheduler = VFXTriggerScheduler()
    _schedule(scheduler, _detections(0.5, 0.5), 1.0, _FakeBackend())

    scheduler.reset()

    assert scheduler.slots == []
    assert len(scheduler.recent) == 0
    assert scheduler.last_global_trigger is None


def test_recent_trigger_log_prunes_old_entries():
    log = RecentTriggerLog()
    for stamp in (0.0, 0.5, 1.2):
        log.add(stamp)

    log.prune(1.6)

    assert log.times == (1.2,)
