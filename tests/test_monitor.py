"""
Tests for the integrity monitor.

Tests the face and screen samplers, red-flag rules, scoring, media
acquisition and teardown using virtual time and scripted detection.
"""

import pytest
from concurrent.futures import Future
from unittest.mock import Mock
from pathlib import Path

# Add parent directory to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from assessment_engine.detectors import MediaAcquirer, SimulatedMediaAcquirer, SimulatedMediaHandle
from assessment_engine.environment import SimulatedEnvironment
from assessment_engine.errors import PermissionDenied
from assessment_engine.models import EngineConfig, FlagSource, IntegrityState, Severity
from assessment_engine.monitor import (
    IntegrityMonitor, LOOKING_AWAY, MULTIPLE_FACES, NO_FACE, NOT_FULLSCREEN, TAB_SWITCH
)
from assessment_engine.scheduler import ManualScheduler
from helpers import GOOD, ScriptedDetector, wall_clock_for
from helpers import LOOKING_AWAY as AWAY_SAMPLE, NO_FACE as NO_FACE_SAMPLE, TWO_FACES


class PendingAcquirer(MediaAcquirer):
    """Acquisition that stays pending until the test resolves it."""

    def __init__(self):
        self.future = None

    def acquire(self):
        self.future = Future()
        return self.future


class FailingAcquirer(MediaAcquirer):
    def acquire(self):
        future = Future()
        future.set_exception(RuntimeError("no capture device"))
        return future


def make_monitor(samples=(), environment=None, acquirer=None, config=None, is_live=None):
    scheduler = ManualScheduler()
    environment = environment or SimulatedEnvironment()
    acquirer = acquirer or SimulatedMediaAcquirer()
    monitor = IntegrityMonitor(
        scheduler,
        ScriptedDetector(samples),
        environment,
        acquirer,
        config=config,
        is_live=is_live,
        wall_clock=wall_clock_for(scheduler)
    )
    return monitor, scheduler, environment, acquirer


def descriptions(monitor):
    return [f.description for f in monitor.red_flags]


class TestMonitorStart:
    """Test starting the samplers and acquiring media."""

    def test_camera_granted(self):
        """Test that granted media starts face sampling."""
        monitor, scheduler, _, acquirer = make_monitor()
        future = monitor.start()

        assert future.done()
        assert monitor.camera_status == "active"
        assert monitor.face_task is not None
        assert monitor.screen_task is not None
        assert acquirer.handles[0].active

    def test_start_twice(self):
        """Test that the monitor cannot be started twice."""
        monitor, _, _, _ = make_monitor()
        monitor.start()
        with pytest.raises(RuntimeError):
            monitor.start()

    def test_permission_denied_keeps_screen_sampling(self):
        """Test that a refused camera is reported and screen sampling continues."""
        monitor, scheduler, environment, _ = make_monitor(acquirer=SimulatedMediaAcquirer(granted=False))
        denied = Mock()
        monitor.on_permission_denied(denied)

        monitor.start()

        assert monitor.camera_status == "denied"
        assert isinstance(monitor.permission_error, PermissionDenied)
        assert monitor.face_task is None
        denied.assert_called_once_with(monitor.permission_error)

        environment.hidden = True
        scheduler.advance(1)
        assert descriptions(monitor) == [TAB_SWITCH]

    def test_acquisition_failure(self):
        """Test that a non-permission failure marks the camera as failed."""
        monitor, _, _, _ = make_monitor(acquirer=FailingAcquirer())
        monitor.start()

        assert monitor.camera_status == "failed"
        assert isinstance(monitor.media_error, RuntimeError)
        assert monitor.face_task is None


class TestFaceSampling:
    """Test face-sample flag rules."""

    def test_scores_three_flags(self):
        """Test one no-face and two looking-away samples."""
        monitor, scheduler, _, _ = make_monitor([NO_FACE_SAMPLE, AWAY_SAMPLE, AWAY_SAMPLE])
        monitor.start()

        scheduler.advance(6)

        assert descriptions(monitor) == [NO_FACE, LOOKING_AWAY, LOOKING_AWAY]
        assert monitor.authenticity_score == 85
        assert monitor.attention_score == 85
        assert monitor.total_checks == 3
        assert monitor.successful_detections == 2
        assert monitor.face_detection_rate == pytest.approx(2 / 3)
        assert monitor.flagged_events == 3

    def test_no_face_once_per_consecutive_run(self):
        """Test that a persisting no-face condition is flagged once per run."""
        samples = [NO_FACE_SAMPLE, NO_FACE_SAMPLE, NO_FACE_SAMPLE, GOOD, NO_FACE_SAMPLE]
        monitor, scheduler, _, _ = make_monitor(samples)
        monitor.start()

        scheduler.advance(10)

        assert descriptions(monitor) == [NO_FACE, NO_FACE]
        assert monitor.authenticity_score == 90

    def test_multiple_faces_is_error(self):
        """Test that multiple faces raise one error-severity flag per run."""
        monitor, scheduler, _, _ = make_monitor([TWO_FACES, TWO_FACES])
        monitor.start()

        scheduler.advance(4)

        assert descriptions(monitor) == [MULTIPLE_FACES]
        assert monitor.red_flags[0].severity is Severity.ERROR
        assert monitor.red_flags[0].source is FlagSource.MONITOR

    def test_looking_away_every_time(self):
        """Test that looking away is flagged on every sample."""
        monitor, scheduler, _, _ = make_monitor([AWAY_SAMPLE] * 4)
        monitor.start()

        scheduler.advance(8)

        assert descriptions(monitor) == [LOOKING_AWAY] * 4

    def test_score_clamped_at_zero(self):
        """Test that the scores never go below zero."""
        monitor, scheduler, _, _ = make_monitor([AWAY_SAMPLE] * 25)
        monitor.start()

        scheduler.advance(50)

        assert monitor.authenticity_score == 0
        assert monitor.attention_score == 0

    def test_configured_monitor_penalty(self):
        """Test that the per-flag monitor penalty comes from configuration."""
        config = EngineConfig(monitor_flag_penalty=3)
        monitor, scheduler, _, _ = make_monitor([NO_FACE_SAMPLE, AWAY_SAMPLE, AWAY_SAMPLE], config=config)
        monitor.start()

        scheduler.advance(6)

        assert monitor.authenticity_score == 91

    def test_last_detection_in_snapshot(self):
        """Test that the snapshot carries the latest detection result."""
        monitor, scheduler, _, _ = make_monitor([AWAY_SAMPLE])
        monitor.start()

        scheduler.advance(2)

        assert monitor.snapshot().last_detection == AWAY_SAMPLE


class TestScreenSampling:
    """Test visibility and fullscreen sampling."""

    def test_hidden_raises_tab_switch(self):
        """Test that every sample while hidden raises a warning and notifies listeners."""
        monitor, scheduler, environment, _ = make_monitor()
        listener = Mock()
        monitor.add_red_flag_listener(listener)
        monitor.start()

        environment.hidden = True
        scheduler.advance(3)

        assert descriptions(monitor) == [TAB_SWITCH] * 3
        assert monitor.authenticity_score == 85
        assert listener.call_count == 3

    def test_not_fullscreen_is_info(self):
        """Test that leaving fullscreen is logged but does not cost points."""
        monitor, scheduler, environment, _ = make_monitor()
        listener = Mock()
        monitor.add_red_flag_listener(listener)
        monitor.start()

        environment.fullscreen = False
        scheduler.advance(2)

        assert descriptions(monitor) == [NOT_FULLSCREEN] * 2
        assert all(f.severity is Severity.INFO for f in monitor.red_flags)
        assert monitor.authenticity_score == 100
        assert monitor.flagged_events == 0
        listener.assert_not_called()

    def test_observers_receive_state(self):
        """Test that a full IntegrityState is emitted after every sample."""
        monitor, scheduler, _, _ = make_monitor()
        observer = Mock()
        monitor.add_observer(observer)
        monitor.start()

        scheduler.advance(2)

        # camera ready + screen@1 + screen@2 + face@2
        assert observer.call_count == 4
        assert isinstance(observer.call_args.args[0], IntegrityState)


class TestReportedFlags:
    """Test the channel used by the environment guard."""

    def test_report_flag_uses_session_penalty(self):
        """Test that guard flags are tagged and scored with the session penalty."""
        config = EngineConfig(session_flag_penalty=10)
        monitor, _, _, _ = make_monitor(config=config)
        monitor.start()

        flag = monitor.report_flag("Attempted keyboard shortcut: Ctrl+C", Severity.WARNING)

        assert flag.source is FlagSource.GUARD
        assert monitor.authenticity_score == 90

    def test_report_flag_ignored_when_not_live(self):
        """Test that nothing is recorded before start."""
        monitor, _, _, _ = make_monitor()
        assert monitor.report_flag(TAB_SWITCH) is None
        assert monitor.red_flags == []


class TestMonitorStop:
    """Test teardown and media release."""

    def test_stop_releases_media_and_cancels(self):
        """Test that stop releases the camera and freezes the flag log."""
        monitor, scheduler, environment, acquirer = make_monitor()
        monitor.start()
        scheduler.advance(2)

        state = monitor.stop()
        environment.hidden = True
        scheduler.advance(10)

        assert isinstance(state, IntegrityState)
        assert not acquirer.handles[0].active
        assert monitor.camera_status == "released"
        assert monitor.face_task.cancelled
        assert monitor.screen_task.cancelled
        assert monitor.red_flags == []
        assert scheduler.pending_tasks == 0

    def test_media_resolved_after_stop_is_released(self):
        """Test that a camera granted after teardown is stopped immediately."""
        acquirer = PendingAcquirer()
        monitor, _, _, _ = make_monitor(acquirer=acquirer)
        monitor.start()
        monitor.stop()

        handle = SimulatedMediaHandle()
        acquirer.future.set_result(handle)

        assert not handle.active
        assert monitor.face_task is None
        assert monitor.media is None

    def test_samplers_skip_when_session_not_live(self):
        """Test that samplers do nothing once the session reports it is over."""
        live = {"value": True}
        monitor, scheduler, environment, _ = make_monitor(
            [AWAY_SAMPLE], is_live=lambda: live["value"]
        )
        monitor.start()

        live["value"] = False
        environment.hidden = True
        scheduler.advance(4)

        assert monitor.red_flags == []
        assert monitor.total_checks == 0
