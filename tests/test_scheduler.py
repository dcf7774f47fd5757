"""
Tests for the periodic schedulers.

Covers virtual-time ordering and cancellation in ManualScheduler and the
daemon-thread behavior of ThreadScheduler.
"""

import threading
import pytest
from unittest.mock import Mock
from pathlib import Path

# Add parent directory to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from assessment_engine.scheduler import ManualScheduler, TaskHandle, ThreadScheduler


class TestManualScheduler:
    """Test virtual-time scheduling."""

    def test_fires_at_each_interval(self):
        """Test that a task fires once per elapsed interval."""
        scheduler = ManualScheduler()
        callback = Mock()
        scheduler.every(1.0, callback)

        scheduler.advance(3)

        assert callback.call_count == 3
        assert scheduler.now() == 3

    def test_partial_interval_does_not_fire(self):
        """Test that nothing fires before the first interval elapses."""
        scheduler = ManualScheduler()
        callback = Mock()
        scheduler.every(2.0, callback)

        scheduler.advance(1.5)
        assert callback.call_count == 0

        scheduler.advance(0.5)
        assert callback.call_count == 1

    def test_same_instant_runs_in_registration_order(self):
        """Test that tasks due together run in the order they were registered."""
        scheduler = ManualScheduler()
        order = []
        scheduler.every(1.0, lambda: order.append("first"))
        scheduler.every(1.0, lambda: order.append("second"))

        scheduler.advance(1)

        assert order == ["first", "second"]

    def test_interleaves_tasks_by_due_time(self):
        """Test that tasks with different intervals interleave by due time."""
        scheduler = ManualScheduler()
        order = []
        scheduler.every(2.0, lambda: order.append(("slow", scheduler.now())))
        scheduler.every(1.0, lambda: order.append(("fast", scheduler.now())))

        scheduler.advance(2)

        assert order == [("fast", 1.0), ("slow", 2.0), ("fast", 2.0)]

    def test_cancel_from_earlier_callback_same_instant(self):
        """Test that a task cancelled by an earlier callback of the same tick never runs."""
        scheduler = ManualScheduler()
        later = Mock()
        handles = {}
        handles["first"] = scheduler.every(1.0, lambda: handles["second"].cancel())
        handles["second"] = scheduler.every(1.0, later)

        scheduler.advance(5)

        later.assert_not_called()
        assert scheduler.pending_tasks == 1

    def test_cancelled_task_is_pruned(self):
        """Test that cancelled tasks stop firing and are dropped."""
        scheduler = ManualScheduler()
        callback = Mock()
        handle = scheduler.every(1.0, callback)

        scheduler.advance(2)
        handle.cancel()
        scheduler.advance(5)

        assert callback.call_count == 2
        assert handle.cancelled
        assert scheduler.pending_tasks == 0

    def test_advance_backwards_rejected(self):
        """Test that time cannot move backwards."""
        with pytest.raises(ValueError):
            ManualScheduler().advance(-1)

    def test_non_positive_interval_rejected(self):
        """Test that a zero interval is rejected."""
        with pytest.raises(ValueError):
            TaskHandle(0, Mock())


class TestThreadScheduler:
    """Test the daemon-thread scheduler."""

    def test_runs_callback_on_daemon_thread(self):
        """Test that a periodic task runs on a daemon thread."""
        scheduler = ThreadScheduler()
        fired = threading.Event()
        seen = {}

        def callback():
            seen["daemon"] = threading.current_thread().daemon
            fired.set()

        scheduler.every(0.01, callback)
        try:
            assert fired.wait(2.0)
            assert seen["daemon"] is True
        finally:
            scheduler.shutdown()

    def test_callback_errors_go_to_handler(self):
        """Test that callback exceptions are reported instead of killing the task."""
        errors = []
        reported = threading.Event()

        def handler(error):
            errors.append(error)
            reported.set()

        scheduler = ThreadScheduler(error_handler=handler)

        def boom():
            raise RuntimeError("sampler failed")

        scheduler.every(0.01, boom)
        try:
            assert reported.wait(2.0)
            assert isinstance(errors[0], RuntimeError)
        finally:
            scheduler.shutdown()

    def test_shutdown_cancels_tasks(self):
        """Test that shutdown cancels and joins every task."""
        scheduler = ThreadScheduler()
        handle = scheduler.every(0.01, Mock())

        scheduler.shutdown()

        assert handle.cancelled
        assert not handle.thread.is_alive()

    def test_callbacks_wait_for_the_scheduler_lock(self):
        """Test that callbacks do not run while another thread holds the lock."""
        scheduler = ThreadScheduler()
        fired = threading.Event()

        scheduler.lock.acquire()
        scheduler.every(0.01, fired.set)
        try:
            assert not fired.wait(0.2)
        finally:
            scheduler.lock.release()

        try:
            assert fired.wait(2.0)
        finally:
            scheduler.shutdown()
