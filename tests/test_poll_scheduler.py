"""Tests for PollScheduler."""

import threading

import pytest

from branchwatch.services.poll_scheduler import PollScheduler


class TestPollSchedulerInit:
    """Tests for construction."""

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            PollScheduler(0, lambda: None)

    def test_not_running_before_start(self):
        scheduler = PollScheduler(0.01, lambda: None)
        assert scheduler.is_running is False
        assert scheduler.interval == 0.01


class TestRunOnce:
    """Tests for synchronous passes."""

    def test_runs_callback(self):
        calls = []
        scheduler = PollScheduler(1, lambda: calls.append(1))
        scheduler.run_once()
        assert calls == [1]
        assert scheduler.passes == 1

    def test_callback_errors_are_contained(self):
        def explode():
            raise RuntimeError("bad pass")

        scheduler = PollScheduler(1, explode)
        scheduler.run_once()
        assert scheduler.passes == 1


class TestBackgroundLoop:
    """Tests for start/stop."""

    def test_ticks_until_stopped(self):
        ticked = threading.Event()
        count = []

        def callback():
            count.append(1)
            if len(count) >= 3:
                ticked.set()

        scheduler = PollScheduler(0.01, callback)
        scheduler.start()
        assert ticked.wait(5)
        scheduler.stop(timeout=5)

        assert scheduler.is_running is False
        final = len(count)
        assert final >= 3
        ticked.clear()
        assert not ticked.wait(0.05)
        assert len(count) == final

    def test_failing_pass_does_not_stop_loop(self):
        done = threading.Event()
        calls = []

        def callback():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("first pass fails")
            done.set()

        scheduler = PollScheduler(0.01, callback)
        scheduler.start()
        assert done.wait(5)
        scheduler.stop(timeout=5)

    def test_start_is_idempotent(self):
        scheduler = PollScheduler(0.01, lambda: None)
        scheduler.start()
        thread = scheduler._thread
        scheduler.start()
        assert scheduler._thread is thread
        scheduler.stop(timeout=5)

    def test_stop_waits_for_in_flight_pass(self):
        entered = threading.Event()
        release = threading.Event()
        finished = []

        def callback():
            entered.set()
            release.wait(5)
            finished.append(1)

        scheduler = PollScheduler(0.01, callback)
        scheduler.start()
        assert entered.wait(5)

        stopper = threading.Thread(target=scheduler.stop, kwargs={"timeout": 5})
        stopper.start()
        release.set()
        stopper.join(5)

        assert finished
        assert scheduler.is_running is False

    def test_restart_after_stop_raises(self):
        scheduler = PollScheduler(0.01, lambda: None)
        scheduler.start()
        scheduler.stop(timeout=5)
        with pytest.raises(RuntimeError):
            scheduler.start()

    def test_stop_without_start(self):
        PollScheduler(0.01, lambda: None).stop()
