import threading

import pytest

from usage_timeline.timeline.sweeper import RetentionSweeper


def test_sweep_runs_target_on_calling_thread():
    calls = []
    sweeper = RetentionSweeper(lambda: calls.append(threading.current_thread()) or 3, 1000)

    assert sweeper.sweep() == 3
    assert calls == [threading.current_thread()]


def test_start_invokes_target_periodically():
    fired = threading.Event()
    sweeper = RetentionSweeper(fired.set, interval_ms=10)

    sweeper.start()
    try:
        assert fired.wait(2.0)
        assert sweeper.is_running
    finally:
        sweeper.stop()

    assert not sweeper.is_running


def test_failures_are_logged_and_loop_continues(caplog):
    attempts = []
    recovered = threading.Event()

    def flaky() -> None:
        attempts.append(1)
        if len(attempts) == 1:
            raise RuntimeError("boom")
        recovered.set()

    sweeper = RetentionSweeper(flaky, interval_ms=10)
    with caplog.at_level("ERROR", logger="usage_timeline.timeline.sweeper"):
        sweeper.start()
        try:
            assert recovered.wait(2.0)
        finally:
            sweeper.stop()

    assert any(r.getMessage() == "retention_sweep_failed" for r in caplog.records)


def test_reschedule_restarts_running_timer():
    sweeper = RetentionSweeper(lambda: None, interval_ms=60_000)
    sweeper.start()
    try:
        sweeper.reschedule(30_000)
        assert sweeper.interval_ms == 30_000
        assert sweeper.is_running
    finally:
        sweeper.stop()


def test_start_is_idempotent_and_stop_without_start_is_safe():
    sweeper = RetentionSweeper(lambda: None, interval_ms=60_000)
    sweeper.stop()
    sweeper.start()
    sweeper.start()
    try:
        assert sweeper.is_running
    finally:
        sweeper.stop()


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        RetentionSweeper(lambda: None, interval_ms=0)
    sweeper = RetentionSweeper(lambda: None, interval_ms=10)
    with pytest.raises(ValueError):
        sweeper.reschedule(-1)
