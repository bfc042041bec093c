"""Background timer that periodically evicts expired timeline points."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional


class RetentionSweeper:
    """Invokes ``target`` every ``interval_ms`` on a daemon thread.

    The target is expected to serialize itself against other writers; the
    aggregator passes a cleanup method guarded by its own lock.
    """

    def __init__(
        self,
        target: Callable[[], Any],
        interval_ms: int,
        *,
        logger: logging.Logger | None = None,
        name: str = "timeline-retention-sweeper",
    ) -> None:
        self._validate_interval(interval_ms)
        self._target = target
        self._interval_ms = interval_ms
        self._name = name
        self._logger = logger or logging.getLogger(__name__)
        self._state_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def sweep(self) -> Any:
        """Run the target once on the calling thread."""

        return self._target()

    def start(self) -> None:
        with self._state_lock:
            if self._thread is not None and self._thread.is_alive():
                return
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run, args=(stop_event,), name=self._name, daemon=True
            )
            self._stop_event = stop_event
            self._thread = thread
            thread.start()
        self._logger.info("sweeper_started", extra={"interval_ms": self._interval_ms})

    def stop(self, timeout: float | None = 5.0) -> None:
        with self._state_lock:
            thread, stop_event = self._thread, self._stop_event
            self._thread = None
            self._stop_event = None
        if thread is None or stop_event is None:
            return
        stop_event.set()
        if thread is not threading.current_thread():
            thread.join(timeout)
        self._logger.info("sweeper_stopped")

    def reschedule(self, interval_ms: int) -> None:
        """Change the cadence, restarting the timer when it is running."""

        self._validate_interval(interval_ms)
        was_running = self.is_running
        if was_running:
            self.stop()
        self._interval_ms = interval_ms
        if was_running:
            self.start()

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self._interval_ms / 1000):
            try:
                self.sweep()
            except Exception:
                self._logger.exception("retention_sweep_failed")

    @staticmethod
    def _validate_interval(interval_ms: int) -> None:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be greater than zero")
