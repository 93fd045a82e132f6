"""PollScheduler - runs one callback per tick on a background thread.

Ticks are fixed-rate. A pass that overruns the interval makes the next
tick start late; passes never overlap. stop() is one-shot and waits for
the in-flight pass to finish.
"""

import logging
import threading
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class PollScheduler:
    """Fixed-interval driver for a polling callback."""

    def __init__(self, interval: float, callback: Callable[[], None], name: str = "poll-scheduler"):
        """Initialize the scheduler.

        Args:
            interval: Seconds between tick starts.
            callback: Called once per tick.
            name: Thread name.
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._interval = interval
        self._callback = callback
        self._name = name
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self.passes = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        """True while the background thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start ticking. Calling start() on a running scheduler does nothing.

        Raises:
            RuntimeError: If the scheduler was already stopped.
        """
        with self._lock:
            if self._stop_event.is_set():
                raise RuntimeError("scheduler has been stopped")
            if self._thread is not None:
                return
            self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()
        logger.info(f"{self._name} started (interval: {self._interval}s)")

    def stop(self, timeout: float | None = None) -> None:
        """Signal the loop to stop and wait for the current pass to finish.

        Args:
            timeout: Maximum seconds to wait; None waits indefinitely.
        """
        self._stop_event.set()
        with self._lock:
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        logger.info(f"{self._name} stopped")

    def run_once(self) -> None:
        """Run one pass synchronously. Exceptions are logged, not raised."""
        try:
            self._callback()
        except Exception as e:
            logger.error(f"Poll pass failed: {e}", exc_info=True)
        finally:
            self.passes += 1

    def _run(self) -> None:
        next_tick = time.monotonic() + self._interval
        while not self._stop_event.wait(max(0.0, next_tick - time.monotonic())):
            self.run_once()
            next_tick += self._interval
            now = time.monotonic()
            if next_tick < now:
                # Overran: skip missed ticks instead of queuing them
                next_tick = now
