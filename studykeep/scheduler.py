"""
Periodic background tasks with an explicit owner.

A PeriodicTask runs a callable on a daemon thread every ``interval``
seconds until cancelled. Exceptions raised by the callable are logged and
do not stop the schedule.
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Run ``func`` every ``interval`` seconds on a background thread."""

    def __init__(self, name: str, interval: float, func: Callable[[], object]):
        if interval <= 0:
            raise ValueError(f"Interval must be positive: {interval}")
        self.name = name
        self.interval = interval
        self._func = func
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop, name=f"studykeep-{self.name}", daemon=True,
        )
        self._thread.start()

    def cancel(self, timeout: Optional[float] = 5.0) -> None:
        """Stop the schedule and wait for an in-flight run to finish."""
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def run_once(self) -> None:
        try:
            self._func()
        except Exception as e:
            logger.warning("Periodic task %s failed: %s", self.name, e)
        finally:
            self.runs += 1

    def _loop(self) -> None:
        # wait() returns True once cancelled
        while not self._stop.wait(self.interval):
            self.run_once()
