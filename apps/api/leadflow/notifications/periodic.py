from __future__ import annotations

import logging
import threading
from collections.abc import Callable


logger = logging.getLogger("leadflow.notifications")


class PeriodicTask:
    """Runs ``callback`` on a daemon thread every ``interval_seconds`` until cancelled.

    Each tick holds the tick lock and re-checks the cancel flag, and ``cancel()`` takes the same
    lock, so once ``cancel()`` returns the callback never runs again.
    """

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        callback: Callable[[], object],
        *,
        run_immediately: bool = True,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self.interval_seconds = interval_seconds
        self._callback = callback
        self._run_immediately = run_immediately
        self._cancelled = threading.Event()
        self._tick_lock = threading.Lock()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._cancelled.is_set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def start(self) -> None:
        if self._cancelled.is_set():
            raise RuntimeError(f"periodic task {self.name} was cancelled")
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._loop, name=f"leadflow-{self.name}", daemon=True)
        self._thread.start()

    def run_once(self) -> bool:
        with self._tick_lock:
            if self._cancelled.is_set():
                return False
            try:
                self._callback()
            except Exception as exc:
                logger.exception("notifications.periodic_tick_failed", extra={"task_name": self.name, "error": str(exc)})
            return True

    def cancel(self, timeout: float | None = 5.0) -> None:
        self._cancelled.set()
        with self._tick_lock:
            pass
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _loop(self) -> None:
        if self._run_immediately:
            self.run_once()
        while not self._cancelled.wait(self.interval_seconds):
            self.run_once()
