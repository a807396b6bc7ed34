from __future__ import annotations

import logging
import threading
from typing import Callable, Protocol

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


class ScheduledTask(Protocol):
    @property
    def cancelled(self) -> bool: ...

    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_every(self, interval_seconds: float, callback: Callback) -> ScheduledTask: ...


class RepeatingTimer:
    """Runs ``callback`` every ``interval_seconds`` on a daemon timer thread.

    The next run is armed only after the current one returns, so runs never
    overlap. ``cancel`` is final.
    """

    def __init__(self, interval_seconds: float, callback: Callback, *, name: str = "pos-poll") -> None:
        self.interval_seconds = interval_seconds
        self.callback = callback
        self.name = name
        self._lock = threading.Lock()
        self._cancelled = False
        self._timer: threading.Timer | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def start(self) -> "RepeatingTimer":
        self._arm()
        return self

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def _arm(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            timer = threading.Timer(self.interval_seconds, self._run)
            timer.daemon = True
            timer.name = self.name
            self._timer = timer
        timer.start()

    def _run(self) -> None:
        if self._cancelled:
            return
        try:
            self.callback()
        except Exception:
            logger.exception("scheduled_task_failure", extra={"task": self.name})
        self._arm()


class ThreadingScheduler:
    def call_every(self, interval_seconds: float, callback: Callback) -> RepeatingTimer:
        return RepeatingTimer(interval_seconds, callback).start()
