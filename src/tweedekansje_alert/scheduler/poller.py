"""Background scheduler that triggers polling passes at a fixed interval."""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class PollingScheduler:
    """A lightweight scheduler for periodic polling passes."""

    def __init__(self, interval_seconds: int, task: Callable[[], Any], run_immediately: bool = False) -> None:
        self._interval = interval_seconds
        self._task = task
        self._run_immediately = run_immediately
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start scheduling polling passes."""

        with self._lock:
            if self._running:
                return
            self._running = True
            self._schedule_next(0 if self._run_immediately else self._interval)

    def stop(self) -> None:
        """Stop the scheduler."""

        with self._lock:
            self._running = False
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _schedule_next(self, delay: float) -> None:
        if not self._running:
            return
        self._timer = threading.Timer(delay, self._run_task)
        self._timer.daemon = True
        self._timer.start()

    def _run_task(self) -> None:
        try:
            logger.debug("Running scheduled polling pass")
            self._task()
        except Exception:
            logger.exception("Scheduled polling pass failed")
        finally:
            with self._lock:
                self._schedule_next(self._interval)
