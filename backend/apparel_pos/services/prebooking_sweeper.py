# Overview: Background owner thread that runs the overdue pre-booking sweep on a timer.

from __future__ import annotations

import threading

from sqlalchemy.exc import SQLAlchemyError

from ..errors import EngineError
from ..extensions import db
from .order_service import SweepResult, sweep_overdue


class PreBookingSweeper:
    """
    Runs sweep_overdue every `interval_seconds` on a single daemon thread.

    - Non-re-entrant: a tick that arrives while a sweep is still running is
      skipped, not queued.
    - stop() wakes the thread immediately and waits for it to finish.
    - Each tick runs inside its own app context, so it gets its own session.
    """

    def __init__(self, app, interval_seconds: float = 60.0, created_by: str | None = None):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.app = app
        self.interval_seconds = interval_seconds
        self.created_by = created_by
        self._stop = threading.Event()
        self._running = threading.Lock()
        self._thread: threading.Thread | None = None
        self.ticks = 0
        self.skipped_ticks = 0

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_alive:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="prebooking-sweeper", daemon=True)
        self._thread.start()
        self.app.logger.info("Pre-booking sweeper started (every %ss)", self.interval_seconds)

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
        self._thread = None

    def _loop(self) -> None:
        # Event.wait returns True once stop() is called
        while not self._stop.wait(self.interval_seconds):
            self.tick()

    def tick(self) -> SweepResult | None:
        """Run one sweep now; returns None when a previous sweep is still running."""
        if not self._running.acquire(blocking=False):
            self.skipped_ticks += 1
            self.app.logger.info("Pre-booking sweep still running; tick skipped")
            return None
        try:
            self.ticks += 1
            with self.app.app_context():
                try:
                    return sweep_overdue(self.created_by)
                except (EngineError, SQLAlchemyError):
                    db.session.rollback()
                    self.app.logger.exception("Pre-booking sweep failed")
                    return SweepResult()
                finally:
                    db.session.remove()
        finally:
            self._running.release()
