from __future__ import annotations

import sqlite3
from threading import Event, Thread
from typing import TYPE_CHECKING

from . import db
from .models import Job

if TYPE_CHECKING:
    from .db import JobStore
    from .scheduler import Scheduler


class CleanupTask:
    """Tears down a previous generation after a grace period.

    Runs on a daemon thread and is never awaited by the Manager. Failures are
    recorded in the event log, not raised. state: pending|running|done|failed|cancelled
    """

    def __init__(
        self,
        scheduler: Scheduler,
        jobs: JobStore,
        stale: list[Job],
        grace_s: float,
        retries: int = 0,
        retry_delay_s: float = 1.0,
        app_name: str | None = None,
        version: int | None = None,
        events_path: str | None = None,
    ):
        self.scheduler = scheduler
        self.jobs = jobs
        self.stale = list(stale)
        self.grace_s = max(0.0, float(grace_s))
        self.retries = max(0, int(retries))
        self.retry_delay_s = max(0.0, float(retry_delay_s))
        self.app_name = app_name
        self.version = version
        self.events_path = events_path

        self.state = "pending"
        self.error: Exception | None = None
        self.removed: list[str] = []
        self._cancel = Event()
        self._thr: Thread | None = None

    def start(self) -> CleanupTask:
        if self._thr and self._thr.is_alive():
            return self
        self._thr = Thread(target=self._run, daemon=True, name=f"cleanup-{self.app_name}")
        self._thr.start()
        return self

    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the task to finish. Returns True if it has."""
        if self._thr is None:
            return False
        self._thr.join(timeout)
        return not self._thr.is_alive()

    def _run(self) -> None:
        # wait() returns True as soon as cancel() is called.
        if self._cancel.wait(self.grace_s):
            self._finish("cancelled", f"Cleanup of {len(self.stale)} stale job(s) cancelled")
            return

        self.state = "running"
        for job in self.stale:
            if self.cancelled:
                self._finish("cancelled", f"Cleanup cancelled after removing {len(self.removed)} job(s)")
                return
            try:
                self._unschedule_with_retry(job)
            except Exception as e:
                self.error = e
                if self.cancelled:
                    self._finish("cancelled", f"Cleanup cancelled while retrying {job.name}: {e}")
                    return
                self._finish(
                    "failed",
                    f"Error unscheduling stale job {job.name}: {type(e).__name__}: {e}",
                    level="ERROR",
                )
                return
            self.removed.append(job.name)

        self._finish("done", f"Removed {len(self.removed)} stale job(s)")

    def _unschedule_with_retry(self, job: Job) -> None:
        attempt = 0
        while True:
            try:
                self.scheduler.unschedule(job.name)
                break
            except Exception:
                if attempt >= self.retries or self._cancel.wait(self.retry_delay_s):
                    raise
                attempt += 1

        # Scheduler side is gone; retry only the bookkeeping from here on.
        attempt = 0
        while True:
            try:
                self.jobs.remove(job)
                return
            except Exception:
                if attempt >= self.retries or self._cancel.wait(self.retry_delay_s):
                    raise
                attempt += 1

    def _finish(self, state: str, message: str, level: str = "INFO") -> None:
        self.state = state
        try:
            db.log_event(level, message, app_name=self.app_name, version=self.version, path=self.events_path)
        except (sqlite3.Error, OSError):
            # The event log is best effort; the task state still carries the outcome.
            pass
