from __future__ import annotations


class ReconcileError(Exception):
    pass


class SchedulerRejection(ReconcileError):
    """The cluster scheduler refused or failed to apply a submission/removal."""


class RepositoryFailure(ReconcileError):
    """A job or process store read/write failed."""


class ConsistencyViolation(ReconcileError):
    """Tracked jobs drifted from the quantity recorded for a process type."""

    def __init__(self, job_name: str):
        super().__init__(f"Job not found to unschedule: {job_name}")
        self.job_name = job_name
