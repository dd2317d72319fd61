from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock
from typing import Protocol

from .errors import SchedulerRejection
from .models import Image


@dataclass(frozen=True)
class SchedulerJob:
    """One unit of work as handed to the cluster scheduler."""

    name: str
    command: str
    image: Image
    environment: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SchedulerJobState:
    name: str
    machine_id: str
    state: str


class Scheduler(Protocol):
    def schedule(self, job: SchedulerJob) -> None:
        ...

    def unschedule(self, name: str) -> None:
        ...

    def job_states(self) -> list[SchedulerJobState]:
        ...


class MemoryScheduler:
    """In-process scheduler: every submitted job is immediately 'running'."""

    def __init__(self, machine_id: str = "local") -> None:
        self.machine_id = machine_id
        self.lock = Lock()
        self.jobs: dict[str, SchedulerJob] = {}

    def schedule(self, job: SchedulerJob) -> None:
        with self.lock:
            self.jobs[job.name] = job

    def unschedule(self, name: str) -> None:
        with self.lock:
            if name not in self.jobs:
                raise SchedulerRejection(f"unknown job '{name}'")
            del self.jobs[name]

    def job_states(self) -> list[SchedulerJobState]:
        with self.lock:
            return [SchedulerJobState(name=n, machine_id=self.machine_id, state="running") for n in self.jobs]
