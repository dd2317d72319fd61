import pytest

from relman import db
from relman.db import JobsRepository, ProcessesRepository
from relman.errors import SchedulerRejection
from relman.manager import Manager
from relman.scheduler import MemoryScheduler
from relman.settings import Settings


@pytest.fixture(autouse=True)
def isolated_db(tmp_path, monkeypatch):
    """Point the event log (and default store path) at a per-test sqlite file."""
    path = str(tmp_path / "relman.db")
    monkeypatch.setattr(db, "settings", Settings(db_path=path))
    return path


class RecordingScheduler(MemoryScheduler):
    """MemoryScheduler that remembers call order and can be told to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[tuple[str, str]] = []
        self.fail_schedule: set[str] = set()
        self.fail_unschedule: dict[str, int] = {}  # name -> remaining failures (-1 = always)

    def schedule(self, job):
        self.calls.append(("schedule", job.name))
        if job.name in self.fail_schedule:
            raise SchedulerRejection(f"rejected {job.name}")
        super().schedule(job)

    def unschedule(self, name):
        self.calls.append(("unschedule", name))
        left = self.fail_unschedule.get(name, 0)
        if left:
            if left > 0:
                self.fail_unschedule[name] = left - 1
            raise SchedulerRejection(f"cannot remove {name}")
        super().unschedule(name)

    def names(self, kind):
        return [n for k, n in self.calls if k == kind]


@pytest.fixture
def scheduler():
    return RecordingScheduler()


@pytest.fixture
def jobs(isolated_db):
    return JobsRepository(isolated_db)


@pytest.fixture
def processes(isolated_db):
    return ProcessesRepository(isolated_db)


@pytest.fixture
def manager(scheduler, jobs, processes):
    return Manager(scheduler, jobs, processes, cleanup_grace_s=0, cleanup_retries=0, cleanup_retry_delay_s=0)
