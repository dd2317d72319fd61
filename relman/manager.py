from __future__ import annotations

import sqlite3

from . import db
from .cleanup import CleanupTask
from .db import JobStore, ProcessStore
from .errors import ConsistencyViolation
from .jobs import build_jobs, environment
from .models import App, Config, Formation, Image, Job, JobQuery, JobState, Process, ProcessQuantityMap, Release, UNKNOWN
from .naming import new_job_name
from .scheduler import Scheduler, SchedulerJob
from .schemas import ScaleRequest
from .settings import settings


class Manager:
    """Talks to the scheduler to make the cluster match a formation.

    Every operation is synchronous and fail-fast: the first scheduler or store
    error propagates and nothing already applied is rolled back.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        jobs: JobStore,
        processes: ProcessStore,
        cleanup_grace_s: float | None = None,
        cleanup_retries: int | None = None,
        cleanup_retry_delay_s: float | None = None,
        events_path: str | None = None,
    ):
        self.scheduler = scheduler
        self.jobs = jobs
        self.processes = processes
        self.cleanup_grace_s = settings.cleanup_grace_s if cleanup_grace_s is None else cleanup_grace_s
        self.cleanup_retries = settings.cleanup_retries if cleanup_retries is None else cleanup_retries
        self.cleanup_retry_delay_s = (
            settings.cleanup_retry_delay_s if cleanup_retry_delay_s is None else cleanup_retry_delay_s
        )
        # Events go next to the job records when the store is a file.
        self.events_path = events_path if events_path is not None else getattr(jobs, "path", None)

    # --- rollout ---

    def schedule_release(self, release: Release, config: Config, image: Image, formation: Formation) -> CleanupTask:
        """Schedule every job of a new release, then retire the previous generation.

        The returned task removes the jobs that were tracked before this call
        once the grace period is over. Callers may ignore it.
        """
        existing = self._existing_jobs(release.app_name)

        new_jobs = build_jobs(release.app_name, release.version, image, config.vars, formation)
        self._schedule_multi(new_jobs)
        self._log("INFO", f"Scheduled {len(new_jobs)} job(s) for release v{release.version}", release)

        task = CleanupTask(
            self.scheduler,
            self.jobs,
            existing,
            grace_s=self.cleanup_grace_s,
            retries=self.cleanup_retries,
            retry_delay_s=self.cleanup_retry_delay_s,
            app_name=release.app_name,
            version=release.version,
            events_path=self.events_path,
        )
        return task.start()

    # --- scaling ---

    def scale_release(
        self,
        release: Release,
        config: Config,
        image: Image,
        formation: Formation,
        quantities: ProcessQuantityMap,
    ) -> None:
        """Bring each process type named in `quantities` to its desired count.

        Types missing from the formation are ignored.
        """
        req = ScaleRequest(quantities=dict(quantities))
        for process_type, q in req.quantities.items():
            p = formation.get(process_type)
            if p is None:
                continue
            self._scale_process(release, config, image, process_type, p, q)

    def _scale_process(
        self, release: Release, config: Config, image: Image, process_type: str, p: Process, q: int
    ) -> None:
        current = p.quantity

        if q > current:
            env = environment(config.vars)
            for i in range(current + 1, q + 1):
                self._schedule(
                    Job(
                        app_name=release.app_name,
                        release_version=release.version,
                        process_type=process_type,
                        instance=i,
                        environment=env,
                        image=image,
                        command=p.command,
                    )
                )

        if q < current:
            by_name = {j.name: j for j in self._existing_jobs(release.app_name)}
            # Highest instance goes first so the remaining range stays 1..q.
            for i in range(current, q, -1):
                name = new_job_name(release.app_name, release.version, process_type, i)
                j = by_name.get(name)
                if j is None:
                    raise ConsistencyViolation(name)
                self._unschedule(j)

        if q != current:
            self._log("INFO", f"Scaled {process_type} from {current} to {q}", release)

        p.quantity = q
        if not p.app_name:
            p.app_name = release.app_name
        self.processes.update(p)

    # --- state ---

    def job_states_by_app(self, app: App) -> list[JobState]:
        """Tracked jobs joined with the scheduler's live report.

        Jobs the scheduler does not know about (yet) come back as unknown.
        """
        jobs = self._existing_jobs(app.name)
        by_name = {s.name: s for s in self.scheduler.job_states()}

        states: list[JobState] = []
        for j in jobs:
            name = j.name
            s = by_name.get(name)
            if s is None:
                states.append(JobState(job=j, name=name, machine_id=UNKNOWN, state=UNKNOWN))
            else:
                states.append(JobState(job=j, name=name, machine_id=s.machine_id, state=s.state))
        return states

    # --- helpers ---

    def _existing_jobs(self, app_name: str) -> list[Job]:
        return self.jobs.list(JobQuery(app=app_name))

    def _schedule_multi(self, jobs: list[Job]) -> None:
        for j in jobs:
            self._schedule(j)

    def _schedule(self, j: Job) -> None:
        """Submit a job to the cluster, then track it."""
        self.scheduler.schedule(
            SchedulerJob(
                name=j.name,
                command=j.command,
                image=j.image,
                environment=environment(j.environment),
            )
        )
        self.jobs.add(j)

    def _unschedule(self, j: Job) -> None:
        self.scheduler.unschedule(j.name)
        self.jobs.remove(j)

    def _log(self, level: str, message: str, release: Release) -> None:
        try:
            db.log_event(level, message, app_name=release.app_name, version=release.version, path=self.events_path)
        except (sqlite3.Error, OSError):
            pass
