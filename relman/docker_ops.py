from __future__ import annotations

import re
from typing import Any

import docker
from docker.errors import DockerException, NotFound

from .errors import SchedulerRejection
from .naming import parse_job_name
from .scheduler import SchedulerJob, SchedulerJobState
from .settings import settings

APP_LABEL = "relman.app"
JOB_LABEL = "relman.job"

# What the Docker daemon accepts as a container name.
CONTAINER_NAME_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_.\-]+$")


class DockerScheduler:
    """Cluster scheduler backed by a single Docker daemon.

    Each job becomes one detached container named after the job. Containers
    are labeled so job_states() can find them again after a restart.
    """

    def __init__(self, client: docker.DockerClient | None = None, network: str | None = None):
        self._client = client
        self.network = network or settings.docker_network
        self._network_ready = False

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            try:
                self._client = docker.from_env()
            except DockerException as e:
                raise SchedulerRejection(f"Docker is not available: {e}") from e
        return self._client

    def ensure_network(self) -> None:
        if self._network_ready:
            return
        try:
            self.client.networks.get(self.network)
        except NotFound:
            self.client.networks.create(self.network, driver="bridge")
        self._network_ready = True

    def schedule(self, job: SchedulerJob) -> None:
        if not CONTAINER_NAME_RE.match(job.name):
            raise SchedulerRejection(f"{job.name!r} is not a valid Docker container name")
        try:
            app_name = parse_job_name(job.name)[0]
        except ValueError as e:
            raise SchedulerRejection(str(e)) from e
        labels: dict[str, str] = {
            APP_LABEL: app_name,
            JOB_LABEL: job.name,
        }
        try:
            self.ensure_network()
            self.client.containers.run(
                str(job.image),
                command=job.command,
                detach=True,
                name=job.name,
                environment=dict(job.environment),
                network=self.network,
                labels=labels,
                # Replacement is the caller's job; keep Docker from restarting on its own.
                restart_policy={"Name": "no"},
            )
        except DockerException as e:
            raise SchedulerRejection(f"failed to schedule {job.name}: {e}") from e

    def unschedule(self, name: str) -> None:
        try:
            self.client.containers.get(name).remove(force=True)
        except NotFound as e:
            raise SchedulerRejection(f"unknown job '{name}'") from e
        except DockerException as e:
            raise SchedulerRejection(f"failed to unschedule {name}: {e}") from e

    def job_states(self) -> list[SchedulerJobState]:
        filters: dict[str, Any] = {"label": [JOB_LABEL]}
        try:
            machine_id = self.client.info().get("Name", "unknown")
            containers = self.client.containers.list(all=True, filters=filters)
        except DockerException as e:
            raise SchedulerRejection(f"failed to list jobs: {e}") from e
        return [
            SchedulerJobState(name=c.labels.get(JOB_LABEL, c.name), machine_id=machine_id, state=c.status)
            for c in containers
        ]
