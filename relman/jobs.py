from __future__ import annotations

from typing import Mapping

from .models import Formation, Image, Job


def environment(vars: Mapping[str, object]) -> dict[str, str]:
    """Coerce config vars into the plain string mapping the scheduler expects."""
    return {str(k): str(v) for k, v in vars.items()}


def build_jobs(app_name: str, version: int, image: Image, vars: Mapping[str, object], formation: Formation) -> list[Job]:
    """Expand a formation into one Job per process instance.

    Process types are visited in sorted order and instances run 1..quantity,
    so the same inputs always give the same list.
    """
    env = environment(vars)
    jobs: list[Job] = []
    for process_type in sorted(formation):
        p = formation[process_type]
        for i in range(1, p.quantity + 1):
            jobs.append(
                Job(
                    app_name=app_name,
                    release_version=version,
                    process_type=process_type,
                    instance=i,
                    environment=env,
                    image=image,
                    command=p.command,
                )
            )
    return jobs
