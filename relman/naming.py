from __future__ import annotations

import re

# Dots separate the fields, so they cannot appear inside one.
NAME_RE = re.compile(r"^[^.]+$")


def validate_name(kind: str, name: str) -> None:
    if not isinstance(name, str) or not NAME_RE.match(name):
        raise ValueError(f"Invalid {kind} {name!r}. Must be non-empty and contain no dots.")


def validate_number(kind: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Invalid {kind} {value!r}. Must be an int.")


def new_job_name(app_name: str, version: int, process_type: str, instance: int) -> str:
    """Return the scheduler name for one instance of a process type.

    Format: <app>.<version>.<process type>.<instance>, e.g. ``web.3.web.1``.
    Anyone holding the four fields can rebuild the name, which is what lets
    tracked jobs be matched against the scheduler's report.
    """
    validate_name("app name", app_name)
    validate_number("release version", version)
    validate_name("process type", process_type)
    validate_number("instance", instance)
    return f"{app_name}.{version}.{process_type}.{instance}"


def parse_job_name(name: str) -> tuple[str, int, str, int]:
    """Inverse of new_job_name: (app, version, process type, instance)."""
    parts = name.split(".")
    if len(parts) != 4 or not all(parts):
        raise ValueError(f"Not a job name: {name!r}")
    app_name, version, process_type, instance = parts
    try:
        return app_name, int(version), process_type, int(instance)
    except ValueError:
        raise ValueError(f"Not a job name: {name!r}") from None
