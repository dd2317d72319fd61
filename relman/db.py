from __future__ import annotations

import json
import os
import sqlite3
from datetime import datetime, timezone
from typing import Any, Protocol

from .errors import RepositoryFailure
from .models import Formation, Image, Job, JobQuery, Process
from .settings import settings


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _resolve_db_path(path: str | None = None) -> str:
    """Return a file path usable by sqlite.

    If the configured path is a directory (Docker creates one for a missing
    bind-mounted file), the DB file is placed inside it.
    """

    p = os.path.abspath(path or settings.db_path)

    if os.path.isdir(p):
        p = os.path.join(p, "relman.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


def connect(path: str | None = None) -> sqlite3.Connection:
    conn = sqlite3.connect(_resolve_db_path(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(path: str | None = None) -> None:
    """Create tables if they do not exist."""
    with connect(path) as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS jobs (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              name TEXT NOT NULL UNIQUE,
              app_name TEXT NOT NULL,
              release_version INTEGER NOT NULL,
              process_type TEXT NOT NULL,
              instance INTEGER NOT NULL,
              environment TEXT NOT NULL, -- json object
              image_repo TEXT NOT NULL,
              image_id TEXT NOT NULL,
              command TEXT NOT NULL,
              created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS processes (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              app_name TEXT NOT NULL,
              type TEXT NOT NULL,
              command TEXT NOT NULL,
              quantity INTEGER NOT NULL,
              updated_at TEXT NOT NULL,
              UNIQUE(app_name, type)
            );

            CREATE TABLE IF NOT EXISTS events (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              ts TEXT NOT NULL,
              level TEXT NOT NULL,
              app_name TEXT,
              version INTEGER,
              message TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
            CREATE INDEX IF NOT EXISTS idx_jobs_app_name ON jobs(app_name);
            """
        )


def log_event(
    level: str,
    message: str,
    app_name: str | None = None,
    version: int | None = None,
    path: str | None = None,
) -> None:
    init_db(path)
    with connect(path) as conn:
        conn.execute(
            "INSERT INTO events (ts, level, app_name, version, message) VALUES (?, ?, ?, ?, ?)",
            (utc_now(), level.upper(), app_name, version, message),
        )


def latest_events(limit: int = 100, path: str | None = None) -> list[dict[str, Any]]:
    init_db(path)
    with connect(path) as conn:
        rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return [dict(r) for r in rows]


class JobStore(Protocol):
    def list(self, query: JobQuery) -> list[Job]:
        ...

    def add(self, job: Job) -> None:
        ...

    def remove(self, job: Job) -> None:
        ...


class ProcessStore(Protocol):
    def update(self, process: Process) -> Process:
        ...


def _row_to_job(r: sqlite3.Row) -> Job:
    return Job(
        app_name=r["app_name"],
        release_version=r["release_version"],
        process_type=r["process_type"],
        instance=r["instance"],
        environment=json.loads(r["environment"]),
        image=Image(repo=r["image_repo"], id=r["image_id"]),
        command=r["command"],
    )


class JobsRepository:
    """Jobs we believe are scheduled, one row per job name."""

    def __init__(self, path: str | None = None):
        self.path = path
        try:
            init_db(path)
        except sqlite3.Error as e:
            raise RepositoryFailure(f"cannot open job store: {e}") from e

    def list(self, query: JobQuery) -> list[Job]:
        try:
            with connect(self.path) as conn:
                rows = conn.execute(
                    "SELECT * FROM jobs WHERE app_name=? ORDER BY id", (query.app,)
                ).fetchall()
        except sqlite3.Error as e:
            raise RepositoryFailure(f"failed to list jobs for {query.app}: {e}") from e
        return [_row_to_job(r) for r in rows]

    def add(self, job: Job) -> None:
        try:
            with connect(self.path) as conn:
                conn.execute(
                    """
                    INSERT INTO jobs (name, app_name, release_version, process_type, instance,
                                      environment, image_repo, image_id, command, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        job.name,
                        job.app_name,
                        job.release_version,
                        job.process_type,
                        job.instance,
                        json.dumps(job.environment, sort_keys=True),
                        job.image.repo,
                        job.image.id,
                        job.command,
                        utc_now(),
                    ),
                )
        except sqlite3.Error as e:
            raise RepositoryFailure(f"failed to add job {job.name}: {e}") from e

    def remove(self, job: Job) -> None:
        try:
            with connect(self.path) as conn:
                conn.execute("DELETE FROM jobs WHERE name=?", (job.name,))
        except sqlite3.Error as e:
            raise RepositoryFailure(f"failed to remove job {job.name}: {e}") from e


class ProcessesRepository:
    """Current desired quantity per (app, process type)."""

    def __init__(self, path: str | None = None):
        self.path = path
        try:
            init_db(path)
        except sqlite3.Error as e:
            raise RepositoryFailure(f"cannot open process store: {e}") from e

    def update(self, process: Process) -> Process:
        try:
            with connect(self.path) as conn:
                conn.execute(
                    """
                    INSERT INTO processes (app_name, type, command, quantity, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(app_name, type) DO UPDATE SET
                      command=excluded.command,
                      quantity=excluded.quantity,
                      updated_at=excluded.updated_at
                    """,
                    (process.app_name, process.type, process.command, process.quantity, utc_now()),
                )
                row = conn.execute(
                    "SELECT * FROM processes WHERE app_name=? AND type=?", (process.app_name, process.type)
                ).fetchone()
        except sqlite3.Error as e:
            raise RepositoryFailure(f"failed to update process {process.type}: {e}") from e
        return Process(type=row["type"], command=row["command"], quantity=row["quantity"], app_name=row["app_name"])

    def formation(self, app_name: str) -> Formation:
        try:
            with connect(self.path) as conn:
                rows = conn.execute(
                    "SELECT * FROM processes WHERE app_name=? ORDER BY type", (app_name,)
                ).fetchall()
        except sqlite3.Error as e:
            raise RepositoryFailure(f"failed to read formation for {app_name}: {e}") from e
        return {
            r["type"]: Process(type=r["type"], command=r["command"], quantity=r["quantity"], app_name=r["app_name"])
            for r in rows
        }
