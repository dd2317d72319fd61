from __future__ import annotations

import os
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Core
    db_path: str = os.getenv("RELMAN_DB_PATH", "relman.db")
    docker_network: str = os.getenv("RELMAN_DOCKER_NETWORK", "relman")

    # Old generation teardown after a rollout
    cleanup_grace_s: float = _env_float("RELMAN_CLEANUP_GRACE_S", 60.0)
    cleanup_retries: int = _env_int("RELMAN_CLEANUP_RETRIES", 2)
    cleanup_retry_delay_s: float = _env_float("RELMAN_CLEANUP_RETRY_DELAY_S", 1.0)


settings = Settings()
