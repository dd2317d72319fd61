from __future__ import annotations

from dataclasses import dataclass, field

from .naming import new_job_name

UNKNOWN = "unknown"


@dataclass(frozen=True)
class App:
    name: str


@dataclass(frozen=True)
class Release:
    app_name: str
    version: int


@dataclass(frozen=True)
class Config:
    vars: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Image:
    repo: str
    id: str

    def __str__(self) -> str:
        # Content digests pin with '@', tags with ':'.
        if self.id.startswith("sha256:"):
            return f"{self.repo}@{self.id}"
        return f"{self.repo}:{self.id}"


@dataclass
class Process:
    type: str
    command: str
    quantity: int = 0
    app_name: str = ""

    def __post_init__(self) -> None:
        if self.quantity < 0:
            raise ValueError(f"quantity for process {self.type!r} must be >= 0, got {self.quantity}")


# process type -> Process
Formation = dict[str, Process]

# process type -> desired quantity
ProcessQuantityMap = dict[str, int]


@dataclass(frozen=True, eq=False)
class Job:
    app_name: str
    release_version: int
    process_type: str
    instance: int
    environment: dict[str, str]
    image: Image
    command: str

    @property
    def name(self) -> str:
        return new_job_name(self.app_name, self.release_version, self.process_type, self.instance)

    # Identity is the name; environment/image/command ride along.
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Job):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)


@dataclass(frozen=True)
class JobQuery:
    app: str


@dataclass(frozen=True)
class JobState:
    job: Job
    name: str
    machine_id: str = UNKNOWN
    state: str = UNKNOWN
