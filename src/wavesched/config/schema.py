from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class WorkerRole(str, Enum):
    """Capability tag of the single worker that owns a task."""

    DATABASE = "database"
    BACKEND = "backend"
    FRONTEND = "frontend"
    TESTING = "testing"
    SECURITY = "security"
    DEVOPS = "devops"
    DOCS = "docs"


@dataclass(slots=True)
class TaskSpec:
    id: str
    role: WorkerRole
    resources: list[str] = field(default_factory=list)
    depends_on: list[str] = field(default_factory=list)
    wave: int | None = None
    cmd: list[str] | None = None
    timeout_sec: float | None = None


@dataclass(slots=True)
class RetryPolicy:
    max_retries: int = 2
    timeout_sec: float | None = None
    backoff_sec: list[float] = field(default_factory=list)


@dataclass(slots=True)
class PlanSpec:
    goal: str | None
    tasks: list[TaskSpec]
    retry: RetryPolicy = field(default_factory=RetryPolicy)
