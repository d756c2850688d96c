from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from wavesched.config.schema import WorkerRole

TaskStatus = Literal["pending", "running", "succeeded", "failed", "exhausted"]
TERMINAL_STATUSES: frozenset[str] = frozenset({"succeeded", "exhausted"})


@dataclass(slots=True)
class TaskState:
    task_id: str
    role: WorkerRole
    status: TaskStatus = "pending"
    attempts: int = 0
    result: Any = None
    errors: list[str] = field(default_factory=list)
    timed_out: bool = False
    started_at: str | None = None
    ended_at: str | None = None
    duration_sec: float | None = None

    @property
    def terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def last_error(self) -> str | None:
        return self.errors[-1] if self.errors else None

    def to_dict(self) -> dict[str, object]:
        return {
            "task_id": self.task_id,
            "role": self.role.value,
            "status": self.status,
            "attempts": self.attempts,
            "errors": list(self.errors),
            "timed_out": self.timed_out,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "duration_sec": self.duration_sec,
        }


@dataclass(slots=True)
class WaveResult:
    index: int
    tasks: dict[str, TaskState]

    @property
    def complete(self) -> bool:
        return all(task.terminal for task in self.tasks.values())

    def to_dict(self) -> dict[str, object]:
        return {
            "index": self.index,
            "tasks": {task_id: task.to_dict() for task_id, task in self.tasks.items()},
        }
