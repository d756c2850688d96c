from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from wavesched.state.model import TaskState, WaveResult
from wavesched.util.errors import ScheduleError


class RunOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    COMPLETED_WITH_DEFECTS = "completed_with_defects"
    SCHEDULE_FAILED = "schedule_failed"


@dataclass(frozen=True, slots=True)
class WaveSummary:
    index: int
    total: int
    succeeded: int
    failed_attempts: int
    exhausted: int


@dataclass(frozen=True, slots=True)
class ExhaustedTask:
    task_id: str
    wave: int
    attempts: int
    last_error: str | None


@dataclass(slots=True)
class RunReport:
    outcome: RunOutcome
    total_tasks: int
    waves: list[WaveSummary] = field(default_factory=list)
    exhausted: list[ExhaustedTask] = field(default_factory=list)
    tasks: dict[str, TaskState] = field(default_factory=dict)
    issues: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "outcome": self.outcome.value,
            "total_tasks": self.total_tasks,
            "waves": [
                {
                    "index": wave.index,
                    "total": wave.total,
                    "succeeded": wave.succeeded,
                    "failed_attempts": wave.failed_attempts,
                    "exhausted": wave.exhausted,
                }
                for wave in self.waves
            ],
            "exhausted": [
                {
                    "task_id": task.task_id,
                    "wave": task.wave,
                    "attempts": task.attempts,
                    "last_error": task.last_error,
                }
                for task in self.exhausted
            ],
            "tasks": {task_id: task.to_dict() for task_id, task in self.tasks.items()},
            "issues": list(self.issues),
        }


def _summarize_wave(result: WaveResult) -> WaveSummary:
    states = list(result.tasks.values())
    return WaveSummary(
        index=result.index,
        total=len(states),
        succeeded=sum(1 for task in states if task.status == "succeeded"),
        failed_attempts=sum(len(task.errors) for task in states),
        exhausted=sum(1 for task in states if task.status == "exhausted"),
    )


def aggregate(wave_results: Sequence[WaveResult]) -> RunReport:
    """Fold ordered wave results into a run report."""
    waves: list[WaveSummary] = []
    exhausted: list[ExhaustedTask] = []
    tasks: dict[str, TaskState] = {}
    clean = True

    for result in wave_results:
        waves.append(_summarize_wave(result))
        for task_id, task in sorted(result.tasks.items()):
            tasks[task_id] = task
            if task.status != "succeeded":
                clean = False
            if task.status == "exhausted":
                exhausted.append(
                    ExhaustedTask(
                        task_id=task_id,
                        wave=result.index,
                        attempts=task.attempts,
                        last_error=task.last_error,
                    )
                )

    return RunReport(
        outcome=RunOutcome.SUCCEEDED if clean else RunOutcome.COMPLETED_WITH_DEFECTS,
        total_tasks=len(tasks),
        waves=waves,
        exhausted=exhausted,
        tasks=tasks,
    )


def schedule_failed_report(error: ScheduleError) -> RunReport:
    return RunReport(
        outcome=RunOutcome.SCHEDULE_FAILED,
        total_tasks=0,
        issues=[issue.describe() for issue in error.issues],
    )
