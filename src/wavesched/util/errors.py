"""Application-level error types."""

from __future__ import annotations

from dataclasses import dataclass


class WaveSchedError(Exception):
    """Base error for the scheduler."""


class PlanError(WaveSchedError):
    """Raised when plan loading/validation fails."""


@dataclass(frozen=True, slots=True)
class ScheduleIssue:
    """A single reason a schedule could not be built."""

    def describe(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.describe()


@dataclass(frozen=True, slots=True)
class DuplicateTask(ScheduleIssue):
    task_id: str

    def describe(self) -> str:
        return f"task '{self.task_id}' is declared more than once"


@dataclass(frozen=True, slots=True)
class InvalidWave(ScheduleIssue):
    task_id: str
    wave: int

    def describe(self) -> str:
        return f"task '{self.task_id}' has wave {self.wave}; waves start at 1"


@dataclass(frozen=True, slots=True)
class UnknownDependency(ScheduleIssue):
    task_id: str
    dependency: str

    def describe(self) -> str:
        return f"task '{self.task_id}' depends on unknown task '{self.dependency}'"


@dataclass(frozen=True, slots=True)
class CyclicDependency(ScheduleIssue):
    members: tuple[str, ...]

    def describe(self) -> str:
        return f"cyclic dependency between tasks: {', '.join(self.members)}"


@dataclass(frozen=True, slots=True)
class ResourceConflict(ScheduleIssue):
    resource: str
    first: str
    second: str
    wave: int

    def describe(self) -> str:
        return (
            f"tasks '{self.first}' and '{self.second}' both lock '{self.resource}' "
            f"in wave {self.wave}"
        )


@dataclass(frozen=True, slots=True)
class WaveOrderViolation(ScheduleIssue):
    task_id: str
    task_wave: int
    dependency: str
    dependency_wave: int

    def describe(self) -> str:
        return (
            f"task '{self.task_id}' (wave {self.task_wave}) must run after "
            f"'{self.dependency}' (wave {self.dependency_wave})"
        )


class ScheduleError(WaveSchedError):
    """Raised when a task set cannot be partitioned into waves.

    Carries every issue found, not only the first one.
    """

    def __init__(self, issues: list[ScheduleIssue]) -> None:
        self.issues = list(issues)
        lines = "; ".join(issue.describe() for issue in self.issues)
        super().__init__(f"schedule could not be built: {lines}")
