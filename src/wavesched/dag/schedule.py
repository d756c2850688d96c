"""Partition task declarations into ordered, conflict-free waves."""

from __future__ import annotations

import heapq
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass

from wavesched.config.schema import TaskSpec
from wavesched.dag.build import build_adjacency
from wavesched.dag.validate import find_cycles, find_order_violations, find_resource_conflicts
from wavesched.util.errors import (
    CyclicDependency,
    DuplicateTask,
    InvalidWave,
    ScheduleError,
    ScheduleIssue,
    UnknownDependency,
)


@dataclass(frozen=True, slots=True)
class Wave:
    index: int
    task_ids: tuple[str, ...]


@dataclass(slots=True)
class Schedule:
    waves: list[Wave]
    tasks: dict[str, TaskSpec]

    def wave_of(self, task_id: str) -> int:
        for wave in self.waves:
            if task_id in wave.task_ids:
                return wave.index
        raise KeyError(task_id)

    def tasks_in(self, wave: Wave) -> list[TaskSpec]:
        return [self.tasks[task_id] for task_id in wave.task_ids]


def _is_pinned(task: TaskSpec) -> bool:
    return task.wave is not None and task.wave >= 1


def _assign_waves(
    by_id: dict[str, TaskSpec],
    dependents: dict[str, list[str]],
    in_degree: dict[str, int],
) -> dict[str, int]:
    """Place every task in a wave; the graph must be acyclic.

    Pinned tasks keep their explicit wave and lock their resources first.
    Other tasks start at one past their latest dependency and move to later
    waves while a key they need is already locked there. Ready tasks are
    taken by (earliest wave, id), so the lowest id keeps a contested wave.
    """
    claims: dict[int, dict[str, str]] = defaultdict(dict)
    for task in sorted(by_id.values(), key=lambda t: t.id):
        if _is_pinned(task):
            assert task.wave is not None
            for resource in task.resources:
                claims[task.wave].setdefault(resource, task.id)

    assigned: dict[str, int] = {}
    remaining = dict(in_degree)
    ready = [(1, task_id) for task_id, count in remaining.items() if count == 0]
    heapq.heapify(ready)

    while ready:
        earliest, task_id = heapq.heappop(ready)
        task = by_id[task_id]
        if _is_pinned(task):
            assert task.wave is not None
            wave = task.wave
        else:
            wave = earliest
            while any(claims[wave].get(r, task_id) != task_id for r in task.resources):
                wave += 1
            for resource in task.resources:
                claims[wave][resource] = task_id
        assigned[task_id] = wave

        for child in dependents[task_id]:
            remaining[child] -= 1
            if remaining[child] == 0:
                dep_waves = [assigned[dep] for dep in by_id[child].depends_on if dep in by_id]
                heapq.heappush(ready, (1 + max(dep_waves, default=0), child))

    return assigned


def build_schedule(tasks: Sequence[TaskSpec]) -> Schedule:
    """Validate task declarations and group them into waves.

    Raises ScheduleError carrying every problem found. The result depends
    only on the declarations, so building twice gives the same waves.
    """
    issues: list[ScheduleIssue] = []
    by_id: dict[str, TaskSpec] = {}
    duplicated: set[str] = set()
    for task in tasks:
        if task.id in by_id:
            if task.id not in duplicated:
                duplicated.add(task.id)
                issues.append(DuplicateTask(task.id))
            continue
        by_id[task.id] = task

    for task in by_id.values():
        if task.wave is not None and task.wave < 1:
            issues.append(InvalidWave(task_id=task.id, wave=task.wave))
        for dep in task.depends_on:
            if dep not in by_id:
                issues.append(UnknownDependency(task_id=task.id, dependency=dep))

    unique_tasks = list(by_id.values())
    dependents, in_degree = build_adjacency(unique_tasks)
    cycles = find_cycles(by_id, dependents)
    issues.extend(CyclicDependency(members=members) for members in cycles)

    wave_of: dict[str, int] = {}
    if cycles:
        for task in unique_tasks:
            if task.wave is not None and task.wave >= 1:
                wave_of[task.id] = task.wave
    else:
        wave_of = _assign_waves(by_id, dependents, in_degree)
    issues.extend(find_resource_conflicts(unique_tasks, wave_of))
    issues.extend(find_order_violations(unique_tasks, wave_of))

    if issues:
        raise ScheduleError(issues)

    grouped: dict[int, list[str]] = defaultdict(list)
    for task_id, wave in wave_of.items():
        grouped[wave].append(task_id)
    waves = [Wave(index=idx, task_ids=tuple(sorted(grouped[idx]))) for idx in sorted(grouped)]
    return Schedule(waves=waves, tasks=by_id)
