"""DAG and wave validation helpers."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence

from wavesched.config.schema import TaskSpec
from wavesched.util.errors import ResourceConflict, WaveOrderViolation


def find_cycles(
    task_ids: Iterable[str], dependents: dict[str, list[str]]
) -> list[tuple[str, ...]]:
    """Return the members of every dependency cycle, using Tarjan's algorithm.

    A task that depends on itself is reported as a cycle of one.
    """
    index: dict[str, int] = {}
    low: dict[str, int] = {}
    stack: list[str] = []
    on_stack: set[str] = set()
    cycles: list[tuple[str, ...]] = []
    counter = 0

    def _children(node: str) -> Iterator[str]:
        return iter(sorted(set(dependents.get(node, []))))

    for root in sorted(task_ids):
        if root in index:
            continue
        index[root] = low[root] = counter
        counter += 1
        stack.append(root)
        on_stack.add(root)
        work = [(root, _children(root))]

        while work:
            node, children = work[-1]
            descended = False
            for child in children:
                if child not in index:
                    index[child] = low[child] = counter
                    counter += 1
                    stack.append(child)
                    on_stack.add(child)
                    work.append((child, _children(child)))
                    descended = True
                    break
                if child in on_stack:
                    low[node] = min(low[node], index[child])
            if descended:
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                low[parent] = min(low[parent], low[node])
            if low[node] != index[node]:
                continue

            component: list[str] = []
            while True:
                member = stack.pop()
                on_stack.discard(member)
                component.append(member)
                if member == node:
                    break
            if len(component) > 1 or node in dependents.get(node, []):
                cycles.append(tuple(sorted(component)))

    return sorted(cycles)


def find_resource_conflicts(
    tasks: Sequence[TaskSpec], wave_of: dict[str, int]
) -> list[ResourceConflict]:
    """Report every pair of co-waved tasks locking the same resource key.

    The task with the lowest id is treated as the holder of a key.
    """
    holders: dict[tuple[int, str], str] = {}
    conflicts: list[ResourceConflict] = []
    for task in sorted(tasks, key=lambda t: t.id):
        wave = wave_of.get(task.id)
        if wave is None:
            continue
        for resource in dict.fromkeys(task.resources):
            holder = holders.setdefault((wave, resource), task.id)
            if holder != task.id:
                conflicts.append(
                    ResourceConflict(resource=resource, first=holder, second=task.id, wave=wave)
                )
    return conflicts


def find_order_violations(
    tasks: Sequence[TaskSpec], wave_of: dict[str, int]
) -> list[WaveOrderViolation]:
    violations: list[WaveOrderViolation] = []
    for task in tasks:
        wave = wave_of.get(task.id)
        if wave is None:
            continue
        for dep in task.depends_on:
            dep_wave = wave_of.get(dep)
            if dep_wave is None or dep == task.id:
                continue
            if wave <= dep_wave:
                violations.append(
                    WaveOrderViolation(
                        task_id=task.id,
                        task_wave=wave,
                        dependency=dep,
                        dependency_wave=dep_wave,
                    )
                )
    return violations
