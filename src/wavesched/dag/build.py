"""Build graph structures from task declarations."""

from __future__ import annotations

from collections.abc import Sequence

from wavesched.config.schema import TaskSpec


def build_adjacency(tasks: Sequence[TaskSpec]) -> tuple[dict[str, list[str]], dict[str, int]]:
    """Return dependents adjacency and in-degree by task id.

    Dependencies on undeclared tasks are left out of both maps.
    """
    known = {task.id for task in tasks}
    dependents: dict[str, list[str]] = {task.id: [] for task in tasks}
    in_degree: dict[str, int] = {}

    for task in tasks:
        deps = [dep for dep in task.depends_on if dep in known]
        in_degree[task.id] = len(deps)
        for dep in deps:
            dependents[dep].append(task.id)

    return dependents, in_degree
