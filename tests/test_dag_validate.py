from __future__ import annotations

from wavesched.config.schema import TaskSpec, WorkerRole
from wavesched.dag.build import build_adjacency
from wavesched.dag.validate import find_cycles, find_order_violations, find_resource_conflicts
from wavesched.util.errors import ResourceConflict, WaveOrderViolation


def _task(task_id: str, *deps: str, resources: list[str] | None = None) -> TaskSpec:
    return TaskSpec(
        id=task_id, role=WorkerRole.BACKEND, depends_on=list(deps), resources=resources or []
    )


def test_find_cycles_returns_empty_for_dag() -> None:
    tasks = [_task("a"), _task("b", "a"), _task("c", "a", "b")]
    dependents, _ = build_adjacency(tasks)
    assert find_cycles([t.id for t in tasks], dependents) == []


def test_find_cycles_names_every_member() -> None:
    tasks = [_task("a", "c"), _task("b", "a"), _task("c", "b"), _task("d", "a")]
    dependents, _ = build_adjacency(tasks)
    assert find_cycles([t.id for t in tasks], dependents) == [("a", "b", "c")]


def test_find_cycles_reports_separate_cycles_and_self_dependency() -> None:
    tasks = [
        _task("a", "b"),
        _task("b", "a"),
        _task("solo", "solo"),
        _task("x", "y"),
        _task("y", "x"),
        _task("free"),
    ]
    dependents, _ = build_adjacency(tasks)
    assert find_cycles([t.id for t in tasks], dependents) == [
        ("a", "b"),
        ("solo",),
        ("x", "y"),
    ]


def test_find_cycles_handles_long_chain_without_recursion_limit() -> None:
    size = 5000
    tasks = [_task("t0")] + [_task(f"t{i}", f"t{i - 1}") for i in range(1, size)]
    tasks[0] = _task("t0", f"t{size - 1}")
    dependents, _ = build_adjacency(tasks)
    cycles = find_cycles([t.id for t in tasks], dependents)
    assert len(cycles) == 1
    assert len(cycles[0]) == size


def test_find_resource_conflicts_reports_key_and_both_ids() -> None:
    tasks = [
        _task("b", resources=["src/api.py"]),
        _task("a", resources=["src/api.py", "src/db.py"]),
        _task("c", resources=["src/api.py"]),
    ]
    conflicts = find_resource_conflicts(tasks, {"a": 1, "b": 1, "c": 2})
    assert conflicts == [ResourceConflict(resource="src/api.py", first="a", second="b", wave=1)]


def test_find_resource_conflicts_skips_unplaced_tasks() -> None:
    tasks = [_task("a", resources=["k"]), _task("b", resources=["k"])]
    assert find_resource_conflicts(tasks, {"a": 1}) == []


def test_find_order_violations_requires_strictly_later_wave() -> None:
    tasks = [_task("a"), _task("b", "a"), _task("c", "a")]
    violations = find_order_violations(tasks, {"a": 2, "b": 2, "c": 3})
    assert violations == [
        WaveOrderViolation(task_id="b", task_wave=2, dependency="a", dependency_wave=2)
    ]
