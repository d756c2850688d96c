from __future__ import annotations

from wavesched.config.schema import WorkerRole
from wavesched.state.model import TaskState, WaveResult


def test_task_state_starts_pending_and_tracks_last_error() -> None:
    state = TaskState(task_id="api", role=WorkerRole.BACKEND)
    assert state.status == "pending"
    assert state.terminal is False
    assert state.last_error is None

    state.errors.extend(["first", "second"])
    state.status = "exhausted"
    assert state.terminal is True
    assert state.last_error == "second"


def test_failed_is_not_terminal() -> None:
    state = TaskState(task_id="api", role=WorkerRole.BACKEND, status="failed")
    assert state.terminal is False


def test_wave_result_complete_only_when_every_task_is_terminal() -> None:
    done = TaskState(task_id="a", role=WorkerRole.DOCS, status="succeeded")
    running = TaskState(task_id="b", role=WorkerRole.DOCS, status="running")
    wave = WaveResult(index=1, tasks={"a": done, "b": running})
    assert wave.complete is False
    running.status = "succeeded"
    assert wave.complete is True


def test_to_dict_serializes_role_value() -> None:
    state = TaskState(task_id="ui", role=WorkerRole.FRONTEND, attempts=1, status="succeeded")
    data = WaveResult(index=2, tasks={"ui": state}).to_dict()
    assert data["index"] == 2
    tasks = data["tasks"]
    assert isinstance(tasks, dict)
    assert tasks["ui"]["role"] == "frontend"
    assert tasks["ui"]["attempts"] == 1
