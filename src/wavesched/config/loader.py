from __future__ import annotations

import math
import re
import shlex
from pathlib import Path
from typing import Any

import yaml

from wavesched.config.schema import PlanSpec, RetryPolicy, TaskSpec, WorkerRole
from wavesched.util.errors import PlanError

_SAFE_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
_TASK_ID_MAX_LEN = 128
_ALLOWED_PLAN_KEYS = {"goal", "retry", "tasks"}
_ALLOWED_RETRY_KEYS = {"max_retries", "timeout_sec", "backoff_sec"}
_ALLOWED_TASK_KEYS = {
    "id",
    "role",
    "resources",
    "depends_on",
    "wave",
    "cmd",
    "timeout_sec",
}
_ROLE_VALUES = sorted(role.value for role in WorkerRole)


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_finite_real_number(value: object) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    return math.isfinite(value)


def _is_non_blank_str(value: object) -> bool:
    return isinstance(value, str) and bool(value.strip()) and "\x00" not in value


def _is_safe_id(value: object) -> bool:
    return isinstance(value, str) and _SAFE_ID_PATTERN.fullmatch(value) is not None


def normalize_cmd(cmd: str | list[str]) -> list[str]:
    if isinstance(cmd, str):
        try:
            parts = shlex.split(cmd)
        except ValueError as exc:
            raise PlanError(f"invalid cmd string: {exc}") from exc
        if not parts:
            raise PlanError("cmd string must not be empty")
        if any("\x00" in part for part in parts):
            raise PlanError("cmd must not contain null bytes")
        return parts
    if isinstance(cmd, list) and cmd and all(_is_non_blank_str(p) for p in cmd):
        return cmd
    raise PlanError("cmd must be str or non-empty list[str]")


def _ensure_list_str(name: str, value: Any, *, non_empty_items: bool = False) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise PlanError(f"{name} must be list[str]")
    if non_empty_items and any(not _is_non_blank_str(v) for v in value):
        raise PlanError(f"{name} must not contain empty strings")
    return value


def _parse_timeout(owner: str, value: Any) -> float | None:
    if value is None:
        return None
    if not _is_finite_real_number(value) or value <= 0:
        raise PlanError(f"{owner} timeout_sec must be > 0")
    return float(value)


def _parse_role(task_id: str, value: Any) -> WorkerRole:
    if not isinstance(value, str):
        raise PlanError(f"task '{task_id}' role must be one of {_ROLE_VALUES}")
    try:
        return WorkerRole(value.strip().lower())
    except ValueError as exc:
        raise PlanError(f"task '{task_id}' role must be one of {_ROLE_VALUES}") from exc


def _parse_task(raw: Any) -> TaskSpec:
    if not isinstance(raw, dict):
        raise PlanError("task must be mapping")
    if any(not isinstance(key, str) for key in raw):
        raise PlanError("task fields must use string keys")
    if "id" not in raw or not _is_non_blank_str(raw["id"]):
        raise PlanError("task.id is required and must be non-empty string")
    if len(raw["id"]) > _TASK_ID_MAX_LEN:
        raise PlanError(f"task.id must be <= {_TASK_ID_MAX_LEN} characters")
    if not _is_safe_id(raw["id"]):
        raise PlanError("task.id must match ^[A-Za-z0-9][A-Za-z0-9._-]*$")
    task_id = raw["id"]
    unknown = set(raw.keys()) - _ALLOWED_TASK_KEYS
    if unknown:
        raise PlanError(f"task '{task_id}' has unknown fields: {sorted(unknown)}")
    if "role" not in raw:
        raise PlanError(f"task '{task_id}' missing role")

    wave = raw.get("wave")
    if wave is not None and not _is_int(wave):
        raise PlanError(f"task '{task_id}' wave must be int")

    resources = _ensure_list_str("resources", raw.get("resources", []), non_empty_items=True)
    if len(set(resources)) != len(resources):
        raise PlanError(f"task '{task_id}' has duplicate resources")
    depends_on = _ensure_list_str("depends_on", raw.get("depends_on", []), non_empty_items=True)
    if len(set(depends_on)) != len(depends_on):
        raise PlanError(f"task '{task_id}' has duplicate dependencies")

    cmd = raw.get("cmd")
    return TaskSpec(
        id=task_id,
        role=_parse_role(task_id, raw["role"]),
        resources=resources,
        depends_on=depends_on,
        wave=wave,
        cmd=None if cmd is None else normalize_cmd(cmd),
        timeout_sec=_parse_timeout(f"task '{task_id}'", raw.get("timeout_sec")),
    )


def _parse_retry(raw: Any) -> RetryPolicy:
    if raw is None:
        return RetryPolicy()
    if not isinstance(raw, dict):
        raise PlanError("plan.retry must be a mapping")
    unknown = set(raw.keys()) - _ALLOWED_RETRY_KEYS
    if unknown:
        raise PlanError(f"plan.retry has unknown fields: {sorted(unknown)}")

    max_retries = raw.get("max_retries", RetryPolicy().max_retries)
    if not _is_int(max_retries) or max_retries < 0:
        raise PlanError("plan.retry.max_retries must be int >= 0")

    raw_backoff = raw.get("backoff_sec", [])
    if not isinstance(raw_backoff, list) or not all(
        _is_finite_real_number(v) and v >= 0 for v in raw_backoff
    ):
        raise PlanError("plan.retry.backoff_sec must be list[number>=0]")
    backoff = [float(v) for v in raw_backoff]
    if len(backoff) > max_retries:
        raise PlanError("plan.retry.backoff_sec length must be <= max_retries")

    return RetryPolicy(
        max_retries=max_retries,
        timeout_sec=_parse_timeout("plan.retry", raw.get("timeout_sec")),
        backoff_sec=backoff,
    )


def parse_plan(raw: Any) -> PlanSpec:
    """Build a plan from already-decoded YAML/JSON data."""
    if not isinstance(raw, dict):
        raise PlanError("plan root must be a mapping")
    if any(not isinstance(key, str) for key in raw):
        raise PlanError("plan root keys must be strings")
    unknown_root = set(raw.keys()) - _ALLOWED_PLAN_KEYS
    if unknown_root:
        raise PlanError(f"plan contains unknown fields: {sorted(unknown_root)}")

    raw_tasks = raw.get("tasks")
    if not isinstance(raw_tasks, list):
        raise PlanError("plan.tasks must be a list")
    if not raw_tasks:
        raise PlanError("plan.tasks must contain at least one task")

    goal = raw.get("goal")
    if goal is not None and not _is_non_blank_str(goal):
        raise PlanError("plan.goal must be non-empty string when provided")

    return PlanSpec(
        goal=goal,
        tasks=[_parse_task(task) for task in raw_tasks],
        retry=_parse_retry(raw.get("retry")),
    )


def load_plan(path: Path) -> PlanSpec:
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise PlanError(f"plan file not found: {path}") from exc
    except UnicodeError as exc:
        raise PlanError(f"failed to decode plan file as utf-8: {path}") from exc
    except OSError as exc:
        raise PlanError(f"failed to read plan file: {path}") from exc

    try:
        raw = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise PlanError(f"failed to parse yaml: {exc}") from exc

    return parse_plan(raw)
