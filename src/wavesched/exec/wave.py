"""Run one wave of tasks concurrently with a bounded retry policy."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime

from wavesched.config.schema import RetryPolicy, TaskSpec
from wavesched.exec.outcome import Failure, Outcome, Success
from wavesched.exec.retry import backoff_for_attempt, max_attempts, timeout_for
from wavesched.state.model import TaskState, WaveResult

logger = logging.getLogger(__name__)

TaskExecutor = Callable[[TaskSpec, Failure | None], Awaitable[Outcome]]


async def _attempt(
    task: TaskSpec,
    executor: TaskExecutor,
    previous: Failure | None,
    timeout_sec: float | None,
) -> Outcome:
    try:
        if timeout_sec is None:
            outcome = await executor(task, previous)
        else:
            outcome = await asyncio.wait_for(executor(task, previous), timeout=timeout_sec)
    except TimeoutError as exc:
        if timeout_sec is None:
            return Failure.from_exception(exc)
        return Failure.timeout(timeout_sec)
    except Exception as exc:
        logger.debug("executor raised for task %s", task.id, exc_info=True)
        return Failure.from_exception(exc)
    if not isinstance(outcome, (Success, Failure)):
        return Failure(
            error=f"executor returned {type(outcome).__name__}, expected Success or Failure",
            kind="exception",
        )
    return outcome


async def run_task(
    task: TaskSpec,
    executor: TaskExecutor,
    policy: RetryPolicy,
    state: TaskState,
) -> None:
    """Drive one task to a terminal status, updating state in place."""
    allowed = max_attempts(policy)
    timeout_sec = timeout_for(task, policy)
    started_dt = datetime.now().astimezone()
    state.started_at = started_dt.isoformat(timespec="seconds")
    previous: Failure | None = None

    while True:
        state.status = "running"
        state.attempts += 1
        outcome = await _attempt(task, executor, previous, timeout_sec)
        if isinstance(outcome, Success):
            state.status = "succeeded"
            state.result = outcome.result
            state.timed_out = False
            break

        state.status = "failed"
        state.errors.append(outcome.error)
        state.timed_out = outcome.kind == "timeout"
        if state.attempts >= allowed:
            state.status = "exhausted"
            logger.warning(
                "task %s exhausted after %d attempts: %s", task.id, state.attempts, outcome.error
            )
            break

        delay = backoff_for_attempt(state.attempts - 1, policy.backoff_sec)
        logger.info(
            "task %s failed attempt %d/%d (%s), retrying in %.2fs",
            task.id,
            state.attempts,
            allowed,
            outcome.kind,
            delay,
        )
        if delay > 0:
            await asyncio.sleep(delay)
        previous = outcome

    ended_dt = datetime.now().astimezone()
    state.ended_at = ended_dt.isoformat(timespec="seconds")
    state.duration_sec = round((ended_dt - started_dt).total_seconds(), 3)


async def run_wave(
    tasks: Sequence[TaskSpec],
    executor: TaskExecutor,
    retry_policy: RetryPolicy | None = None,
    *,
    index: int = 1,
) -> WaveResult:
    """Start every task of the wave together and wait until all are terminal.

    A failing or exhausted task never cancels its siblings.
    """
    policy = retry_policy or RetryPolicy()
    if policy.max_retries < 0:
        raise ValueError("max_retries must be >= 0")
    ids = [task.id for task in tasks]
    if len(set(ids)) != len(ids):
        raise ValueError("task ids in a wave must be unique")

    states = {task.id: TaskState(task_id=task.id, role=task.role) for task in tasks}
    await asyncio.gather(*(run_task(task, executor, policy, states[task.id]) for task in tasks))
    return WaveResult(index=index, tasks=states)
