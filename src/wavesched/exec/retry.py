from __future__ import annotations

from wavesched.config.schema import RetryPolicy, TaskSpec


def backoff_for_attempt(attempt_idx: int, backoff: list[float]) -> float:
    """
    Return backoff seconds for retry attempt index.

    attempt_idx is zero-based for retries: 0 means first retry wait.
    No configured values means retry immediately.
    """
    if backoff:
        return float(backoff[min(attempt_idx, len(backoff) - 1)])
    return 0.0


def max_attempts(policy: RetryPolicy) -> int:
    return policy.max_retries + 1


def timeout_for(task: TaskSpec, policy: RetryPolicy) -> float | None:
    if task.timeout_sec is not None:
        return task.timeout_sec
    return policy.timeout_sec
