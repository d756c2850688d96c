from __future__ import annotations

import logging
from collections.abc import Sequence

from wavesched.config.schema import RetryPolicy, TaskSpec
from wavesched.dag.schedule import Schedule, build_schedule
from wavesched.exec.wave import TaskExecutor, run_wave
from wavesched.report.summarize import RunReport, aggregate, schedule_failed_report
from wavesched.state.model import WaveResult
from wavesched.util.errors import ScheduleError

logger = logging.getLogger(__name__)


async def run_schedule(
    schedule: Schedule,
    executor: TaskExecutor,
    retry_policy: RetryPolicy | None = None,
) -> list[WaveResult]:
    """Run waves in ascending order; a wave starts once the previous one is terminal."""
    results: list[WaveResult] = []
    for wave in schedule.waves:
        logger.info("wave %d: starting %d task(s)", wave.index, len(wave.task_ids))
        result = await run_wave(
            schedule.tasks_in(wave), executor, retry_policy, index=wave.index
        )
        exhausted = sorted(t.task_id for t in result.tasks.values() if t.status == "exhausted")
        if exhausted:
            logger.warning("wave %d: finished with exhausted tasks %s", wave.index, exhausted)
        else:
            logger.info("wave %d: all tasks succeeded", wave.index)
        results.append(result)
    return results


async def run_plan(
    tasks: Sequence[TaskSpec],
    executor: TaskExecutor,
    retry_policy: RetryPolicy | None = None,
) -> RunReport:
    """Build, run and aggregate; a schedule that cannot be built is reported, not raised."""
    try:
        schedule = build_schedule(tasks)
    except ScheduleError as exc:
        logger.error("%s", exc)
        return schedule_failed_report(exc)
    results = await run_schedule(schedule, executor, retry_policy)
    return aggregate(results)
