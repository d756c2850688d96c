from __future__ import annotations

from wavesched.report.summarize import RunOutcome, RunReport

_OUTCOME_TEXT = {
    RunOutcome.SUCCEEDED: "all tasks succeeded",
    RunOutcome.COMPLETED_WITH_DEFECTS: "some tasks exhausted their retries",
    RunOutcome.SCHEDULE_FAILED: "schedule could not be built",
}


def _one_line(text: str | None) -> str:
    if not text:
        return "(none)"
    return " ".join(text.split())


def render_markdown(report: RunReport, *, goal: str | None = None) -> str:
    lines: list[str] = []
    lines.append("# Final Run Report")
    lines.append("")
    lines.append("## Run Overview")
    lines.append("")
    lines.append(f"- goal: {goal or '(none)'}")
    lines.append(f"- outcome: **{report.outcome.value}** ({_OUTCOME_TEXT[report.outcome]})")
    lines.append(f"- total_tasks: {report.total_tasks}")
    lines.append("")

    if report.outcome is RunOutcome.SCHEDULE_FAILED:
        lines.append("## Schedule Issues")
        lines.append("")
        for issue in report.issues:
            lines.append(f"- {issue}")
        lines.append("")
        return "\n".join(lines)

    lines.append("## Waves")
    lines.append("")
    lines.append("| wave | tasks | succeeded | failed_attempts | exhausted |")
    lines.append("|---:|---:|---:|---:|---:|")
    for wave in report.waves:
        lines.append(
            f"| {wave.index} | {wave.total} | {wave.succeeded} | "
            f"{wave.failed_attempts} | {wave.exhausted} |"
        )
    lines.append("")
    lines.append("## Task Results")
    lines.append("")
    lines.append("| id | role | status | attempts | duration_sec | last_error |")
    lines.append("|---|---|---|---:|---:|---|")
    for task_id, task in report.tasks.items():
        lines.append(
            f"| {task_id} | {task.role.value} | {task.status} | {task.attempts} | "
            f"{task.duration_sec} | {_one_line(task.last_error)} |"
        )
    lines.append("")
    lines.append("## Exhausted Tasks")
    lines.append("")
    if report.exhausted:
        for row in report.exhausted:
            lines.append(f"### {row.task_id} (wave {row.wave}, {row.attempts} attempts)")
            lines.append("```")
            lines.append(row.last_error or "(empty)")
            lines.append("```")
            lines.append("")
    else:
        lines.append("No exhausted tasks.")
        lines.append("")
    return "\n".join(lines)
