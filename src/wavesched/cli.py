from __future__ import annotations

import asyncio
import json
import stat
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from wavesched.config.loader import load_plan
from wavesched.config.schema import PlanSpec, RetryPolicy
from wavesched.dag.schedule import Schedule, build_schedule
from wavesched.exec.command import CommandExecutor
from wavesched.exec.runner import run_plan
from wavesched.report.render_md import render_markdown
from wavesched.report.summarize import RunOutcome, RunReport
from wavesched.util.errors import PlanError, ScheduleError
from wavesched.util.log import configure_logging

app = typer.Typer(help="Wave-based parallel task scheduler")
console = Console()


def _exit_code_for_report(report: RunReport) -> int:
    if report.outcome is RunOutcome.SUCCEEDED:
        return 0
    if report.outcome is RunOutcome.SCHEDULE_FAILED:
        return 2
    return 3


def _load_plan_or_exit(plan_path: Path) -> PlanSpec:
    try:
        return load_plan(plan_path)
    except PlanError as exc:
        console.print(f"[red]Plan validation error:[/red] {exc}")
        raise typer.Exit(2) from exc


def _print_issues(issues: list[str]) -> None:
    console.print("[red]Schedule could not be built:[/red]")
    for issue in issues:
        console.print(f"  - {issue}")


def _resolve_workdir_or_exit(workdir: Path) -> Path:
    try:
        resolved = workdir.resolve()
        meta = resolved.stat()
    except (OSError, RuntimeError) as exc:
        console.print(f"[red]Invalid workdir:[/red] {workdir}")
        raise typer.Exit(2) from exc
    if not stat.S_ISDIR(meta.st_mode):
        console.print(f"[red]Invalid workdir:[/red] {workdir}")
        raise typer.Exit(2)
    return resolved


def _retry_policy(
    plan: PlanSpec, max_retries: int | None, timeout_sec: float | None
) -> RetryPolicy:
    policy = plan.retry
    backoff = policy.backoff_sec
    if max_retries is not None:
        backoff = backoff[:max_retries]
    return RetryPolicy(
        max_retries=policy.max_retries if max_retries is None else max_retries,
        timeout_sec=policy.timeout_sec if timeout_sec is None else timeout_sec,
        backoff_sec=backoff,
    )


def _wave_table(schedule: Schedule) -> Table:
    table = Table(title="Wave Schedule")
    table.add_column("wave", justify="right")
    table.add_column("task_id")
    table.add_column("role")
    table.add_column("resources")
    table.add_column("depends_on")
    for wave in schedule.waves:
        for task in schedule.tasks_in(wave):
            table.add_row(
                str(wave.index),
                task.id,
                task.role.value,
                ", ".join(task.resources) or "-",
                ", ".join(task.depends_on) or "-",
            )
    return table


def _write_report(report: RunReport, destination: Path, goal: str | None) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(render_markdown(report, goal=goal) + "\n", encoding="utf-8")


@app.command()
def plan(
    plan_path: Annotated[Path, typer.Argument(exists=True)],
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """Validate a plan and print its waves."""
    configure_logging(verbose)
    spec = _load_plan_or_exit(plan_path)
    try:
        schedule = build_schedule(spec.tasks)
    except ScheduleError as exc:
        _print_issues([issue.describe() for issue in exc.issues])
        raise typer.Exit(2) from exc
    console.print(_wave_table(schedule))


@app.command()
def run(
    plan_path: Annotated[Path, typer.Argument(exists=True)],
    workdir: Annotated[Path, typer.Option("--workdir")] = Path("."),
    max_retries: Annotated[int | None, typer.Option("--max-retries", min=0)] = None,
    timeout_sec: Annotated[float | None, typer.Option("--timeout", min=0.001)] = None,
    report_path: Annotated[Path | None, typer.Option("--report")] = None,
    as_json: Annotated[bool, typer.Option("--json")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """Run every task's command wave by wave."""
    configure_logging(verbose)
    spec = _load_plan_or_exit(plan_path)
    missing_cmd = [task.id for task in spec.tasks if not task.cmd]
    if missing_cmd:
        console.print(f"[red]Plan validation error:[/red] tasks without cmd: {missing_cmd}")
        raise typer.Exit(2)
    resolved_workdir = _resolve_workdir_or_exit(workdir)
    policy = _retry_policy(spec, max_retries, timeout_sec)

    report = asyncio.run(run_plan(spec.tasks, CommandExecutor(resolved_workdir), policy))

    if report_path is not None:
        try:
            _write_report(report, report_path, spec.goal)
        except OSError as exc:
            console.print(f"[yellow]Warning:[/yellow] failed to write report: {exc}")

    if as_json:
        typer.echo(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))
        raise typer.Exit(_exit_code_for_report(report))

    if report.outcome is RunOutcome.SCHEDULE_FAILED:
        _print_issues(report.issues)
        raise typer.Exit(2)

    table = Table(title="Run Summary")
    table.add_column("wave", justify="right")
    table.add_column("tasks", justify="right")
    table.add_column("succeeded", justify="right")
    table.add_column("failed_attempts", justify="right")
    table.add_column("exhausted", justify="right")
    for wave in report.waves:
        table.add_row(
            str(wave.index),
            str(wave.total),
            str(wave.succeeded),
            str(wave.failed_attempts),
            str(wave.exhausted),
        )
    console.print(table)
    for row in report.exhausted:
        console.print(f"[yellow]exhausted:[/yellow] {row.task_id} ({row.last_error})")
    console.print(f"outcome: [bold]{report.outcome.value}[/bold]")
    raise typer.Exit(_exit_code_for_report(report))


if __name__ == "__main__":
    app()
