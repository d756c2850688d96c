from __future__ import annotations

import json
import os
import subprocess
import sys
import textwrap
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
FAKE_WORKER = ROOT / "tools" / "fake_worker.py"


def _write_plan(path: Path, content: str) -> None:
    path.write_text(textwrap.dedent(content).strip() + "\n", encoding="utf-8")


def _cli(*args: str) -> subprocess.CompletedProcess[str]:
    env = os.environ.copy()
    src = str(ROOT / "src")
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [src, env.get("PYTHONPATH")]))
    env["COLUMNS"] = "200"
    return subprocess.run(
        [sys.executable, "-m", "wavesched.cli", *args],
        capture_output=True,
        text=True,
        check=False,
        env=env,
    )


def _worker(*flags: str) -> str:
    return json.dumps([sys.executable, str(FAKE_WORKER), *flags])


def test_cli_plan_prints_waves(tmp_path: Path) -> None:
    plan_path = tmp_path / "plan.yaml"
    _write_plan(
        plan_path,
        """
        tasks:
          - id: schema
            role: database
            resources: ["db/schema.sql"]
          - id: api
            role: backend
            depends_on: ["schema"]
        """,
    )

    proc = _cli("plan", str(plan_path))
    assert proc.returncode == 0, proc.stderr
    assert "Wave Schedule" in proc.stdout
    assert "schema" in proc.stdout
    assert "api" in proc.stdout


def test_cli_plan_lists_every_schedule_issue(tmp_path: Path) -> None:
    plan_path = tmp_path / "plan_bad.yaml"
    _write_plan(
        plan_path,
        """
        tasks:
          - id: a
            role: backend
            depends_on: ["b"]
          - id: b
            role: backend
            depends_on: ["a"]
          - id: c
            role: frontend
            depends_on: ["ghost"]
        """,
    )

    proc = _cli("plan", str(plan_path))
    assert proc.returncode == 2
    assert "cyclic dependency between tasks: a, b" in proc.stdout
    assert "unknown task 'ghost'" in proc.stdout


def test_cli_plan_rejects_invalid_plan_file(tmp_path: Path) -> None:
    plan_path = tmp_path / "plan_invalid.yaml"
    _write_plan(plan_path, "tasks: not-a-list")

    proc = _cli("plan", str(plan_path))
    assert proc.returncode == 2
    assert "Plan validation error" in proc.stdout


def test_cli_run_retries_and_succeeds(tmp_path: Path) -> None:
    plan_path = tmp_path / "plan.yaml"
    report_path = tmp_path / "out" / "report.md"
    _write_plan(
        plan_path,
        f"""
        goal: demo
        tasks:
          - id: flaky
            role: testing
            cmd: {_worker("--fail-first")}
          - id: steady
            role: docs
            cmd: {_worker()}
        """,
    )

    proc = _cli(
        "run", str(plan_path), "--workdir", str(tmp_path), "--max-retries", "1",
        "--report", str(report_path),
    )
    assert proc.returncode == 0, proc.stdout + proc.stderr
    assert "outcome: succeeded" in proc.stdout
    markdown = report_path.read_text(encoding="utf-8")
    assert "- goal: demo" in markdown
    assert "| flaky | testing | succeeded | 2 |" in markdown


def test_cli_run_exhausted_task_returns_three_and_reports_json(tmp_path: Path) -> None:
    plan_path = tmp_path / "plan.yaml"
    _write_plan(
        plan_path,
        f"""
        retry:
          max_retries: 2
        tasks:
          - id: broken
            role: backend
            cmd: {_worker("--fail-always")}
          - id: sibling
            role: frontend
            cmd: {_worker()}
          - id: after
            role: docs
            depends_on: ["broken"]
            cmd: {_worker()}
        """,
    )

    proc = _cli("run", str(plan_path), "--workdir", str(tmp_path), "--json")
    assert proc.returncode == 3, proc.stdout + proc.stderr
    report = json.loads(proc.stdout)
    assert report["outcome"] == "completed_with_defects"
    assert report["exhausted"] == [
        {
            "task_id": "broken",
            "wave": 1,
            "attempts": 3,
            "last_error": "exit code 1: forced failure",
        }
    ]
    assert report["tasks"]["sibling"]["status"] == "succeeded"
    assert report["tasks"]["after"]["status"] == "succeeded"


def test_cli_run_finishes_wave_before_starting_next(tmp_path: Path) -> None:
    plan_path = tmp_path / "plan.yaml"
    journal = tmp_path / "journal.log"
    _write_plan(
        plan_path,
        f"""
        tasks:
          - id: T1
            role: database
            wave: 1
            cmd: {_worker("--sleep", "0.3", "--journal", str(journal))}
          - id: T2
            role: backend
            wave: 2
            depends_on: ["T1"]
            cmd: {_worker("--journal", str(journal))}
          - id: T3
            role: frontend
            wave: 2
            cmd: {_worker("--journal", str(journal))}
        """,
    )

    proc = _cli("run", str(plan_path), "--workdir", str(tmp_path))
    assert proc.returncode == 0, proc.stdout + proc.stderr
    lines = journal.read_text(encoding="utf-8").splitlines()
    assert lines[:2] == ["start T1", "end T1"]
    assert sorted(lines[2:]) == ["end T2", "end T3", "start T2", "start T3"]


def test_cli_run_schedule_failure_returns_two(tmp_path: Path) -> None:
    plan_path = tmp_path / "plan.yaml"
    _write_plan(
        plan_path,
        f"""
        tasks:
          - id: a
            role: backend
            wave: 1
            resources: ["app.py"]
            cmd: {_worker()}
          - id: b
            role: backend
            wave: 1
            resources: ["app.py"]
            cmd: {_worker()}
        """,
    )

    proc = _cli("run", str(plan_path), "--workdir", str(tmp_path))
    assert proc.returncode == 2
    assert "both lock 'app.py'" in proc.stdout


def test_cli_run_requires_cmd_for_every_task(tmp_path: Path) -> None:
    plan_path = tmp_path / "plan.yaml"
    _write_plan(
        plan_path,
        """
        tasks:
          - id: a
            role: backend
        """,
    )

    proc = _cli("run", str(plan_path))
    assert proc.returncode == 2
    assert "tasks without cmd" in proc.stdout
