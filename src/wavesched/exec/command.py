"""Executor that runs each task's command as a child process."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

from wavesched.config.schema import TaskSpec
from wavesched.exec.outcome import Failure, Outcome, Success
from wavesched.exec.timeout import terminate_process

PREVIOUS_ERROR_ENV = "WAVESCHED_PREVIOUS_ERROR"


def _escape_nul(text: str) -> str:
    # environment values cannot carry NUL bytes
    return text.replace("\x00", "\\0")


def _tail(data: bytes, n: int) -> list[str]:
    text = data.decode("utf-8", errors="replace")
    lines = [_escape_nul(line) for line in text.splitlines() if line.strip()]
    return lines[-n:] if n > 0 else []


class CommandExecutor:
    def __init__(
        self,
        workdir: Path,
        *,
        env: dict[str, str] | None = None,
        stderr_tail: int = 20,
    ) -> None:
        self.workdir = workdir
        self.env = env
        self.stderr_tail = stderr_tail

    def _environment(self, task: TaskSpec, previous: Failure | None) -> dict[str, str]:
        merged = os.environ.copy()
        if self.env:
            merged.update(self.env)
        merged["WAVESCHED_TASK_ID"] = task.id
        merged["WAVESCHED_ROLE"] = task.role.value
        if previous is not None:
            merged[PREVIOUS_ERROR_ENV] = _escape_nul(previous.error)
        else:
            merged.pop(PREVIOUS_ERROR_ENV, None)
        return merged

    async def __call__(self, task: TaskSpec, previous: Failure | None) -> Outcome:
        if not task.cmd:
            return Failure(error=f"task '{task.id}' has no cmd")
        try:
            proc = await asyncio.create_subprocess_exec(
                *task.cmd,
                cwd=str(self.workdir),
                env=self._environment(task, previous),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (OSError, ValueError) as exc:
            return Failure(error=f"failed to start process: {exc}")

        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            await terminate_process(proc)
            raise

        if proc.returncode == 0:
            return Success(result=stdout.decode("utf-8", errors="replace"))
        detail = "\n".join(_tail(stderr, self.stderr_tail)) or "(no stderr)"
        return Failure(error=f"exit code {proc.returncode}: {detail}")
