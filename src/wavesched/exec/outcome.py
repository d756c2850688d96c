"""Values an executor returns for a single attempt."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

FailureKind = Literal["error", "timeout", "exception"]


@dataclass(frozen=True, slots=True)
class Success:
    result: Any = None


@dataclass(frozen=True, slots=True)
class Failure:
    error: str
    kind: FailureKind = "error"

    @classmethod
    def timeout(cls, timeout_sec: float) -> Failure:
        return cls(error=f"timed out after {timeout_sec:g}s", kind="timeout")

    @classmethod
    def from_exception(cls, exc: BaseException) -> Failure:
        return cls(error=f"{type(exc).__name__}: {exc}", kind="exception")


Outcome = Success | Failure
