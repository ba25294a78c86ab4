"""Execution result state for a single executor invocation."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum


class TaskStatus(str, Enum):
    NOT_RUN = "not_run"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class TaskResult:
    """Terminal outcome of one task."""

    name: str
    status: TaskStatus = TaskStatus.NOT_RUN
    return_code: int | None = None
    output: str = ""
    error: str = ""
    duration_s: float = 0.0


class ExecutionState:
    """Result map shared by workers; each task may leave NOT_RUN once."""

    def __init__(self, names: list[str]) -> None:
        self._lock = threading.Lock()
        self._results: dict[str, TaskResult] = {name: TaskResult(name=name) for name in names}

    def status(self, name: str) -> TaskStatus:
        with self._lock:
            return self._results[name].status

    def record(self, result: TaskResult) -> None:
        with self._lock:
            current = self._results[result.name]
            if current.status is not TaskStatus.NOT_RUN:
                raise RuntimeError(
                    f"Task '{result.name}' already finished as {current.status.value}."
                )
            self._results[result.name] = result

    def snapshot(self) -> dict[str, TaskResult]:
        with self._lock:
            return dict(self._results)
