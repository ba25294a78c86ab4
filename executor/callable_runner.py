"""In-process runner for callables."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from executor.base_runner import BaseRunner, RunOutcome
from planner.task_graph import Task


class CallableRunner(BaseRunner):
    """Runs a python callable per task.

    Handlers are looked up by task name first, then on ``task.body.callable``.
    A handler returning ``False`` or raising marks the task failed; a
    ``RunOutcome`` return value is passed through unchanged.
    """

    def __init__(self, handlers: Mapping[str, Callable[[], Any]] | None = None) -> None:
        self.handlers = dict(handlers or {})
        self.calls: list[str] = []

    def _run(self, task: Task) -> RunOutcome:
        handler = self.handlers.get(task.name)
        if handler is None and task.body is not None:
            handler = task.body.callable
        if handler is None:
            return RunOutcome(success=False, return_code=-1, error=f"No handler for task '{task.name}'.")
        self.calls.append(task.name)
        value = handler()
        if isinstance(value, RunOutcome):
            return value
        if value is False:
            return RunOutcome(success=False, return_code=1)
        return RunOutcome(success=True, output="" if value in (None, True) else str(value))
