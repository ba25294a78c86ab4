"""Runner interface and execution wrapper."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from planner.task_graph import Task

logger = logging.getLogger("tc.runner")


@dataclass
class RunOutcome:
    """What a runner reports back for one task body."""

    success: bool
    return_code: int = 0
    output: str = ""
    error: str = ""


class BaseRunner(ABC):
    """Executes opaque task bodies and reports success or failure."""

    def run(self, task: Task) -> RunOutcome:
        """Run the task body, converting raised errors into a failed outcome."""
        try:
            outcome = self._run(task)
        except Exception as exc:
            logger.warning("Task '%s' raised %s: %s", task.name, type(exc).__name__, exc)
            return RunOutcome(success=False, return_code=-1, error=f"{type(exc).__name__}: {exc}")
        if not outcome.success:
            logger.info("Task '%s' failed with code %d", task.name, outcome.return_code)
        return outcome

    @abstractmethod
    def _run(self, task: Task) -> RunOutcome:
        """Runner-specific execution logic."""
