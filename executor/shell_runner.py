"""Runner that executes script and command bodies as subprocesses."""

from __future__ import annotations

import logging
from pathlib import Path

from core.runtime_config import ExecutorSettings
from executor.base_runner import BaseRunner, RunOutcome
from executor.command_executor import run_command
from planner.task_graph import Task

logger = logging.getLogger("tc.shell_runner")

_MAX_OUTPUT_CHARS = 20000


class ShellRunner(BaseRunner):
    """Runs task bodies in the workspace, once per member when fanning out."""

    def __init__(self, workspace_dir: Path, settings: ExecutorSettings | None = None) -> None:
        self.workspace_dir = workspace_dir
        self.settings = settings or ExecutorSettings()

    def target_dirs(self, task: Task) -> list[Path]:
        """Directories a task body runs in."""
        if self.settings.default_to_workspace and self.settings.workspace_members:
            bases = [self.workspace_dir / member for member in self.settings.workspace_members]
        else:
            bases = [self.workspace_dir]
        if task.body is not None and task.body.cwd:
            return [base / task.body.cwd for base in bases]
        return bases

    def _run(self, task: Task) -> RunOutcome:
        body = task.body
        if body is None:
            return RunOutcome(success=True)
        if body.script is not None:
            command: list[str] | str = body.script
        elif body.command:
            command = list(body.command)
        else:
            return RunOutcome(
                success=False,
                return_code=-1,
                error=f"Task '{task.name}' has no script or command for a shell runner.",
            )

        outputs: list[str] = []
        for cwd in self.target_dirs(task):
            logger.info("Running task '%s' in %s", task.name, cwd)
            code, stdout, stderr = run_command(
                command,
                cwd=cwd,
                env=body.env,
                capture_output=self.settings.capture_output,
            )
            outputs.append(stdout + stderr)
            if code != 0:
                return RunOutcome(
                    success=False,
                    return_code=code,
                    output=self._trim("".join(outputs)),
                    error=self._trim(stderr.strip()) or f"exit code {code} in {cwd}",
                )
        return RunOutcome(success=True, return_code=0, output=self._trim("".join(outputs)))

    @staticmethod
    def _trim(text: str) -> str:
        return text[-_MAX_OUTPUT_CHARS:]
