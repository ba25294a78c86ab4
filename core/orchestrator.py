"""Top-level wiring of settings, task file, runner and executor."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from core.core_tasks import with_core_tasks
from core.event_bus import EventBus
from core.run_log import RunLogger
from core.runtime_config import ExecutorSettings, build_settings, load_effective_config
from core.task_executor import TaskExecutor
from core.task_file import TaskFile, load_task_file
from executor.base_runner import BaseRunner
from executor.shell_runner import ShellRunner
from planner.task_graph import TaskGraph


@dataclass
class RuntimeBundle:
    """Holds initialized runtime components."""

    config: dict[str, Any]
    settings: ExecutorSettings
    task_file: TaskFile
    graph: TaskGraph
    runner: BaseRunner
    executor: TaskExecutor
    event_bus: EventBus


class Orchestrator:
    """Creates and wires runtime components for CLI use."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = (root or Path.cwd()).resolve()

    def build(
        self,
        task_file: Path | None = None,
        overrides: dict[str, Any] | None = None,
        runner: BaseRunner | None = None,
    ) -> RuntimeBundle:
        """Load config and task file, then build an executor.

        Precedence, lowest first: ``config/*.yaml``, the task file's
        ``[config]`` table, ``overrides`` (CLI flags).
        """
        config = load_effective_config(self.root)
        overrides = overrides or {}
        base = build_settings(config, overrides)

        path = task_file or Path(base.task_file)
        if not path.is_absolute():
            path = self.root / path
        loaded = load_task_file(path)

        settings = build_settings(config, loaded.config, overrides)
        graph = TaskGraph(with_core_tasks(loaded.tasks, settings.skip_core_tasks))

        run_logger = None
        if settings.run_log_path:
            log_path = Path(settings.run_log_path)
            run_logger = RunLogger(log_path if log_path.is_absolute() else self.root / log_path)

        runner = runner or ShellRunner(workspace_dir=path.parent, settings=settings)
        event_bus = EventBus()
        executor = TaskExecutor(
            runner=runner,
            settings=settings,
            event_bus=event_bus,
            run_logger=run_logger,
        )
        return RuntimeBundle(
            config=config,
            settings=settings,
            task_file=loaded,
            graph=graph,
            runner=runner,
            executor=executor,
            event_bus=event_bus,
        )
