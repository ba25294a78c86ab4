"""Typer command handlers."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import typer

from core.orchestrator import Orchestrator, RuntimeBundle
from core.state_manager import TaskStatus
from core.task_file import TaskFileError
from planner.task_graph import TaskGraphError, build_plan

EXIT_DEFINITION_ERROR = 2

_STATUS_LABELS = {
    TaskStatus.SUCCEEDED: "ok",
    TaskStatus.FAILED: "FAILED",
    TaskStatus.SKIPPED: "skipped",
    TaskStatus.NOT_RUN: "not run",
}


def _runtime(task_file: Path | None, overrides: dict[str, Any] | None = None) -> RuntimeBundle:
    try:
        bundle = Orchestrator().build(task_file=task_file, overrides=overrides)
    except (TaskFileError, TaskGraphError, ValueError, OSError) as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=EXIT_DEFINITION_ERROR) from exc
    configure_logging(bundle.settings.log_level)
    return bundle


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def run_tasks(
    tasks: list[str],
    task_file: Path | None,
    skip_core_tasks: bool | None,
    no_workspace: bool,
    continue_on_failure: bool,
    jobs: int | None,
    run_log: Path | None,
    log_level: str | None = None,
) -> None:
    """Plan and execute the requested tasks, exiting with the aggregate status."""
    overrides: dict[str, Any] = {
        "skip_core_tasks": skip_core_tasks,
        "default_to_workspace": False if no_workspace else None,
        "continue_on_failure": True if continue_on_failure else None,
        "max_workers": jobs,
        "run_log_path": str(run_log) if run_log else None,
        "log_level": log_level,
    }
    bundle = _runtime(task_file, overrides)
    try:
        plan = build_plan(bundle.graph, tasks)
    except TaskGraphError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=EXIT_DEFINITION_ERROR) from exc

    bundle.event_bus.subscribe(
        "task_started", lambda payload: typer.echo(f"==> {payload['task']}")
    )
    report = bundle.executor.execute(plan)

    typer.echo("")
    for name, result in report.results.items():
        line = f"{_STATUS_LABELS[result.status]:>8}  {name}"
        if result.status in (TaskStatus.FAILED, TaskStatus.SKIPPED) and result.error:
            line += f"  ({result.error.splitlines()[-1]})"
        typer.echo(line)
        if result.status is TaskStatus.FAILED and result.output:
            typer.echo(result.output.rstrip(), err=True)
    raise typer.Exit(code=report.exit_code)


def show_plan(
    tasks: list[str], task_file: Path | None, skip_core_tasks: bool | None = None
) -> None:
    """Print the execution order for the requested tasks."""
    bundle = _runtime(task_file, {"skip_core_tasks": skip_core_tasks})
    try:
        plan = build_plan(bundle.graph, tasks)
    except TaskGraphError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=EXIT_DEFINITION_ERROR) from exc
    for index, name in enumerate(plan, start=1):
        typer.echo(f"{index}. {name}")


def list_tasks(task_file: Path | None, skip_core_tasks: bool | None = None) -> None:
    """List tasks with kind and dependencies."""
    bundle = _runtime(task_file, {"skip_core_tasks": skip_core_tasks})
    for task in bundle.graph:
        deps = ", ".join(task.dependencies) if task.dependencies else "-"
        typer.echo(f"{task.name} [{task.kind.value}] deps: {deps}")


def config_show(task_file: Path | None) -> None:
    """Show effective executor settings."""
    bundle = _runtime(task_file)
    typer.echo(json.dumps(bundle.settings.model_dump(), indent=2))
