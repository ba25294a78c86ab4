"""CLI entrypoint for taskchain."""

from __future__ import annotations

from pathlib import Path

import typer

from ui.cli import commands

app = typer.Typer(help="Dependency-ordered task runner")
config_app = typer.Typer(help="Configuration commands")

TASK_FILE_OPTION = typer.Option(None, "--file", "-f", help="Task file (.toml, .yaml)")


@app.command("run")
def run_cmd(
    tasks: list[str] = typer.Argument(..., help="Tasks to run"),
    task_file: Path | None = TASK_FILE_OPTION,
    skip_core_tasks: bool | None = typer.Option(
        None,
        "--skip-core-tasks/--core-tasks",
        help="Run without the built-in core tasks",
    ),
    no_workspace: bool = typer.Option(
        False, "--no-workspace", help="Run bodies once in the task file directory"
    ),
    continue_on_failure: bool = typer.Option(
        False, "--continue-on-failure", help="Keep running branches independent of a failure"
    ),
    jobs: int | None = typer.Option(None, "--jobs", "-j", min=1, help="Parallel workers"),
    run_log: Path | None = typer.Option(None, "--run-log", help="JSONL run log path"),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level"),
) -> None:
    """Run tasks and their dependencies."""
    commands.run_tasks(
        tasks=tasks,
        task_file=task_file,
        skip_core_tasks=skip_core_tasks,
        no_workspace=no_workspace,
        continue_on_failure=continue_on_failure,
        jobs=jobs,
        run_log=run_log,
        log_level=log_level,
    )


@app.command("plan")
def plan_cmd(
    tasks: list[str] = typer.Argument(..., help="Tasks to plan"),
    task_file: Path | None = TASK_FILE_OPTION,
    skip_core_tasks: bool | None = typer.Option(None, "--skip-core-tasks/--core-tasks"),
) -> None:
    """Show the execution order without running anything."""
    commands.show_plan(tasks=tasks, task_file=task_file, skip_core_tasks=skip_core_tasks)


@app.command("list")
def list_cmd(
    task_file: Path | None = TASK_FILE_OPTION,
    skip_core_tasks: bool | None = typer.Option(None, "--skip-core-tasks/--core-tasks"),
) -> None:
    """List defined tasks."""
    commands.list_tasks(task_file=task_file, skip_core_tasks=skip_core_tasks)


@config_app.command("show")
def config_show_cmd(task_file: Path | None = TASK_FILE_OPTION) -> None:
    """Show effective configuration."""
    commands.config_show(task_file=task_file)


app.add_typer(config_app, name="config")


def main() -> None:
    """Console script entrypoint."""
    app()


if __name__ == "__main__":
    main()
