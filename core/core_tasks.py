"""Built-in tasks available unless ``skip_core_tasks`` is set."""

from __future__ import annotations

from planner.task_graph import Task


def core_tasks(user_tasks: dict[str, Task]) -> dict[str, Task]:
    """Return the built-in tasks for a task file."""
    default_deps = ["build_all"] if "build_all" in user_tasks else []
    return {
        "empty": Task(name="empty", description="No-op task."),
        "default": Task(
            name="default",
            dependencies=default_deps,
            description="Default task; runs build_all when defined.",
        ),
    }


def with_core_tasks(user_tasks: dict[str, Task], skip_core_tasks: bool) -> dict[str, Task]:
    """Merge built-in tasks under user tasks; user definitions win."""
    if skip_core_tasks:
        return dict(user_tasks)
    merged = {name: task for name, task in core_tasks(user_tasks).items() if name not in user_tasks}
    merged.update(user_tasks)
    return merged
