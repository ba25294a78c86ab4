"""Task definitions, dependency graph and plan resolution."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from planner.execution_plan import ExecutionPlan


class TaskGraphError(Exception):
    """Base class for task definition errors."""


class UnknownDependency(TaskGraphError):
    """A task lists a dependency that is not defined in the graph."""

    def __init__(self, task_name: str, missing_name: str) -> None:
        super().__init__(f"Task '{task_name}' depends on undefined task '{missing_name}'.")
        self.task_name = task_name
        self.missing_name = missing_name


class UnknownTask(TaskGraphError):
    """A requested task is not defined in the graph."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Task '{name}' is not defined.")
        self.name = name


class CyclicDependency(TaskGraphError):
    """The dependency relation contains a cycle."""

    def __init__(self, cycle: list[str]) -> None:
        super().__init__("Dependency cycle detected: " + " -> ".join(cycle))
        self.cycle = cycle


class TaskKind(str, Enum):
    LEAF = "leaf"
    COMPOSITE = "composite"


@dataclass
class TaskBody:
    """Opaque unit of work handed to a runner.

    Exactly one of ``script``, ``command`` or ``callable`` is expected to be set.
    """

    script: str | None = None
    command: list[str] | None = None
    callable: Callable[[], Any] | None = None
    cwd: str | None = None
    env: dict[str, str] = field(default_factory=dict)


@dataclass
class Task:
    """Named unit of work with ordered dependencies."""

    name: str
    dependencies: list[str] = field(default_factory=list)
    body: TaskBody | None = None
    description: str = ""

    @property
    def is_composite(self) -> bool:
        return self.body is None

    @property
    def kind(self) -> TaskKind:
        return TaskKind.COMPOSITE if self.is_composite else TaskKind.LEAF


class TaskGraph:
    """Mapping of task name to task, in declaration order."""

    def __init__(self, tasks: Iterable[Task] | Mapping[str, Task] = ()) -> None:
        self._tasks: dict[str, Task] = {}
        if isinstance(tasks, Mapping):
            for key, task in tasks.items():
                if key != task.name:
                    raise TaskGraphError(f"Task keyed as '{key}' is named '{task.name}'.")
                self.add(task)
        else:
            for task in tasks:
                self.add(task)

    def add(self, task: Task) -> None:
        if task.name in self._tasks:
            raise TaskGraphError(f"Task '{task.name}' is defined more than once.")
        self._tasks[task.name] = task

    def get(self, name: str) -> Task:
        try:
            return self._tasks[name]
        except KeyError:
            raise UnknownTask(name) from None

    def names(self) -> list[str]:
        return list(self._tasks)

    def dependencies_of(self, name: str) -> list[Task]:
        return [self.get(dep) for dep in self.get(name).dependencies]

    def dependents_of(self, name: str) -> list[str]:
        return [t.name for t in self._tasks.values() if name in t.dependencies]

    def as_mapping(self) -> dict[str, Task]:
        return dict(self._tasks)

    def validate(self) -> None:
        """Check every dependency name resolves to a defined task."""
        for task in self._tasks.values():
            for dep in task.dependencies:
                if dep not in self._tasks:
                    raise UnknownDependency(task.name, dep)

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    def __iter__(self) -> Iterator[Task]:
        return iter(self._tasks.values())

    def __len__(self) -> int:
        return len(self._tasks)


_UNVISITED, _IN_PROGRESS, _FINISHED = 0, 1, 2


def build_plan(
    tasks: TaskGraph | Mapping[str, Task],
    roots: str | Sequence[str] | None = None,
) -> ExecutionPlan:
    """Resolve a dependency-respecting execution order.

    Dependencies are visited in declaration order and roots in the order
    given (all tasks in declaration order when ``roots`` is None), so the
    resulting order is reproducible for identical input.

    Raises:
        UnknownDependency: a task in the graph names an undefined dependency.
        UnknownTask: a requested root is not defined.
        CyclicDependency: a cycle is reachable from a root.
    """
    graph = tasks if isinstance(tasks, TaskGraph) else TaskGraph(tasks)
    graph.validate()

    if roots is None:
        root_names = graph.names()
    elif isinstance(roots, str):
        root_names = [roots]
    else:
        root_names = list(roots)
    for name in root_names:
        if name not in graph:
            raise UnknownTask(name)

    state: dict[str, int] = {}
    order: list[str] = []

    for root in root_names:
        if state.get(root, _UNVISITED) == _FINISHED:
            continue
        # Explicit (task, remaining dependencies) frames; path mirrors the in-progress chain.
        path: list[str] = [root]
        frames: list[tuple[str, Iterator[str]]] = [(root, iter(graph.get(root).dependencies))]
        state[root] = _IN_PROGRESS
        while frames:
            name, deps = frames[-1]
            dep = next(deps, None)
            if dep is None:
                frames.pop()
                path.pop()
                state[name] = _FINISHED
                order.append(name)
                continue
            mark = state.get(dep, _UNVISITED)
            if mark == _FINISHED:
                continue
            if mark == _IN_PROGRESS:
                start = path.index(dep)
                raise CyclicDependency(path[start:] + [dep])
            state[dep] = _IN_PROGRESS
            path.append(dep)
            frames.append((dep, iter(graph.get(dep).dependencies)))

    return ExecutionPlan(
        order=order,
        tasks={name: graph.get(name) for name in order},
        roots=root_names,
    )
