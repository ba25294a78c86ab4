"""Execution plan models."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from planner.task_graph import Task


@dataclass
class ExecutionPlan:
    """Ordered plan where every task follows its dependencies."""

    order: list[str] = field(default_factory=list)
    tasks: dict[str, Task] = field(default_factory=dict)
    roots: list[str] = field(default_factory=list)

    def index_of(self, name: str) -> int:
        return self.order.index(name)

    def in_plan_dependencies(self, name: str) -> list[str]:
        """Dependencies of ``name`` that are part of this plan.

        Dependencies outside the plan are treated as already satisfied.
        """
        seen: list[str] = []
        for dep in self.tasks[name].dependencies:
            if dep in self.tasks and dep not in seen:
                seen.append(dep)
        return seen

    def restrict(self, names: Iterable[str]) -> ExecutionPlan:
        """Return a plan limited to ``names``, keeping this plan's order."""
        wanted = set(names)
        unknown = wanted.difference(self.order)
        if unknown:
            raise KeyError(f"Tasks not in plan: {', '.join(sorted(unknown))}")
        order = [name for name in self.order if name in wanted]
        return ExecutionPlan(
            order=order,
            tasks={name: self.tasks[name] for name in order},
            roots=[name for name in self.roots if name in wanted],
        )

    def __iter__(self) -> Iterator[str]:
        return iter(self.order)

    def __len__(self) -> int:
        return len(self.order)

    def __contains__(self, name: object) -> bool:
        return name in self.tasks
