"""Task graph executor: runs an execution plan through a runner.

Tasks run in plan order, one at a time, unless ``max_workers`` is above one,
in which case every task whose dependencies are finished is dispatched to a
thread pool. In both modes a task's runner is only invoked after all of its
in-plan dependencies succeeded; otherwise the task is skipped.

Fail-fast (the default) stops dispatching new work after the first failure.
Tasks left behind are marked skipped when one of their dependencies did not
succeed and stay not-run otherwise.
"""

from __future__ import annotations

import logging
import time
import uuid
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field

from core.event_bus import EventBus
from core.run_log import RunLogger
from core.runtime_config import ExecutorSettings
from core.state_manager import ExecutionState, TaskResult, TaskStatus
from executor.base_runner import BaseRunner
from planner.execution_plan import ExecutionPlan
from planner.task_graph import Task

logger = logging.getLogger("tc.executor")


@dataclass
class ExecutionReport:
    """Terminal state of every task in a plan, in plan order."""

    plan: ExecutionPlan
    results: dict[str, TaskResult] = field(default_factory=dict)
    run_id: str = ""

    def names_with(self, status: TaskStatus) -> list[str]:
        return [name for name, result in self.results.items() if result.status is status]

    @property
    def failed(self) -> list[str]:
        return self.names_with(TaskStatus.FAILED)

    @property
    def skipped(self) -> list[str]:
        return self.names_with(TaskStatus.SKIPPED)

    @property
    def not_run(self) -> list[str]:
        return self.names_with(TaskStatus.NOT_RUN)

    @property
    def succeeded(self) -> bool:
        return all(r.status is TaskStatus.SUCCEEDED for r in self.results.values())

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    def rerun_plan(self) -> ExecutionPlan:
        """Plan covering every task that did not succeed."""
        return self.plan.restrict(
            name for name, r in self.results.items() if r.status is not TaskStatus.SUCCEEDED
        )


class TaskExecutor:
    """Executes plans against a runner under one set of settings."""

    def __init__(
        self,
        runner: BaseRunner,
        settings: ExecutorSettings | None = None,
        event_bus: EventBus | None = None,
        run_logger: RunLogger | None = None,
    ) -> None:
        self.runner = runner
        self.settings = settings or ExecutorSettings()
        self.event_bus = event_bus or EventBus()
        self.run_logger = run_logger

    def execute(self, plan: ExecutionPlan) -> ExecutionReport:
        """Run every task in ``plan`` and return the final result map."""
        run_id = uuid.uuid4().hex[:12]
        state = ExecutionState(plan.order)
        self.event_bus.emit("run_started", {"run_id": run_id, "plan": list(plan.order)})
        logger.info(
            "Run %s: %d tasks, workers=%d, continue_on_failure=%s",
            run_id,
            len(plan),
            self.settings.max_workers,
            self.settings.continue_on_failure,
        )

        if self.settings.max_workers > 1:
            halted = self._execute_parallel(plan, state, run_id)
        else:
            halted = self._execute_sequential(plan, state, run_id)
        if halted:
            self._settle_halted(plan, state, run_id)

        snapshot = state.snapshot()
        report = ExecutionReport(
            plan=plan,
            results={name: snapshot[name] for name in plan.order},
            run_id=run_id,
        )
        self.event_bus.emit(
            "run_completed",
            {"run_id": run_id, "succeeded": report.succeeded, "failed": report.failed},
        )
        logger.info(
            "Run %s finished: %s (%d failed, %d skipped, %d not run)",
            run_id,
            "success" if report.succeeded else "failure",
            len(report.failed),
            len(report.skipped),
            len(report.not_run),
        )
        return report

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _execute_sequential(self, plan: ExecutionPlan, state: ExecutionState, run_id: str) -> bool:
        for name in plan.order:
            result = self._resolve_without_runner(plan, state, name)
            if result is None:
                result = self._invoke(plan.tasks[name], run_id)
            self._record(state, result, run_id)
            if self._halts(result):
                return True
        return False

    def _execute_parallel(self, plan: ExecutionPlan, state: ExecutionState, run_id: str) -> bool:
        pending = list(plan.order)
        running: dict[Future[TaskResult], str] = {}
        halted = False
        with ThreadPoolExecutor(max_workers=self.settings.max_workers) as pool:
            while True:
                if not halted:
                    for name in list(pending):
                        if len(running) >= self.settings.max_workers:
                            break
                        deps = plan.in_plan_dependencies(name)
                        if any(state.status(dep) is TaskStatus.NOT_RUN for dep in deps):
                            continue
                        pending.remove(name)
                        result = self._resolve_without_runner(plan, state, name)
                        if result is not None:
                            self._record(state, result, run_id)
                            continue
                        future = pool.submit(self._invoke, plan.tasks[name], run_id)
                        running[future] = name
                if not running:
                    break
                done, _ = wait(running, return_when=FIRST_COMPLETED)
                for future in done:
                    running.pop(future)
                    result = future.result()
                    self._record(state, result, run_id)
                    if self._halts(result) and not halted:
                        halted = True
                        logger.warning(
                            "Task '%s' failed; waiting for %d running task(s), dispatching no more",
                            result.name,
                            len(running),
                        )
        return halted

    def _settle_halted(self, plan: ExecutionPlan, state: ExecutionState, run_id: str) -> None:
        for name in plan.order:
            if state.status(name) is not TaskStatus.NOT_RUN:
                continue
            blocked = [
                dep
                for dep in plan.in_plan_dependencies(name)
                if state.status(dep) is not TaskStatus.SUCCEEDED
            ]
            if blocked:
                self._record(
                    state,
                    TaskResult(
                        name=name,
                        status=TaskStatus.SKIPPED,
                        error="Dependency did not succeed: " + ", ".join(blocked),
                    ),
                    run_id,
                )

    def _halts(self, result: TaskResult) -> bool:
        return result.status is TaskStatus.FAILED and not self.settings.continue_on_failure

    # ------------------------------------------------------------------
    # Single task
    # ------------------------------------------------------------------

    @staticmethod
    def _resolve_without_runner(
        plan: ExecutionPlan, state: ExecutionState, name: str
    ) -> TaskResult | None:
        """Settle tasks that need no runner call: blocked or composite."""
        blocked = [
            dep
            for dep in plan.in_plan_dependencies(name)
            if state.status(dep) is not TaskStatus.SUCCEEDED
        ]
        if blocked:
            return TaskResult(
                name=name,
                status=TaskStatus.SKIPPED,
                error="Dependency did not succeed: " + ", ".join(blocked),
            )
        if plan.tasks[name].is_composite:
            return TaskResult(name=name, status=TaskStatus.SUCCEEDED)
        return None

    def _invoke(self, task: Task, run_id: str) -> TaskResult:
        self.event_bus.emit("task_started", {"run_id": run_id, "task": task.name})
        logger.info("Starting task '%s'", task.name)
        started = time.monotonic()
        try:
            outcome = self.runner.run(task)
        except Exception as exc:
            logger.exception("Runner crashed on task '%s'", task.name)
            return TaskResult(
                name=task.name,
                status=TaskStatus.FAILED,
                return_code=-1,
                error=f"{type(exc).__name__}: {exc}",
                duration_s=time.monotonic() - started,
            )
        return TaskResult(
            name=task.name,
            status=TaskStatus.SUCCEEDED if outcome.success else TaskStatus.FAILED,
            return_code=outcome.return_code,
            output=outcome.output,
            error=outcome.error,
            duration_s=time.monotonic() - started,
        )

    def _record(self, state: ExecutionState, result: TaskResult, run_id: str) -> None:
        state.record(result)
        if result.status is TaskStatus.FAILED:
            logger.error("Task '%s' failed: %s", result.name, result.error or result.return_code)
        else:
            logger.info("Task '%s' %s", result.name, result.status.value)
        if self.run_logger is not None:
            self.run_logger.log(run_id, result)
        self.event_bus.emit(
            "task_finished",
            {"run_id": run_id, "task": result.name, "status": result.status.value, "result": result},
        )


def execute(
    plan: ExecutionPlan,
    runner: BaseRunner,
    *,
    continue_on_failure: bool = False,
    max_workers: int = 1,
) -> ExecutionReport:
    """Execute ``plan`` with a throwaway executor."""
    settings = ExecutorSettings(continue_on_failure=continue_on_failure, max_workers=max_workers)
    return TaskExecutor(runner, settings=settings).execute(plan)
