"""Executor behavior tests with deterministic in-process runners."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from core.event_bus import EventBus
from core.run_log import RunLogger
from core.runtime_config import ExecutorSettings
from core.state_manager import ExecutionState, TaskResult, TaskStatus
from core.task_executor import TaskExecutor, execute
from executor.base_runner import RunOutcome
from executor.callable_runner import CallableRunner
from planner.task_graph import Task, TaskBody, build_plan


def _leaf(name: str, *deps: str) -> Task:
    return Task(name, dependencies=list(deps), body=TaskBody(script=f"echo {name}"))


def _graph(*tasks: Task) -> dict[str, Task]:
    return {t.name: t for t in tasks}


def test_sequential_run_succeeds_in_plan_order() -> None:
    tasks = _graph(_leaf("a"), _leaf("b", "a"), _leaf("c", "b"))
    runner = CallableRunner({"a": lambda: None, "b": lambda: None, "c": lambda: None})

    report = execute(build_plan(tasks, "c"), runner)

    assert runner.calls == ["a", "b", "c"]
    assert report.succeeded is True
    assert report.exit_code == 0
    assert list(report.results) == ["a", "b", "c"]


def test_fail_fast_skips_dependents_without_running_them() -> None:
    tasks = _graph(_leaf("a"), _leaf("b", "a"), _leaf("c", "a"), Task("all", ["b", "c"]))
    runner = CallableRunner({"a": lambda: False, "b": lambda: None, "c": lambda: None})

    report = execute(build_plan(tasks, "all"), runner)

    assert runner.calls == ["a"]
    assert report.results["a"].status is TaskStatus.FAILED
    assert report.results["b"].status is TaskStatus.SKIPPED
    assert report.results["c"].status is TaskStatus.SKIPPED
    assert report.results["all"].status is TaskStatus.SKIPPED
    assert report.exit_code == 1


def test_fail_fast_leaves_independent_tasks_not_run() -> None:
    tasks = _graph(_leaf("a"), _leaf("b"), _leaf("c", "b"))
    runner = CallableRunner({"a": lambda: False, "b": lambda: None, "c": lambda: None})

    report = execute(build_plan(tasks), runner)

    assert runner.calls == ["a"]
    assert report.results["b"].status is TaskStatus.NOT_RUN
    assert report.results["c"].status is TaskStatus.SKIPPED
    assert report.not_run == ["b"]


def test_continue_on_failure_runs_independent_branches() -> None:
    tasks = _graph(_leaf("a"), _leaf("b", "a"), _leaf("c"), _leaf("d", "c"))
    runner = CallableRunner(
        {"a": lambda: False, "b": lambda: None, "c": lambda: None, "d": lambda: None}
    )

    report = execute(build_plan(tasks), runner, continue_on_failure=True)

    assert runner.calls == ["a", "c", "d"]
    assert report.failed == ["a"]
    assert report.skipped == ["b"]
    assert report.results["d"].status is TaskStatus.SUCCEEDED
    assert report.exit_code == 1


def test_composite_task_follows_its_dependencies() -> None:
    tasks = _graph(
        _leaf("build_program"),
        _leaf("build_client"),
        Task("build_all", ["build_program", "build_client"]),
    )
    passing = CallableRunner({"build_program": lambda: None, "build_client": lambda: None})

    ok = execute(build_plan(tasks, "build_all"), passing)
    assert ok.results["build_all"].status is TaskStatus.SUCCEEDED

    failing = CallableRunner({"build_program": lambda: None, "build_client": lambda: False})
    bad = execute(build_plan(tasks, "build_all"), failing, continue_on_failure=True)
    assert bad.results["build_all"].status is TaskStatus.SKIPPED
    assert "build_all" not in failing.calls


def test_vacuous_task_succeeds_without_runner() -> None:
    runner = MagicMock()
    report = execute(build_plan({"noop": Task("noop")}, "noop"), runner)

    assert report.results["noop"].status is TaskStatus.SUCCEEDED
    runner.run.assert_not_called()


def test_runner_exception_is_reported_as_failure() -> None:
    def boom() -> None:
        raise RuntimeError("toolchain missing")

    report = execute(build_plan(_graph(_leaf("a")), "a"), CallableRunner({"a": boom}))

    assert report.results["a"].status is TaskStatus.FAILED
    assert "toolchain missing" in report.results["a"].error


def test_runner_outcome_details_are_kept() -> None:
    runner = CallableRunner({"a": lambda: RunOutcome(success=False, return_code=3, output="log")})
    report = execute(build_plan(_graph(_leaf("a")), "a"), runner)

    result = report.results["a"]
    assert result.return_code == 3
    assert result.output == "log"


def test_parallel_independent_task_does_not_wait() -> None:
    b_finished = threading.Event()

    def slow_a() -> bool:
        return b_finished.wait(timeout=5)

    tasks = _graph(_leaf("a"), _leaf("b"))
    runner = CallableRunner({"a": slow_a, "b": b_finished.set})

    report = execute(build_plan(tasks), runner, max_workers=2)

    assert report.results["a"].status is TaskStatus.SUCCEEDED
    assert report.results["b"].status is TaskStatus.SUCCEEDED


def test_parallel_respects_dependencies() -> None:
    finished: list[str] = []
    lock = threading.Lock()

    def handler(name: str):
        def _run() -> None:
            with lock:
                finished.append(name)
        return _run

    tasks = _graph(_leaf("a"), _leaf("b"), _leaf("c", "a", "b"), _leaf("d", "c"))
    runner = CallableRunner({name: handler(name) for name in tasks})

    report = execute(build_plan(tasks), runner, max_workers=4)

    assert report.succeeded is True
    assert finished.index("c") > finished.index("a")
    assert finished.index("c") > finished.index("b")
    assert finished[-1] == "d"


def test_parallel_fail_fast_lets_running_sibling_finish() -> None:
    a_started = threading.Event()

    def slow_ok() -> None:
        a_started.set()

    def fail_after_start() -> bool:
        a_started.wait(timeout=5)
        return False

    tasks = _graph(_leaf("a"), _leaf("b"), _leaf("c", "b"), _leaf("z"))
    runner = CallableRunner(
        {"a": slow_ok, "b": fail_after_start, "c": lambda: None, "z": lambda: None}
    )

    report = execute(build_plan(tasks, ["a", "b", "c", "z"]), runner, max_workers=2)

    assert report.results["a"].status is TaskStatus.SUCCEEDED
    assert report.results["b"].status is TaskStatus.FAILED
    assert report.results["c"].status is TaskStatus.SKIPPED
    assert "c" not in runner.calls


def test_rerun_plan_covers_failed_and_skipped() -> None:
    tasks = _graph(_leaf("a"), _leaf("b", "a"), _leaf("c", "b"))
    attempts = {"b": 0}

    def flaky() -> bool:
        attempts["b"] += 1
        return attempts["b"] > 1

    runner = CallableRunner({"a": lambda: None, "b": flaky, "c": lambda: None})
    first = execute(build_plan(tasks, "c"), runner)
    assert first.failed == ["b"]

    retry = execute(first.rerun_plan(), runner)

    assert retry.plan.order == ["b", "c"]
    assert retry.succeeded is True
    assert runner.calls == ["a", "b", "b", "c"]


def test_events_and_run_log_record_every_task(tmp_path: Path) -> None:
    bus = EventBus()
    finished: list[tuple[str, str]] = []
    bus.subscribe("task_finished", lambda p: finished.append((p["task"], p["status"])))
    log_path = tmp_path / "logs" / "runs.jsonl"

    tasks = _graph(_leaf("a"), _leaf("b", "a"))
    executor = TaskExecutor(
        CallableRunner({"a": lambda: False, "b": lambda: None}),
        settings=ExecutorSettings(),
        event_bus=bus,
        run_logger=RunLogger(log_path),
    )
    report = executor.execute(build_plan(tasks, "b"))

    assert finished == [("a", "failed"), ("b", "skipped")]
    records = [json.loads(line) for line in log_path.read_text().splitlines()]
    assert [r["task"] for r in records] == ["a", "b"]
    assert {r["run_id"] for r in records} == {report.run_id}


def test_executors_with_different_settings_are_independent() -> None:
    tasks = _graph(_leaf("a"), _leaf("b"))
    handlers = {"a": lambda: False, "b": lambda: None}

    strict = TaskExecutor(CallableRunner(handlers), ExecutorSettings())
    lenient = TaskExecutor(CallableRunner(handlers), ExecutorSettings(continue_on_failure=True))

    assert strict.execute(build_plan(tasks)).results["b"].status is TaskStatus.NOT_RUN
    assert lenient.execute(build_plan(tasks)).results["b"].status is TaskStatus.SUCCEEDED


def test_result_state_refuses_second_transition() -> None:
    state = ExecutionState(["a"])
    state.record(TaskResult(name="a", status=TaskStatus.FAILED))

    with pytest.raises(RuntimeError, match="already finished"):
        state.record(TaskResult(name="a", status=TaskStatus.SUCCEEDED))
    assert state.status("a") is TaskStatus.FAILED


def test_failing_event_handler_does_not_escape_execute() -> None:
    def broken_handler(payload: dict) -> None:
        raise ValueError("display closed")

    tasks = _graph(_leaf("a"), _leaf("b"))
    for workers in (1, 2):
        bus = EventBus()
        for event in ("run_started", "task_started", "task_finished", "run_completed"):
            bus.subscribe(event, broken_handler)
        executor = TaskExecutor(
            CallableRunner({"a": lambda: None, "b": lambda: None}),
            settings=ExecutorSettings(max_workers=workers),
            event_bus=bus,
        )

        report = executor.execute(build_plan(tasks))

        assert report.succeeded is True
