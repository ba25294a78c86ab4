"""Task file loader for TOML and YAML task definitions."""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from planner.task_graph import Task, TaskBody

logger = logging.getLogger("tc.task_file")


class TaskFileError(ValueError):
    """Raised when a task file cannot be read or is malformed."""


class TaskFileConfig(BaseModel):
    """File-level ``[config]`` table."""

    model_config = ConfigDict(extra="ignore")

    skip_core_tasks: bool | None = None
    default_to_workspace: bool | None = None
    continue_on_failure: bool | None = None
    workspace_members: list[str] | None = None


class TaskDefinition(BaseModel):
    """One ``[tasks.<name>]`` table."""

    model_config = ConfigDict(extra="forbid")

    description: str = ""
    script: str | None = None
    command: str | None = None
    args: list[str] = Field(default_factory=list)
    cwd: str | None = None
    env: dict[str, str] = Field(default_factory=dict)
    dependencies: list[str] = Field(default_factory=list)

    @field_validator("script", mode="before")
    @classmethod
    def _join_script_lines(cls, value: Any) -> Any:
        if isinstance(value, list):
            return "\n".join(str(line) for line in value)
        return value

    @field_validator("env", mode="before")
    @classmethod
    def _stringify_env(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {str(k): str(v) for k, v in value.items()}
        return value

    @model_validator(mode="after")
    def _one_body_kind(self) -> TaskDefinition:
        if self.script is not None and self.command is not None:
            raise ValueError("'script' and 'command' are mutually exclusive")
        if self.args and self.command is None:
            raise ValueError("'args' requires 'command'")
        return self

    def to_task(self, name: str) -> Task:
        body: TaskBody | None = None
        if self.script is not None:
            body = TaskBody(script=self.script, cwd=self.cwd, env=dict(self.env))
        elif self.command is not None:
            body = TaskBody(command=[self.command, *self.args], cwd=self.cwd, env=dict(self.env))
        return Task(
            name=name,
            dependencies=list(self.dependencies),
            body=body,
            description=self.description,
        )


@dataclass
class TaskFile:
    """Parsed task file: config overrides plus tasks in declaration order."""

    path: Path | None
    config: dict[str, Any] = field(default_factory=dict)
    tasks: dict[str, Task] = field(default_factory=dict)


def _read_raw(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise TaskFileError(f"Task file not found: {path}")
    suffix = path.suffix.lower()
    try:
        if suffix == ".toml":
            with path.open("rb") as fh:
                data = tomllib.load(fh)
        elif suffix in {".yaml", ".yml"}:
            with path.open("r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh) or {}
        else:
            raise TaskFileError(f"Unsupported task file format '{suffix}': {path}")
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as exc:
        raise TaskFileError(f"Cannot parse {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TaskFileError(f"Task file must contain a mapping: {path}")
    return data


def parse_task_data(data: dict[str, Any], path: Path | None = None) -> TaskFile:
    """Validate already-decoded task file data."""
    where = str(path) if path else "<data>"
    try:
        config = TaskFileConfig.model_validate(data.get("config") or {})
    except ValidationError as exc:
        raise TaskFileError(f"Invalid [config] in {where}: {exc}") from exc

    raw_tasks = data.get("tasks") or {}
    if not isinstance(raw_tasks, dict):
        raise TaskFileError(f"'tasks' must be a table in {where}")

    tasks: dict[str, Task] = {}
    for name, raw in raw_tasks.items():
        try:
            definition = TaskDefinition.model_validate(raw or {})
        except ValidationError as exc:
            raise TaskFileError(f"Invalid task '{name}' in {where}: {exc}") from exc
        tasks[str(name)] = definition.to_task(str(name))

    logger.debug("Loaded %d tasks from %s", len(tasks), where)
    return TaskFile(path=path, config=config.model_dump(exclude_none=True), tasks=tasks)


def load_task_file(path: Path) -> TaskFile:
    """Load a ``.toml``, ``.yaml`` or ``.yml`` task file."""
    return parse_task_data(_read_raw(path), path=path)
